"""Error types raised by the resolution pipeline and its collaborators."""
from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    CLASSIFICATION_FAILED = "CLASSIFICATION_FAILED"
    PLACES_API_ERROR = "PLACES_API_ERROR"
    DETAILS_FETCH_FAILED = "DETAILS_FETCH_FAILED"
    SUMMARY_FAILED = "SUMMARY_FAILED"
    TIMEOUT = "TIMEOUT"
    CANCELLED = "CANCELLED"


class ResolutionError(Exception):
    def __init__(self, code: ErrorCode, message: str, retryable: bool = False, hint: Optional[str] = None):
        self.code = code
        self.message = message
        self.retryable = retryable
        self.hint = hint
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {
            "code": self.code.value,
            "message": self.message,
            "retryable": self.retryable,
            "hint": self.hint,
        }


class UpstreamError(ResolutionError):
    """A collaborator call failed, timed out, or returned malformed data."""

    def __init__(self, code: ErrorCode, message: str, hint: Optional[str] = None):
        super().__init__(code=code, message=message, retryable=True, hint=hint)


class PlacesApiError(UpstreamError):
    def __init__(self, message: str, status: Optional[str] = None):
        self.status = status
        super().__init__(code=ErrorCode.PLACES_API_ERROR, message=message)


class ResolutionCancelled(ResolutionError):
    """Raised out of `resolve` once the caller cancelled the resolution."""

    def __init__(self, message: str = "Resolution cancelled"):
        super().__init__(code=ErrorCode.CANCELLED, message=message)
