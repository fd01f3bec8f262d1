import os

# Basic settings helper to read environment configuration.


def _as_bool(val: str | None, default: bool = False) -> bool:
    if val is None:
        return default
    return val.lower() in ("1", "true", "yes", "on")


def _as_float(val: str | None, default: float) -> float:
    if val is None or not val.strip():
        return default
    try:
        return float(val)
    except ValueError:
        return default


class Settings:
    def __init__(self) -> None:
        self.GOOGLE_PLACES_API_KEY: str = os.getenv("GOOGLE_PLACES_API_KEY", "")
        self.GOOGLE_PLACES_BASE_URL: str = os.getenv(
            "GOOGLE_PLACES_BASE_URL", "https://maps.googleapis.com/maps/api/place"
        )
        self.OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
        self.OPENAI_VISION_MODEL: str = os.getenv("OPENAI_VISION_MODEL", "gpt-4o")
        self.OPENAI_SUMMARY_MODEL: str = os.getenv("OPENAI_SUMMARY_MODEL", "gpt-4o")
        self.RESOLUTION_CALL_TIMEOUT_SECONDS: float = _as_float(
            os.getenv("RESOLUTION_CALL_TIMEOUT_SECONDS"), 8.0
        )
        self.TEXT_SEARCH_BIAS_RADIUS_M: int = int(
            _as_float(os.getenv("TEXT_SEARCH_BIAS_RADIUS_M"), 5000)
        )
        self.CLASSIFIER_IMAGE_MAX_WIDTH: int = int(
            _as_float(os.getenv("CLASSIFIER_IMAGE_MAX_WIDTH"), 1024)
        )
        self.HEIF_SUPPORT_ENABLED: bool = _as_bool(os.getenv("HEIF_SUPPORT_ENABLED"), True)


settings = Settings()
