"""
Core domain models for storefront place resolution.
These are framework-agnostic and can be used across all services.

Every entity here is created fresh for one capture and discarded once the
resolution finishes; nothing is persisted by this package.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


GENERIC_BUSINESS_NAMES = {"", "unknown", "unknown business", "business"}


@dataclass(frozen=True)
class Coordinate:
    """A WGS84 point in signed decimal degrees."""
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"longitude out of range: {self.longitude}")

    def as_param(self) -> str:
        """Render as the `lat,lng` string most place APIs expect."""
        return f"{self.latitude},{self.longitude}"


class LocationSource(str, Enum):
    """Where a location signal came from."""
    PHOTO_METADATA = "photo_metadata"
    DEVICE = "device"


@dataclass(frozen=True)
class LocationSignal:
    """
    Best-effort capture location.

    `direction` is the camera heading in degrees from north and `accuracy`
    the horizontal GPS error in meters; both only come from photo metadata.
    """
    coordinate: Coordinate
    source: LocationSource
    direction: Optional[float] = None
    accuracy: Optional[float] = None


@dataclass(frozen=True)
class BusinessGuess:
    """Structured guess about the business shown in a photo."""
    name: str
    category: str
    description: str = ""
    on_image_location_text: Optional[str] = None
    features: List[str] = field(default_factory=list)

    @property
    def has_generic_name(self) -> bool:
        return (self.name or "").strip().lower() in GENERIC_BUSINESS_NAMES


class TierStrategy(str, Enum):
    """Provider query issued by one cascade tier."""
    NEARBY_TYPED = "nearby_typed"
    NEARBY_GENERIC = "nearby_generic"
    TEXT_WITH_BIAS = "text_with_bias"


@dataclass(frozen=True)
class SearchTier:
    strategy: TierStrategy
    radius_m: Optional[int] = None
    uses_business_type: bool = False

    @property
    def label(self) -> str:
        if self.radius_m is None:
            return self.strategy.value
        return f"{self.strategy.value}@{self.radius_m}m"


@dataclass(frozen=True)
class Candidate:
    """One place hit returned by a provider query."""
    provider_id: str
    name: str
    formatted_address: str
    coordinate: Coordinate
    rating: Optional[float] = None
    rating_count: Optional[int] = None
    types: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider_id": self.provider_id,
            "name": self.name,
            "formatted_address": self.formatted_address,
            "latitude": self.coordinate.latitude,
            "longitude": self.coordinate.longitude,
            "rating": self.rating,
            "rating_count": self.rating_count,
            "types": list(self.types),
        }


@dataclass(frozen=True)
class PlaceReview:
    author: str
    text: str
    rating: Optional[float] = None
    relative_time: Optional[str] = None


@dataclass(frozen=True)
class OpeningHours:
    open_now: Optional[bool] = None
    weekday_text: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class PlaceDetails:
    """Full provider record for a single place."""
    provider_id: str
    name: str
    formatted_address: str
    coordinate: Coordinate
    rating: Optional[float] = None
    rating_count: Optional[int] = None
    opening_hours: Optional[OpeningHours] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    reviews: List[PlaceReview] = field(default_factory=list)
    types: List[str] = field(default_factory=list)
    business_status: Optional[str] = None

    @property
    def reviews_with_text(self) -> List[PlaceReview]:
        return [r for r in self.reviews if r.text and r.text.strip()]


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


@dataclass(frozen=True)
class ReviewSummary:
    text: str
    pros: List[str]
    cons: List[str]
    recommendations: List[str]
    sentiment: Sentiment
    best_for: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ResolvedPlace:
    """Terminal output of a successful resolution."""
    candidate: Candidate
    details: PlaceDetails
    summary: ReviewSummary
    alternates: List[Candidate] = field(default_factory=list)
    category: str = ""
    location_source: Optional[LocationSource] = None


class UnresolvedReason(str, Enum):
    NO_LOCATION_SIGNAL = "no_location_signal"
    CLASSIFICATION_FAILED = "classification_failed"
    NO_CANDIDATES_FOUND = "no_candidates_found"
    SEARCH_FAILED = "search_failed"
    DETAILS_FETCH_FAILED = "details_fetch_failed"


_RETRYABLE_REASONS = {
    UnresolvedReason.CLASSIFICATION_FAILED,
    UnresolvedReason.SEARCH_FAILED,
    UnresolvedReason.DETAILS_FETCH_FAILED,
}


@dataclass(frozen=True)
class Unresolved:
    """A typed "no automatic match" outcome."""
    reason: UnresolvedReason
    detail: Optional[str] = None

    @property
    def retryable(self) -> bool:
        """Upstream failures; the caller may simply try again."""
        return self.reason in _RETRYABLE_REASONS

    @property
    def needs_manual_selection(self) -> bool:
        """Expected outcomes that route the user to manual place selection."""
        return not self.retryable


ResolutionResult = Union[ResolvedPlace, Unresolved]


class ResolutionState(str, Enum):
    """
    Orchestrator states.

    IDLE → LOCATING_SIGNAL → CLASSIFYING → SEARCHING → ENRICHING → RESOLVED
                    ↘──────────────↘──────────────↘───────────→ UNRESOLVED
    """
    IDLE = "idle"
    LOCATING_SIGNAL = "locating_signal"
    CLASSIFYING = "classifying"
    SEARCHING = "searching"
    ENRICHING = "enriching"
    RESOLVED = "resolved"
    UNRESOLVED = "unresolved"
