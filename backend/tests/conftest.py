import sys
from pathlib import Path

import pytest

# Ensure the backend package root is on sys.path for direct pytest runs
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from domain.models import (  # noqa: E402
    BusinessGuess,
    Candidate,
    Coordinate,
    OpeningHours,
    PlaceDetails,
    PlaceReview,
    ReviewSummary,
    Sentiment,
)


def make_candidate(pid: str, name: str = None, lat: float = 37.7749, lon: float = -122.4194) -> Candidate:
    return Candidate(
        provider_id=pid,
        name=name or f"Place {pid}",
        formatted_address=f"{pid} Market St, San Francisco, CA",
        coordinate=Coordinate(lat, lon),
        rating=4.5,
        rating_count=120,
        types=["cafe"],
    )


class FakePlaces:
    """In-memory place provider that records every call it receives."""

    def __init__(self, tier_results=None, details=None, fail_tiers=(), details_error=None):
        # tier_results: list of candidate lists, consumed in call order
        self.tier_results = list(tier_results or [])
        self.details = details
        self.fail_tiers = set(fail_tiers)
        self.details_error = details_error
        self.calls = []
        self.on_search = None

    def _next(self, kind, *args):
        self.calls.append((kind,) + args)
        index = len([c for c in self.calls if c[0] != "fetch_details"]) - 1
        if self.on_search is not None:
            self.on_search(index)
        if index in self.fail_tiers:
            raise RuntimeError(f"provider down for call {index}")
        if index < len(self.tier_results):
            return list(self.tier_results[index])
        return []

    def search_nearby_typed(self, coordinate, name, category, radius_m):
        return self._next("nearby_typed", coordinate, name, category, radius_m)

    def search_nearby_generic(self, coordinate, name, radius_m):
        return self._next("nearby_generic", coordinate, name, radius_m)

    def search_text(self, query, coordinate=None):
        return self._next("text", query, coordinate)

    def fetch_details(self, provider_id):
        self.calls.append(("fetch_details", provider_id))
        if self.details_error is not None:
            raise self.details_error
        if self.details is not None:
            return self.details
        return make_details(provider_id)

    @property
    def search_calls(self):
        return [c for c in self.calls if c[0] != "fetch_details"]

    @property
    def details_calls(self):
        return [c for c in self.calls if c[0] == "fetch_details"]


def make_details(pid: str, name: str = "Blue Bottle Coffee", reviews=None) -> PlaceDetails:
    return PlaceDetails(
        provider_id=pid,
        name=name,
        formatted_address="66 Mint St, San Francisco, CA 94103",
        coordinate=Coordinate(37.7825, -122.4076),
        rating=4.6,
        rating_count=2300,
        opening_hours=OpeningHours(open_now=True, weekday_text=["Monday: 7:00 AM – 6:00 PM"]),
        phone="(510) 653-3394",
        website="https://bluebottlecoffee.com",
        reviews=list(reviews or []),
        types=["cafe", "food"],
    )


class FakeSummarizer:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def summarize_reviews(self, place_name, category, reviews):
        self.calls.append((place_name, category, list(reviews)))
        if self.error is not None:
            raise self.error
        return ReviewSummary(
            text=f"Customers love {place_name}.",
            pros=["Great coffee"],
            cons=["Long lines"],
            recommendations=["Go early"],
            sentiment=Sentiment.POSITIVE,
        )


class FakeClassifier:
    def __init__(self, guess=None, error=None):
        self.guess = guess or BusinessGuess(name="Blue Bottle Coffee", category="Coffee Shop")
        self.error = error
        self.calls = []

    def classify(self, image, coordinate):
        self.calls.append((image, coordinate))
        if self.error is not None:
            raise self.error
        return self.guess


@pytest.fixture
def sf_coordinate():
    return Coordinate(37.7749, -122.4194)


@pytest.fixture
def coffee_guess():
    return BusinessGuess(name="Blue Bottle Coffee", category="Coffee Shop", description="Blue storefront")


@pytest.fixture
def reviews():
    return [
        PlaceReview(author="Ana", text="Excellent pour-over.", rating=5),
        PlaceReview(author="Ben", text="Pricey but good.", rating=4),
    ]
