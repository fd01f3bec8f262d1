"""
Google Places client (legacy Places Web Service) for candidate search and details.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

from domain.errors import ErrorCode, PlacesApiError, ResolutionError
from domain.models import (
    GENERIC_BUSINESS_NAMES,
    Candidate,
    Coordinate,
    OpeningHours,
    PlaceDetails,
    PlaceReview,
)
from settings import settings

logger = logging.getLogger(__name__)

DETAILS_FIELDS = (
    "place_id,name,formatted_address,rating,user_ratings_total,opening_hours,"
    "types,geometry,reviews,formatted_phone_number,website,business_status"
)
GENERIC_NEARBY_TYPES = "restaurant|cafe|store|gym|beauty_salon"

# Business categories reported by the classifier mapped to Google place types.
CATEGORY_PLACE_TYPES: Dict[str, List[str]] = {
    "Spa": ["spa", "beauty_salon", "health"],
    "Salon": ["beauty_salon", "hair_care"],
    "Spa/Salon": ["spa", "beauty_salon", "hair_care", "health"],
    "Beauty Salon": ["beauty_salon", "hair_care"],
    "Hair Salon": ["hair_care", "beauty_salon"],
    "Nail Salon": ["beauty_salon"],
    "Massage": ["spa", "health"],
    "Restaurant": ["restaurant", "food", "meal_takeaway"],
    "Cafe": ["cafe", "restaurant"],
    "Coffee Shop": ["cafe"],
    "Gym": ["gym"],
    "Fitness Center": ["gym"],
    "Store": ["store"],
    "Retail": ["store", "clothing_store", "shopping_mall"],
    "Bookstore": ["book_store"],
    "Hotel": ["lodging"],
    "Bar": ["bar", "night_club"],
    "Pharmacy": ["pharmacy"],
    "Bank": ["bank"],
    "Gas Station": ["gas_station"],
    "Hospital": ["hospital"],
    "School": ["school"],
    "University": ["university"],
}


def place_types_for_category(category: str) -> List[str]:
    """Exact match first, then substring match either way, else 'establishment'."""
    normalized = (category or "").strip().lower()
    if normalized:
        for key, types in CATEGORY_PLACE_TYPES.items():
            if key.lower() == normalized:
                return list(types)
        for key, types in CATEGORY_PLACE_TYPES.items():
            key_l = key.lower()
            if key_l in normalized or normalized in key_l:
                return list(types)
    return ["establishment"]


def _names_match(business_name: str, place_name: str) -> bool:
    a = business_name.strip().lower()
    b = (place_name or "").strip().lower()
    return bool(b) and (a in b or b in a)


def _parse_coordinate(item: Dict[str, Any]) -> Coordinate:
    location = (item.get("geometry") or {}).get("location") or {}
    return Coordinate(latitude=float(location["lat"]), longitude=float(location["lng"]))


def _parse_candidate(item: Dict[str, Any]) -> Candidate:
    rating = item.get("rating")
    count = item.get("user_ratings_total")
    return Candidate(
        provider_id=str(item.get("place_id", "")),
        name=item.get("name", ""),
        formatted_address=item.get("formatted_address") or item.get("vicinity") or "",
        coordinate=_parse_coordinate(item),
        rating=float(rating) if rating is not None else None,
        rating_count=int(count) if count is not None else None,
        types=list(item.get("types") or []),
    )


def _parse_details(result: Dict[str, Any]) -> PlaceDetails:
    hours_raw = result.get("opening_hours")
    opening_hours = None
    if hours_raw:
        opening_hours = OpeningHours(
            open_now=hours_raw.get("open_now"),
            weekday_text=list(hours_raw.get("weekday_text") or []),
        )
    reviews = [
        PlaceReview(
            author=r.get("author_name", ""),
            text=r.get("text", "") or "",
            rating=r.get("rating"),
            relative_time=r.get("relative_time_description"),
        )
        for r in result.get("reviews") or []
    ]
    rating = result.get("rating")
    count = result.get("user_ratings_total")
    return PlaceDetails(
        provider_id=str(result.get("place_id", "")),
        name=result.get("name", ""),
        formatted_address=result.get("formatted_address", ""),
        coordinate=_parse_coordinate(result),
        rating=float(rating) if rating is not None else None,
        rating_count=int(count) if count is not None else None,
        opening_hours=opening_hours,
        phone=result.get("formatted_phone_number"),
        website=result.get("website"),
        reviews=reviews,
        types=list(result.get("types") or []),
        business_status=result.get("business_status"),
    )


class GooglePlacesClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = 5.0,
        text_bias_radius_m: Optional[int] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.GOOGLE_PLACES_API_KEY
        self.base_url = (base_url or settings.GOOGLE_PLACES_BASE_URL).rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout
        self.text_bias_radius_m = text_bias_radius_m or settings.TEXT_SEARCH_BIAS_RADIUS_M

    def _get(self, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        if not self.api_key:
            raise ResolutionError(
                code=ErrorCode.CONFIGURATION_ERROR,
                message="Google Places API key not configured. Set GOOGLE_PLACES_API_KEY.",
            )
        url = f"{self.base_url}/{endpoint}/json"
        try:
            resp = self.session.get(url, params={**params, "key": self.api_key}, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except requests.RequestException as exc:
            raise PlacesApiError(f"Places {endpoint} request failed: {exc}") from exc
        except ValueError as exc:
            raise PlacesApiError(f"Places {endpoint} returned non-JSON body") from exc

        status = data.get("status")
        if status in ("OK", "ZERO_RESULTS"):
            return data
        raise PlacesApiError(
            f"Places {endpoint} error: {status} {data.get('error_message', '')}".strip(),
            status=status,
        )

    def _results(self, data: Dict[str, Any]) -> List[Candidate]:
        candidates: List[Candidate] = []
        for item in data.get("results") or []:
            try:
                candidates.append(_parse_candidate(item))
            except (KeyError, TypeError, ValueError):
                logger.debug("Skipping malformed place result: %s", item.get("place_id"))
        return candidates

    def search_nearby_typed(
        self,
        coordinate: Coordinate,
        name: str,
        category: str,
        radius_m: int,
    ) -> List[Candidate]:
        """
        Nearby search constrained to the place types of the guessed category.

        Each mapped type is queried in turn; the first type with hits that
        match both the type list and (for non-generic names) the business name
        wins. A type whose request errors is skipped; PlacesApiError is only
        raised when every mapped type errored.
        """
        place_types = place_types_for_category(category)
        generic = (name or "").strip().lower() in GENERIC_BUSINESS_NAMES

        last_error: Optional[PlacesApiError] = None
        answered = 0
        for place_type in place_types:
            params = {
                "location": coordinate.as_param(),
                "radius": str(radius_m),
                "type": place_type,
            }
            if not generic:
                params["keyword"] = name
            try:
                data = self._get("nearbysearch", params)
            except PlacesApiError as exc:
                logger.warning("nearby typed: type=%s failed: %s", place_type, exc)
                last_error = exc
                continue
            answered += 1
            hits = [
                c for c in self._results(data)
                if set(c.types).intersection(place_types)
                and (generic or _names_match(name, c.name))
            ]
            logger.debug(
                "nearby typed: type=%s radius=%s got %d filtered results",
                place_type,
                radius_m,
                len(hits),
            )
            if hits:
                return hits
        if answered == 0 and last_error is not None:
            raise last_error
        return []

    def search_nearby_generic(self, coordinate: Coordinate, name: str, radius_m: int) -> List[Candidate]:
        params = {
            "location": coordinate.as_param(),
            "radius": str(radius_m),
        }
        if (name or "").strip().lower() not in GENERIC_BUSINESS_NAMES:
            params["keyword"] = name
        else:
            params["type"] = GENERIC_NEARBY_TYPES
        return self._results(self._get("nearbysearch", params))

    def search_text(self, query: str, coordinate: Optional[Coordinate] = None) -> List[Candidate]:
        params: Dict[str, Any] = {"query": query}
        if coordinate is not None:
            params["location"] = coordinate.as_param()
            params["radius"] = str(self.text_bias_radius_m)
        else:
            logger.warning("Text search without location bias; results may be global")
        return self._results(self._get("textsearch", params))

    def fetch_details(self, provider_id: str) -> PlaceDetails:
        data = self._get("details", {"place_id": provider_id, "fields": DETAILS_FIELDS})
        result = data.get("result")
        if not result:
            raise PlacesApiError(f"No details returned for place {provider_id}", status=data.get("status"))
        try:
            return _parse_details({"place_id": provider_id, **result})
        except (KeyError, TypeError, ValueError) as exc:
            raise PlacesApiError(f"Malformed details for place {provider_id}: {exc}") from exc


_default_places_client: Optional[GooglePlacesClient] = None


def get_default_places_client() -> GooglePlacesClient:
    global _default_places_client
    if _default_places_client is None:
        _default_places_client = GooglePlacesClient()
    return _default_places_client
