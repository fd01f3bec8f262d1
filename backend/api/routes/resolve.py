"""
Resolution API routes.

Turns a storefront photo into a single place match.
"""
import asyncio
import logging
from typing import List, Optional

from fastapi import APIRouter, File, Form, HTTPException, Request, UploadFile
from pydantic import BaseModel, Field

from domain.errors import ResolutionCancelled, ResolutionError
from domain.models import (
    Candidate,
    Coordinate,
    ResolvedPlace,
    Unresolved,
    UnresolvedReason,
)
from services.places_client import get_default_places_client
from services.places_enrichment import PlaceEnricher
from services.resolution import ResolutionOrchestrator
from services.review_summary import ReviewSummarizer
from services.vision_classifier import VisionClassifier
from settings import settings

logger = logging.getLogger(__name__)

router = APIRouter()

DISCONNECT_POLL_SECONDS = 0.5

UNRESOLVED_MESSAGES = {
    UnresolvedReason.NO_LOCATION_SIGNAL: (
        "We couldn't find this place automatically. Enable location or pick the place manually."
    ),
    UnresolvedReason.NO_CANDIDATES_FOUND: (
        "We couldn't find this place automatically. Please help us by selecting it."
    ),
    UnresolvedReason.CLASSIFICATION_FAILED: "Something went wrong analyzing the photo. Please try again.",
    UnresolvedReason.SEARCH_FAILED: "Something went wrong searching nearby places. Please try again.",
    UnresolvedReason.DETAILS_FETCH_FAILED: "Something went wrong loading place details. Please try again.",
}


class CandidatePayload(BaseModel):
    provider_id: str
    name: str
    formatted_address: str = ""
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    rating: Optional[float] = None
    rating_count: Optional[int] = None
    types: List[str] = []

    def to_candidate(self) -> Candidate:
        return Candidate(
            provider_id=self.provider_id,
            name=self.name,
            formatted_address=self.formatted_address,
            coordinate=Coordinate(self.latitude, self.longitude),
            rating=self.rating,
            rating_count=self.rating_count,
            types=list(self.types),
        )


class SummaryResponse(BaseModel):
    text: str
    pros: List[str]
    cons: List[str]
    recommendations: List[str]
    sentiment: str
    best_for: List[str] = []


class PlaceResponse(BaseModel):
    provider_id: str
    name: str
    category: str
    address: str
    latitude: float
    longitude: float
    rating: Optional[float] = None
    review_count: Optional[int] = None
    is_open: Optional[bool] = None
    week_hours: List[str] = []
    phone: Optional[str] = None
    website: Optional[str] = None


class ResolveResponse(BaseModel):
    status: str  # "resolved" | "unresolved"
    place: Optional[PlaceResponse] = None
    summary: Optional[SummaryResponse] = None
    alternates: List[CandidatePayload] = []
    location_source: Optional[str] = None
    reason: Optional[str] = None
    retryable: bool = False
    needs_manual_selection: bool = False
    message: Optional[str] = None


class SelectRequest(BaseModel):
    candidate: CandidatePayload
    category: str
    alternates: List[CandidatePayload] = []


def _candidate_payload(candidate: Candidate) -> CandidatePayload:
    return CandidatePayload(**candidate.to_dict())


def resolved_to_response(resolved: ResolvedPlace) -> ResolveResponse:
    details = resolved.details
    hours = details.opening_hours
    return ResolveResponse(
        status="resolved",
        place=PlaceResponse(
            provider_id=details.provider_id,
            name=details.name,
            category=resolved.category,
            address=details.formatted_address,
            latitude=details.coordinate.latitude,
            longitude=details.coordinate.longitude,
            rating=details.rating,
            review_count=details.rating_count,
            is_open=hours.open_now if hours else None,
            week_hours=list(hours.weekday_text) if hours else [],
            phone=details.phone,
            website=details.website,
        ),
        summary=SummaryResponse(
            text=resolved.summary.text,
            pros=resolved.summary.pros,
            cons=resolved.summary.cons,
            recommendations=resolved.summary.recommendations,
            sentiment=resolved.summary.sentiment.value,
            best_for=resolved.summary.best_for,
        ),
        alternates=[_candidate_payload(c) for c in resolved.alternates],
        location_source=resolved.location_source.value if resolved.location_source else None,
    )


def unresolved_to_response(outcome: Unresolved) -> ResolveResponse:
    return ResolveResponse(
        status="unresolved",
        reason=outcome.reason.value,
        retryable=outcome.retryable,
        needs_manual_selection=outcome.needs_manual_selection,
        message=UNRESOLVED_MESSAGES[outcome.reason],
    )


def new_orchestrator() -> ResolutionOrchestrator:
    return ResolutionOrchestrator(
        classifier=VisionClassifier(),
        places=get_default_places_client(),
        summarizer=ReviewSummarizer(),
    )


def new_enricher() -> PlaceEnricher:
    return PlaceEnricher(
        get_default_places_client(),
        ReviewSummarizer(),
        call_timeout=settings.RESOLUTION_CALL_TIMEOUT_SECONDS,
    )


async def cancel_on_disconnect(
    request: Request,
    orchestrator: ResolutionOrchestrator,
    interval: float = DISCONNECT_POLL_SECONDS,
) -> None:
    """Cancel the resolution once the client has gone away."""
    while not orchestrator.finished:
        if await request.is_disconnected():
            logger.info("Client disconnected; cancelling resolution")
            orchestrator.cancel()
            return
        await asyncio.sleep(interval)


@router.post("", response_model=ResolveResponse)
async def resolve_photo(
    request: Request,
    file: UploadFile = File(...),
    latitude: Optional[float] = Form(None),
    longitude: Optional[float] = Form(None),
):
    """
    Resolve an uploaded storefront photo.

    The device location is optional and only used when the photo carries no
    GPS metadata. "No match" outcomes come back as status "unresolved".
    """
    device_coordinate = None
    if (latitude is None) != (longitude is None):
        raise HTTPException(status_code=422, detail="latitude and longitude must be sent together")
    if latitude is not None:
        try:
            device_coordinate = Coordinate(latitude=latitude, longitude=longitude)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc))

    image = await file.read()
    if not image:
        raise HTTPException(status_code=400, detail="Empty image upload")

    orchestrator = new_orchestrator()
    watcher = asyncio.create_task(cancel_on_disconnect(request, orchestrator))
    try:
        result = await orchestrator.resolve(image, device_coordinate=device_coordinate)
    except ResolutionCancelled:
        raise HTTPException(status_code=499, detail="Client closed request")
    finally:
        watcher.cancel()
    if isinstance(result, Unresolved):
        return unresolved_to_response(result)
    return resolved_to_response(result)


@router.post("/select", response_model=ResolveResponse)
async def resolve_selected(request: SelectRequest):
    """Enrich a candidate the user picked from the alternates list."""
    enricher = new_enricher()
    try:
        resolved = await enricher.enrich(
            request.candidate.to_candidate(),
            request.category,
            alternates=[c.to_candidate() for c in request.alternates],
        )
    except ResolutionError as exc:
        return unresolved_to_response(Unresolved(UnresolvedReason.DETAILS_FETCH_FAILED, exc.message))
    return resolved_to_response(resolved)
