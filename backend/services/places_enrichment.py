from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

from domain.errors import ErrorCode, ResolutionCancelled, UpstreamError
from domain.models import (
    Candidate,
    LocationSource,
    PlaceDetails,
    ResolvedPlace,
    ReviewSummary,
)
from services.cancellation import CancellationToken, call_blocking
from services.candidate_selector import MAX_ALTERNATES
from services.review_summary import placeholder_summary

logger = logging.getLogger(__name__)


class PlaceEnricher:
    """
    Turns a chosen candidate into a ResolvedPlace: full details plus an AI
    review summary, degrading to the neutral placeholder summary when there
    are no reviews or the summarizer fails.
    """

    def __init__(self, places: Any, summarizer: Any, call_timeout: Optional[float] = None):
        self.places = places
        self.summarizer = summarizer
        self.call_timeout = call_timeout

    async def _fetch_details(self, candidate: Candidate, token: Optional[CancellationToken]) -> PlaceDetails:
        try:
            return await call_blocking(
                self.places.fetch_details,
                candidate.provider_id,
                timeout=self.call_timeout,
                token=token,
                label=f"details {candidate.provider_id}",
            )
        except ResolutionCancelled:
            raise
        except Exception as exc:
            raise UpstreamError(
                ErrorCode.DETAILS_FETCH_FAILED,
                f"Could not fetch details for {candidate.name or candidate.provider_id}: {exc}",
            ) from exc

    async def _summarize(
        self,
        details: PlaceDetails,
        category: str,
        token: Optional[CancellationToken],
    ) -> ReviewSummary:
        reviews = details.reviews_with_text
        if not reviews:
            logger.info("No reviews for %s; using placeholder summary", details.name)
            return placeholder_summary(details.name, category)
        try:
            return await call_blocking(
                self.summarizer.summarize_reviews,
                details.name,
                category,
                reviews,
                timeout=self.call_timeout,
                token=token,
                label=f"summary {details.provider_id}",
            )
        except ResolutionCancelled:
            raise
        except Exception as exc:
            logger.warning("Review summary failed for %s, using placeholder: %s", details.name, exc)
            return placeholder_summary(details.name, category)

    async def enrich(
        self,
        candidate: Candidate,
        category: str,
        alternates: Sequence[Candidate] = (),
        token: Optional[CancellationToken] = None,
        location_source: Optional[LocationSource] = None,
    ) -> ResolvedPlace:
        """
        Fetch details and a summary for `candidate`.

        Serves both the automatic top pick and a candidate the user picked
        from the alternates list.

        Raises:
            UpstreamError(DETAILS_FETCH_FAILED) when details cannot be fetched.
            ResolutionCancelled when `token` is cancelled mid-way.
        """
        details = await self._fetch_details(candidate, token)
        summary = await self._summarize(details, category, token)
        return ResolvedPlace(
            candidate=candidate,
            details=details,
            summary=summary,
            alternates=list(alternates)[:MAX_ALTERNATES],
            category=category,
            location_source=location_source,
        )
