"""
Resolution orchestrator.

Runs one capture through the pipeline:

    IDLE → LOCATING_SIGNAL → CLASSIFYING → SEARCHING → ENRICHING → RESOLVED
                      ↘────────────↘──────────────↘──────────────→ UNRESOLVED

The orchestrator never touches UI state. Callers observe progress through the
optional `on_transition` callback and the returned ResolvedPlace/Unresolved.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from domain.errors import ResolutionCancelled, UpstreamError
from domain.models import (
    Coordinate,
    ResolutionResult,
    ResolutionState,
    SearchTier,
    Unresolved,
    UnresolvedReason,
)
from services.cancellation import CancellationToken, call_blocking
from services.candidate_selector import select_candidate
from services.direction_filter import filter_by_direction
from services.metadata_extractor import extract_location_signal, read_image_metadata
from services.places_enrichment import PlaceEnricher
from services.search_cascade import DEFAULT_TIERS, SearchCascade
from settings import settings

logger = logging.getLogger(__name__)

TransitionCallback = Callable[[ResolutionState, ResolutionState], None]

_TERMINAL_STATES = (ResolutionState.RESOLVED, ResolutionState.UNRESOLVED)


class ResolutionOrchestrator:
    """Resolves exactly one capture; create a new instance per photo."""

    def __init__(
        self,
        classifier: Any,
        places: Any,
        summarizer: Any,
        tiers: Sequence[SearchTier] = DEFAULT_TIERS,
        call_timeout: Optional[float] = None,
        on_transition: Optional[TransitionCallback] = None,
    ):
        self.classifier = classifier
        self.call_timeout = settings.RESOLUTION_CALL_TIMEOUT_SECONDS if call_timeout is None else call_timeout
        self.cascade = SearchCascade(places, tiers=tiers, call_timeout=self.call_timeout)
        self.enricher = PlaceEnricher(places, summarizer, call_timeout=self.call_timeout)
        self.on_transition = on_transition
        self.token = CancellationToken()
        self.state = ResolutionState.IDLE
        self.event_log: List[Dict[str, Any]] = []
        self._started = False

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled

    def cancel(self) -> None:
        """Stop issuing calls; any in-flight result is discarded when it lands."""
        if not self.token.cancelled:
            logger.info("Resolution cancelled in state %s", self.state.value)
        self.token.cancel()

    def _transition(self, new_state: ResolutionState, detail: str = "") -> None:
        self.token.raise_if_cancelled()
        old_state = self.state
        self.state = new_state
        self.event_log.append({
            "ts": datetime.now(timezone.utc).isoformat(),
            "state": new_state.value,
            "detail": detail,
        })
        logger.info("Resolution %s -> %s %s", old_state.value, new_state.value, detail)
        if self.on_transition is not None:
            self.on_transition(old_state, new_state)

    def _unresolved(self, reason: UnresolvedReason, detail: Optional[str] = None) -> Unresolved:
        self._transition(ResolutionState.UNRESOLVED, reason.value)
        return Unresolved(reason=reason, detail=detail)

    async def resolve(
        self,
        image: bytes,
        device_coordinate: Optional[Coordinate] = None,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> ResolutionResult:
        """
        Resolve a storefront photo to a single place.

        Args:
            image: Raw photo bytes.
            device_coordinate: Location reported by the device, if known.
            metadata: GPS tags supplied by the capture layer. When omitted they
                are read from the image's EXIF.

        Returns:
            ResolvedPlace on success, otherwise Unresolved with a typed reason.

        Raises:
            ResolutionCancelled: if `cancel()` was called before completion.
            RuntimeError: if this instance was already used.
        """
        if self._started:
            raise RuntimeError("ResolutionOrchestrator instances serve a single capture")
        self._started = True

        self._transition(ResolutionState.LOCATING_SIGNAL)
        if metadata is None:
            try:
                metadata = await call_blocking(
                    read_image_metadata,
                    image,
                    timeout=self.call_timeout,
                    token=self.token,
                    label="metadata read",
                )
            except UpstreamError as exc:
                logger.warning("Photo metadata unavailable: %s", exc.message)
                metadata = None
        signal = extract_location_signal(metadata, device_coordinate)
        if signal is None:
            return self._unresolved(UnresolvedReason.NO_LOCATION_SIGNAL)

        self._transition(ResolutionState.CLASSIFYING, signal.source.value)
        try:
            guess = await call_blocking(
                self.classifier.classify,
                image,
                signal.coordinate,
                timeout=self.call_timeout,
                token=self.token,
                label="classification",
            )
        except ResolutionCancelled:
            raise
        except Exception as exc:
            logger.warning("Classification failed: %s", exc)
            return self._unresolved(UnresolvedReason.CLASSIFICATION_FAILED, str(exc))

        self._transition(ResolutionState.SEARCHING, f"{guess.name} ({guess.category})")
        cascade = await self.cascade.run(signal.coordinate, guess, token=self.token)
        self.token.raise_if_cancelled()
        if not cascade.found:
            if cascade.had_failures:
                failed = ", ".join(f.tier.label for f in cascade.failures)
                return self._unresolved(UnresolvedReason.SEARCH_FAILED, f"failed tiers: {failed}")
            return self._unresolved(UnresolvedReason.NO_CANDIDATES_FOUND)

        candidates = cascade.candidates
        if signal.direction is not None:
            candidates = filter_by_direction(candidates, signal.coordinate, signal.direction)
        selection = select_candidate(candidates)
        self._transition(ResolutionState.ENRICHING, selection.selected.provider_id)
        try:
            resolved = await self.enricher.enrich(
                selection.selected,
                guess.category,
                alternates=selection.alternates,
                token=self.token,
                location_source=signal.source,
            )
        except UpstreamError as exc:
            return self._unresolved(UnresolvedReason.DETAILS_FETCH_FAILED, exc.message)

        self._transition(ResolutionState.RESOLVED, resolved.details.name)
        return resolved

    @property
    def finished(self) -> bool:
        return self.state in _TERMINAL_STATES
