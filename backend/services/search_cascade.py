"""
Tiered candidate search.

Tiers are plain descriptors consumed by one loop, from the tightest
type-filtered radius down to a location-biased text search. The first tier
that returns anything ends the search.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Tuple

from domain.errors import ResolutionCancelled
from domain.models import BusinessGuess, Candidate, Coordinate, SearchTier, TierStrategy
from services.cancellation import CancellationToken, call_blocking

logger = logging.getLogger(__name__)

DEFAULT_TIERS: Tuple[SearchTier, ...] = (
    SearchTier(TierStrategy.NEARBY_TYPED, radius_m=50, uses_business_type=True),
    SearchTier(TierStrategy.NEARBY_TYPED, radius_m=200, uses_business_type=True),
    SearchTier(TierStrategy.NEARBY_GENERIC, radius_m=100, uses_business_type=False),
    SearchTier(TierStrategy.TEXT_WITH_BIAS, radius_m=None, uses_business_type=False),
)


@dataclass
class TierFailure:
    tier: SearchTier
    error: str


@dataclass
class CascadeResult:
    candidates: List[Candidate] = field(default_factory=list)
    tier: Optional[SearchTier] = None
    attempted: List[SearchTier] = field(default_factory=list)
    failures: List[TierFailure] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return bool(self.candidates)

    @property
    def had_failures(self) -> bool:
        return bool(self.failures)


def text_query_for(guess: BusinessGuess) -> str:
    """Business name + category, or the category alone for unnamed storefronts."""
    if guess.has_generic_name:
        return guess.category
    return f"{guess.name} {guess.category}".strip()


class SearchCascade:
    def __init__(
        self,
        places: Any,
        tiers: Sequence[SearchTier] = DEFAULT_TIERS,
        call_timeout: Optional[float] = None,
    ):
        self.places = places
        self.tiers = tuple(tiers)
        self.call_timeout = call_timeout

    def _query_for(self, tier: SearchTier, coordinate: Coordinate, guess: BusinessGuess):
        """Return (callable, args) for the provider query behind a tier."""
        if tier.strategy is TierStrategy.NEARBY_TYPED:
            return self.places.search_nearby_typed, (coordinate, guess.name, guess.category, tier.radius_m)
        if tier.strategy is TierStrategy.NEARBY_GENERIC:
            return self.places.search_nearby_generic, (coordinate, guess.name, tier.radius_m)
        if tier.strategy is TierStrategy.TEXT_WITH_BIAS:
            return self.places.search_text, (text_query_for(guess), coordinate)
        raise ValueError(f"unknown tier strategy: {tier.strategy}")

    async def run(
        self,
        coordinate: Coordinate,
        guess: BusinessGuess,
        token: Optional[CancellationToken] = None,
    ) -> CascadeResult:
        result = CascadeResult()
        for tier in self.tiers:
            fn, args = self._query_for(tier, coordinate, guess)
            result.attempted.append(tier)
            try:
                candidates = await call_blocking(
                    fn, *args, timeout=self.call_timeout, token=token, label=f"tier {tier.label}"
                )
            except ResolutionCancelled:
                raise
            except Exception as exc:
                logger.warning("Search tier %s failed: %s", tier.label, exc)
                result.failures.append(TierFailure(tier=tier, error=str(exc)))
                continue

            candidates = list(candidates or [])
            logger.debug("Search tier %s returned %d candidates", tier.label, len(candidates))
            if candidates:
                result.candidates = candidates
                result.tier = tier
                return result

        logger.info("All %d search tiers came back empty", len(result.attempted))
        return result
