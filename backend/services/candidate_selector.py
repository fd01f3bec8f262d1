from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence

from domain.models import Candidate

MAX_ALTERNATES = 5


@dataclass(frozen=True)
class Selection:
    selected: Candidate
    alternates: List[Candidate] = field(default_factory=list)


def select_candidate(candidates: Sequence[Candidate]) -> Selection:
    """
    Pick the provider's top hit and keep up to five runners-up as alternates.

    Provider relevance order is trusted as-is; nothing is re-sorted.
    """
    if not candidates:
        raise ValueError("cannot select from an empty candidate list")
    return Selection(
        selected=candidates[0],
        alternates=list(candidates[1:1 + MAX_ALTERNATES]),
    )
