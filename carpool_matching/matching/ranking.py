"""Deterministic ranking and truncation of scored candidates."""

from __future__ import annotations

import logging
from typing import Iterable, List, Tuple

from ..config import MATCH_RESULT_LIMIT
from ..models import MatchCandidate

_log = logging.getLogger(__name__)

# Scores equal to this many decimals are ties; keeps float noise out of ordering.
_SCORE_TIE_DECIMALS = 9


def _sort_key(candidate: MatchCandidate) -> Tuple[float, float, str]:
    return (
        -round(candidate.score, _SCORE_TIE_DECIMALS),
        candidate.time_delta_s,
        candidate.trip_id,
    )


def rank(
    candidates: Iterable[MatchCandidate], limit: int = MATCH_RESULT_LIMIT
) -> List[MatchCandidate]:
    """Return the best ``limit`` candidates in a total, reproducible order.

    Higher score first; ties go to the smaller departure difference, then to
    the lexicographically smaller trip id.
    """

    if limit < 1:
        raise ValueError("limit must be a positive integer")
    ordered = sorted(candidates, key=_sort_key)
    if len(ordered) > limit:
        _log.debug("Truncating %d ranked candidates to %d", len(ordered), limit)
    return ordered[:limit]


__all__ = ["rank"]
