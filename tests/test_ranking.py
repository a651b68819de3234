"""Tests for deterministic candidate ranking."""

from __future__ import annotations

import random

import pytest

from carpool_matching.matching import rank
from carpool_matching.models import MatchCandidate


def _candidate(trip_id: str, score: float, time_delta_s: float = 0.0) -> MatchCandidate:
    return MatchCandidate(
        trip_id=trip_id,
        score=score,
        overlap_fraction=score,
        start_proximity=score,
        end_proximity=score,
        time_proximity=score,
        time_delta_s=time_delta_s,
    )


def test_rank_orders_by_score_descending() -> None:
    ranked = rank([_candidate("a", 0.4), _candidate("b", 0.9), _candidate("c", 0.7)])

    assert [item.trip_id for item in ranked] == ["b", "c", "a"]


def test_rank_breaks_ties_by_time_delta_then_id() -> None:
    candidates = [
        _candidate("z", 0.8, time_delta_s=300.0),
        _candidate("y", 0.8, time_delta_s=60.0),
        _candidate("x", 0.8, time_delta_s=300.0),
    ]

    ranked = rank(candidates)

    assert [item.trip_id for item in ranked] == ["y", "x", "z"]


def test_rank_treats_float_noise_as_tie() -> None:
    candidates = [
        _candidate("a", 0.8 + 1e-12, time_delta_s=120.0),
        _candidate("b", 0.8, time_delta_s=30.0),
    ]

    assert [item.trip_id for item in rank(candidates)] == ["b", "a"]


def test_rank_truncates_to_limit() -> None:
    candidates = [_candidate(f"t{idx}", idx / 10.0) for idx in range(8)]

    ranked = rank(candidates, limit=3)

    assert [item.trip_id for item in ranked] == ["t7", "t6", "t5"]


def test_rank_is_independent_of_input_order() -> None:
    candidates = [
        _candidate(f"t{idx}", round((idx % 3) / 3.0, 6), time_delta_s=float(idx % 2))
        for idx in range(12)
    ]
    shuffled = list(candidates)
    random.Random(7).shuffle(shuffled)

    assert rank(candidates, limit=12) == rank(shuffled, limit=12)


def test_rank_handles_empty_input() -> None:
    assert rank([]) == []


def test_rank_rejects_non_positive_limit() -> None:
    with pytest.raises(ValueError):
        rank([_candidate("a", 0.5)], limit=0)
