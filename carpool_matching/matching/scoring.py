"""Composite similarity scoring between a query trip and a candidate trip."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
import math
from typing import Dict

import numpy as np

from ..config import (
    MATCH_MAX_END_DISTANCE_M,
    MATCH_MAX_START_DISTANCE_M,
    MATCH_RADIUS_M,
    MATCH_TIME_WINDOW_MINUTES,
    MATCH_WEIGHT_END,
    MATCH_WEIGHT_OVERLAP,
    MATCH_WEIGHT_START,
    MATCH_WEIGHT_TIME,
)
from ..errors import InvalidWeightsError
from ..geometry.projection import LocalProjection, MetricArray
from ..models import MatchCandidate, Trip

_WEIGHT_SUM_TOLERANCE = 1e-6


@dataclass(frozen=True, slots=True)
class ScoringWeights:
    overlap: float = MATCH_WEIGHT_OVERLAP
    start_proximity: float = MATCH_WEIGHT_START
    end_proximity: float = MATCH_WEIGHT_END
    time: float = MATCH_WEIGHT_TIME

    def __post_init__(self) -> None:
        for name, value in self.as_dict().items():
            if not math.isfinite(value) or value < 0:
                raise InvalidWeightsError(
                    f"Weight {name!r} must be a non-negative number, got {value}"
                )
        total = math.fsum(self.as_dict().values())
        if abs(total - 1.0) > _WEIGHT_SUM_TOLERANCE:
            raise InvalidWeightsError(f"Scoring weights must sum to 1, got {total}")

    def as_dict(self) -> Dict[str, float]:
        return {
            "overlap": self.overlap,
            "start_proximity": self.start_proximity,
            "end_proximity": self.end_proximity,
            "time": self.time,
        }


@dataclass(frozen=True, slots=True)
class ScoringConfig:
    weights: ScoringWeights = field(default_factory=ScoringWeights)
    match_radius_m: float = MATCH_RADIUS_M
    max_start_distance_m: float = MATCH_MAX_START_DISTANCE_M
    max_end_distance_m: float = MATCH_MAX_END_DISTANCE_M
    time_window: timedelta = field(
        default_factory=lambda: timedelta(minutes=MATCH_TIME_WINDOW_MINUTES)
    )

    def __post_init__(self) -> None:
        for name in ("match_radius_m", "max_start_distance_m", "max_end_distance_m"):
            value = getattr(self, name)
            if not math.isfinite(value) or value <= 0:
                raise ValueError(f"{name} must be positive")
        if self.time_window <= timedelta(0):
            raise ValueError("time_window must be positive")


def overlap_fraction(
    query_points: MetricArray, candidate_points: MetricArray, radius_m: float
) -> float:
    """Fraction of query points with a candidate point within ``radius_m``.

    A point-to-point proximity test, quadratic in the sample counts.
    """

    if len(query_points) == 0 or len(candidate_points) == 0:
        return 0.0
    deltas = query_points[:, None, :] - candidate_points[None, :, :]
    dist_sq = np.einsum("ijk,ijk->ij", deltas, deltas)
    covered = np.any(dist_sq <= radius_m * radius_m, axis=1)
    return float(np.count_nonzero(covered)) / float(len(query_points))


def proximity(distance: float, ceiling: float) -> float:
    """Return ``1 - min(1, distance / ceiling)``."""

    return 1.0 - min(1.0, max(distance, 0.0) / ceiling)


class OverlapScorer:
    """Score candidate trips from the perspective of a query trip.

    Sub-metrics, each in [0, 1]:

    * overlap: share of the query's sampled points near any candidate point
    * start/end proximity: origin and destination distance against a ceiling
    * time: departure difference against the time window

    The composite is their weighted sum. Scores depend only on the two trip
    snapshots, so repeated calls are identical. Scoring is asymmetric:
    ``score(a, b)`` measures how much of ``a`` is covered by ``b``.
    """

    def __init__(self, config: ScoringConfig | None = None) -> None:
        self.config = config or ScoringConfig()

    def score(self, query: Trip, candidate: Trip) -> MatchCandidate:
        config = self.config
        weights = config.weights
        # Both trips share the query's projection so distances are comparable.
        projection = LocalProjection.for_points(
            query.sampled_points or (query.origin, query.destination)
        )
        query_metric = projection.project(query.sampled_points)
        candidate_metric = projection.project(candidate.sampled_points)
        overlap = overlap_fraction(query_metric, candidate_metric, config.match_radius_m)

        endpoints = projection.project(
            [query.origin, query.destination, candidate.origin, candidate.destination]
        )
        start_distance = float(np.linalg.norm(endpoints[0] - endpoints[2]))
        end_distance = float(np.linalg.norm(endpoints[1] - endpoints[3]))
        start_proximity = proximity(start_distance, config.max_start_distance_m)
        end_proximity = proximity(end_distance, config.max_end_distance_m)

        time_delta_s = abs((candidate.depart_time - query.depart_time).total_seconds())
        time_proximity = proximity(time_delta_s, config.time_window.total_seconds())

        composite = math.fsum(
            (
                weights.overlap * overlap,
                weights.start_proximity * start_proximity,
                weights.end_proximity * end_proximity,
                weights.time * time_proximity,
            )
        )
        return MatchCandidate(
            trip_id=candidate.id,
            score=min(1.0, max(0.0, composite)),
            overlap_fraction=overlap,
            start_proximity=start_proximity,
            end_proximity=end_proximity,
            time_proximity=time_proximity,
            time_delta_s=time_delta_s,
        )


__all__ = [
    "OverlapScorer",
    "ScoringConfig",
    "ScoringWeights",
    "overlap_fraction",
    "proximity",
]
