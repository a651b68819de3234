"""Domain models: trip snapshots and match results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Tuple


LatLon = Tuple[float, float]


class TripStatus(str, Enum):
    ACTIVE = "active"
    MATCHED = "matched"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class Trip:
    """Read-only snapshot of a planned commute."""

    id: str
    user_id: str
    origin: LatLon
    destination: LatLon
    polyline: Tuple[LatLon, ...]
    sampled_points: Tuple[LatLon, ...]
    depart_time: datetime
    status: TripStatus = TripStatus.ACTIVE
    created_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status is TripStatus.ACTIVE

    @property
    def has_route(self) -> bool:
        # A single sampled point means the route collapsed to zero length.
        return len(self.sampled_points) >= 2

    @property
    def is_matchable(self) -> bool:
        return self.is_active and self.has_route


@dataclass(frozen=True, slots=True)
class MatchCandidate:
    trip_id: str
    score: float
    overlap_fraction: float
    start_proximity: float
    end_proximity: float
    time_proximity: float
    # Absolute departure difference; smaller wins ties in ranking.
    time_delta_s: float

    def as_dict(self) -> Dict[str, Any]:
        # ``timeDelta`` is the normalised time component (same value as
        # ``timeProximity``); the raw difference is ``timeDeltaSeconds``.
        return {
            "tripId": self.trip_id,
            "score": self.score,
            "overlapFraction": self.overlap_fraction,
            "startProximity": self.start_proximity,
            "endProximity": self.end_proximity,
            "timeDelta": self.time_proximity,
            "timeProximity": self.time_proximity,
            "timeDeltaSeconds": self.time_delta_s,
        }


@dataclass(frozen=True, slots=True)
class MatchResult:
    for_trip_id: str
    candidates: Tuple[MatchCandidate, ...] = field(default_factory=tuple)
    computed_at: datetime | None = None

    @property
    def candidate_ids(self) -> Tuple[str, ...]:
        return tuple(candidate.trip_id for candidate in self.candidates)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "forTripId": self.for_trip_id,
            "candidates": [candidate.as_dict() for candidate in self.candidates],
            "computedAt": self.computed_at,
        }


__all__ = ["LatLon", "TripStatus", "Trip", "MatchCandidate", "MatchResult"]
