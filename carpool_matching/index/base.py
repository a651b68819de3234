"""Capabilities the matching engine consumes from the surrounding system."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Set

from ..models import LatLon, Trip


@dataclass(frozen=True, slots=True)
class IndexHit:
    """A trip with at least one sampled point inside a proximity query."""

    trip_id: str
    matched_sample_distance_m: float


class SpatialIndexAdapter(ABC):
    """Proximity lookup over the sampled points of indexed trips.

    Implementations may be eventually consistent with trip creation. They
    should raise :class:`~carpool_matching.errors.IndexUnavailableError` when
    the backing store cannot be reached.
    """

    @abstractmethod
    def query_near(self, point: LatLon, radius_m: float) -> Set[IndexHit]:
        """Return trips with a sampled point within ``radius_m`` of ``point``."""


class TripStore(ABC):
    """Read access to trip snapshots owned by the persistence layer."""

    @abstractmethod
    def get_trip(self, trip_id: str) -> Optional[Trip]:
        """Return the trip with ``trip_id`` or ``None`` when absent."""


__all__ = ["IndexHit", "SpatialIndexAdapter", "TripStore"]
