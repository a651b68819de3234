"""In-memory trip store and spatial index.

Used by tests, the command line replay tool and benchmarks. The index keeps
every sampled point of every indexed trip in a shapely ``STRtree`` and answers
proximity queries with a bounding-box lookup refined by haversine distance.
"""

from __future__ import annotations

import logging
from threading import RLock
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple

import numpy as np
import shapely
from numpy.typing import NDArray
from shapely import STRtree

from ..errors import IndexUnavailableError
from ..geometry.distance import degree_padding, pairwise_haversine_m
from ..lifecycle import transition
from ..models import LatLon, Trip, TripStatus
from .base import IndexHit, SpatialIndexAdapter, TripStore


class InMemoryTripStore(TripStore):
    """Dictionary-backed trip store safe for concurrent readers and writers."""

    def __init__(self, trips: Iterable[Trip] = ()) -> None:
        self._trips: Dict[str, Trip] = {}
        self._lock = RLock()
        for trip in trips:
            self.add(trip)

    def add(self, trip: Trip) -> None:
        with self._lock:
            self._trips[trip.id] = trip

    def get_trip(self, trip_id: str) -> Optional[Trip]:
        with self._lock:
            return self._trips.get(trip_id)

    def remove(self, trip_id: str) -> Optional[Trip]:
        with self._lock:
            return self._trips.pop(trip_id, None)

    def update_status(self, trip_id: str, status: TripStatus) -> Trip:
        """Apply a lifecycle transition and store the updated snapshot."""

        with self._lock:
            current = self._trips.get(trip_id)
            if current is None:
                raise KeyError(trip_id)
            updated = transition(current, status)
            self._trips[trip_id] = updated
            return updated

    def __len__(self) -> int:
        with self._lock:
            return len(self._trips)

    def __iter__(self) -> Iterator[Trip]:
        with self._lock:
            return iter(list(self._trips.values()))


_TreeSnapshot = Tuple[Optional[STRtree], List[str], NDArray[np.float64]]


class InMemorySpatialIndex(SpatialIndexAdapter):
    """R-tree backed proximity index over trip sample points."""

    def __init__(self, trips: Iterable[Trip] = ()) -> None:
        self._points: Dict[str, Tuple[LatLon, ...]] = {}
        self._lock = RLock()
        self._tree: Optional[STRtree] = None
        self._tree_trip_ids: List[str] = []
        self._tree_coords: NDArray[np.float64] = np.empty((0, 2), dtype=float)
        self._dirty = False
        # Flip to False to simulate an unreachable backing store.
        self.available = True
        self._log = logging.getLogger(self.__class__.__name__)
        for trip in trips:
            self.add_trip(trip)

    def add_trip(self, trip: Trip) -> None:
        if not trip.sampled_points:
            self._log.debug("Not indexing trip %s without sampled points", trip.id)
            return
        with self._lock:
            self._points[trip.id] = tuple(trip.sampled_points)
            self._dirty = True

    def remove_trip(self, trip_id: str) -> None:
        with self._lock:
            if self._points.pop(trip_id, None) is not None:
                self._dirty = True

    def __contains__(self, trip_id: object) -> bool:
        with self._lock:
            return trip_id in self._points

    def __len__(self) -> int:
        with self._lock:
            return len(self._points)

    def query_near(self, point: LatLon, radius_m: float) -> Set[IndexHit]:
        if radius_m < 0:
            raise ValueError("radius_m must not be negative")
        if not self.available:
            raise IndexUnavailableError("Spatial index is unavailable")
        tree, trip_ids, coords = self._snapshot()
        if tree is None:
            return set()

        lat, lon = float(point[0]), float(point[1])
        dlat, dlon = degree_padding(lat, radius_m)
        query_box = shapely.box(lon - dlon, lat - dlat, lon + dlon, lat + dlat)
        indices = np.asarray(tree.query(query_box), dtype=int)
        if indices.size == 0:
            return set()

        distances = pairwise_haversine_m([(lat, lon)], coords[indices])[0]
        nearest: Dict[str, float] = {}
        for idx, distance in zip(indices.tolist(), distances.tolist()):
            if distance > radius_m:
                continue
            trip_id = trip_ids[idx]
            previous = nearest.get(trip_id)
            if previous is None or distance < previous:
                nearest[trip_id] = distance
        return {IndexHit(trip_id, dist) for trip_id, dist in nearest.items()}

    def _snapshot(self) -> _TreeSnapshot:
        """Return the current tree, rebuilding it after writes."""

        with self._lock:
            if self._dirty:
                self._rebuild()
            return self._tree, self._tree_trip_ids, self._tree_coords

    def _rebuild(self) -> None:
        trip_ids: List[str] = []
        coords: List[LatLon] = []
        for trip_id in sorted(self._points):
            for lat, lon in self._points[trip_id]:
                trip_ids.append(trip_id)
                coords.append((lat, lon))
        if coords:
            array = np.asarray(coords, dtype=float)
            geoms = shapely.points(array[:, 1], array[:, 0])
            self._tree = STRtree(geoms)
            self._tree_coords = array
        else:
            self._tree = None
            self._tree_coords = np.empty((0, 2), dtype=float)
        self._tree_trip_ids = trip_ids
        self._dirty = False
        self._log.debug(
            "Rebuilt spatial index with %d points across %d trips",
            len(coords),
            len(self._points),
        )


__all__ = ["InMemorySpatialIndex", "InMemoryTripStore"]
