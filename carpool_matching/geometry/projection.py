"""Local metric projections for route geometry.

Routes are projected into the UTM zone containing their centroid so
arc lengths and point distances can be computed with plain Euclidean
arithmetic. Transformers are expensive to build, so one pair per EPSG code
is memoised.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from threading import RLock
from typing import List, Sequence, Tuple

import numpy as np
from cachetools import LRUCache, cached
from numpy.typing import NDArray
from pyproj import CRS, Transformer
from pyproj.exceptions import CRSError

from ..config import PROJECTION_ALLOW_MERCATOR_FALLBACK, PROJECTION_CACHE_SIZE
from ..models import LatLon

MetricArray = NDArray[np.float64]

_WGS84_EPSG = 4326
_WEB_MERCATOR_EPSG = 3857

_log = logging.getLogger(__name__)

_transformer_cache: LRUCache = LRUCache(maxsize=max(1, PROJECTION_CACHE_SIZE))
_transformer_lock = RLock()


@cached(cache=_transformer_cache, lock=_transformer_lock)
def _transformer_pair(epsg: int) -> Tuple[Transformer, Transformer]:
    """Return (forward, inverse) transformers between WGS84 and ``epsg``."""

    try:
        target_crs = CRS.from_epsg(epsg)
    except CRSError:
        if not PROJECTION_ALLOW_MERCATOR_FALLBACK:
            raise
        _log.warning("EPSG:%s unavailable; falling back to Web Mercator", epsg)
        target_crs = CRS.from_epsg(_WEB_MERCATOR_EPSG)
    source_crs = CRS.from_epsg(_WGS84_EPSG)
    forward = Transformer.from_crs(source_crs, target_crs, always_xy=True)
    inverse = Transformer.from_crs(target_crs, source_crs, always_xy=True)
    return forward, inverse


def utm_epsg_for(points: Sequence[LatLon]) -> int:
    """Return the EPSG code of the UTM zone containing the points' centroid."""

    if not points:
        raise ValueError("Cannot choose a projection for an empty point collection")
    lats = [pt[0] for pt in points]
    lons = [pt[1] for pt in points]
    mean_lat = float(np.mean(lats))
    mean_lon = float(np.mean(lons))
    zone = int((mean_lon + 180.0) // 6.0) + 1
    zone = max(1, min(zone, 60))
    if mean_lat >= 0:
        return 32600 + zone
    return 32700 + zone


@dataclass(frozen=True, slots=True)
class LocalProjection:
    """Forward/inverse projection between lat/lon and a local metric CRS."""

    epsg: int
    forward: Transformer
    inverse: Transformer

    @classmethod
    def for_points(cls, points: Sequence[LatLon]) -> "LocalProjection":
        epsg = utm_epsg_for(points)
        forward, inverse = _transformer_pair(epsg)
        return cls(epsg=epsg, forward=forward, inverse=inverse)

    def project(self, points: Sequence[LatLon]) -> MetricArray:
        """Project lat/lon pairs into metric ``(x, y)`` coordinates."""

        if len(points) == 0:
            return np.empty((0, 2), dtype=float)
        array = np.asarray(points, dtype=float).reshape(-1, 2)
        xs, ys = self.forward.transform(array[:, 1], array[:, 0])
        return np.column_stack((xs, ys)).astype(float, copy=False)

    def unproject(self, metric: MetricArray) -> List[LatLon]:
        """Convert metric coordinates back to ``(lat, lon)`` tuples."""

        array = np.asarray(metric, dtype=float).reshape(-1, 2)
        if array.shape[0] == 0:
            return []
        lons, lats = self.inverse.transform(array[:, 0], array[:, 1])
        return [
            (float(lat), float(lon))
            for lat, lon in zip(np.atleast_1d(lats), np.atleast_1d(lons))
        ]


def cumulative_distances(points: MetricArray) -> MetricArray:
    """Return cumulative distances along a metric polyline."""

    if len(points) == 0:
        return np.zeros(1, dtype=float)
    deltas = np.diff(points, axis=0)
    lengths = np.linalg.norm(deltas, axis=1)
    return np.concatenate(([0.0], np.cumsum(lengths)))


def path_length_m(points: Sequence[LatLon]) -> float:
    """Return the metric length of a lat/lon polyline."""

    if len(points) < 2:
        return 0.0
    projection = LocalProjection.for_points(points)
    return float(cumulative_distances(projection.project(points))[-1])


def clear_projection_cache() -> None:
    """Drop memoised transformers (primarily for testing)."""

    with _transformer_lock:
        _transformer_cache.clear()


__all__ = [
    "LocalProjection",
    "MetricArray",
    "clear_projection_cache",
    "cumulative_distances",
    "path_length_m",
    "utm_epsg_for",
]
