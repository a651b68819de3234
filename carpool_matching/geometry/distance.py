"""Great-circle distance helpers.

Haversine distances are used where points from unrelated trips are compared
without a shared projection, e.g. the in-memory spatial index.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np
from numpy.typing import NDArray

from ..models import LatLon

EARTH_RADIUS_M = 6_371_008.8

# Metres per degree of latitude (mean); used for bounding box padding.
METRES_PER_DEGREE_LAT = 111_320.0


def haversine_m(a: LatLon, b: LatLon) -> float:
    """Return the great-circle distance between two points in metres."""

    return float(pairwise_haversine_m([a], [b])[0, 0])


def pairwise_haversine_m(
    a_points: Sequence[LatLon], b_points: Sequence[LatLon]
) -> NDArray[np.float64]:
    """Return an ``(len(a), len(b))`` matrix of great-circle distances."""

    a = np.radians(np.asarray(a_points, dtype=float).reshape(-1, 2))
    b = np.radians(np.asarray(b_points, dtype=float).reshape(-1, 2))
    lat1 = a[:, 0][:, None]
    lon1 = a[:, 1][:, None]
    lat2 = b[:, 0][None, :]
    lon2 = b[:, 1][None, :]
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    h = np.sin(dlat / 2.0) ** 2 + np.cos(lat1) * np.cos(lat2) * np.sin(dlon / 2.0) ** 2
    h = np.clip(h, 0.0, 1.0)
    return 2.0 * EARTH_RADIUS_M * np.arcsin(np.sqrt(h))


def degree_padding(lat: float, radius_m: float) -> tuple[float, float]:
    """Return (lat, lon) degree offsets that enclose ``radius_m`` around ``lat``."""

    dlat = radius_m / METRES_PER_DEGREE_LAT
    cos_lat = max(abs(float(np.cos(np.radians(lat)))), 1e-6)
    dlon = min(radius_m / (METRES_PER_DEGREE_LAT * cos_lat), 180.0)
    return dlat, dlon


__all__ = [
    "EARTH_RADIUS_M",
    "degree_padding",
    "haversine_m",
    "pairwise_haversine_m",
]
