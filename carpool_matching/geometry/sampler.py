"""Polyline decoding and fixed-interval route sampling."""

from __future__ import annotations

import logging
import math
from typing import Iterable, List, Sequence

import numpy as np
from numpy.typing import NDArray
from polyline import decode as polyline_decode

from ..config import MATCH_SAMPLE_INTERVAL_M
from ..errors import InvalidGeometryError
from ..models import LatLon
from .projection import LocalProjection, MetricArray, cumulative_distances
from .validation import validate_coordinates

_log = logging.getLogger(__name__)


def decode_polyline(encoded: str, precision: int = 5) -> List[LatLon]:
    """Decode an encoded polyline string into a list of (lat, lon) tuples."""

    if not encoded:
        return []
    try:
        decoded = polyline_decode(encoded, precision)
    except (ValueError, TypeError, IndexError) as exc:
        raise InvalidGeometryError("Unable to decode polyline") from exc
    return validate_coordinates(decoded)


def sample_polyline(
    points: Sequence[Sequence[float]],
    interval_m: float = MATCH_SAMPLE_INTERVAL_M,
) -> List[LatLon]:
    """Reduce a route to points spaced ``interval_m`` metres apart along it.

    The first and last input points are always kept. Intermediate samples sit
    at arc-length offsets ``interval_m, 2 * interval_m, ...`` so a route of
    length ``L`` yields ``ceil(L / interval_m) + 1`` points.

    Args:
        points: Ordered route coordinates as ``(lat, lon)`` pairs.
        interval_m: Spacing between samples in metres.

    Returns:
        Sampled ``(lat, lon)`` tuples. Inputs with fewer than two points are
        returned unchanged; a route of zero length collapses to its first point.

    Raises:
        InvalidGeometryError: If any coordinate is malformed or out of range.
        ValueError: If ``interval_m`` is not a positive finite number.
    """

    if not math.isfinite(interval_m) or interval_m <= 0:
        raise ValueError("interval_m must be greater than zero")
    coords = validate_coordinates(points)
    if len(coords) <= 1:
        return coords

    projection = LocalProjection.for_points(coords)
    metric = projection.project(coords)
    resampled = resample_by_distance(metric, interval_m)
    if len(resampled) == 1:
        _log.debug("Zero-length route collapsed to a single sample")
        return [coords[0]]

    sampled = projection.unproject(resampled)
    # Pin endpoints to the originals so projection round-off never moves them.
    sampled[0] = coords[0]
    sampled[-1] = coords[-1]
    _log.debug(
        "Sampled %d route points into %d samples (interval=%.1fm)",
        len(coords),
        len(sampled),
        interval_m,
    )
    return sampled


def resample_by_distance(
    points: Iterable[Sequence[float]], interval_m: float
) -> MetricArray:
    """Resample metric coordinates at ``interval_m`` spacing, keeping both ends."""

    if interval_m <= 0:
        raise ValueError("interval_m must be greater than zero")
    array = _as_metric_array(points)
    count = len(array)
    if count <= 1:
        return array.copy()
    cumulative = cumulative_distances(array)
    total_length = float(cumulative[-1])
    if total_length == 0:
        return array[:1].copy()
    target = _build_target_distances(total_length, interval_m)
    x = np.interp(target, cumulative, array[:, 0])
    y = np.interp(target, cumulative, array[:, 1])
    return np.column_stack((x, y))


def _build_target_distances(
    total_length: float, interval_m: float
) -> NDArray[np.float64]:
    """Return monotonically increasing sample distances that include the end point."""

    tolerance = 1e-9 * max(1.0, total_length)
    distances = [0.0]
    step = 1
    current = interval_m
    while current < total_length - tolerance:
        distances.append(current)
        step += 1
        # Multiply rather than accumulate so long routes do not drift.
        current = interval_m * step
    distances.append(total_length)
    return np.asarray(distances, dtype=float)


def _as_metric_array(points: Iterable[Sequence[float]]) -> MetricArray:
    """Convert an arbitrary iterable of 2D coordinates into a float64 array."""

    array = np.asarray(list(points), dtype=float)
    if array.size == 0:
        return np.empty((0, 2), dtype=float)
    if array.ndim != 2 or array.shape[1] != 2:
        raise ValueError("Expected a sequence of 2D coordinates")
    return array


__all__ = ["decode_polyline", "resample_by_distance", "sample_polyline"]
