"""Coordinate validation shared by the sampler and trip factory."""

from __future__ import annotations

import math
from typing import Iterable, List, Sequence

from ..errors import InvalidGeometryError
from ..models import LatLon


def validate_coordinate(point: Sequence[float], index: int | None = None) -> LatLon:
    """Return ``point`` as a float ``(lat, lon)`` tuple or raise."""

    where = f" at index {index}" if index is not None else ""
    try:
        size = len(point)
    except TypeError as exc:
        raise InvalidGeometryError(f"Expected lat/lon pair{where}, got {point!r}") from exc
    if size != 2:
        raise InvalidGeometryError(f"Expected lat/lon pair{where}, got {point!r}")
    try:
        lat, lon = float(point[0]), float(point[1])
    except (TypeError, ValueError) as exc:
        raise InvalidGeometryError(
            f"Coordinate{where} is not numeric: {point!r}"
        ) from exc
    if not (math.isfinite(lat) and math.isfinite(lon)):
        raise InvalidGeometryError(f"Coordinate{where} is not finite: {point!r}")
    if not -90.0 <= lat <= 90.0:
        raise InvalidGeometryError(f"Latitude {lat} out of range{where}")
    if not -180.0 <= lon <= 180.0:
        raise InvalidGeometryError(f"Longitude {lon} out of range{where}")
    return lat, lon


def validate_coordinates(points: Iterable[Sequence[float]]) -> List[LatLon]:
    """Validate every coordinate in ``points`` and return normalised tuples."""

    return [validate_coordinate(point, idx) for idx, point in enumerate(points)]


__all__ = ["validate_coordinate", "validate_coordinates"]
