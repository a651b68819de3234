"""Factory helpers that turn directions-provider output into Trip snapshots."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
import uuid
from typing import Sequence, Union

from .config import MATCH_SAMPLE_INTERVAL_M
from .errors import InvalidGeometryError
from .geometry import decode_polyline, sample_polyline, validate_coordinates
from .models import LatLon, Trip, TripStatus
from .utils import ensure_aware, utc_now

PolylineInput = Union[str, Sequence[Sequence[float]]]


def _resolve_polyline(polyline: PolylineInput) -> list[LatLon]:
    if isinstance(polyline, str):
        return decode_polyline(polyline)
    return validate_coordinates(polyline)


def create_trip(
    user_id: str,
    polyline: PolylineInput,
    depart_time: datetime,
    *,
    trip_id: str | None = None,
    status: TripStatus | str = TripStatus.ACTIVE,
    interval_m: float = MATCH_SAMPLE_INTERVAL_M,
    created_at: datetime | None = None,
) -> Trip:
    """Build a trip, validating and sampling its route geometry.

    ``polyline`` may be an encoded polyline string or a sequence of
    ``(lat, lon)`` pairs. Origin and destination are the first and last route
    points. Raises :class:`InvalidGeometryError` for empty or malformed routes.
    """

    route = _resolve_polyline(polyline)
    if not route:
        raise InvalidGeometryError("Trip route must contain at least one point")
    sampled = sample_polyline(route, interval_m)
    return Trip(
        id=trip_id or uuid.uuid4().hex,
        user_id=str(user_id),
        origin=route[0],
        destination=route[-1],
        polyline=tuple(route),
        sampled_points=tuple(sampled),
        depart_time=ensure_aware(depart_time),
        status=TripStatus(status),
        created_at=ensure_aware(created_at) if created_at else utc_now(),
    )


def with_polyline(
    trip: Trip,
    polyline: PolylineInput,
    *,
    interval_m: float = MATCH_SAMPLE_INTERVAL_M,
) -> Trip:
    """Return a copy of ``trip`` with new geometry and re-sampled points."""

    route = _resolve_polyline(polyline)
    if not route:
        raise InvalidGeometryError("Trip route must contain at least one point")
    return replace(
        trip,
        origin=route[0],
        destination=route[-1],
        polyline=tuple(route),
        sampled_points=tuple(sample_polyline(route, interval_m)),
    )


__all__ = ["PolylineInput", "create_trip", "with_polyline"]
