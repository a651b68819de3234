"""Global pytest fixtures & helpers.

Adds project root to path and provides trip factories plus in-memory store
and index fixtures shared by the matching tests.
"""
from __future__ import annotations

import os
import sys
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Sequence, Tuple

import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from carpool_matching.geometry.projection import clear_projection_cache
from carpool_matching.index import InMemorySpatialIndex, InMemoryTripStore
from carpool_matching.models import Trip, TripStatus
from carpool_matching.trips import create_trip

LatLonPair = Tuple[float, float]

BASE_DEPARTURE = datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc)

# Reference commute (Bengaluru): ~5.9 km heading north-north-east.
ROUTE_A_ORIGIN = (12.90, 77.58)
ROUTE_A_DESTINATION = (12.95, 77.60)
ROUTE_B_ORIGIN = (12.901, 77.581)
ROUTE_B_DESTINATION = (12.949, 77.599)


# --- Factory helpers -------------------------------------------------
def straight_route(
    origin: LatLonPair, destination: LatLonPair, steps: int = 10
) -> List[LatLonPair]:
    """Return ``steps + 1`` evenly spaced points between two coordinates."""

    return [
        (
            origin[0] + (destination[0] - origin[0]) * idx / steps,
            origin[1] + (destination[1] - origin[1]) * idx / steps,
        )
        for idx in range(steps + 1)
    ]


def make_trip(
    trip_id: str,
    origin: LatLonPair = ROUTE_A_ORIGIN,
    destination: LatLonPair = ROUTE_A_DESTINATION,
    *,
    depart: datetime = BASE_DEPARTURE,
    status: TripStatus = TripStatus.ACTIVE,
    route: Sequence[LatLonPair] | None = None,
    user_id: str | None = None,
) -> Trip:
    return create_trip(
        user_id or f"user-{trip_id}",
        list(route) if route is not None else straight_route(origin, destination),
        depart,
        trip_id=trip_id,
        status=status,
        created_at=BASE_DEPARTURE - timedelta(hours=1),
    )


# --- Fixtures --------------------------------------------------------
@pytest.fixture(autouse=True)
def reset_projection_cache():
    clear_projection_cache()
    yield
    clear_projection_cache()


@pytest.fixture
def trip_factory() -> Callable[..., Trip]:
    return make_trip


@pytest.fixture
def trip_a() -> Trip:
    return make_trip("A")


@pytest.fixture
def trip_b() -> Trip:
    return make_trip(
        "B",
        ROUTE_B_ORIGIN,
        ROUTE_B_DESTINATION,
        depart=BASE_DEPARTURE + timedelta(minutes=10),
    )


@pytest.fixture
def trip_c() -> Trip:
    return make_trip("C", depart=BASE_DEPARTURE + timedelta(hours=2))


@pytest.fixture
def build_engine():
    """Return a helper creating a store and index populated with trips."""

    def _build(trips: Sequence[Trip]) -> Tuple[InMemoryTripStore, InMemorySpatialIndex]:
        return InMemoryTripStore(trips), InMemorySpatialIndex(trips)

    return _build
