"""Tests for candidate retrieval (spatial fan-out plus filtering)."""

from __future__ import annotations

from datetime import timedelta
import logging
import threading
from typing import Callable, Iterator, Set

import pytest

from carpool_matching.errors import IndexUnavailableError
from carpool_matching.index import IndexHit, InMemorySpatialIndex, InMemoryTripStore
from carpool_matching.index.base import SpatialIndexAdapter
from carpool_matching.matching import CandidateRetriever, RetrievalConfig
from carpool_matching.models import LatLon, Trip, TripStatus

from conftest import BASE_DEPARTURE, ROUTE_A_ORIGIN, make_trip


class GatedIndex(SpatialIndexAdapter):
    """Delegate to an inner index, blocking queries selected by ``should_block``."""

    def __init__(
        self, inner: SpatialIndexAdapter, should_block: Callable[[LatLon], bool]
    ) -> None:
        self._inner = inner
        self._should_block = should_block
        self.release = threading.Event()

    def query_near(self, point: LatLon, radius_m: float) -> Set[IndexHit]:
        if self._should_block(point):
            self.release.wait(timeout=10.0)
        return self._inner.query_near(point, radius_m)


class BrokenIndex(SpatialIndexAdapter):
    def query_near(self, point: LatLon, radius_m: float) -> Set[IndexHit]:
        raise RuntimeError("boom")


@pytest.fixture
def corridor(trip_a: Trip, trip_b: Trip, trip_c: Trip) -> Iterator[tuple]:
    trips = [trip_a, trip_b, trip_c]
    store = InMemoryTripStore(trips)
    index = InMemorySpatialIndex(trips)
    # Build the tree up front so timed tests only measure query latency.
    index.query_near(ROUTE_A_ORIGIN, 1.0)
    yield store, index


def test_retrieve_returns_overlapping_trip_in_window(corridor, trip_a: Trip) -> None:
    store, index = corridor
    retriever = CandidateRetriever(index, store)

    assert retriever.retrieve(trip_a) == {"B"}


def test_retrieve_never_returns_query_trip(corridor, trip_a: Trip) -> None:
    store, index = corridor
    retriever = CandidateRetriever(index, store)

    assert trip_a.id not in retriever.retrieve(trip_a, time_window=timedelta(hours=6))


def test_time_window_override(corridor, trip_a: Trip) -> None:
    store, index = corridor
    retriever = CandidateRetriever(index, store)

    assert retriever.retrieve(trip_a, time_window=timedelta(hours=3)) == {"B", "C"}
    assert retriever.retrieve(trip_a, time_window=timedelta(minutes=5)) == set()


def test_departure_exactly_on_window_edge_is_included(trip_a: Trip) -> None:
    edge = make_trip("edge", depart=BASE_DEPARTURE + timedelta(minutes=15))
    past = make_trip("past", depart=BASE_DEPARTURE - timedelta(minutes=15, seconds=1))
    trips = [trip_a, edge, past]
    retriever = CandidateRetriever(InMemorySpatialIndex(trips), InMemoryTripStore(trips))

    assert retriever.retrieve(trip_a) == {"edge"}


@pytest.mark.parametrize(
    "status", [TripStatus.MATCHED, TripStatus.EXPIRED, TripStatus.CANCELLED]
)
def test_non_active_trips_are_filtered(trip_a: Trip, status: TripStatus) -> None:
    other = make_trip("D", status=status)
    trips = [trip_a, other]
    retriever = CandidateRetriever(InMemorySpatialIndex(trips), InMemoryTripStore(trips))

    assert retriever.retrieve(trip_a) == set()


def test_zero_length_trips_are_not_candidates(trip_a: Trip) -> None:
    parked = make_trip("Z", route=[ROUTE_A_ORIGIN, ROUTE_A_ORIGIN])
    trips = [trip_a, parked]
    retriever = CandidateRetriever(InMemorySpatialIndex(trips), InMemoryTripStore(trips))

    assert retriever.retrieve(trip_a) == set()


def test_query_trip_without_route_yields_nothing(trip_a: Trip) -> None:
    parked = make_trip("Z", route=[ROUTE_A_ORIGIN, ROUTE_A_ORIGIN])
    trips = [trip_a, parked]
    retriever = CandidateRetriever(InMemorySpatialIndex(trips), InMemoryTripStore(trips))

    assert retriever.retrieve(parked) == set()


def test_index_hits_missing_from_store_are_skipped(trip_a: Trip, trip_b: Trip) -> None:
    ghost = make_trip("ghost")
    index = InMemorySpatialIndex([trip_a, trip_b, ghost])
    store = InMemoryTripStore([trip_a, trip_b])
    retriever = CandidateRetriever(index, store)

    assert retriever.retrieve(trip_a) == {"B"}


def test_retrieve_candidates_returns_store_snapshots(corridor, trip_a: Trip, trip_b: Trip) -> None:
    store, index = corridor
    retriever = CandidateRetriever(index, store)

    candidates = retriever.retrieve_candidates(trip_a)

    assert candidates == {"B": trip_b}


def test_partial_timeouts_are_absorbed(
    corridor, trip_a: Trip, caplog: pytest.LogCaptureFixture
) -> None:
    store, index = corridor
    blocked_point = trip_a.sampled_points[0]
    gated = GatedIndex(index, lambda point: point == blocked_point)
    config = RetrievalConfig(query_timeout_s=1.0, max_workers=len(trip_a.sampled_points))
    retriever = CandidateRetriever(gated, store, config)
    caplog.set_level(logging.WARNING, logger="CandidateRetriever")

    try:
        result = retriever.retrieve(trip_a)
    finally:
        gated.release.set()

    assert result == {"B"}
    assert "Absorbed 1/" in caplog.text
    assert "timeouts=1" in caplog.text


def test_hung_query_does_not_starve_single_worker(
    corridor, trip_a: Trip, caplog: pytest.LogCaptureFixture
) -> None:
    store, index = corridor
    blocked_point = trip_a.sampled_points[0]
    gated = GatedIndex(index, lambda point: point == blocked_point)
    config = RetrievalConfig(query_timeout_s=0.2, max_workers=1)
    retriever = CandidateRetriever(gated, store, config)
    caplog.set_level(logging.WARNING, logger="CandidateRetriever")

    try:
        result = retriever.retrieve(trip_a)
    finally:
        gated.release.set()

    assert result == {"B"}
    assert f"Absorbed 1/{len(trip_a.sampled_points)}" in caplog.text


def test_each_query_gets_its_own_timeout(corridor, trip_a: Trip) -> None:
    store, index = corridor
    slow_points = set(trip_a.sampled_points[:3])
    gated = GatedIndex(index, lambda point: point in slow_points)
    config = RetrievalConfig(query_timeout_s=0.2, max_workers=2)
    retriever = CandidateRetriever(gated, store, config)

    try:
        result = retriever.retrieve(trip_a)
    finally:
        gated.release.set()

    assert result == {"B"}


def test_all_queries_timing_out_raises(corridor, trip_a: Trip) -> None:
    store, index = corridor
    gated = GatedIndex(index, lambda point: True)
    config = RetrievalConfig(query_timeout_s=0.2, max_workers=len(trip_a.sampled_points))
    retriever = CandidateRetriever(gated, store, config)

    try:
        with pytest.raises(IndexUnavailableError, match="All .* spatial index queries failed"):
            retriever.retrieve(trip_a)
    finally:
        gated.release.set()


def test_unavailable_index_raises(corridor, trip_a: Trip) -> None:
    store, index = corridor
    index.available = False
    retriever = CandidateRetriever(index, store)

    with pytest.raises(IndexUnavailableError) as excinfo:
        retriever.retrieve(trip_a)

    assert excinfo.value.retryable


def test_unexpected_index_errors_propagate(corridor, trip_a: Trip) -> None:
    store, _ = corridor
    retriever = CandidateRetriever(BrokenIndex(), store, RetrievalConfig(max_workers=2))

    with pytest.raises(RuntimeError, match="boom"):
        retriever.retrieve(trip_a)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"radius_m": 0.0},
        {"time_window": timedelta(minutes=-1)},
        {"query_timeout_s": 0.0},
        {"max_workers": -1},
    ],
)
def test_retrieval_config_validation(kwargs) -> None:
    with pytest.raises(ValueError):
        RetrievalConfig(**kwargs)
