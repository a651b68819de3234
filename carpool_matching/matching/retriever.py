"""Candidate retrieval: spatial fan-out plus status and departure filtering."""

from __future__ import annotations

from collections import deque
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import timedelta
import logging
import math
import time
from typing import Deque, Dict, Sequence, Set

from ..config import (
    MATCH_MAX_WORKERS,
    MATCH_QUERY_TIMEOUT_S,
    MATCH_RADIUS_M,
    MATCH_TIME_WINDOW_MINUTES,
    resolve_max_workers,
)
from ..errors import IndexUnavailableError
from ..index.base import IndexHit, SpatialIndexAdapter, TripStore
from ..models import LatLon, Trip


@dataclass(frozen=True, slots=True)
class RetrievalConfig:
    radius_m: float = MATCH_RADIUS_M
    time_window: timedelta = field(
        default_factory=lambda: timedelta(minutes=MATCH_TIME_WINDOW_MINUTES)
    )
    query_timeout_s: float = MATCH_QUERY_TIMEOUT_S
    # 0 means one worker per available CPU.
    max_workers: int = MATCH_MAX_WORKERS

    def __post_init__(self) -> None:
        if not math.isfinite(self.radius_m) or self.radius_m <= 0:
            raise ValueError("radius_m must be positive")
        if self.time_window < timedelta(0):
            raise ValueError("time_window must not be negative")
        if not math.isfinite(self.query_timeout_s) or self.query_timeout_s <= 0:
            raise ValueError("query_timeout_s must be positive")
        if self.max_workers < 0:
            raise ValueError("max_workers must not be negative")


class CandidateRetriever:
    """Find active trips whose sampled points and departure overlap a query trip.

    Every sampled point of the query trip is looked up in the spatial index
    (concurrently, each lookup bounded by ``query_timeout_s``) and the hits are
    merged by set union. Hits are then loaded from the trip store and kept only
    when they are active, have a usable route and depart within the time
    window. This is a cheap over-approximation; precision comes from scoring.
    """

    def __init__(
        self,
        index: SpatialIndexAdapter,
        store: TripStore,
        config: RetrievalConfig | None = None,
    ) -> None:
        self._index = index
        self._store = store
        self.config = config or RetrievalConfig()
        self._log = logging.getLogger(self.__class__.__name__)

    def retrieve(
        self,
        trip: Trip,
        radius_m: float | None = None,
        time_window: timedelta | None = None,
    ) -> Set[str]:
        """Return ids of candidate trips for ``trip`` (never ``trip.id``)."""

        return set(self.retrieve_candidates(trip, radius_m, time_window))

    def retrieve_candidates(
        self,
        trip: Trip,
        radius_m: float | None = None,
        time_window: timedelta | None = None,
    ) -> Dict[str, Trip]:
        """Return candidate trips keyed by id.

        Raises:
            IndexUnavailableError: If every index query failed or timed out.
        """

        radius = self.config.radius_m if radius_m is None else radius_m
        window = self.config.time_window if time_window is None else time_window
        if not trip.has_route:
            self._log.debug("Trip %s has no usable route; skipping retrieval", trip.id)
            return {}

        hit_ids = self._query_index(trip.id, trip.sampled_points, radius)
        hit_ids.discard(trip.id)

        candidates: Dict[str, Trip] = {}
        missing = inactive = out_of_window = 0
        for trip_id in sorted(hit_ids):
            candidate = self._store.get_trip(trip_id)
            if candidate is None:
                # Index and store are eventually consistent.
                missing += 1
                continue
            if not candidate.is_matchable:
                inactive += 1
                continue
            if abs(candidate.depart_time - trip.depart_time) > window:
                out_of_window += 1
                continue
            candidates[trip_id] = candidate

        self._log.debug(
            "Trip %s: %d index hits -> %d candidates "
            "(missing=%d inactive=%d outside_window=%d)",
            trip.id,
            len(hit_ids),
            len(candidates),
            missing,
            inactive,
            out_of_window,
        )
        return candidates

    def _query_index(
        self, trip_id: str, points: Sequence[LatLon], radius_m: float
    ) -> Set[str]:
        """Query every sample point and union the resulting trip ids.

        At most ``workers`` queries are in flight at once, and each one gets
        ``query_timeout_s`` from the moment it is dispatched. A query that
        times out is abandoned and frees its slot for the next point.
        """

        workers = max(1, min(resolve_max_workers(self.config.max_workers), len(points)))
        timeout_s = self.config.query_timeout_s
        self._log.debug(
            "Querying %d sample points for trip %s (workers=%d, radius=%.0fm)",
            len(points),
            trip_id,
            workers,
            radius_m,
        )
        # One thread per point so abandoned queries never hold up dispatch.
        executor = ThreadPoolExecutor(max_workers=len(points), thread_name_prefix="index-query")
        queued: Deque[LatLon] = deque(points)
        in_flight: Dict[Future[Set[IndexHit]], float] = {}
        hit_ids: Set[str] = set()
        timeouts = failures = 0
        try:
            while queued or in_flight:
                while queued and len(in_flight) < workers:
                    future = executor.submit(self._index.query_near, queued.popleft(), radius_m)
                    in_flight[future] = time.monotonic() + timeout_s

                next_deadline = min(in_flight.values())
                wait(
                    list(in_flight),
                    timeout=max(0.0, next_deadline - time.monotonic()),
                    return_when=FIRST_COMPLETED,
                )
                now = time.monotonic()
                for future, deadline in list(in_flight.items()):
                    if future.done():
                        del in_flight[future]
                        try:
                            hits = future.result()
                        except IndexUnavailableError as exc:
                            failures += 1
                            self._log.debug("Index query failed for trip %s: %s", trip_id, exc)
                            continue
                        hit_ids.update(hit.trip_id for hit in hits)
                    elif deadline <= now:
                        del in_flight[future]
                        timeouts += 1
        finally:
            # Do not block on stragglers that already exceeded their timeout.
            executor.shutdown(wait=False, cancel_futures=True)

        unsuccessful = timeouts + failures
        if points and unsuccessful == len(points):
            raise IndexUnavailableError(
                f"All {len(points)} spatial index queries failed for trip {trip_id} "
                f"(timeouts={timeouts}, errors={failures})"
            )
        if unsuccessful:
            self._log.warning(
                "Absorbed %d/%d failed index queries for trip %s (timeouts=%d, errors=%d)",
                unsuccessful,
                len(points),
                trip_id,
                timeouts,
                failures,
            )
        return hit_ids


__all__ = ["CandidateRetriever", "RetrievalConfig"]
