"""Benchmark the route matching pipeline over a synthetic commuter corridor."""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import statistics
import sys
import time
from pathlib import Path
from typing import Dict, List

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Late imports rely on the adjusted sys.path above.
from carpool_matching.config import MATCH_SAMPLE_INTERVAL_M  # noqa: E402
from carpool_matching.index import (  # noqa: E402
    InMemorySpatialIndex,
    InMemoryTripStore,
)
from carpool_matching.matching import MatchingOrchestrator  # noqa: E402
from carpool_matching.models import Trip  # noqa: E402
from carpool_matching.trips import create_trip  # noqa: E402


@dataclass(slots=True)
class StageDurations:
    """Timing measurements (in seconds) for one benchmark iteration."""

    build: float
    match: float

    @property
    def total(self) -> float:
        return self.build + self.match


@dataclass(slots=True)
class BenchmarkSummary:
    """Aggregated statistics for multiple benchmark iterations."""

    trip_count: int
    iterations: int
    mean_build_ms: float
    mean_match_ms: float
    mean_total_ms: float
    worst_total_ms: float


def _build_trips(trip_count: int) -> List[Trip]:
    """Generate parallel commutes along a 6 km corridor with jittered starts."""

    base = datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc)
    trips: List[Trip] = []
    for idx in range(trip_count):
        offset = (idx % 20) * 0.0005
        origin = (12.90 + offset, 77.58 + offset)
        destination = (12.95 + offset, 77.60 + offset)
        trips.append(
            create_trip(
                f"user-{idx}",
                [origin, destination],
                base + timedelta(minutes=idx % 30),
                trip_id=f"trip-{idx:05d}",
                interval_m=MATCH_SAMPLE_INTERVAL_M,
            )
        )
    return trips


def _run_iteration(trips: List[Trip], queries: int) -> StageDurations:
    start = time.perf_counter()
    store = InMemoryTripStore(trips)
    index = InMemorySpatialIndex(trips)
    orchestrator = MatchingOrchestrator(store, index)
    build = time.perf_counter() - start

    start = time.perf_counter()
    for trip in trips[:queries]:
        result = orchestrator.find_matches(trip.id)
        _ = result  # guard against optimisation stripping the call
    match = time.perf_counter() - start
    return StageDurations(build=build, match=match)


def run_benchmark(trip_count: int, queries: int, iterations: int) -> BenchmarkSummary:
    """Benchmark index construction plus ``queries`` match runs."""

    if trip_count <= 0 or queries <= 0:
        raise ValueError("trip_count and queries must be positive")
    if iterations <= 0:
        raise ValueError("iterations must be positive")

    trips = _build_trips(trip_count)
    durations = [_run_iteration(trips, min(queries, trip_count)) for _ in range(iterations)]

    return BenchmarkSummary(
        trip_count=trip_count,
        iterations=iterations,
        mean_build_ms=statistics.fmean(item.build for item in durations) * 1000.0,
        mean_match_ms=statistics.fmean(item.match for item in durations) * 1000.0,
        mean_total_ms=statistics.fmean(item.total for item in durations) * 1000.0,
        worst_total_ms=max(item.total for item in durations) * 1000.0,
    )


def _format_summary(summary: BenchmarkSummary) -> Dict[str, float]:
    return {
        "trip_count": summary.trip_count,
        "iterations": summary.iterations,
        "mean_build_ms": summary.mean_build_ms,
        "mean_match_ms": summary.mean_match_ms,
        "mean_total_ms": summary.mean_total_ms,
        "worst_total_ms": summary.worst_total_ms,
    }


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Benchmark the route matching pipeline with synthetic trips",
    )
    parser.add_argument("--trips", type=int, default=500, help="Trips to index")
    parser.add_argument("--queries", type=int, default=50, help="Match runs per iteration")
    parser.add_argument(
        "--iterations",
        type=int,
        default=3,
        help="Number of repetitions for averaging",
    )
    return parser.parse_args()


def main() -> None:
    """Entry point when running the module as a script."""

    args = _parse_args()
    summary = run_benchmark(args.trips, args.queries, args.iterations)
    for key, value in _format_summary(summary).items():
        if key in {"trip_count", "iterations"}:
            print(f"{key}: {value}")
        else:
            print(f"{key}: {value:.3f}")


if __name__ == "__main__":
    main()
