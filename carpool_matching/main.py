"""Replay matching over a JSON file of trips.

Usage:
    python -m carpool_matching --trips trips.json --trip-id abc123
    python -m carpool_matching --trips trips.json --map maps/abc123.html --trip-id abc123

Each trip entry needs ``id``, ``userId``, ``polyline`` (encoded string or a
list of ``[lat, lon]`` pairs) and ``departTime`` (ISO-8601); ``status`` is
optional and defaults to ``active``.
"""

from __future__ import annotations

import argparse
from datetime import timedelta
import json
import logging
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from .config import MATCH_RESULT_LIMIT, MATCH_SAMPLE_INTERVAL_M
from .errors import IndexUnavailableError, MatchingError
from .index import InMemorySpatialIndex, InMemoryTripStore
from .matching import MatchingConfig, MatchingOrchestrator
from .models import MatchResult, Trip
from .trips import create_trip
from .utils import json_dumps_sorted, parse_timestamp
from .visualization import create_match_map


def _setup_logging(verbose: bool = False) -> None:
    if not logging.getLogger().hasHandlers():
        logging.basicConfig(
            level=logging.DEBUG if verbose else logging.INFO,
            format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        )


def _trip_from_record(record: Mapping[str, Any], interval_m: float) -> Trip:
    try:
        trip_id = str(record["id"])
        user_id = str(record.get("userId", record.get("user_id", "")))
        polyline = record["polyline"]
        depart_raw = record.get("departTime", record.get("depart_time"))
    except (KeyError, TypeError) as exc:
        raise ValueError(f"Trip record is missing a required field: {exc}") from exc
    if not isinstance(depart_raw, str):
        raise ValueError(f"Trip {trip_id} has no departTime")
    return create_trip(
        user_id,
        polyline,
        parse_timestamp(depart_raw),
        trip_id=trip_id,
        status=record.get("status", "active"),
        interval_m=interval_m,
    )


def load_trips(path: Path, interval_m: float = MATCH_SAMPLE_INTERVAL_M) -> List[Trip]:
    """Load and sample every trip in a JSON file."""

    with path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    records = payload.get("trips", []) if isinstance(payload, dict) else payload
    if not isinstance(records, list):
        raise ValueError("Trips file must contain a list of trips")
    return [_trip_from_record(record, interval_m) for record in records]


def build_in_memory_engine(
    trips: Sequence[Trip], config: MatchingConfig | None = None
) -> Tuple[MatchingOrchestrator, InMemoryTripStore]:
    store = InMemoryTripStore(trips)
    index = InMemorySpatialIndex(trip for trip in trips if trip.is_active)
    return MatchingOrchestrator(store, index, config), store


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Find carpool matches for trips listed in a JSON file."
    )
    parser.add_argument("--trips", type=Path, required=True)
    parser.add_argument(
        "--trip-id",
        action="append",
        dest="trip_ids",
        help="Trip to match (repeatable); defaults to every active trip",
    )
    parser.add_argument("--limit", type=int, default=MATCH_RESULT_LIMIT)
    parser.add_argument(
        "--window-minutes",
        type=float,
        help="Override the departure time window (minutes)",
    )
    parser.add_argument(
        "--interval-m",
        type=float,
        default=MATCH_SAMPLE_INTERVAL_M,
        help=f"Route sampling interval in metres (default: {MATCH_SAMPLE_INTERVAL_M:g})",
    )
    parser.add_argument(
        "--map",
        type=Path,
        help="Write an HTML map of the first matched trip to this path",
    )
    parser.add_argument("--verbose", action="store_true")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point used via ``python -m carpool_matching``."""

    args = _build_parser().parse_args(argv)
    _setup_logging(args.verbose)

    try:
        trips = load_trips(args.trips, args.interval_m)
        window = (
            timedelta(minutes=args.window_minutes)
            if args.window_minutes is not None
            else None
        )
        config = MatchingConfig.build(time_window=window, limit=args.limit)
    except (OSError, ValueError) as exc:
        logging.error("Failed to load trips from '%s': %s", args.trips, exc)
        return 1

    orchestrator, store = build_in_memory_engine(trips, config)
    trip_ids = args.trip_ids or [trip.id for trip in trips if trip.is_active]

    results: List[MatchResult] = []
    try:
        for trip_id in trip_ids:
            results.append(orchestrator.find_matches(trip_id))
    except IndexUnavailableError as exc:
        logging.error("Spatial index unavailable: %s", exc)
        return 2
    except MatchingError as exc:
        logging.error("%s", exc)
        return 1

    print(json_dumps_sorted([result.as_dict() for result in results], indent=2))

    if args.map is not None and results:
        first = results[0]
        query_trip = store.get_trip(first.for_trip_id)
        if query_trip is not None:
            candidates = {
                trip_id: trip
                for trip_id in first.candidate_ids
                if (trip := store.get_trip(trip_id)) is not None
            }
            create_match_map(query_trip, candidates, first, output_html_path=args.map)
            logging.info("Match map written to %s", args.map)
    return 0
