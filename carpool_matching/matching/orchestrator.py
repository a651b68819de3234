"""Matching orchestrator (application layer).

Coordinates retrieval, scoring and ranking into the single ``find_matches``
operation invoked once per match job. Collaborators are injected at
construction; nothing survives between invocations, so running the same job
twice against the same snapshot yields an equivalent result.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta
import logging
from typing import Any, Callable, Dict, List, Sequence

from ..config import MATCH_MAX_WORKERS, MATCH_RESULT_LIMIT, resolve_max_workers
from ..errors import TripNotFoundError
from ..index.base import SpatialIndexAdapter, TripStore
from ..models import MatchCandidate, MatchResult, Trip
from ..utils import utc_now
from .ranking import rank
from .retriever import CandidateRetriever, RetrievalConfig
from .scoring import OverlapScorer, ScoringConfig

Clock = Callable[[], datetime]


@dataclass(frozen=True, slots=True)
class MatchingConfig:
    retrieval: RetrievalConfig = field(default_factory=RetrievalConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    limit: int = MATCH_RESULT_LIMIT
    # Scoring fan-out; 0 means one worker per available CPU.
    max_workers: int = MATCH_MAX_WORKERS

    def __post_init__(self) -> None:
        if self.limit < 1:
            raise ValueError("limit must be a positive integer")
        if self.max_workers < 0:
            raise ValueError("max_workers must not be negative")
        # Retrieval filters and the scorer normalise against the same window and radius.
        if self.retrieval.time_window != self.scoring.time_window:
            raise ValueError(
                f"Retrieval time window {self.retrieval.time_window} differs from "
                f"scoring time window {self.scoring.time_window}"
            )
        if self.retrieval.radius_m != self.scoring.match_radius_m:
            raise ValueError(
                f"Retrieval radius {self.retrieval.radius_m}m differs from "
                f"scoring radius {self.scoring.match_radius_m}m"
            )

    @classmethod
    def build(
        cls,
        *,
        time_window: timedelta | None = None,
        radius_m: float | None = None,
        limit: int = MATCH_RESULT_LIMIT,
        max_workers: int = MATCH_MAX_WORKERS,
    ) -> "MatchingConfig":
        """Return a config whose retrieval and scoring share one window and radius."""

        retrieval_kwargs: Dict[str, Any] = {}
        scoring_kwargs: Dict[str, Any] = {}
        if time_window is not None:
            retrieval_kwargs["time_window"] = scoring_kwargs["time_window"] = time_window
        if radius_m is not None:
            retrieval_kwargs["radius_m"] = scoring_kwargs["match_radius_m"] = radius_m
        return cls(
            retrieval=RetrievalConfig(**retrieval_kwargs),
            scoring=ScoringConfig(**scoring_kwargs),
            limit=limit,
            max_workers=max_workers,
        )


class MatchingOrchestrator:
    def __init__(
        self,
        store: TripStore,
        index: SpatialIndexAdapter,
        config: MatchingConfig | None = None,
        *,
        clock: Clock | None = None,
    ) -> None:
        self.config = config or MatchingConfig()
        self._store = store
        self._retriever = CandidateRetriever(index, store, self.config.retrieval)
        self._scorer = OverlapScorer(self.config.scoring)
        self._clock = clock or utc_now
        self._log = logging.getLogger(self.__class__.__name__)

    def find_matches(self, trip_id: str) -> MatchResult:
        """Return the ranked best matches for ``trip_id``.

        Trips that are no longer active, or whose route has zero length, yield
        an empty result rather than an error.

        Raises:
            TripNotFoundError: If the store has no trip with ``trip_id``.
            IndexUnavailableError: If the spatial index could not be queried.
        """

        trip = self._store.get_trip(trip_id)
        if trip is None:
            raise TripNotFoundError(trip_id)
        if not trip.is_active:
            self._log.info(
                "Trip %s is %s; returning no matches", trip.id, trip.status.value
            )
            return self._result(trip.id, [])
        if not trip.has_route:
            self._log.info("Trip %s has a zero-length route; not matchable", trip.id)
            return self._result(trip.id, [])

        candidates = self._retriever.retrieve_candidates(trip)
        scored = self._score_all(trip, candidates)
        ranked = rank(scored, self.config.limit)
        self._log.info(
            "Trip %s: scored %d candidates, returning %d",
            trip.id,
            len(scored),
            len(ranked),
        )
        return self._result(trip.id, ranked)

    def _score_all(
        self, trip: Trip, candidates: Dict[str, Trip]
    ) -> List[MatchCandidate]:
        if not candidates:
            return []
        ordered: Sequence[Trip] = [candidates[key] for key in sorted(candidates)]
        workers = min(resolve_max_workers(self.config.max_workers), len(ordered))
        if workers <= 1:
            return [self._scorer.score(trip, candidate) for candidate in ordered]
        with ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="match-score"
        ) as executor:
            return list(
                executor.map(lambda candidate: self._scorer.score(trip, candidate), ordered)
            )

    def _result(self, trip_id: str, candidates: List[MatchCandidate]) -> MatchResult:
        return MatchResult(
            for_trip_id=trip_id,
            candidates=tuple(candidates),
            computed_at=self._clock(),
        )


__all__ = ["MatchingConfig", "MatchingOrchestrator"]
