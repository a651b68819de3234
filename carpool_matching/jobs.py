"""Queue consumer contract around :meth:`MatchingOrchestrator.find_matches`.

A job message carries only a trip id. The consumer decides whether a job is
finished, should be redelivered, or should be dropped; backoff timing is left
to the queue infrastructure.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, replace
from enum import Enum
import logging
import queue
import threading
from typing import Any, Callable, Dict, Mapping, Union

from .config import MATCH_JOB_MAX_ATTEMPTS
from .errors import IndexUnavailableError, TripNotFoundError
from .matching.orchestrator import MatchingOrchestrator
from .models import MatchResult

ResultSink = Callable[[MatchResult], None]


class JobOutcome(str, Enum):
    COMPLETED = "completed"
    RETRY = "retry"
    DISCARDED = "discarded"


@dataclass(frozen=True, slots=True)
class MatchJob:
    trip_id: str
    attempt: int = 1

    @classmethod
    def from_payload(cls, payload: Union["MatchJob", Mapping[str, Any]]) -> "MatchJob":
        """Build a job from a queue message (``tripId`` or ``trip_id`` key)."""

        if isinstance(payload, MatchJob):
            return payload
        if not isinstance(payload, Mapping):
            raise ValueError(f"Match job payload must be a mapping, got {type(payload)!r}")
        raw_id = payload.get("tripId", payload.get("trip_id"))
        if raw_id is None or not str(raw_id).strip():
            raise ValueError("Match job payload is missing a trip id")
        try:
            attempt = int(payload.get("attempt", 1))
        except (TypeError, ValueError) as exc:
            raise ValueError("Match job attempt must be an integer") from exc
        return cls(trip_id=str(raw_id).strip(), attempt=max(1, attempt))

    def next_attempt(self) -> "MatchJob":
        return replace(self, attempt=self.attempt + 1)

    def as_payload(self) -> Dict[str, Any]:
        return {"tripId": self.trip_id, "attempt": self.attempt}


class MatchJobConsumer:
    def __init__(
        self,
        orchestrator: MatchingOrchestrator,
        sink: ResultSink,
        *,
        max_attempts: int = MATCH_JOB_MAX_ATTEMPTS,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._orchestrator = orchestrator
        self._sink = sink
        self.max_attempts = max_attempts
        self._log = logging.getLogger(self.__class__.__name__)

    def handle(self, payload: Union[MatchJob, Mapping[str, Any]]) -> JobOutcome:
        """Run one match job and classify the outcome.

        Exceptions raised by the result sink propagate to the caller.
        """

        try:
            job = MatchJob.from_payload(payload)
        except ValueError as exc:
            self._log.error("Discarding malformed match job %r: %s", payload, exc)
            return JobOutcome.DISCARDED
        return self._run(job)

    def drain(
        self,
        jobs: "queue.Queue[Any]",
        stop_event: threading.Event | None = None,
    ) -> Dict[JobOutcome, int]:
        """Consume ``jobs`` until empty or stopped, re-enqueuing retryable jobs.

        Returns per-outcome counts. A job that is still failing after
        ``max_attempts`` deliveries is counted as discarded.
        """

        counts: Counter[JobOutcome] = Counter()
        while not (stop_event and stop_event.is_set()):
            try:
                payload = jobs.get_nowait()
            except queue.Empty:
                break
            try:
                try:
                    job = MatchJob.from_payload(payload)
                except ValueError as exc:
                    self._log.error("Discarding malformed match job %r: %s", payload, exc)
                    counts[JobOutcome.DISCARDED] += 1
                    continue
                outcome = self._run(job)
                if outcome is JobOutcome.RETRY:
                    if job.attempt < self.max_attempts:
                        jobs.put(job.next_attempt())
                    else:
                        self._log.error(
                            "Giving up on trip %s after %d attempts",
                            job.trip_id,
                            job.attempt,
                        )
                        outcome = JobOutcome.DISCARDED
                counts[outcome] += 1
            finally:
                jobs.task_done()
        return {outcome: counts.get(outcome, 0) for outcome in JobOutcome}

    def _run(self, job: MatchJob) -> JobOutcome:
        try:
            result = self._orchestrator.find_matches(job.trip_id)
        except IndexUnavailableError as exc:
            self._log.warning(
                "Match job for trip %s failed (attempt %d), retryable: %s",
                job.trip_id,
                job.attempt,
                exc,
            )
            return JobOutcome.RETRY
        except TripNotFoundError as exc:
            self._log.warning("Discarding match job: %s", exc)
            return JobOutcome.DISCARDED
        self._sink(result)
        return JobOutcome.COMPLETED


__all__ = ["JobOutcome", "MatchJob", "MatchJobConsumer", "ResultSink"]
