"""Central error types used across the matching engine."""

from __future__ import annotations


class MatchingError(RuntimeError):
    """Base error for route matching failures."""

    retryable: bool = False


class InvalidGeometryError(MatchingError, ValueError):
    """Raised when route coordinates are malformed or out of range."""


class TripNotFoundError(MatchingError):
    """Raised when a requested trip does not exist in the trip store."""

    def __init__(self, trip_id: str) -> None:
        super().__init__(f"Trip {trip_id!r} not found")
        self.trip_id = trip_id


class IndexUnavailableError(MatchingError):
    """Raised when the spatial index is unreachable or every query timed out."""

    retryable = True


class InvalidWeightsError(MatchingError, ValueError):
    """Raised when scorer weights are negative or do not sum to one."""


class InvalidTransitionError(MatchingError):
    """Raised when a trip status change is not allowed by the lifecycle."""


__all__ = [
    "MatchingError",
    "InvalidGeometryError",
    "TripNotFoundError",
    "IndexUnavailableError",
    "InvalidWeightsError",
    "InvalidTransitionError",
]
