"""Carpool route matching engine package."""

from .errors import (
    IndexUnavailableError,
    InvalidGeometryError,
    InvalidWeightsError,
    MatchingError,
    TripNotFoundError,
)
from .matching import MatchingConfig, MatchingOrchestrator
from .models import MatchCandidate, MatchResult, Trip, TripStatus
from .trips import create_trip

__all__ = [
    "IndexUnavailableError",
    "InvalidGeometryError",
    "InvalidWeightsError",
    "MatchCandidate",
    "MatchResult",
    "MatchingConfig",
    "MatchingError",
    "MatchingOrchestrator",
    "TripNotFoundError",
    "Trip",
    "TripStatus",
    "create_trip",
]
