"""Spatial index and trip store contracts plus in-memory implementations."""

from .base import IndexHit, SpatialIndexAdapter, TripStore
from .memory import InMemorySpatialIndex, InMemoryTripStore

__all__ = [
    "IndexHit",
    "InMemorySpatialIndex",
    "InMemoryTripStore",
    "SpatialIndexAdapter",
    "TripStore",
]
