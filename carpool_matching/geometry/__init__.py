"""Geometry helpers: validation, projection, distances and route sampling."""

from .distance import haversine_m, pairwise_haversine_m
from .projection import LocalProjection, path_length_m
from .sampler import decode_polyline, resample_by_distance, sample_polyline
from .validation import validate_coordinate, validate_coordinates

__all__ = [
    "LocalProjection",
    "decode_polyline",
    "haversine_m",
    "pairwise_haversine_m",
    "path_length_m",
    "resample_by_distance",
    "sample_polyline",
    "validate_coordinate",
    "validate_coordinates",
]
