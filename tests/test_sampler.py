"""Tests for polyline decoding and fixed-interval route sampling."""

from __future__ import annotations

import math

import numpy as np
import pytest

from carpool_matching.errors import InvalidGeometryError
from carpool_matching.geometry import (
    decode_polyline,
    path_length_m,
    resample_by_distance,
    sample_polyline,
)
from carpool_matching.geometry.distance import haversine_m

from conftest import ROUTE_A_DESTINATION, ROUTE_A_ORIGIN, straight_route


def test_decode_polyline_reference_string() -> None:
    decoded = decode_polyline("_p~iF~ps|U_ulLnnqC_mqNvxq`@")
    expected = [(38.5, -120.2), (40.7, -120.95), (43.252, -126.453)]
    assert len(decoded) == len(expected)
    for actual, wanted in zip(decoded, expected):
        assert actual == pytest.approx(wanted)


def test_decode_polyline_empty_string() -> None:
    assert decode_polyline("") == []


def test_sample_count_follows_route_length() -> None:
    route = straight_route(ROUTE_A_ORIGIN, ROUTE_A_DESTINATION)
    length = path_length_m(route)

    sampled = sample_polyline(route, 150.0)

    assert len(sampled) == math.ceil(length / 150.0) + 1


def test_sample_preserves_endpoints_exactly() -> None:
    route = straight_route(ROUTE_A_ORIGIN, ROUTE_A_DESTINATION)

    sampled = sample_polyline(route, 150.0)

    assert sampled[0] == ROUTE_A_ORIGIN
    assert sampled[-1] == ROUTE_A_DESTINATION


def test_consecutive_samples_never_exceed_interval() -> None:
    route = [(51.4800, -3.1800), (51.4900, -3.1800), (51.4900, -3.1600)]

    sampled = sample_polyline(route, 100.0)

    gaps = [haversine_m(a, b) for a, b in zip(sampled, sampled[1:])]
    # Allow for UTM scale distortion and chord shortcuts at the corner.
    assert max(gaps) <= 100.0 * 1.01
    assert min(gaps) > 0.0


def test_samples_sit_at_fixed_arc_length_offsets() -> None:
    # Along a UTM central meridian the projection is nearly true to scale.
    route = [(51.00, -3.0), (51.02, -3.0)]

    sampled = sample_polyline(route, 200.0)

    offsets = [haversine_m(route[0], point) for point in sampled[:-1]]
    expected = [200.0 * idx for idx in range(len(offsets))]
    assert offsets == pytest.approx(expected, rel=1e-3, abs=1e-6)


def test_route_shorter_than_interval_keeps_both_ends() -> None:
    route = [(12.90, 77.58), (12.9005, 77.58)]

    sampled = sample_polyline(route, 150.0)

    assert sampled == route


def test_zero_length_route_collapses_to_single_point() -> None:
    point = (12.90, 77.58)

    sampled = sample_polyline([point, point, point], 150.0)

    assert sampled == [point]


def test_single_point_and_empty_inputs_returned_unchanged() -> None:
    assert sample_polyline([(12.9, 77.58)]) == [(12.9, 77.58)]
    assert sample_polyline([]) == []


@pytest.mark.parametrize("interval", [0.0, -5.0, float("nan")])
def test_sample_rejects_non_positive_interval(interval: float) -> None:
    with pytest.raises(ValueError):
        sample_polyline([(12.9, 77.58), (12.95, 77.6)], interval)


def test_sample_rejects_out_of_range_coordinates() -> None:
    with pytest.raises(InvalidGeometryError, match="index 1"):
        sample_polyline([(12.9, 77.58), (95.0, 77.6)])


def test_resample_by_distance_targets_fixed_offsets() -> None:
    metric = np.array([[0.0, 0.0], [250.0, 0.0]])

    resampled = resample_by_distance(metric, 100.0)

    assert resampled[:, 0].tolist() == pytest.approx([0.0, 100.0, 200.0, 250.0])
    assert np.allclose(resampled[:, 1], 0.0)


def test_resample_by_distance_exact_multiple_has_no_duplicate_end() -> None:
    metric = np.array([[0.0, 0.0], [300.0, 0.0]])

    resampled = resample_by_distance(metric, 100.0)

    assert resampled[:, 0].tolist() == pytest.approx([0.0, 100.0, 200.0, 300.0])
