"""Utilities for visualising a match result on an interactive map."""

from __future__ import annotations

from pathlib import Path
from typing import List, Mapping, Optional, Union

import folium  # Using folium to build an interactive Leaflet map.

from .models import MatchResult, Trip

PathLike = Union[str, Path]

_QUERY_COLOR = "#2c7bb6"
_SAMPLE_COLOR = "#1a9641"
# Ranked candidates cycle through these colours, best first.
_CANDIDATE_COLORS = ["#d73027", "#fc8d59", "#fee08b", "#91bfdb", "#4575b4"]


def _candidate_color(rank_index: int) -> str:
    return _CANDIDATE_COLORS[rank_index % len(_CANDIDATE_COLORS)]


def _tooltip(rank_index: int, trip: Trip, score: float) -> str:
    return f"#{rank_index + 1} trip {trip.id} (score {score:.3f})"


def create_match_map(
    query_trip: Trip,
    candidate_trips: Mapping[str, Trip],
    result: MatchResult,
    *,
    show_samples: bool = True,
    output_html_path: Optional[PathLike] = None,
) -> folium.Map:
    """Create a map showing a query trip and its ranked matches.

    Args:
        query_trip: The trip the result was computed for.
        candidate_trips: Trip snapshots keyed by id; candidates missing here
            are skipped.
        result: Output of :meth:`MatchingOrchestrator.find_matches`.
        show_samples: Draw the query trip's sampled points as small markers.
        output_html_path: Optional path to persist the map as an HTML file.

    Returns:
        A :class:`folium.Map` instance containing the overlay.

    Raises:
        ValueError: If ``result`` was computed for a different trip.
    """

    if result.for_trip_id != query_trip.id:
        raise ValueError(
            f"Result is for trip {result.for_trip_id}, not {query_trip.id}"
        )

    route = list(query_trip.polyline) or list(query_trip.sampled_points)
    center = route[len(route) // 2] if route else query_trip.origin
    folium_map = folium.Map(location=center, zoom_start=14, control_scale=True)

    drawn: List[Trip] = []
    for rank_index, candidate in enumerate(result.candidates):
        trip = candidate_trips.get(candidate.trip_id)
        if trip is None or len(trip.polyline) < 2:
            continue
        color = _candidate_color(rank_index)
        folium.PolyLine(
            list(trip.polyline),
            color=color,
            weight=4,
            opacity=0.6,
            tooltip=_tooltip(rank_index, trip, candidate.score),
        ).add_to(folium_map)
        folium.CircleMarker(
            location=trip.origin,
            radius=5,
            color=color,
            fill=True,
            fill_color=color,
            tooltip=f"Origin of trip {trip.id}",
        ).add_to(folium_map)
        drawn.append(trip)

    if len(route) >= 2:
        folium.PolyLine(
            route,
            color=_QUERY_COLOR,
            weight=6,
            opacity=0.9,
            tooltip=f"Query trip {query_trip.id}",
        ).add_to(folium_map)

    if show_samples:
        for point in query_trip.sampled_points:
            folium.CircleMarker(
                location=point,
                radius=2,
                color=_SAMPLE_COLOR,
                fill=True,
                fill_color=_SAMPLE_COLOR,
            ).add_to(folium_map)

    popup = folium.Popup(
        html=(
            f"<strong>Trip {query_trip.id}</strong><br>"
            f"Departs {query_trip.depart_time.isoformat()}<br>"
            f"{len(drawn)} match(es) shown"
        ),
        max_width=300,
    )
    folium.Marker(location=query_trip.origin, popup=popup).add_to(folium_map)

    if output_html_path is not None:
        output_path = Path(output_html_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        folium_map.save(str(output_path))

    return folium_map


__all__ = ["create_match_map"]
