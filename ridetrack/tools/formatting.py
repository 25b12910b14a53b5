"""Human-readable ride figures and the map region that frames a route."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from ..domain.models import Coordinate


@dataclass(frozen=True)
class MapRegion:
    """Centre point plus the latitude/longitude span to show."""

    latitude: float
    longitude: float
    latitude_delta: float
    longitude_delta: float


def format_distance(km: float) -> str:
    """Distances under one kilometre are shown in meters."""
    if km < 1:
        return f"{km * 1000:.2f} meters"
    return f"{km:.2f} km"


def format_duration(seconds: float) -> str:
    seconds = max(0.0, seconds)
    return f"{int(seconds // 60)} min {int(seconds % 60)} sec"


def format_speed(kmh: float) -> str:
    return f"{kmh:.2f} km/h"


def route_region(route: Sequence[Coordinate], padding: float = 0.05) -> MapRegion | None:
    """
    Bounding region of a route, padded by ``padding`` degrees.

    Returns None for an empty route.
    """
    if not route:
        return None
    lats = [p.latitude for p in route]
    lons = [p.longitude for p in route]
    min_lat, max_lat = min(lats), max(lats)
    min_lon, max_lon = min(lons), max(lons)
    return MapRegion(
        latitude=(max_lat + min_lat) / 2,
        longitude=(max_lon + min_lon) / 2,
        latitude_delta=max_lat - min_lat + padding,
        longitude_delta=max_lon - min_lon + padding,
    )
