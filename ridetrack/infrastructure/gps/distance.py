"""
GPS Distance
============

Great-circle distance, the jitter filter that decides which samples enter
the route, and the running distance total for a trip.

Usage:
    gate = SampleFilter(min_distance_km=0.001)
    total = DistanceAccumulator()

    decision = gate.evaluate(last_point, sample.coordinate)
    if decision.accepted and last_point is not None:
        total.add(decision.distance_km)
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from ...domain.models import Coordinate

EARTH_RADIUS_KM = 6371.0  # mean Earth radius


def calculate_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate distance between two points using the Haversine formula.

    Args:
        lat1, lon1: First point coordinates (degrees)
        lat2, lon2: Second point coordinates (degrees)

    Returns:
        Distance in kilometers
    """
    if lat1 == lat2 and lon1 == lon2:
        return 0.0

    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def haversine_km(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance between two coordinates in kilometers."""
    return calculate_distance(a.latitude, a.longitude, b.latitude, b.longitude)


@dataclass(frozen=True)
class FilterDecision:
    """Outcome of running one sample through the jitter filter."""

    accepted: bool
    distance_km: float = 0.0


@dataclass
class SampleFilter:
    """
    Minimum-displacement gate for route points.

    GPS fixes wander at rest; without this gate a parked vehicle
    slowly accumulates distance.
    """

    min_distance_km: float = 0.001

    def evaluate(self, last: Coordinate | None, coordinate: Coordinate) -> FilterDecision:
        """
        Decide whether ``coordinate`` joins the route.

        Args:
            last: Last accepted route point, None for the first sample of a trip
            coordinate: Position of the incoming sample

        Returns:
            FilterDecision with the displacement from ``last`` in kilometers
        """
        if last is None:
            return FilterDecision(accepted=True, distance_km=0.0)

        distance = haversine_km(last, coordinate)
        return FilterDecision(accepted=distance >= self.min_distance_km, distance_km=distance)


@dataclass
class DistanceAccumulator:
    """Running total of accepted segment lengths."""

    total_km: float = 0.0
    segments: int = 0

    def add(self, distance_km: float) -> float:
        """Add one accepted segment. Returns the new total."""
        self.total_km += distance_km
        self.segments += 1
        return self.total_km

    @property
    def total_meters(self) -> float:
        return self.total_km * 1000.0

    def reset(self) -> None:
        """Reset to an empty trip."""
        self.total_km = 0.0
        self.segments = 0

    def to_dict(self) -> dict:
        """Export accumulator state as dictionary."""
        return {
            "total_km": self.total_km,
            "total_meters": self.total_meters,
            "segments": self.segments,
        }
