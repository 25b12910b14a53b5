"""GPS infrastructure - distance math, speed tracking and location providers."""

from .distance import (
    EARTH_RADIUS_KM,
    DistanceAccumulator,
    FilterDecision,
    SampleFilter,
    calculate_distance,
    haversine_km,
)
from .gpsd_client import (
    AsyncGPSClient,
    LocationProvider,
    LocationWatch,
    ReplayLocationProvider,
    SimulatedLocationProvider,
    parse_tpv,
)
from .speed import SpeedTracker, to_kmh

__all__ = [
    "EARTH_RADIUS_KM",
    "AsyncGPSClient",
    "DistanceAccumulator",
    "FilterDecision",
    "LocationProvider",
    "LocationWatch",
    "ReplayLocationProvider",
    "SampleFilter",
    "SimulatedLocationProvider",
    "SpeedTracker",
    "calculate_distance",
    "haversine_km",
    "parse_tpv",
    "to_kmh",
]
