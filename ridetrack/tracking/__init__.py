"""Trip tracking - lifecycle state machine and ride recorder."""

from .recorder import RideRecorder
from .trip import TripPhase, TripState, TripTracker

__all__ = [
    "RideRecorder",
    "TripPhase",
    "TripState",
    "TripTracker",
]
