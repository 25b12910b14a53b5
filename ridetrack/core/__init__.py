"""RideTrack Core - errors and the event bus."""

from .errors import CorruptData, InvalidStateTransition, RideTrackError, StoreUnavailable
from .events import Event, EventBus, EventType

__all__ = [
    "CorruptData",
    "Event",
    "EventBus",
    "EventType",
    "InvalidStateTransition",
    "RideTrackError",
    "StoreUnavailable",
]
