"""Error types shared by the tracking engine and the ride log store."""

from __future__ import annotations


class RideTrackError(Exception):
    """Base class for all RideTrack errors."""


class InvalidStateTransition(RideTrackError):
    """Raised when a trip lifecycle operation is called out of turn."""

    def __init__(self, operation: str, phase: str) -> None:
        super().__init__(f"cannot {operation}() while trip is {phase}")
        self.operation = operation
        self.phase = phase


class StoreUnavailable(RideTrackError):
    """Raised when the ride log backing store cannot be read or written."""


class CorruptData(RideTrackError):
    """Raised when stored ride log content cannot be parsed."""


__all__ = [
    "CorruptData",
    "InvalidStateTransition",
    "RideTrackError",
    "StoreUnavailable",
]
