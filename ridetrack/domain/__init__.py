"""Domain models."""

from .models import (
    Coordinate,
    RawSample,
    RideRecord,
    TripSummary,
    format_timestamp,
    parse_timestamp,
    utc_now,
)

__all__ = [
    "Coordinate",
    "RawSample",
    "RideRecord",
    "TripSummary",
    "format_timestamp",
    "parse_timestamp",
    "utc_now",
]
