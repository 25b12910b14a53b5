"""RideTrack Domain Models - Pydantic models for core entities."""

from __future__ import annotations

import math
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


def truncate_to_millis(dt: datetime) -> datetime:
    """Drop sub-millisecond precision so the value survives the id round trip."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).replace(microsecond=(dt.microsecond // 1000) * 1000)


def format_timestamp(dt: datetime) -> str:
    """Render ``dt`` as a sortable UTC string, e.g. ``2024-05-01T12:00:00.000Z``."""
    dt = truncate_to_millis(dt)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def parse_timestamp(text: str) -> datetime:
    """Inverse of :func:`format_timestamp`. Accepts any ISO-8601 string."""
    dt = datetime.fromisoformat(text.strip())
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


class Coordinate(BaseModel):
    """A WGS84 point in decimal degrees."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class RawSample(BaseModel):
    """One reading from the location provider."""

    coordinate: Coordinate
    speed_mps: float | None = None  # m/s, None when the device did not report it
    captured_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def at(
        cls,
        latitude: float,
        longitude: float,
        speed_mps: float | None = None,
        captured_at: datetime | None = None,
    ) -> RawSample:
        """Build a sample from bare coordinates."""
        return cls(
            coordinate=Coordinate(latitude=latitude, longitude=longitude),
            speed_mps=speed_mps,
            captured_at=captured_at or utc_now(),
        )


class RideRecord(BaseModel):
    """Persisted shape of one ride in the ride log.

    Field names follow the stored JSON. Numeric fields accept numeric strings
    since older logs stored them stringified.
    """

    route: list[Coordinate] = Field(default_factory=list)
    maxSpeed: float = 0.0
    avgSpeed: float = 0.0
    totalDistance: float = 0.0
    timeTaken: float = 0.0
    timestamp: str

    @field_validator("maxSpeed", "avgSpeed", "totalDistance", "timeTaken")
    @classmethod
    def _finite(cls, value: float) -> float:
        # Old logs can hold "NaN" or "Infinity" from a zero-duration average.
        return value if math.isfinite(value) else 0.0


class TripSummary(BaseModel):
    """Immutable result of one completed trip."""

    model_config = ConfigDict(frozen=True)

    id: str
    route: tuple[Coordinate, ...] = ()
    max_speed_kmh: float = 0.0
    avg_speed_kmh: float = 0.0
    total_distance_km: float = 0.0
    duration_seconds: float = 0.0
    completed_at: datetime

    @property
    def start(self) -> Coordinate | None:
        return self.route[0] if self.route else None

    @property
    def end(self) -> Coordinate | None:
        return self.route[-1] if self.route else None

    def to_record(self) -> dict[str, Any]:
        """Serialize to the stored ride log shape."""
        record = RideRecord(
            route=list(self.route),
            maxSpeed=self.max_speed_kmh,
            avgSpeed=self.avg_speed_kmh,
            totalDistance=self.total_distance_km,
            timeTaken=self.duration_seconds,
            timestamp=self.id,
        )
        return record.model_dump()

    @classmethod
    def from_record(cls, data: dict[str, Any] | RideRecord) -> TripSummary:
        """Parse one stored ride log entry.

        Raises:
            pydantic.ValidationError: if the entry does not match the record shape.
            ValueError: if the timestamp is not ISO-8601.
        """
        record = data if isinstance(data, RideRecord) else RideRecord.model_validate(data)
        return cls(
            id=record.timestamp,
            route=tuple(record.route),
            max_speed_kmh=record.maxSpeed,
            avg_speed_kmh=record.avgSpeed,
            total_distance_km=record.totalDistance,
            duration_seconds=record.timeTaken,
            completed_at=parse_timestamp(record.timestamp),
        )
