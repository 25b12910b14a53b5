"""
Trip Lifecycle
==============

Single state machine that turns a stream of raw samples into a route,
distance and speed statistics, and a :class:`TripSummary` on stop.

    IDLE --start()--> TRACKING --stop()--> IDLE

Usage:
    tracker = TripTracker(TrackingConfig(min_distance_km=0.001))
    tracker.start()

    for sample in samples:
        tracker.sample(sample)

    summary = tracker.stop()

Samples must be delivered sequentially; the tracker does no locking.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable

from ..config import TrackingConfig
from ..core.errors import InvalidStateTransition
from ..domain.models import Coordinate, RawSample, TripSummary, format_timestamp, truncate_to_millis, utc_now
from ..infrastructure.gps.distance import DistanceAccumulator, SampleFilter
from ..infrastructure.gps.speed import SpeedTracker, to_kmh

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class TripPhase(str, Enum):
    """Lifecycle phase of the tracker."""

    IDLE = "idle"
    TRACKING = "tracking"


@dataclass
class TripState:
    """Live aggregate for the trip in progress."""

    min_speed_kmh: float = 0.25
    route: list[Coordinate] = field(default_factory=list)
    started_at: datetime | None = None
    distance: DistanceAccumulator = field(default_factory=DistanceAccumulator)
    speed: SpeedTracker = field(init=False)

    def __post_init__(self) -> None:
        self.speed = SpeedTracker(min_speed_kmh=self.min_speed_kmh)

    @property
    def total_distance_km(self) -> float:
        return self.distance.total_km

    @property
    def current_speed_kmh(self) -> float:
        return self.speed.current_kmh

    @property
    def max_speed_kmh(self) -> float:
        return self.speed.max_kmh

    @property
    def last_point(self) -> Coordinate | None:
        return self.route[-1] if self.route else None

    def to_dict(self) -> dict:
        """Export live state for status displays."""
        return {
            "points": len(self.route),
            "total_distance_km": self.total_distance_km,
            "current_speed_kmh": self.current_speed_kmh,
            "max_speed_kmh": self.max_speed_kmh,
            "started_at": self.started_at.isoformat() if self.started_at else None,
        }


class TripTracker:
    """
    Trip lifecycle state machine.

    Owns the jitter filter, distance accumulator, speed tracker and route
    buffer. Out-of-turn calls raise :class:`InvalidStateTransition` and
    leave the state untouched.
    """

    def __init__(self, config: TrackingConfig | None = None, clock: Clock = utc_now) -> None:
        self.config = config or TrackingConfig()
        self._clock = clock
        self._filter = SampleFilter(min_distance_km=self.config.min_distance_km)
        self._phase = TripPhase.IDLE
        self._state = self._new_state()

    def _new_state(self) -> TripState:
        return TripState(min_speed_kmh=self.config.min_speed_kmh)

    @property
    def phase(self) -> TripPhase:
        return self._phase

    @property
    def is_tracking(self) -> bool:
        return self._phase is TripPhase.TRACKING

    @property
    def state(self) -> TripState:
        """Live trip state. Read it, do not mutate it."""
        return self._state

    def _require(self, phase: TripPhase, operation: str) -> None:
        if self._phase is not phase:
            raise InvalidStateTransition(operation, self._phase.value)

    def start(self, at: datetime | None = None) -> None:
        """Begin a new trip. Only valid while idle."""
        self._require(TripPhase.IDLE, "start")
        self._state = self._new_state()
        self._state.started_at = at or self._clock()
        self._phase = TripPhase.TRACKING
        logger.info("Trip started at %s", self._state.started_at.isoformat())

    def sample(self, raw: RawSample) -> bool:
        """
        Feed one raw sample into the trip.

        Returns:
            True if the sample was accepted into the route
        """
        self._require(TripPhase.TRACKING, "sample")
        state = self._state
        speed_kmh = to_kmh(raw.speed_mps)
        last = state.last_point

        decision = self._filter.evaluate(last, raw.coordinate)
        if not decision.accepted:
            if self.config.current_speed_from_rejected:
                state.speed.observe(speed_kmh)
            logger.debug(
                "Sample rejected: %.2f m from last point (min %.2f m)",
                decision.distance_km * 1000,
                self._filter.min_distance_km * 1000,
            )
            return False

        state.route.append(raw.coordinate)
        if last is not None:
            state.distance.add(decision.distance_km)
        state.speed.observe(speed_kmh)
        state.speed.record(speed_kmh)
        logger.debug(
            "Sample accepted: +%.4f km, total %.4f km, %d points",
            decision.distance_km,
            state.total_distance_km,
            len(state.route),
        )
        return True

    def stop(self, at: datetime | None = None) -> TripSummary:
        """
        Finish the trip and return its summary.

        The tracker is back to idle afterwards. Average speed is 0 for
        zero-duration trips.
        """
        self._require(TripPhase.TRACKING, "stop")
        state = self._state
        ended = at or self._clock()
        started = state.started_at or ended
        duration = max(0.0, (ended - started).total_seconds())
        avg_speed = state.total_distance_km / (duration / 3600) if duration > 0 else 0.0

        completed_at = truncate_to_millis(ended)
        summary = TripSummary(
            id=format_timestamp(completed_at),
            route=tuple(state.route),
            max_speed_kmh=state.max_speed_kmh,
            avg_speed_kmh=avg_speed,
            total_distance_km=state.total_distance_km,
            duration_seconds=duration,
            completed_at=completed_at,
        )

        self._phase = TripPhase.IDLE
        self._state = self._new_state()
        logger.info(
            "Trip %s completed: %.3f km in %.0f s, max %.1f km/h, avg %.1f km/h, %d points",
            summary.id,
            summary.total_distance_km,
            summary.duration_seconds,
            summary.max_speed_kmh,
            summary.avg_speed_kmh,
            len(summary.route),
        )
        return summary

    def reset(self) -> None:
        """Discard any trip in progress and return to idle."""
        if self._phase is TripPhase.TRACKING:
            logger.info("Trip discarded with %d points", len(self._state.route))
        self._phase = TripPhase.IDLE
        self._state = self._new_state()

    def elapsed_seconds(self, now: datetime | None = None) -> float:
        """Seconds since start for live displays, 0 while idle."""
        if self._state.started_at is None:
            return 0.0
        return max(0.0, ((now or self._clock()) - self._state.started_at).total_seconds())
