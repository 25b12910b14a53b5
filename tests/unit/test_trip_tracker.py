"""
Trip Tracker Unit Tests
=======================

Tests for the trip lifecycle state machine.
"""

import math
import random
from datetime import UTC, datetime, timedelta

import pytest

from ridetrack.config import TrackingConfig
from ridetrack.core.errors import InvalidStateTransition
from ridetrack.domain.models import RawSample, format_timestamp
from ridetrack.infrastructure.gps.distance import EARTH_RADIUS_KM, haversine_km
from ridetrack.tracking.trip import TripPhase, TripTracker

T0 = datetime(2024, 5, 1, 12, 0, 0, tzinfo=UTC)


class FakeClock:
    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def tracker(clock):
    return TripTracker(TrackingConfig(min_distance_km=0.001, min_speed_kmh=0.25), clock=clock)


def sample(lat, lon, speed=None):
    return RawSample.at(lat, lon, speed_mps=speed, captured_at=T0)


class TestLifecycle:
    """Tests for start/stop/reset transitions."""

    def test_initially_idle(self, tracker):
        assert tracker.phase is TripPhase.IDLE
        assert tracker.is_tracking is False
        assert tracker.state.started_at is None

    def test_start_moves_to_tracking(self, tracker):
        tracker.start()
        assert tracker.phase is TripPhase.TRACKING
        assert tracker.state.started_at == T0

    def test_start_twice_rejected(self, tracker):
        tracker.start()
        with pytest.raises(InvalidStateTransition):
            tracker.start()
        assert tracker.is_tracking

    def test_stop_without_start_rejected(self, tracker):
        """Stopping an idle tracker fails and produces no summary."""
        with pytest.raises(InvalidStateTransition) as exc_info:
            tracker.stop()
        assert exc_info.value.operation == "stop"
        assert exc_info.value.phase == "idle"
        assert tracker.phase is TripPhase.IDLE

    def test_sample_while_idle_rejected(self, tracker):
        with pytest.raises(InvalidStateTransition):
            tracker.sample(sample(0, 0))
        assert tracker.state.route == []

    def test_stop_returns_to_idle_and_resets(self, tracker, clock):
        tracker.start()
        tracker.sample(sample(0, 0, speed=5))
        tracker.sample(sample(0.0005, 0, speed=5))
        clock.advance(10)
        tracker.stop()

        assert tracker.phase is TripPhase.IDLE
        assert tracker.state.route == []
        assert tracker.state.total_distance_km == 0.0
        assert tracker.state.max_speed_kmh == 0.0
        assert tracker.state.started_at is None

    def test_reusable_for_next_trip(self, tracker, clock):
        tracker.start()
        tracker.sample(sample(0, 0))
        tracker.stop()

        clock.advance(60)
        tracker.start()
        assert tracker.state.route == []
        assert tracker.state.started_at == T0 + timedelta(seconds=60)

    def test_reset_discards_trip(self, tracker):
        tracker.start()
        tracker.sample(sample(0, 0))
        tracker.reset()
        assert tracker.phase is TripPhase.IDLE
        assert tracker.state.route == []
        with pytest.raises(InvalidStateTransition):
            tracker.stop()

    def test_reset_while_idle_is_noop(self, tracker):
        tracker.reset()
        assert tracker.phase is TripPhase.IDLE

    def test_elapsed_seconds(self, tracker, clock):
        assert tracker.elapsed_seconds() == 0.0
        tracker.start()
        clock.advance(42)
        assert tracker.elapsed_seconds() == 42.0


class TestSampling:
    """Tests for route building and statistics."""

    def test_route_scenario(self, tracker):
        """Two points 55 m apart are accepted, a 0.1 m wiggle is not."""
        tracker.start()
        assert tracker.sample(sample(0, 0)) is True
        assert tracker.sample(sample(0.0005, 0)) is True
        assert len(tracker.state.route) == 2
        assert tracker.state.total_distance_km == pytest.approx(0.0556, abs=1e-4)

        assert tracker.sample(sample(0.0005001, 0)) is False
        assert len(tracker.state.route) == 2
        assert tracker.state.total_distance_km == pytest.approx(0.0556, abs=1e-4)

    def test_first_sample_seeds_route(self, tracker):
        tracker.start()
        tracker.sample(sample(41.0, 29.0))
        assert [p.latitude for p in tracker.state.route] == [41.0]
        assert tracker.state.total_distance_km == 0.0

    def test_distance_sums_accepted_points_only(self, clock):
        """Total distance equals the route polyline length for any stream."""
        rng = random.Random(1234)
        tracker = TripTracker(TrackingConfig(min_distance_km=0.01), clock=clock)
        tracker.start()

        lat, lon = 41.0, 29.0
        fed = []
        for _ in range(300):
            lat += rng.uniform(-0.0002, 0.0002)
            lon += rng.uniform(-0.0002, 0.0002)
            raw = sample(lat, lon)
            fed.append(raw.coordinate)
            tracker.sample(raw)

        route = tracker.state.route
        expected = sum(haversine_km(a, b) for a, b in zip(route, route[1:]))
        assert tracker.state.total_distance_km == pytest.approx(expected)
        assert 1 < len(route) < len(fed)
        for a, b in zip(route, route[1:]):
            assert haversine_km(a, b) >= 0.01

    def test_max_speed_from_accepted_samples_above_floor(self, clock):
        """Max speed is the highest accepted reading above the noise floor."""
        rng = random.Random(99)
        tracker = TripTracker(TrackingConfig(min_distance_km=0.005, min_speed_kmh=1.0), clock=clock)
        tracker.start()

        lat = 0.0
        expected_max = 0.0
        for _ in range(200):
            lat += rng.choice([0.0, 0.00001, 0.0001])
            speed = rng.choice([None, -1.0, 0.1, 0.27, rng.uniform(0, 30)])
            accepted = tracker.sample(sample(lat, 0.0, speed=speed))
            kmh = 0.0 if speed is None or speed < 0 else speed * 3.6
            if accepted and kmh > 1.0:
                expected_max = max(expected_max, kmh)

        assert tracker.state.max_speed_kmh == pytest.approx(expected_max)

    def test_rejected_sample_does_not_raise_max(self, tracker):
        tracker.start()
        tracker.sample(sample(0, 0, speed=2))
        tracker.sample(sample(0.0000001, 0, speed=30))
        assert tracker.state.max_speed_kmh == pytest.approx(7.2)

    def test_rejected_sample_updates_current_speed(self, tracker):
        """By default current speed follows every reading."""
        tracker.start()
        tracker.sample(sample(0, 0, speed=2))
        tracker.sample(sample(0.0000001, 0, speed=10))
        assert tracker.state.current_speed_kmh == pytest.approx(36.0)

    def test_rejected_sample_keeps_current_speed_when_disabled(self, clock):
        config = TrackingConfig(current_speed_from_rejected=False)
        tracker = TripTracker(config, clock=clock)
        tracker.start()
        tracker.sample(sample(0, 0, speed=2))
        tracker.sample(sample(0.0000001, 0, speed=10))
        assert tracker.state.current_speed_kmh == pytest.approx(7.2)

    def test_missing_speed_counts_as_zero(self, tracker):
        tracker.start()
        tracker.sample(sample(0, 0, speed=None))
        assert tracker.state.current_speed_kmh == 0.0
        assert tracker.state.max_speed_kmh == 0.0


class TestSummary:
    """Tests for the summary produced by stop()."""

    def test_average_speed_over_one_hour(self, tracker, clock):
        """30 km in one hour averages 30 km/h."""
        tracker.start()
        tracker.sample(sample(0, 0))
        tracker.sample(sample(math.degrees(30 / EARTH_RADIUS_KM), 0))
        clock.advance(3600)
        summary = tracker.stop()

        assert summary.total_distance_km == pytest.approx(30.0)
        assert summary.duration_seconds == 3600
        assert summary.avg_speed_kmh == pytest.approx(30.0)

    def test_zero_duration_average_is_zero(self, tracker):
        """Stopping at the start instant never yields NaN or infinity."""
        tracker.start()
        tracker.sample(sample(0, 0))
        tracker.sample(sample(0.001, 0))
        summary = tracker.stop()

        assert summary.duration_seconds == 0
        assert summary.avg_speed_kmh == 0.0
        assert math.isfinite(summary.avg_speed_kmh)

    def test_empty_trip_still_summarized(self, tracker, clock):
        tracker.start()
        clock.advance(5)
        summary = tracker.stop()
        assert summary.route == ()
        assert summary.total_distance_km == 0.0
        assert summary.avg_speed_kmh == 0.0

    def test_clock_going_backwards_clamps_duration(self, tracker):
        tracker.start()
        summary = tracker.stop(at=T0 - timedelta(seconds=5))
        assert summary.duration_seconds == 0.0
        assert summary.avg_speed_kmh == 0.0

    def test_summary_id_is_completion_timestamp(self, tracker, clock):
        tracker.start()
        clock.advance(90.1234567)
        summary = tracker.stop()

        assert summary.completed_at.microsecond % 1000 == 0
        assert summary.id == format_timestamp(summary.completed_at)
        assert summary.id == "2024-05-01T12:01:30.123Z"

    def test_summary_contains_route_and_stats(self, tracker, clock):
        tracker.start()
        tracker.sample(sample(0, 0, speed=10))
        tracker.sample(sample(0.001, 0, speed=12))
        clock.advance(20)
        summary = tracker.stop()

        assert len(summary.route) == 2
        assert summary.route[0].latitude == 0
        assert summary.max_speed_kmh == pytest.approx(43.2)
        assert summary.total_distance_km == pytest.approx(haversine_km(summary.route[0], summary.route[1]))

    def test_explicit_timestamps_override_clock(self, tracker):
        tracker.start(at=T0 + timedelta(hours=1))
        summary = tracker.stop(at=T0 + timedelta(hours=1, minutes=30))
        assert summary.duration_seconds == 1800
