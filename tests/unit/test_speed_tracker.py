"""
Speed Tracker Unit Tests
========================
"""

import pytest

from ridetrack.infrastructure.gps.speed import SpeedTracker, to_kmh


class TestToKmh:
    def test_converts_mps(self):
        assert to_kmh(10.0) == pytest.approx(36.0)

    def test_missing_speed_is_zero(self):
        assert to_kmh(None) == 0.0

    def test_negative_sentinel_is_zero(self):
        """Devices report -1 when speed is unknown."""
        assert to_kmh(-1.0) == 0.0


class TestSpeedTracker:
    """Tests for current/max speed tracking."""

    def test_max_tracks_highest_reading(self):
        tracker = SpeedTracker(min_speed_kmh=0.25)
        for speed in (10.0, 30.0, 20.0):
            tracker.observe(speed)
            tracker.record(speed)
        assert tracker.max_kmh == 30.0
        assert tracker.current_kmh == 20.0

    def test_noise_floor_does_not_raise_max(self):
        """Readings at or below the floor never become the maximum."""
        tracker = SpeedTracker(min_speed_kmh=1.0)
        assert tracker.record(0.9) is False
        assert tracker.record(1.0) is False
        assert tracker.max_kmh == 0.0
        assert tracker.record(1.1) is True
        assert tracker.max_kmh == 1.1

    def test_observe_does_not_touch_max(self):
        tracker = SpeedTracker()
        tracker.observe(50.0)
        assert tracker.current_kmh == 50.0
        assert tracker.max_kmh == 0.0

    def test_reset(self):
        tracker = SpeedTracker()
        tracker.observe(12.0)
        tracker.record(12.0)
        tracker.reset()
        assert tracker.current_kmh == 0.0
        assert tracker.max_kmh == 0.0
