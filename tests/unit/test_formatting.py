"""
Formatting Unit Tests
=====================

Tests for display helpers used by the CLI screens.
"""

import pytest

from ridetrack.domain.models import Coordinate
from ridetrack.tools.formatting import format_distance, format_duration, format_speed, route_region


class TestFormatting:
    """Tests for human-readable figures."""

    @pytest.mark.parametrize(
        "km, expected",
        [
            (0.0, "0.00 meters"),
            (0.4567, "456.70 meters"),
            (1.0, "1.00 km"),
            (12.345, "12.35 km"),
        ],
    )
    def test_format_distance(self, km, expected):
        assert format_distance(km) == expected

    def test_format_duration(self):
        assert format_duration(0) == "0 min 0 sec"
        assert format_duration(125.9) == "2 min 5 sec"
        assert format_duration(-3) == "0 min 0 sec"

    def test_format_speed(self):
        assert format_speed(28.8) == "28.80 km/h"


class TestRouteRegion:
    """Tests for the map region around a route."""

    def test_empty_route(self):
        assert route_region([]) is None

    def test_single_point(self):
        region = route_region([Coordinate(latitude=10.0, longitude=20.0)])
        assert region.latitude == 10.0
        assert region.longitude == 20.0
        assert region.latitude_delta == pytest.approx(0.05)

    def test_bounding_box_centre(self):
        route = [
            Coordinate(latitude=10.0, longitude=20.0),
            Coordinate(latitude=10.2, longitude=20.1),
            Coordinate(latitude=10.1, longitude=19.9),
        ]
        region = route_region(route, padding=0.0)
        assert region.latitude == pytest.approx(10.1)
        assert region.longitude == pytest.approx(20.0)
        assert region.latitude_delta == pytest.approx(0.2)
        assert region.longitude_delta == pytest.approx(0.2)
