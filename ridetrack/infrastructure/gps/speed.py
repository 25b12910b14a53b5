"""Current and maximum speed with a low-speed noise floor."""

from __future__ import annotations

from dataclasses import dataclass

MPS_TO_KMH = 3.6


def to_kmh(speed_mps: float | None) -> float:
    """
    Convert a device speed reading to km/h.

    Missing readings and negative "invalid" sentinels (some devices
    report -1) count as standing still.
    """
    if speed_mps is None or speed_mps < 0:
        return 0.0
    return speed_mps * MPS_TO_KMH


@dataclass
class SpeedTracker:
    """
    Track the displayed speed and the trip maximum.

    Readings at or below ``min_speed_kmh`` never raise the maximum.
    """

    min_speed_kmh: float = 0.25
    current_kmh: float = 0.0
    max_kmh: float = 0.0

    def observe(self, speed_kmh: float) -> None:
        """Update the display-only current speed."""
        self.current_kmh = speed_kmh

    def record(self, speed_kmh: float) -> bool:
        """
        Apply the max-speed update for an accepted sample.

        Returns:
            True if the maximum was raised
        """
        if speed_kmh <= self.min_speed_kmh or speed_kmh <= self.max_kmh:
            return False
        self.max_kmh = speed_kmh
        return True

    def reset(self) -> None:
        self.current_kmh = 0.0
        self.max_kmh = 0.0
