"""RideTrack - ride tracking engine and ride log."""

__version__ = "0.1.0"
