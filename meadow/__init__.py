"""Meadow: timed spawn and decay economy engine."""

__version__ = "0.1.0"
