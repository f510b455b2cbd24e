"""Periodic sweep runtime."""

from .sweep import PeriodicSweep, SweepReport

__all__ = ["PeriodicSweep", "SweepReport"]
