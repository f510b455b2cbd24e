"""Engine facade over the Meadow economy."""

from .engine import EconomyEngine

__all__ = ["EconomyEngine"]
