"""Passive income, sell countdowns, frame likes and sales."""

from .service import IncomeService
from .sweep import IncomeSweep
from .valuator import DecayValuator

__all__ = ["DecayValuator", "IncomeService", "IncomeSweep"]
