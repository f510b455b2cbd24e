"""Placed consumables, creature spawning and collection."""

from .scheduler import SpawnScheduler
from .service import SpawnOutcome, SpawnResult, SpawnService

__all__ = ["SpawnOutcome", "SpawnResult", "SpawnScheduler", "SpawnService"]
