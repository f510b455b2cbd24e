"""Occupants of an owner's field grid. Each holds at most one row per cell."""

from .ambient_drop import AmbientDrop
from .placed_consumable import PlacedConsumable
from .planted_seed import PlantedSeed
from .spawned_creature import SpawnedCreature

__all__ = ["AmbientDrop", "PlacedConsumable", "PlantedSeed", "SpawnedCreature"]
