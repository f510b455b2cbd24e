"""Planting, harvesting and consumable crafting."""

from .service import GardenService

__all__ = ["GardenService"]
