"""Inventory stacks: atomic acquire and guarded consume."""

from .service import InventoryService

__all__ = ["InventoryService"]
