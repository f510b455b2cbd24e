"""
Database Models Package
========================

SQLAlchemy ORM models for the Meadow economy engine, organized by domain.

All models:
- Schema-only, no business logic
- Use Mapped[] syntax with mapped_column()
- Store timestamps as timezone-aware UTC (UTCDateTime)
- Reference owner_accounts with CASCADE deletes

Domain Organization:
--------------------
- core: OwnerAccount
- field: PlantedSeed, PlacedConsumable, SpawnedCreature, AmbientDrop
- economy: InventoryStack, EconomyLedgerEntry
- exhibition: ExhibitedCreature, FrameLike
- enums: AssetKind, ConsumableStatus, LedgerSource
"""

from meadow.core.database.base import Base

from .core import OwnerAccount
from .economy import EconomyLedgerEntry, InventoryStack
from .enums import AssetKind, ConsumableStatus, LedgerSource
from .exhibition import ExhibitedCreature, FrameLike
from .field import AmbientDrop, PlacedConsumable, PlantedSeed, SpawnedCreature

__all__ = [
    "Base",
    # Core
    "OwnerAccount",
    # Field
    "PlantedSeed",
    "PlacedConsumable",
    "SpawnedCreature",
    "AmbientDrop",
    # Economy
    "InventoryStack",
    "EconomyLedgerEntry",
    # Exhibition
    "ExhibitedCreature",
    "FrameLike",
    # Enums
    "AssetKind",
    "ConsumableStatus",
    "LedgerSource",
]
