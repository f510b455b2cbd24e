"""
Database Model Enums
====================

Enumerations for categorical columns. Columns store the enum value as a
plain string; services compare against these members.
"""

from __future__ import annotations

import enum


class AssetKind(str, enum.Enum):
    """
    Kinds of inventory assets.

    Seeds and consumables are identified by their tier ordinal; flowers and
    creatures by an id inside their tier's configured range.
    """

    SEED = "seed"
    FLOWER = "flower"
    CONSUMABLE = "consumable"
    CREATURE = "creature"

    @property
    def ranged(self) -> bool:
        return self in (AssetKind.FLOWER, AssetKind.CREATURE)


class ConsumableStatus(str, enum.Enum):
    """Lifecycle of a placed consumable. Expiry is derived from expires_at."""

    ARMED = "armed"
    EXHAUSTED = "exhausted"


class LedgerSource(str, enum.Enum):
    PASSIVE_INCOME = "passive_income"
    SALE = "sale"
