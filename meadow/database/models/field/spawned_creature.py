"""
SpawnedCreature — a collectible creature waiting on a field cell.
Pure schema; rows are never updated after creation.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from meadow.core.database.base import Base, IdMixin, UTCDateTime


class SpawnedCreature(Base, IdMixin):
    """
    Schema-only:
    - owner_id (FK to owner_accounts), field_index
    - rarity / asset_id
    - consumable_id (the placed consumable that attracted it; no FK, the
      consumable may be harvested before the creature is collected)
    - spawned_at / despawn_at (optional)
    """

    __tablename__ = "spawned_creatures"
    __table_args__ = (UniqueConstraint("owner_id", "field_index"),)

    owner_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("owner_accounts.owner_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    field_index: Mapped[int] = mapped_column(Integer, nullable=False)
    rarity: Mapped[int] = mapped_column(Integer, nullable=False)
    asset_id: Mapped[int] = mapped_column(Integer, nullable=False)
    consumable_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    spawned_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    despawn_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime(), nullable=True, index=True
    )
