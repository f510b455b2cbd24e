"""
PlacedConsumable — a bouquet on the field that attracts creatures.
Pure schema.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from meadow.core.database.base import Base, IdMixin, UTCDateTime
from ..enums import ConsumableStatus


class PlacedConsumable(Base, IdMixin):
    """
    Schema-only:
    - owner_id (FK to owner_accounts), field_index
    - rarity (tier ordinal; spawned creatures inherit it)
    - placed_at / expires_at
    - next_spawn_at (only ever moves forward)
    - spawn_count / max_spawns (0 <= spawn_count <= max_spawns)
    - status (armed | exhausted)
    """

    __tablename__ = "placed_consumables"
    __table_args__ = (
        UniqueConstraint("owner_id", "field_index"),
        CheckConstraint("spawn_count >= 0", name="spawn_count_non_negative"),
        Index("ix_placed_consumables_due", "status", "next_spawn_at"),
    )

    owner_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("owner_accounts.owner_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    field_index: Mapped[int] = mapped_column(Integer, nullable=False)
    rarity: Mapped[int] = mapped_column(Integer, nullable=False)

    placed_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    next_spawn_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    spawn_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_spawns: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=ConsumableStatus.ARMED.value
    )
