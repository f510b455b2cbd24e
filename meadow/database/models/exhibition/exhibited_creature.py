"""
ExhibitedCreature — a creature mounted in a frame, earning passive income.
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
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from meadow.core.database.base import Base, IdMixin, UTCDateTime


class ExhibitedCreature(Base, IdMixin):
    """
    Schema-only:
    - owner_id (FK to owner_accounts)
    - frame_id / slot_index (unique per owner)
    - asset_id / rarity
    - placed_at (anchor for income decay and the sell countdown)
    - discount_ms (accumulated from likes, never negative)
    """

    __tablename__ = "exhibited_creatures"
    __table_args__ = (
        UniqueConstraint("owner_id", "frame_id", "slot_index"),
        CheckConstraint("discount_ms >= 0", name="discount_non_negative"),
        Index("ix_exhibited_creatures_owner_frame", "owner_id", "frame_id"),
    )

    owner_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("owner_accounts.owner_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    frame_id: Mapped[int] = mapped_column(Integer, nullable=False)
    slot_index: Mapped[int] = mapped_column(Integer, nullable=False)
    asset_id: Mapped[int] = mapped_column(Integer, nullable=False)
    rarity: Mapped[int] = mapped_column(Integer, nullable=False)
    placed_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    discount_ms: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
