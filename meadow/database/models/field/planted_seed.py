"""
PlantedSeed — a seed growing on a field cell.
Pure schema.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from meadow.core.database.base import Base, IdMixin, UTCDateTime


class PlantedSeed(Base, IdMixin):
    """
    Schema-only:
    - owner_id (FK to owner_accounts)
    - field_index (grid cell)
    - rarity (tier ordinal of the seed)
    - flower_id (chosen at planting time)
    - planted_at / matures_at
    """

    __tablename__ = "planted_seeds"
    __table_args__ = (UniqueConstraint("owner_id", "field_index"),)

    owner_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("owner_accounts.owner_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    field_index: Mapped[int] = mapped_column(Integer, nullable=False)
    rarity: Mapped[int] = mapped_column(Integer, nullable=False)
    flower_id: Mapped[int] = mapped_column(Integer, nullable=False)
    planted_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    matures_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
