"""
AmbientDrop — a collectible sun resource lying on a free field cell.
Pure schema.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from meadow.core.database.base import Base, IdMixin, UTCDateTime


class AmbientDrop(Base, IdMixin):
    """
    Schema-only:
    - owner_id (FK to owner_accounts), field_index
    - amount (suns credited on collection)
    - spawned_at / expires_at
    """

    __tablename__ = "ambient_drops"
    __table_args__ = (UniqueConstraint("owner_id", "field_index"),)

    owner_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("owner_accounts.owner_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    field_index: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    spawned_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, index=True)
