"""
FrameLike — one owner's like on another owner's exhibition frame.
Pure schema.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from meadow.core.database.base import Base, IdMixin, UTCDateTime, utc_now


class FrameLike(Base, IdMixin):
    """
    Schema-only:
    - liker_id (FK to owner_accounts)
    - frame_owner_id / frame_id
    - created_at
    """

    __tablename__ = "frame_likes"
    __table_args__ = (UniqueConstraint("liker_id", "frame_owner_id", "frame_id"),)

    liker_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("owner_accounts.owner_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    frame_owner_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    frame_id: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, default=utc_now
    )
