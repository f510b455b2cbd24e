"""
OwnerAccount — per-owner balances and the field serialization counter.
Pure schema.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, Integer
from sqlalchemy.orm import Mapped, mapped_column

from meadow.core.database.base import Base, UTCDateTime, utc_now


class OwnerAccount(Base):
    """
    Economy account of one owner.

    Schema-only:
    - owner_id (external identity, primary key)
    - credits / suns (balances, never negative)
    - last_payout_at (passive income anchor, advances by whole minutes)
    - field_version (bumped by every field mutation)
    - created_at
    """

    __tablename__ = "owner_accounts"
    __table_args__ = (
        CheckConstraint("credits >= 0", name="credits_non_negative"),
        CheckConstraint("suns >= 0", name="suns_non_negative"),
    )

    owner_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)

    credits: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    suns: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    last_payout_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    field_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, default=utc_now
    )
