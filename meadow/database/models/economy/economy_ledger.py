"""
EconomyLedgerEntry — append-only record of credited amounts.
Pure schema only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict

from sqlalchemy import JSON, BigInteger, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from meadow.core.database.base import Base, IdMixin, UTCDateTime, utc_now


class EconomyLedgerEntry(Base, IdMixin):
    """
    Audit log of every credit paid out.

    Schema-only:
    - owner_id
    - amount
    - source_type (passive_income | sale)
    - details (JSON)
    - timestamp
    """

    __tablename__ = "economy_ledger"
    __table_args__ = (
        Index("ix_economy_ledger_owner_time", "owner_id", "timestamp"),
    )

    owner_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("owner_accounts.owner_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    source_type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    details: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    timestamp: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, default=utc_now
    )
