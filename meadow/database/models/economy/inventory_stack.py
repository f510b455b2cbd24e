"""
InventoryStack — aggregated quantity of one asset held by one owner.
Pure schema.
"""

from __future__ import annotations

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from meadow.core.database.base import Base, IdMixin, TimestampMixin


class InventoryStack(Base, IdMixin, TimestampMixin):
    """
    At most one row per (owner_id, asset_kind, asset_id); the unique
    constraint is what the atomic upsert conflicts on.

    Schema-only:
    - owner_id (FK to owner_accounts)
    - asset_kind (seed | flower | consumable | creature)
    - asset_id / rarity
    - quantity (never negative)
    - created_at / updated_at (from TimestampMixin)
    """

    __tablename__ = "inventory_stacks"
    __table_args__ = (
        UniqueConstraint("owner_id", "asset_kind", "asset_id"),
        CheckConstraint("quantity >= 0", name="quantity_non_negative"),
    )

    owner_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("owner_accounts.owner_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    asset_kind: Mapped[str] = mapped_column(String(16), nullable=False)
    asset_id: Mapped[int] = mapped_column(Integer, nullable=False)
    rarity: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
