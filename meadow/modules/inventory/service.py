"""
Inventory Service
=================

Purpose
-------
Concurrency-safe aggregation of owner inventories. Each owner holds at most
one `InventoryStack` per (asset_kind, asset_id); acquiring an asset either
creates that row or increments it, and consuming decrements it without ever
going below zero.

Domain
------
- `acquire()` is a single atomic increment-or-create statement
  (`INSERT ... ON CONFLICT DO UPDATE SET quantity = quantity + excluded.quantity`)
  on PostgreSQL and SQLite. Two concurrent first acquisitions of the same
  asset end with one row holding both quantities and no error.
- Only dialects with ON CONFLICT are supported; the race is settled by the
  store, never by catching a uniqueness violation.
- `consume()` is a guarded decrement (`WHERE quantity >= n`). It never reads
  then writes, so concurrent consumers cannot overdraw a stack.
- Session-scoped methods run inside the caller's transaction; the
  `*_standalone` variants open their own.

Dependencies
------------
- DatabaseService: For standalone transactions
- Logger: For structured logging
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import select

from meadow.core.database.base import utc_now
from meadow.core.logging.logger import get_logger
from meadow.database.models import InventoryStack
from meadow.database.models.enums import AssetKind
from meadow.modules.shared.base_repository import BaseRepository
from meadow.modules.shared.base_service import BaseService
from meadow.modules.shared.exceptions import InsufficientInventoryError
from meadow.modules.shared.validators import (
    validate_asset_kind,
    validate_id,
    validate_quantity,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from meadow.core.config.economy import EconomyConfig
    from meadow.core.database.service import DatabaseService

_STACK_KEY = ("owner_id", "asset_kind", "asset_id")


class InventoryService(BaseService):
    def __init__(self, db: DatabaseService, economy: EconomyConfig) -> None:
        super().__init__(economy, get_logger(__name__))
        self.db = db
        self._stack_repo: BaseRepository[InventoryStack] = BaseRepository[InventoryStack](
            model_class=InventoryStack,
            logger=self.log,
        )

    # -------------------------------------------------------------------------
    # Mutations (caller's transaction)
    # -------------------------------------------------------------------------

    async def acquire(
        self,
        session: AsyncSession,
        owner_id: int,
        kind: AssetKind | str,
        asset_id: int,
        rarity: int,
        quantity: int = 1,
    ) -> int:
        """
        Add `quantity` units of an asset to an owner's inventory.

        Returns:
            The stack quantity after the increment, as seen by this transaction
        """
        kind = validate_asset_kind(kind)
        validate_id(asset_id, "asset_id")
        validate_quantity(quantity)

        await self._upsert(session, owner_id, kind, asset_id, rarity, quantity)

        new_quantity = await self.get_quantity(session, owner_id, kind, asset_id)
        self.log.info(
            "Inventory acquired",
            extra={
                "owner_id": owner_id,
                "asset_kind": kind.value,
                "asset_id": asset_id,
                "quantity": quantity,
                "new_quantity": new_quantity,
            },
        )
        return new_quantity

    async def _upsert(
        self,
        session: AsyncSession,
        owner_id: int,
        kind: AssetKind,
        asset_id: int,
        rarity: int,
        quantity: int,
    ) -> None:
        now = utc_now()
        stmt = self._stack_repo.conflict_insert(session).values(
            owner_id=owner_id,
            asset_kind=kind.value,
            asset_id=asset_id,
            rarity=rarity,
            quantity=quantity,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=list(_STACK_KEY),
            set_={
                "quantity": InventoryStack.quantity + stmt.excluded.quantity,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        await session.execute(stmt)

    async def consume(
        self,
        session: AsyncSession,
        owner_id: int,
        kind: AssetKind | str,
        asset_id: int,
        quantity: int = 1,
    ) -> None:
        """
        Remove `quantity` units of an asset.

        Raises:
            InsufficientInventoryError: If the owner holds fewer than `quantity`
        """
        kind = validate_asset_kind(kind)
        validate_quantity(quantity)

        conditions = (
            InventoryStack.owner_id == owner_id,
            InventoryStack.asset_kind == kind.value,
            InventoryStack.asset_id == asset_id,
        )
        updated = await self._stack_repo.update_where(
            session,
            *conditions,
            InventoryStack.quantity >= quantity,
            values={
                "quantity": InventoryStack.quantity - quantity,
                "updated_at": utc_now(),
            },
        )
        if updated == 0:
            current = await self.get_quantity(session, owner_id, kind, asset_id)
            raise InsufficientInventoryError(kind.value, asset_id, quantity, current)

        # Empty stacks are removed; a concurrent acquire simply recreates the row
        await self._stack_repo.delete_where(session, *conditions, InventoryStack.quantity == 0)

        self.log.info(
            "Inventory consumed",
            extra={
                "owner_id": owner_id,
                "asset_kind": kind.value,
                "asset_id": asset_id,
                "quantity": quantity,
            },
        )

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_quantity(
        self,
        session: AsyncSession,
        owner_id: int,
        kind: AssetKind | str,
        asset_id: int,
    ) -> int:
        kind = AssetKind(kind)
        result = await session.execute(
            select(InventoryStack.quantity).where(
                InventoryStack.owner_id == owner_id,
                InventoryStack.asset_kind == kind.value,
                InventoryStack.asset_id == asset_id,
            )
        )
        return result.scalar_one_or_none() or 0

    async def list_stacks(
        self,
        session: AsyncSession,
        owner_id: int,
        kind: Optional[AssetKind | str] = None,
    ) -> List[InventoryStack]:
        conditions = [InventoryStack.owner_id == owner_id, InventoryStack.quantity > 0]
        if kind is not None:
            conditions.append(InventoryStack.asset_kind == AssetKind(kind).value)
        return await self._stack_repo.find_many_where(
            session,
            *conditions,
            order_by=(InventoryStack.asset_kind, InventoryStack.asset_id),
        )

    # -------------------------------------------------------------------------
    # Standalone transactions
    # -------------------------------------------------------------------------

    async def acquire_standalone(
        self,
        owner_id: int,
        kind: AssetKind | str,
        asset_id: int,
        rarity: int,
        quantity: int = 1,
    ) -> int:
        async with self.db.get_transaction() as session:
            return await self.acquire(session, owner_id, kind, asset_id, rarity, quantity)

    async def get_quantity_standalone(
        self, owner_id: int, kind: AssetKind | str, asset_id: int
    ) -> int:
        async with self.db.get_session() as session:
            return await self.get_quantity(session, owner_id, kind, asset_id)
