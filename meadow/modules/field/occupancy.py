"""
Field Occupancy Service

Purpose
-------
Answer "which cells of an owner's field are taken" and serialize field
mutations per owner.

Domain
------
- A cell is occupied if any planted seed, placed consumable, spawned
  creature or ambient drop holds it.
- Occupancy is read fresh on every call; nothing is cached.
- `lock_field()` bumps `OwnerAccount.field_version` as the first write of a
  field-mutating transaction. On PostgreSQL the row lock it takes makes
  concurrent field mutations for the same owner run one after another; on
  SQLite the write lock does the same for the whole file.
- The per-cell unique constraints remain the final guard.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable, List, Optional, Set

from sqlalchemy import select, union_all
from sqlalchemy.exc import IntegrityError

from meadow.core.logging.logger import get_logger
from meadow.database.models import (
    AmbientDrop,
    OwnerAccount,
    PlacedConsumable,
    PlantedSeed,
    SpawnedCreature,
)
from meadow.modules.shared.base_repository import BaseRepository
from meadow.modules.shared.base_service import BaseService
from meadow.modules.shared.exceptions import NotFoundError, SlotOccupiedError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from meadow.core.config.economy import EconomyConfig

FIELD_OCCUPANTS = (PlantedSeed, PlacedConsumable, SpawnedCreature, AmbientDrop)


class FieldOccupancyService(BaseService):
    def __init__(self, economy: EconomyConfig) -> None:
        super().__init__(economy, get_logger(__name__))
        self._owner_repo: BaseRepository[OwnerAccount] = BaseRepository[OwnerAccount](
            model_class=OwnerAccount,
            logger=self.log,
        )

    async def occupied_cells(self, session: AsyncSession, owner_id: int) -> Set[int]:
        stmt = union_all(
            *(
                select(model.field_index).where(model.owner_id == owner_id)
                for model in FIELD_OCCUPANTS
            )
        )
        result = await session.execute(stmt)
        return {row[0] for row in result}

    async def is_free(self, session: AsyncSession, owner_id: int, index: int) -> bool:
        return index not in await self.occupied_cells(session, owner_id)

    async def require_free(self, session: AsyncSession, owner_id: int, index: int) -> None:
        """
        Raises:
            SlotOccupiedError: If the cell holds anything
        """
        if not await self.is_free(session, owner_id, index):
            raise SlotOccupiedError(owner_id, "field", index)

    async def free_cells(
        self,
        session: AsyncSession,
        owner_id: int,
        candidates: Optional[Iterable[int]] = None,
    ) -> List[int]:
        """Free cells among `candidates` (default: the whole grid), in order."""
        occupied = await self.occupied_cells(session, owner_id)
        pool = range(self.economy.grid_size) if candidates is None else candidates
        return [index for index in pool if index not in occupied]

    async def lock_field(self, session: AsyncSession, owner_id: int) -> None:
        """
        Serialize field mutations for `owner_id` within this transaction.

        Raises:
            NotFoundError: If the owner has no account
        """
        updated = await self._owner_repo.update_where(
            session,
            OwnerAccount.owner_id == owner_id,
            values={"field_version": OwnerAccount.field_version + 1},
        )
        if updated == 0:
            raise NotFoundError("OwnerAccount", owner_id)

    async def occupy(self, session: AsyncSession, instance: Any) -> Any:
        """
        Add a field occupant and flush it.

        Raises:
            SlotOccupiedError: If the per-cell unique constraint rejects it
        """
        session.add(instance)
        try:
            await session.flush()
        except IntegrityError as exc:
            raise SlotOccupiedError(instance.owner_id, "field", instance.field_index) from exc
        return instance
