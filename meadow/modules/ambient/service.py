"""
Ambient Service
===============

Purpose
-------
Per-owner field upkeep that happens without any owner action: stale
creatures fly away, uncollected suns fade, and new suns appear on free
cells.

Domain
------
For one owner, in one transaction:
1. delete spawned creatures whose `despawn_at` has passed
2. delete ambient drops whose `expires_at` has passed
3. if fewer than `ambient_max_active` drops remain, with probability
   `ambient_spawn_chance` place one drop (amount uniform in
   `ambient_amount_range`) on a uniformly random free cell

Collecting a drop is a guarded delete followed by an atomic `suns += amount`.

Dependencies
------------
- DatabaseService, FieldOccupancyService, OwnerService
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from meadow.core.logging.logger import LogContext, get_logger
from meadow.database.models import AmbientDrop, OwnerAccount, SpawnedCreature
from meadow.modules.shared.base_repository import BaseRepository
from meadow.modules.shared.base_service import BaseService
from meadow.modules.shared.exceptions import AlreadyCollectedError, NotFoundError
from meadow.modules.shared.validators import validate_id, validate_timestamp

if TYPE_CHECKING:
    from meadow.core.config.economy import EconomyConfig
    from meadow.core.database.service import DatabaseService
    from meadow.modules.field.occupancy import FieldOccupancyService
    from meadow.modules.owner.service import OwnerService


@dataclass(frozen=True)
class AmbientOutcome:
    owner_id: int
    despawned: int = 0
    expired: int = 0
    placed_at_index: Optional[int] = None

    @property
    def changed(self) -> bool:
        return bool(self.despawned or self.expired or self.placed_at_index is not None)


class AmbientService(BaseService):
    """
    Public Methods
    --------------
    - owner_ids() -> Candidates for the ambient sweep
    - process_owner() -> One upkeep step for one owner's field
    - collect_ambient() -> Collect a sun drop into the owner's balance
    """

    def __init__(
        self,
        db: DatabaseService,
        economy: EconomyConfig,
        occupancy: FieldOccupancyService,
        owners: OwnerService,
        rng: random.Random,
    ) -> None:
        super().__init__(economy, get_logger(__name__))
        self.db = db
        self.occupancy = occupancy
        self.owners = owners
        self.rng = rng
        self._drop_repo: BaseRepository[AmbientDrop] = BaseRepository[AmbientDrop](
            model_class=AmbientDrop,
            logger=self.log,
        )
        self._creature_repo: BaseRepository[SpawnedCreature] = BaseRepository[SpawnedCreature](
            model_class=SpawnedCreature,
            logger=self.log,
        )
        self._owner_repo: BaseRepository[OwnerAccount] = BaseRepository[OwnerAccount](
            model_class=OwnerAccount,
            logger=self.log,
        )

    async def owner_ids(self) -> List[int]:
        async with self.db.get_session() as session:
            return await self._owner_repo.scalars_where(session, OwnerAccount.owner_id)

    async def process_owner(self, owner_id: int, now: datetime) -> AmbientOutcome:
        async with self.db.get_transaction() as session:
            await self.occupancy.lock_field(session, owner_id)

            despawned = await self._creature_repo.delete_where(
                session,
                SpawnedCreature.owner_id == owner_id,
                SpawnedCreature.despawn_at.is_not(None),
                SpawnedCreature.despawn_at <= now,
            )
            expired = await self._drop_repo.delete_where(
                session,
                AmbientDrop.owner_id == owner_id,
                AmbientDrop.expires_at <= now,
            )

            placed_at_index = None
            active = await self._drop_repo.count(session, AmbientDrop.owner_id == owner_id)
            if (
                active < self.economy.ambient_max_active
                and self.rng.random() < self.economy.ambient_spawn_chance
            ):
                free = await self.occupancy.free_cells(session, owner_id)
                if free:
                    placed_at_index = self.rng.choice(free)
                    await self.occupancy.occupy(
                        session,
                        AmbientDrop(
                            owner_id=owner_id,
                            field_index=placed_at_index,
                            amount=self.rng.randint(*self.economy.ambient_amount_range),
                            spawned_at=now,
                            expires_at=now
                            + timedelta(milliseconds=self.economy.ambient_lifetime_ms),
                        ),
                    )

        outcome = AmbientOutcome(owner_id, despawned, expired, placed_at_index)
        if outcome.changed:
            self.log.info(
                "Ambient upkeep applied",
                extra={
                    "owner_id": owner_id,
                    "despawned": despawned,
                    "expired": expired,
                    "placed_at_index": placed_at_index,
                },
            )
        return outcome

    async def collect_ambient(self, owner_id: int, field_index: int, now: datetime) -> Dict[str, Any]:
        """
        Raises:
            AlreadyCollectedError: No drop at this cell
            NotFoundError: The drop has faded
        """
        validate_id(owner_id, "owner_id")
        self.validate_field_index(field_index)
        validate_timestamp(now)

        async with LogContext(owner_id=owner_id, operation="collect_ambient"):
            async with self.db.get_transaction() as session:
                await self.occupancy.lock_field(session, owner_id)
                drop = await self._drop_repo.find_one_where(
                    session,
                    AmbientDrop.owner_id == owner_id,
                    AmbientDrop.field_index == field_index,
                )
                if drop is None:
                    raise AlreadyCollectedError("AmbientDrop", owner_id, field_index)
                if now >= drop.expires_at:
                    raise NotFoundError("AmbientDrop", field_index)

                removed = await self._drop_repo.delete_where(session, AmbientDrop.id == drop.id)
                if removed == 0:
                    raise AlreadyCollectedError("AmbientDrop", owner_id, field_index)

                await self.owners.add_suns(session, owner_id, drop.amount)
                account = await self.owners.get_account(session, owner_id, fresh=True)
                result = {
                    "field_index": field_index,
                    "amount": drop.amount,
                    "suns": account.suns,
                }

            self.log_operation("collect_ambient", owner_id=owner_id, **result)
            return result

    async def list_drops(self, owner_id: int) -> List[Dict[str, Any]]:
        async with self.db.get_session() as session:
            rows = await self._drop_repo.find_many_where(
                session,
                AmbientDrop.owner_id == owner_id,
                order_by=AmbientDrop.field_index,
            )
            return [
                {
                    "id": row.id,
                    "field_index": row.field_index,
                    "amount": row.amount,
                    "expires_at": row.expires_at,
                }
                for row in rows
            ]
