"""
Spawn Service
=============

Purpose
-------
Placed consumables and the creatures they attract: placement, per-consumable
spawn evaluation, collection, and harvesting spent consumables.

Domain
------
State machine per placed consumable:

    ARMED --(spawn)*--> EXHAUSTED    (spawn_count reached max_spawns)
    ARMED ------------> EXPIRED      (now >= expires_at, derived, not stored)

Both terminal states make the consumable harvestable exactly once.

Evaluation order for one consumable (`evaluate_consumable`):
1. not due (`now < next_spawn_at`) or expired (`now >= expires_at`) -> skip
2. exhausted (`spawn_count >= max_spawns`) -> skip; `spawn_count >
   max_spawns` raises `InvariantViolation`
3. no free Moore neighbour -> skip, `next_spawn_at` untouched
4. otherwise draw a creature id from the consumable's own tier,
   compare-and-set `spawn_count` from the observed value, push
   `next_spawn_at` forward by a fresh random delay, and place the creature

`max_spawns` is drawn once at placement from `spawn_count_range`,
independently of rarity.

Concurrency
-----------
- Every field mutation starts with `FieldOccupancyService.lock_field()`.
- The spawn counter only moves through a guarded UPDATE
  (`WHERE spawn_count = :observed AND spawn_count < max_spawns`); a lost
  compare-and-set leaves the row for the winner.
- Collections are guarded DELETEs; exactly one concurrent collector wins.

Dependencies
------------
- DatabaseService, RarityTable, InventoryService, FieldOccupancyService,
  AdjacencyResolver
"""

from __future__ import annotations

import enum
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import case

from meadow.core.logging.logger import LogContext, get_logger
from meadow.database.models import (
    AssetKind,
    ConsumableStatus,
    PlacedConsumable,
    SpawnedCreature,
)
from meadow.modules.shared.base_repository import BaseRepository
from meadow.modules.shared.base_service import BaseService
from meadow.modules.shared.exceptions import (
    AlreadyCollectedError,
    InvariantViolation,
    NotFoundError,
    NotReadyError,
)
from meadow.modules.shared.formulas import elapsed_ms
from meadow.modules.shared.validators import validate_id, validate_timestamp

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from meadow.core.config.economy import EconomyConfig
    from meadow.core.database.service import DatabaseService
    from meadow.modules.field.adjacency import AdjacencyResolver
    from meadow.modules.field.occupancy import FieldOccupancyService
    from meadow.modules.inventory.service import InventoryService
    from meadow.modules.rarity.table import RarityTable


class SpawnResult(str, enum.Enum):
    SPAWNED = "spawned"
    NOT_DUE = "not_due"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"
    NO_FREE_CELL = "no_free_cell"
    LOST_RACE = "lost_race"
    GONE = "gone"


@dataclass(frozen=True)
class SpawnOutcome:
    """What one evaluation of a placed consumable did."""

    consumable_id: int
    result: SpawnResult
    creature_id: Optional[int] = None
    field_index: Optional[int] = None
    asset_id: Optional[int] = None

    @property
    def spawned(self) -> bool:
        return self.result is SpawnResult.SPAWNED


class SpawnService(BaseService):
    """
    Public Methods
    --------------
    - place_consumable() -> Put a consumable from inventory on the field
    - due_consumable_ids() -> Candidates for the spawn sweep
    - evaluate_consumable() -> One spawn step for one consumable
    - collect_creature() -> Move a spawned creature into inventory
    - collect_consumable() -> Harvest a spent consumable for seeds
    - force_exhaust() -> Repair a consumable with an impossible counter
    """

    def __init__(
        self,
        db: DatabaseService,
        economy: EconomyConfig,
        rarity: RarityTable,
        inventory: InventoryService,
        occupancy: FieldOccupancyService,
        adjacency: AdjacencyResolver,
        rng: random.Random,
    ) -> None:
        super().__init__(economy, get_logger(__name__))
        self.db = db
        self.rarity = rarity
        self.inventory = inventory
        self.occupancy = occupancy
        self.adjacency = adjacency
        self.rng = rng
        self._consumable_repo: BaseRepository[PlacedConsumable] = BaseRepository[
            PlacedConsumable
        ](model_class=PlacedConsumable, logger=self.log)
        self._creature_repo: BaseRepository[SpawnedCreature] = BaseRepository[SpawnedCreature](
            model_class=SpawnedCreature,
            logger=self.log,
        )

    # ========================================================================
    # Placement
    # ========================================================================

    async def place_consumable(
        self, owner_id: int, field_index: int, consumable_id: int, now: datetime
    ) -> Dict[str, Any]:
        """
        Place one consumable of tier `consumable_id` at `field_index`.

        Raises:
            ValidationError: Malformed owner, cell or consumable id
            InsufficientInventoryError: Owner holds no such consumable
            SlotOccupiedError: Cell is taken
        """
        validate_id(owner_id, "owner_id")
        self.validate_field_index(field_index)
        validate_id(consumable_id, "consumable_id")
        tier = self.rarity.tier(consumable_id)
        validate_timestamp(now)

        max_spawns = self.rng.randint(*self.economy.spawn_count_range)
        first_delay_ms = self.rng.randint(*self.economy.spawn_delay_range_ms)

        async with LogContext(owner_id=owner_id, operation="place_consumable"):
            async with self.db.get_transaction() as session:
                await self.occupancy.lock_field(session, owner_id)
                await self.occupancy.require_free(session, owner_id, field_index)
                await self.inventory.consume(
                    session, owner_id, AssetKind.CONSUMABLE, tier.ordinal
                )
                placed = await self.occupancy.occupy(
                    session,
                    PlacedConsumable(
                        owner_id=owner_id,
                        field_index=field_index,
                        rarity=tier.ordinal,
                        placed_at=now,
                        expires_at=now
                        + timedelta(milliseconds=self.economy.consumable_lifetime_ms),
                        next_spawn_at=now + timedelta(milliseconds=first_delay_ms),
                        spawn_count=0,
                        max_spawns=max_spawns,
                        status=ConsumableStatus.ARMED.value,
                    ),
                )
                result = self._consumable_dict(placed)

            self.log_operation(
                "place_consumable",
                owner_id=owner_id,
                field_index=field_index,
                rarity=tier.ordinal,
                max_spawns=max_spawns,
            )
            return result

    # ========================================================================
    # Spawning
    # ========================================================================

    async def due_consumable_ids(self, now: datetime) -> List[int]:
        """Armed, unexpired consumables whose next spawn time has passed."""
        async with self.db.get_session() as session:
            return await self._consumable_repo.scalars_where(
                session,
                PlacedConsumable.id,
                PlacedConsumable.status == ConsumableStatus.ARMED.value,
                PlacedConsumable.next_spawn_at <= now,
                PlacedConsumable.expires_at > now,
            )

    async def evaluate_consumable(self, consumable_id: int, now: datetime) -> SpawnOutcome:
        """
        Run one spawn step for a placed consumable.

        Raises:
            InvariantViolation: spawn_count exceeds max_spawns
        """
        async with self.db.get_transaction() as session:
            consumable = await self._consumable_repo.get(session, consumable_id)
            if consumable is None:
                return SpawnOutcome(consumable_id, SpawnResult.GONE)

            if now < consumable.next_spawn_at:
                return SpawnOutcome(consumable_id, SpawnResult.NOT_DUE)
            if now >= consumable.expires_at:
                return SpawnOutcome(consumable_id, SpawnResult.EXPIRED)

            observed = consumable.spawn_count
            if observed > consumable.max_spawns:
                raise InvariantViolation(
                    "PlacedConsumable",
                    consumable_id,
                    f"spawn_count {observed} exceeds max_spawns {consumable.max_spawns}",
                )
            if observed == consumable.max_spawns:
                return SpawnOutcome(consumable_id, SpawnResult.EXHAUSTED)

            owner_id = consumable.owner_id
            origin = consumable.field_index
            await self.occupancy.lock_field(session, owner_id)
            cell = await self.adjacency.pick_spawn_cell(session, owner_id, origin, self.rng)
            if cell is None:
                return SpawnOutcome(consumable_id, SpawnResult.NO_FREE_CELL)

            tier = self.rarity.tier(consumable.rarity)
            asset_id = self.rarity.sample_asset_id(tier, self.rng, AssetKind.CREATURE)
            delay_ms = self.rng.randint(*self.economy.spawn_delay_range_ms)
            new_count = observed + 1
            status = (
                ConsumableStatus.EXHAUSTED
                if new_count >= consumable.max_spawns
                else ConsumableStatus.ARMED
            )

            updated = await self._consumable_repo.update_where(
                session,
                PlacedConsumable.id == consumable_id,
                PlacedConsumable.spawn_count == observed,
                PlacedConsumable.spawn_count < PlacedConsumable.max_spawns,
                PlacedConsumable.next_spawn_at <= now,
                values={
                    "spawn_count": new_count,
                    "next_spawn_at": now + timedelta(milliseconds=delay_ms),
                    "status": status.value,
                },
            )
            if updated == 0:
                return SpawnOutcome(consumable_id, SpawnResult.LOST_RACE)

            despawn_at = None
            if self.economy.creature_despawn_ms is not None:
                despawn_at = now + timedelta(milliseconds=self.economy.creature_despawn_ms)

            creature = await self.occupancy.occupy(
                session,
                SpawnedCreature(
                    owner_id=owner_id,
                    field_index=cell,
                    rarity=tier.ordinal,
                    asset_id=asset_id,
                    consumable_id=consumable_id,
                    spawned_at=now,
                    despawn_at=despawn_at,
                ),
            )
            outcome = SpawnOutcome(
                consumable_id,
                SpawnResult.SPAWNED,
                creature_id=creature.id,
                field_index=cell,
                asset_id=asset_id,
            )

        self.log.info(
            "Creature spawned",
            extra={
                "owner_id": owner_id,
                "consumable_id": consumable_id,
                "field_index": cell,
                "asset_id": asset_id,
                "rarity": tier.ordinal,
                "spawn_count": new_count,
            },
        )
        return outcome

    async def force_exhaust(self, consumable_id: int) -> bool:
        """
        Mark a consumable exhausted and clamp its counter to `max_spawns`.

        Returns:
            True if the row existed
        """
        async with self.db.get_transaction() as session:
            updated = await self._consumable_repo.update_where(
                session,
                PlacedConsumable.id == consumable_id,
                values={
                    "status": ConsumableStatus.EXHAUSTED.value,
                    "spawn_count": case(
                        (
                            PlacedConsumable.spawn_count > PlacedConsumable.max_spawns,
                            PlacedConsumable.max_spawns,
                        ),
                        else_=PlacedConsumable.spawn_count,
                    ),
                },
            )
        self.log.warning(
            "Consumable force-exhausted",
            extra={"consumable_id": consumable_id, "found": updated > 0},
        )
        return updated > 0

    # ========================================================================
    # Collection
    # ========================================================================

    async def collect_creature(self, owner_id: int, field_index: int, now: datetime) -> Dict[str, Any]:
        """
        Move the creature at `field_index` into the owner's inventory.

        Raises:
            AlreadyCollectedError: No creature there (collected concurrently)
            NotFoundError: The creature's despawn deadline has passed
        """
        validate_id(owner_id, "owner_id")
        self.validate_field_index(field_index)
        validate_timestamp(now)

        async with LogContext(owner_id=owner_id, operation="collect_creature"):
            async with self.db.get_transaction() as session:
                await self.occupancy.lock_field(session, owner_id)
                creature = await self._creature_repo.find_one_where(
                    session,
                    SpawnedCreature.owner_id == owner_id,
                    SpawnedCreature.field_index == field_index,
                )
                if creature is None:
                    raise AlreadyCollectedError("SpawnedCreature", owner_id, field_index)
                if creature.despawn_at is not None and now >= creature.despawn_at:
                    raise NotFoundError("SpawnedCreature", field_index)

                removed = await self._creature_repo.delete_where(
                    session, SpawnedCreature.id == creature.id
                )
                if removed == 0:
                    raise AlreadyCollectedError("SpawnedCreature", owner_id, field_index)

                quantity = await self.inventory.acquire(
                    session,
                    owner_id,
                    AssetKind.CREATURE,
                    creature.asset_id,
                    creature.rarity,
                )
                result = {
                    "field_index": field_index,
                    "creature_id": creature.asset_id,
                    "rarity": creature.rarity,
                    "quantity": quantity,
                }

            self.log_operation("collect_creature", owner_id=owner_id, **result)
            return result

    async def collect_consumable(
        self, owner_id: int, field_index: int, now: datetime
    ) -> Dict[str, Any]:
        """
        Harvest an expired or exhausted consumable into a seed drop.

        The seed tier is the consumable's tier shifted by at most one step;
        the quantity is uniform in `seed_drop_quantity_range`.

        Raises:
            AlreadyCollectedError: No consumable there
            NotReadyError: Still armed and unexpired (details carry remaining_ms)
        """
        validate_id(owner_id, "owner_id")
        self.validate_field_index(field_index)
        validate_timestamp(now)

        async with LogContext(owner_id=owner_id, operation="collect_consumable"):
            async with self.db.get_transaction() as session:
                await self.occupancy.lock_field(session, owner_id)
                consumable = await self._consumable_repo.find_one_where(
                    session,
                    PlacedConsumable.owner_id == owner_id,
                    PlacedConsumable.field_index == field_index,
                )
                if consumable is None:
                    raise AlreadyCollectedError("PlacedConsumable", owner_id, field_index)

                expired = now >= consumable.expires_at
                exhausted = (
                    consumable.status == ConsumableStatus.EXHAUSTED.value
                    or consumable.spawn_count >= consumable.max_spawns
                )
                if not (expired or exhausted):
                    raise NotReadyError(
                        "collect_consumable",
                        remaining_ms=elapsed_ms(now, consumable.expires_at),
                        reason="consumable is still attracting creatures",
                    )

                removed = await self._consumable_repo.delete_where(
                    session, PlacedConsumable.id == consumable.id
                )
                if removed == 0:
                    raise AlreadyCollectedError("PlacedConsumable", owner_id, field_index)

                seed_tier = self.rarity.shift_tier(self.rarity.tier(consumable.rarity), self.rng)
                quantity = self.rng.randint(*self.economy.seed_drop_quantity_range)
                await self.inventory.acquire(
                    session,
                    owner_id,
                    AssetKind.SEED,
                    seed_tier.ordinal,
                    seed_tier.ordinal,
                    quantity,
                )
                result = {
                    "field_index": field_index,
                    "consumable_rarity": consumable.rarity,
                    "state": "expired" if expired else "exhausted",
                    "spawn_count": consumable.spawn_count,
                    "seed_rarity": seed_tier.ordinal,
                    "seed_quantity": quantity,
                }

            self.log_operation("collect_consumable", owner_id=owner_id, **result)
            return result

    # ========================================================================
    # Reads
    # ========================================================================

    async def list_consumables(self, owner_id: int) -> List[Dict[str, Any]]:
        async with self.db.get_session() as session:
            rows = await self._consumable_repo.find_many_where(
                session,
                PlacedConsumable.owner_id == owner_id,
                order_by=PlacedConsumable.field_index,
            )
            return [self._consumable_dict(row) for row in rows]

    async def list_creatures(self, owner_id: int) -> List[Dict[str, Any]]:
        async with self.db.get_session() as session:
            rows = await self._creature_repo.find_many_where(
                session,
                SpawnedCreature.owner_id == owner_id,
                order_by=SpawnedCreature.field_index,
            )
            return [
                {
                    "id": row.id,
                    "field_index": row.field_index,
                    "asset_id": row.asset_id,
                    "rarity": row.rarity,
                    "consumable_id": row.consumable_id,
                    "spawned_at": row.spawned_at,
                    "despawn_at": row.despawn_at,
                }
                for row in rows
            ]

    @staticmethod
    def _consumable_dict(row: PlacedConsumable) -> Dict[str, Any]:
        return {
            "id": row.id,
            "field_index": row.field_index,
            "rarity": row.rarity,
            "placed_at": row.placed_at,
            "expires_at": row.expires_at,
            "next_spawn_at": row.next_spawn_at,
            "spawn_count": row.spawn_count,
            "max_spawns": row.max_spawns,
            "status": row.status,
        }
