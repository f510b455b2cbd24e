"""
Economy Engine
==============

Purpose
-------
Single entry point the presentation layer calls. Wires every domain
service from one `DatabaseService`, one immutable `EconomyConfig`, one
`Clock` and one random generator, and owns the three periodic sweeps.

Responsibilities
----------------
- Construct the rarity table, field, inventory, owner, garden, spawn,
  income and ambient services
- Stamp every operation with `clock.now()`
- Return plain dict results; failures surface as domain exceptions
  carrying `error_code` and `details`
- Start, stop and manually trigger the spawn, income and ambient sweeps

Non-Responsibilities
--------------------
- Transport, routing, authentication, rendering
- Opening or closing the database (the caller owns `DatabaseService`)

Usage
-----
>>> engine = EconomyEngine(db, load_economy_config())
>>> await engine.register_owner(42)
>>> await engine.grant_asset(42, "consumable", 3)
>>> await engine.place_consumable(42, field_index=12, consumable_id=3)
>>> await engine.start()
"""

from __future__ import annotations

import asyncio
import random
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

from meadow.core.clock import SystemClock
from meadow.core.logging.logger import LogContext, get_logger
from meadow.modules.ambient import AmbientService, AmbientSweep
from meadow.modules.field import AdjacencyResolver, FieldOccupancyService
from meadow.modules.garden import GardenService
from meadow.modules.income import DecayValuator, IncomeService, IncomeSweep
from meadow.modules.inventory import InventoryService
from meadow.modules.owner import OwnerService
from meadow.modules.rarity import RarityTable
from meadow.modules.shared.exceptions import ValidationError
from meadow.modules.shared.validators import validate_asset_kind, validate_id, validate_quantity
from meadow.modules.spawn import SpawnScheduler, SpawnService

if TYPE_CHECKING:
    from meadow.core.clock import Clock
    from meadow.core.config.economy import EconomyConfig
    from meadow.core.database.service import DatabaseService
    from meadow.core.scheduler.sweep import PeriodicSweep

logger = get_logger(__name__)


class EconomyEngine:
    """
    Facade over the Meadow economy.

    Public API
    ----------
    Owners:      register_owner, get_economy_summary, get_inventory, get_field
    Garden:      plant_seed, harvest_plant, craft_consumable
    Spawning:    place_consumable, collect_creature, collect_consumable
    Exhibition:  exhibit_creature, remove_exhibited_creature, register_like,
                 get_sell_status, sell_creature
    Ambient:     collect_ambient
    Admin:       grant_asset, trigger_sweep, start, stop
    """

    def __init__(
        self,
        db: DatabaseService,
        economy: EconomyConfig,
        clock: Optional[Clock] = None,
        rng: Optional[random.Random] = None,
        *,
        max_concurrency: Optional[int] = None,
        shutdown_timeout: Optional[float] = None,
    ) -> None:
        self.db = db
        self.economy = economy
        self.clock = clock or SystemClock()
        self.rng = rng or random.Random()

        self.rarity = RarityTable.from_config(economy)
        self.occupancy = FieldOccupancyService(economy)
        self.adjacency = AdjacencyResolver(economy, self.occupancy)
        self.inventory = InventoryService(db, economy)
        self.owners = OwnerService(db, economy)
        self.valuator = DecayValuator(economy, self.rarity)

        self.garden = GardenService(
            db, economy, self.rarity, self.inventory, self.occupancy, self.rng
        )
        self.spawn = SpawnService(
            db, economy, self.rarity, self.inventory, self.occupancy, self.adjacency, self.rng
        )
        self.income = IncomeService(
            db, economy, self.rarity, self.valuator, self.inventory, self.owners
        )
        self.ambient = AmbientService(db, economy, self.occupancy, self.owners, self.rng)

        sweep_options: Dict[str, Any] = {
            "max_concurrency": max_concurrency,
            "shutdown_timeout": shutdown_timeout,
        }
        self.sweeps: Dict[str, PeriodicSweep] = {
            "spawn": SpawnScheduler(self.spawn, self.clock, **sweep_options),
            "income": IncomeSweep(self.income, self.clock, **sweep_options),
            "ambient": AmbientSweep(self.ambient, self.clock, **sweep_options),
        }

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def start(self) -> None:
        """Start all sweeps. Safe to call twice."""
        for sweep in self.sweeps.values():
            await sweep.start()
        logger.info("Economy engine started", extra={"sweeps": list(self.sweeps)})

    async def stop(self) -> None:
        """Stop all sweeps, letting in-flight iterations finish."""
        await asyncio.gather(*(sweep.stop() for sweep in self.sweeps.values()))
        logger.info("Economy engine stopped")

    @property
    def is_running(self) -> bool:
        return any(sweep.is_running for sweep in self.sweeps.values())

    async def trigger_sweep(self, name: Optional[str] = None) -> Dict[str, Dict[str, Any]]:
        """
        Run one iteration of a sweep (or all, in order spawn, income,
        ambient) immediately.

        Raises:
            ValidationError: Unknown sweep name
        """
        if name is not None and name not in self.sweeps:
            raise ValidationError("sweep", f"unknown sweep '{name}', expected one of {list(self.sweeps)}")

        names = [name] if name is not None else list(self.sweeps)
        reports: Dict[str, Dict[str, Any]] = {}
        async with LogContext(operation="trigger_sweep"):
            for sweep_name in names:
                report = await self.sweeps[sweep_name].trigger()
                reports[sweep_name] = report.to_dict()
        return reports

    # ========================================================================
    # Owners
    # ========================================================================

    async def register_owner(self, owner_id: int) -> Dict[str, Any]:
        return await self.owners.register_owner(owner_id, self.clock.now())

    async def get_economy_summary(self, owner_id: int) -> Dict[str, Any]:
        return await self.income.get_economy_summary(owner_id, self.clock.now())

    async def get_inventory(
        self, owner_id: int, kind: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        validate_id(owner_id, "owner_id")
        if kind is not None:
            kind = validate_asset_kind(kind)
        async with self.db.get_session() as session:
            stacks = await self.inventory.list_stacks(session, owner_id, kind)
            return [
                {
                    "asset_kind": stack.asset_kind,
                    "asset_id": stack.asset_id,
                    "rarity": stack.rarity,
                    "quantity": stack.quantity,
                }
                for stack in stacks
            ]

    async def get_field(self, owner_id: int) -> Dict[str, Any]:
        validate_id(owner_id, "owner_id")
        now = self.clock.now()
        return {
            "plantings": await self.garden.list_plantings(owner_id, now),
            "consumables": await self.spawn.list_consumables(owner_id),
            "creatures": await self.spawn.list_creatures(owner_id),
            "drops": await self.ambient.list_drops(owner_id),
            "exhibits": await self.income.list_exhibits(owner_id, now),
        }

    # ========================================================================
    # Garden
    # ========================================================================

    async def plant_seed(self, owner_id: int, field_index: int, rarity: int) -> Dict[str, Any]:
        return await self.garden.plant_seed(owner_id, field_index, rarity, self.clock.now())

    async def harvest_plant(self, owner_id: int, field_index: int) -> Dict[str, Any]:
        return await self.garden.harvest_plant(owner_id, field_index, self.clock.now())

    async def craft_consumable(self, owner_id: int, flower_ids: Sequence[int]) -> Dict[str, Any]:
        return await self.garden.craft_consumable(owner_id, flower_ids)

    # ========================================================================
    # Spawning
    # ========================================================================

    async def place_consumable(
        self, owner_id: int, field_index: int, consumable_id: int
    ) -> Dict[str, Any]:
        return await self.spawn.place_consumable(
            owner_id, field_index, consumable_id, self.clock.now()
        )

    async def collect_creature(self, owner_id: int, field_index: int) -> Dict[str, Any]:
        return await self.spawn.collect_creature(owner_id, field_index, self.clock.now())

    async def collect_consumable(self, owner_id: int, field_index: int) -> Dict[str, Any]:
        return await self.spawn.collect_consumable(owner_id, field_index, self.clock.now())

    # ========================================================================
    # Exhibition, likes, sales
    # ========================================================================

    async def exhibit_creature(
        self, owner_id: int, asset_id: int, frame_id: int, slot_index: int
    ) -> Dict[str, Any]:
        return await self.income.exhibit_creature(
            owner_id, asset_id, frame_id, slot_index, self.clock.now()
        )

    async def remove_exhibited_creature(self, owner_id: int, creature_id: int) -> Dict[str, Any]:
        return await self.income.remove_exhibited_creature(
            owner_id, creature_id, self.clock.now()
        )

    async def register_like(
        self, liker_id: int, frame_owner_id: int, frame_id: int
    ) -> Dict[str, Any]:
        return await self.income.like_frame(liker_id, frame_owner_id, frame_id, self.clock.now())

    async def get_sell_status(self, creature_id: int) -> Dict[str, Any]:
        return await self.income.get_sell_status(creature_id, self.clock.now())

    async def sell_creature(self, owner_id: int, creature_id: int) -> Dict[str, Any]:
        return await self.income.sell_creature(owner_id, creature_id, self.clock.now())

    # ========================================================================
    # Ambient
    # ========================================================================

    async def collect_ambient(self, owner_id: int, field_index: int) -> Dict[str, Any]:
        return await self.ambient.collect_ambient(owner_id, field_index, self.clock.now())

    # ========================================================================
    # Administration
    # ========================================================================

    async def grant_asset(
        self, owner_id: int, kind: str, asset_id: int, quantity: int = 1
    ) -> Dict[str, Any]:
        """
        Put assets straight into an owner's inventory.

        Seeds and consumables take a tier ordinal as `asset_id`; flowers and
        creatures take an id and are classified by range.

        Raises:
            ValidationError: Malformed owner, kind, id or quantity
            NotFoundError: The owner has no account
        """
        validate_id(owner_id, "owner_id")
        asset_kind = validate_asset_kind(kind)
        validate_id(asset_id, "asset_id")
        validate_quantity(quantity)

        if asset_kind.ranged:
            tier = self.rarity.classify(asset_id, asset_kind)
        else:
            tier = self.rarity.tier(asset_id)

        async with self.db.get_transaction() as session:
            await self.owners.get_account(session, owner_id)
            new_quantity = await self.inventory.acquire(
                session, owner_id, asset_kind, asset_id, tier.ordinal, quantity
            )
        logger.info(
            "Asset granted",
            extra={
                "owner_id": owner_id,
                "asset_kind": asset_kind.value,
                "asset_id": asset_id,
                "quantity": quantity,
            },
        )
        return {
            "asset_kind": asset_kind.value,
            "asset_id": asset_id,
            "rarity": tier.ordinal,
            "quantity": new_quantity,
        }
