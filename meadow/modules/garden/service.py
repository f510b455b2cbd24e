"""
Garden Service
==============

Purpose
-------
Grow flowers from seeds and bind flowers into consumables.

Domain
------
- Planting consumes one seed of the chosen tier and occupies a free field
  cell. The flower the seed turns into is drawn at planting time from the
  same tier, so re-reading the planting never changes the outcome.
- A planting matures `maturation_window_ms` after it was planted;
  harvesting before that raises `NotReadyError` carrying the time left.
- Harvesting removes the planting with a guarded delete, so a concurrent
  second harvest sees `AlreadyCollectedError` instead of a second flower.
- Crafting consumes exactly `craft_flowers_required` flowers and yields one
  consumable at the rounded average tier of the flowers used.

Dependencies
------------
- DatabaseService: For transaction management
- RarityTable: For tier lookups and flower draws
- InventoryService: For consuming seeds/flowers and acquiring results
- FieldOccupancyService: For cell checks and per-owner serialization
"""

from __future__ import annotations

import random
from collections import Counter
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Dict, List, Sequence

from meadow.core.logging.logger import LogContext, get_logger
from meadow.database.models import AssetKind, PlantedSeed
from meadow.modules.shared.base_repository import BaseRepository
from meadow.modules.shared.base_service import BaseService
from meadow.modules.shared.exceptions import (
    AlreadyCollectedError,
    NotReadyError,
)
from meadow.modules.shared.formulas import elapsed_ms
from meadow.modules.shared.validators import (
    validate_id,
    validate_id_list,
    validate_timestamp,
)

if TYPE_CHECKING:
    from meadow.core.config.economy import EconomyConfig
    from meadow.core.database.service import DatabaseService
    from meadow.modules.field.occupancy import FieldOccupancyService
    from meadow.modules.inventory.service import InventoryService
    from meadow.modules.rarity.table import RarityTable


class GardenService(BaseService):
    """
    Public Methods
    --------------
    - plant_seed() -> Put a seed on a free cell
    - harvest_plant() -> Turn a mature planting into a flower
    - craft_consumable() -> Bind flowers into a consumable
    """

    def __init__(
        self,
        db: DatabaseService,
        economy: EconomyConfig,
        rarity: RarityTable,
        inventory: InventoryService,
        occupancy: FieldOccupancyService,
        rng: random.Random,
    ) -> None:
        super().__init__(economy, get_logger(__name__))
        self.db = db
        self.rarity = rarity
        self.inventory = inventory
        self.occupancy = occupancy
        self.rng = rng
        self._seed_repo: BaseRepository[PlantedSeed] = BaseRepository[PlantedSeed](
            model_class=PlantedSeed,
            logger=self.log,
        )

    # ========================================================================
    # PUBLIC API
    # ========================================================================

    async def plant_seed(
        self, owner_id: int, field_index: int, rarity: int, now: datetime
    ) -> Dict[str, Any]:
        """
        Plant one seed of tier `rarity` at `field_index`.

        Raises:
            ValidationError: Malformed owner, cell or tier
            InsufficientInventoryError: Owner holds no such seed
            SlotOccupiedError: Cell is taken
        """
        validate_id(owner_id, "owner_id")
        self.validate_field_index(field_index)
        tier = self.rarity.tier(rarity)
        validate_timestamp(now)

        async with LogContext(owner_id=owner_id, operation="plant_seed"):
            async with self.db.get_transaction() as session:
                await self.occupancy.lock_field(session, owner_id)
                await self.occupancy.require_free(session, owner_id, field_index)
                await self.inventory.consume(session, owner_id, AssetKind.SEED, tier.ordinal)

                flower_id = self.rarity.sample_asset_id(tier, self.rng, AssetKind.FLOWER)
                planting = await self.occupancy.occupy(
                    session,
                    PlantedSeed(
                        owner_id=owner_id,
                        field_index=field_index,
                        rarity=tier.ordinal,
                        flower_id=flower_id,
                        planted_at=now,
                        matures_at=now + timedelta(milliseconds=tier.maturation_window_ms),
                    ),
                )
                result = {
                    "planting_id": planting.id,
                    "field_index": field_index,
                    "rarity": tier.ordinal,
                    "matures_at": planting.matures_at,
                }

            self.log_operation(
                "plant_seed", owner_id=owner_id, field_index=field_index, rarity=tier.ordinal
            )
            return result

    async def harvest_plant(self, owner_id: int, field_index: int, now: datetime) -> Dict[str, Any]:
        """
        Harvest the mature planting at `field_index` into a flower.

        Raises:
            NotReadyError: Planting has not matured (details carry remaining_ms)
            AlreadyCollectedError: Nothing is planted there (harvested concurrently)
        """
        validate_id(owner_id, "owner_id")
        self.validate_field_index(field_index)
        validate_timestamp(now)

        async with LogContext(owner_id=owner_id, operation="harvest_plant"):
            async with self.db.get_transaction() as session:
                await self.occupancy.lock_field(session, owner_id)
                planting = await self._seed_repo.find_one_where(
                    session,
                    PlantedSeed.owner_id == owner_id,
                    PlantedSeed.field_index == field_index,
                )
                if planting is None:
                    raise AlreadyCollectedError("PlantedSeed", owner_id, field_index)

                if now < planting.matures_at:
                    raise NotReadyError(
                        "harvest_plant",
                        remaining_ms=elapsed_ms(now, planting.matures_at),
                        reason="planting has not matured",
                    )

                removed = await self._seed_repo.delete_where(session, PlantedSeed.id == planting.id)
                if removed == 0:
                    raise AlreadyCollectedError("PlantedSeed", owner_id, field_index)

                await self.inventory.acquire(
                    session,
                    owner_id,
                    AssetKind.FLOWER,
                    planting.flower_id,
                    planting.rarity,
                )
                result = {
                    "field_index": field_index,
                    "flower_id": planting.flower_id,
                    "rarity": planting.rarity,
                }

            self.log_operation("harvest_plant", owner_id=owner_id, **result)
            return result

    async def craft_consumable(self, owner_id: int, flower_ids: Sequence[int]) -> Dict[str, Any]:
        """
        Consume flowers and acquire one consumable at their average tier.

        The same flower id may appear more than once if the owner holds
        enough copies of it.

        Raises:
            ValidationError: Wrong number of ids or malformed ids
            InsufficientInventoryError: A flower is missing
        """
        validate_id(owner_id, "owner_id")
        required = self.economy.craft_flowers_required
        flower_ids = validate_id_list(flower_ids, "flower_ids", expected_count=required)

        tiers = [self.rarity.classify(flower_id, AssetKind.FLOWER) for flower_id in flower_ids]
        tier = self.rarity.average_tier(tiers)

        async with LogContext(owner_id=owner_id, operation="craft_consumable"):
            async with self.db.get_transaction() as session:
                for flower_id, count in sorted(Counter(flower_ids).items()):
                    await self.inventory.consume(
                        session, owner_id, AssetKind.FLOWER, flower_id, count
                    )
                await self.inventory.acquire(
                    session, owner_id, AssetKind.CONSUMABLE, tier.ordinal, tier.ordinal
                )

            self.log_operation(
                "craft_consumable",
                owner_id=owner_id,
                flower_ids=list(flower_ids),
                rarity=tier.ordinal,
            )
            return {
                "consumable_id": tier.ordinal,
                "rarity": tier.ordinal,
                "rarity_name": tier.name,
                "flower_ids": list(flower_ids),
            }

    async def list_plantings(self, owner_id: int, now: datetime) -> List[Dict[str, Any]]:
        async with self.db.get_session() as session:
            rows = await self._seed_repo.find_many_where(
                session,
                PlantedSeed.owner_id == owner_id,
                order_by=PlantedSeed.field_index,
            )
            return [
                {
                    "id": row.id,
                    "field_index": row.field_index,
                    "rarity": row.rarity,
                    "matures_at": row.matures_at,
                    "mature": now >= row.matures_at,
                }
                for row in rows
            ]
