"""
Unit tests for GardenService: planting, harvesting and crafting.
"""

import asyncio

import pytest

from meadow.modules.shared.exceptions import (
    AlreadyCollectedError,
    InsufficientInventoryError,
    NotReadyError,
    SlotOccupiedError,
    ValidationError,
)


async def _quantity(engine, owner, kind, asset_id):
    return await engine.inventory.get_quantity_standalone(owner, kind, asset_id)


class TestPlanting:
    async def test_plant_consumes_seed(self, engine, owner, clock):
        await engine.grant_asset(owner, "seed", 2, quantity=2)

        planting = await engine.plant_seed(owner, 5, 2)

        assert planting["field_index"] == 5
        assert (planting["matures_at"] - clock.now()).total_seconds() == 120
        assert await _quantity(engine, owner, "seed", 2) == 1

    async def test_plant_without_seed(self, engine, owner):
        with pytest.raises(InsufficientInventoryError):
            await engine.plant_seed(owner, 5, 2)

    async def test_plant_on_occupied_cell(self, engine, owner):
        await engine.grant_asset(owner, "seed", 1, quantity=2)
        await engine.plant_seed(owner, 5, 1)

        with pytest.raises(SlotOccupiedError):
            await engine.plant_seed(owner, 5, 1)

        assert await _quantity(engine, owner, "seed", 1) == 1

    @pytest.mark.parametrize("field_index", [-1, 50])
    async def test_plant_outside_grid(self, engine, owner, field_index):
        with pytest.raises(ValidationError):
            await engine.plant_seed(owner, field_index, 1)


class TestHarvest:
    async def test_harvest_before_maturity(self, engine, owner, clock):
        await engine.grant_asset(owner, "seed", 2)
        await engine.plant_seed(owner, 5, 2)
        clock.advance(seconds=100)

        with pytest.raises(NotReadyError) as exc_info:
            await engine.harvest_plant(owner, 5)

        assert exc_info.value.details["remaining_ms"] == 20_000

    async def test_harvest_yields_flower_of_same_tier(self, engine, owner, clock):
        await engine.grant_asset(owner, "seed", 2)
        await engine.plant_seed(owner, 5, 2)
        clock.advance(seconds=120)

        harvest = await engine.harvest_plant(owner, 5)

        assert 56 <= harvest["flower_id"] <= 100
        assert harvest["rarity"] == 2
        assert await _quantity(engine, owner, "flower", harvest["flower_id"]) == 1
        assert (await engine.get_field(owner))["plantings"] == []

    async def test_harvest_empty_cell(self, engine, owner):
        """An empty cell reads the same as one harvested a moment ago."""
        with pytest.raises(AlreadyCollectedError):
            await engine.harvest_plant(owner, 5)

    async def test_concurrent_harvest_has_one_winner(self, engine, owner, clock):
        await engine.grant_asset(owner, "seed", 1)
        await engine.plant_seed(owner, 5, 1)
        clock.advance(minutes=5)

        results = await asyncio.gather(
            engine.harvest_plant(owner, 5),
            engine.harvest_plant(owner, 5),
            return_exceptions=True,
        )

        winners = [r for r in results if isinstance(r, dict)]
        losers = [r for r in results if isinstance(r, AlreadyCollectedError)]
        assert len(winners) == 1
        assert len(losers) == 1


class TestCrafting:
    async def test_craft_averages_flower_tiers(self, engine, owner):
        await engine.grant_asset(owner, "flower", 10)
        await engine.grant_asset(owner, "flower", 60, quantity=2)

        crafted = await engine.craft_consumable(owner, [10, 60, 60])

        assert crafted["consumable_id"] == 2
        assert crafted["rarity_name"] == "uncommon"
        assert await _quantity(engine, owner, "consumable", 2) == 1
        assert await engine.get_inventory(owner, "flower") == []

    async def test_craft_needs_exact_flower_count(self, engine, owner):
        with pytest.raises(ValidationError):
            await engine.craft_consumable(owner, [10, 60])

    async def test_missing_flower_consumes_nothing(self, engine, owner):
        await engine.grant_asset(owner, "flower", 10)
        await engine.grant_asset(owner, "flower", 60)

        with pytest.raises(InsufficientInventoryError):
            await engine.craft_consumable(owner, [10, 60, 60])

        assert await _quantity(engine, owner, "flower", 10) == 1
        assert await _quantity(engine, owner, "flower", 60) == 1
        assert await _quantity(engine, owner, "consumable", 2) == 0
