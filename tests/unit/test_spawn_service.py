"""
Unit tests for SpawnService and the spawn sweep.

Placement, the armed -> exhausted/expired lifecycle, Moore-neighbour
placement, collection races and seed drops.
"""

import asyncio
import random
from datetime import timedelta

import pytest
from sqlalchemy import select

from meadow.database.models import ConsumableStatus, PlacedConsumable
from meadow.modules.economy import EconomyEngine
from meadow.modules.field import moore_neighbors
from meadow.modules.shared.exceptions import (
    AlreadyCollectedError,
    InsufficientInventoryError,
    NotFoundError,
    NotReadyError,
    SlotOccupiedError,
)
from meadow.modules.spawn import SpawnResult

OWNER = 2001
ORIGIN = 12


@pytest.fixture
def spawn_engine(make_engine):
    """Two spawns per consumable, exactly one minute apart."""
    return make_engine(spawn_count_range=(2, 2), spawn_delay_range_ms=(60_000, 60_000))


async def _place(engine, field_index=ORIGIN, tier=3):
    await engine.register_owner(OWNER)
    await engine.grant_asset(OWNER, "consumable", tier)
    return await engine.place_consumable(OWNER, field_index, tier)


class TestPlacement:
    async def test_place_consumes_inventory_and_arms(self, spawn_engine, clock):
        placed = await _place(spawn_engine)

        assert placed["status"] == ConsumableStatus.ARMED.value
        assert placed["spawn_count"] == 0
        assert placed["max_spawns"] == 2
        assert placed["next_spawn_at"] == clock.now() + timedelta(minutes=1)
        assert await spawn_engine.get_inventory(OWNER, "consumable") == []

    async def test_place_without_inventory(self, spawn_engine):
        await spawn_engine.register_owner(OWNER)

        with pytest.raises(InsufficientInventoryError):
            await spawn_engine.place_consumable(OWNER, ORIGIN, 3)

    async def test_place_on_occupied_cell_keeps_inventory(self, spawn_engine):
        await _place(spawn_engine)
        await spawn_engine.grant_asset(OWNER, "consumable", 3)

        with pytest.raises(SlotOccupiedError):
            await spawn_engine.place_consumable(OWNER, ORIGIN, 3)

        stacks = await spawn_engine.get_inventory(OWNER, "consumable")
        assert stacks[0]["quantity"] == 1


class TestSpawnLifecycle:
    async def test_not_due_before_first_delay(self, spawn_engine, clock):
        placed = await _place(spawn_engine)
        clock.advance(seconds=59)

        outcome = await spawn_engine.spawn.evaluate_consumable(placed["id"], clock.now())

        assert outcome.result is SpawnResult.NOT_DUE

    async def test_spawns_until_exhausted(self, spawn_engine, clock):
        placed = await _place(spawn_engine, tier=3)
        neighbours = set(moore_neighbors(ORIGIN, 10, 50))

        for _ in range(2):
            clock.advance(minutes=1)
            report = await spawn_engine.trigger_sweep("spawn")
            assert report["spawn"]["succeeded"] == 1

        creatures = await spawn_engine.spawn.list_creatures(OWNER)
        assert len(creatures) == 2
        for creature in creatures:
            assert creature["field_index"] in neighbours
            assert 744 <= creature["asset_id"] <= 843
            assert creature["consumable_id"] == placed["id"]

        consumable = (await spawn_engine.spawn.list_consumables(OWNER))[0]
        assert consumable["spawn_count"] == 2
        assert consumable["status"] == ConsumableStatus.EXHAUSTED.value

        clock.advance(minutes=10)
        report = await spawn_engine.trigger_sweep("spawn")
        assert report["spawn"]["processed"] == 0
        assert len(await spawn_engine.spawn.list_creatures(OWNER)) == 2

    @pytest.mark.parametrize("seed", [1, 7, 42, 1234, 20250101])
    async def test_default_economy_twenty_one_minutes(self, db, economy, clock, seed):
        """Default 2-4 spawns at 1-5 minute gaps all land within 21 one-minute sweeps."""
        engine = EconomyEngine(db, economy, clock, random.Random(seed), shutdown_timeout=5)
        placed = await _place(engine, tier=3)
        neighbours = set(moore_neighbors(ORIGIN, 10, 50))

        for _ in range(21):
            clock.advance(minutes=1)
            await engine.trigger_sweep("spawn")

        creatures = await engine.spawn.list_creatures(OWNER)
        assert 2 <= placed["max_spawns"] <= 4
        assert len(creatures) == placed["max_spawns"]
        assert len({creature["field_index"] for creature in creatures}) == len(creatures)
        for creature in creatures:
            assert creature["field_index"] in neighbours
            assert 744 <= creature["asset_id"] <= 843

        consumable = (await engine.spawn.list_consumables(OWNER))[0]
        assert consumable["status"] == ConsumableStatus.EXHAUSTED.value

    async def test_expired_consumable_never_spawns(self, spawn_engine, clock, economy):
        placed = await _place(spawn_engine)
        clock.advance(ms=economy.consumable_lifetime_ms)

        outcome = await spawn_engine.spawn.evaluate_consumable(placed["id"], clock.now())

        assert outcome.result is SpawnResult.EXPIRED
        assert await spawn_engine.spawn.due_consumable_ids(clock.now()) == []

    async def test_no_free_neighbour_leaves_schedule_untouched(self, spawn_engine, clock):
        placed = await _place(spawn_engine, field_index=0)
        for index in (1, 10, 11):
            await spawn_engine.grant_asset(OWNER, "consumable", 1)
            await spawn_engine.place_consumable(OWNER, index, 1)
        clock.advance(minutes=1)

        outcome = await spawn_engine.spawn.evaluate_consumable(placed["id"], clock.now())

        assert outcome.result is SpawnResult.NO_FREE_CELL
        row = next(c for c in await spawn_engine.spawn.list_consumables(OWNER) if c["id"] == placed["id"])
        assert row["spawn_count"] == 0
        assert row["next_spawn_at"] == placed["next_spawn_at"]

    async def test_concurrent_evaluations_spawn_once(self, spawn_engine, clock):
        placed = await _place(spawn_engine)
        clock.advance(minutes=1)

        outcomes = await asyncio.gather(
            spawn_engine.spawn.evaluate_consumable(placed["id"], clock.now()),
            spawn_engine.spawn.evaluate_consumable(placed["id"], clock.now()),
        )

        assert sum(1 for o in outcomes if o.spawned) == 1
        assert len(await spawn_engine.spawn.list_creatures(OWNER)) == 1

    async def test_impossible_counter_is_repaired_by_sweep(self, spawn_engine, clock):
        placed = await _place(spawn_engine)
        async with spawn_engine.db.get_transaction() as session:
            row = await session.get(PlacedConsumable, placed["id"])
            row.spawn_count = 5
        clock.advance(minutes=1)

        report = await spawn_engine.trigger_sweep("spawn")

        assert report["spawn"]["failed"] == 1
        assert report["spawn"]["repaired"] == 1
        async with spawn_engine.db.get_session() as session:
            status, count = (
                await session.execute(
                    select(PlacedConsumable.status, PlacedConsumable.spawn_count).where(
                        PlacedConsumable.id == placed["id"]
                    )
                )
            ).one()
        assert status == ConsumableStatus.EXHAUSTED.value
        assert count == 2


class TestCollection:
    async def test_collect_creature_into_inventory(self, spawn_engine, clock):
        await _place(spawn_engine)
        clock.advance(minutes=1)
        await spawn_engine.trigger_sweep("spawn")
        creature = (await spawn_engine.spawn.list_creatures(OWNER))[0]

        collected = await spawn_engine.collect_creature(OWNER, creature["field_index"])

        assert collected["creature_id"] == creature["asset_id"]
        assert collected["quantity"] == 1
        assert await spawn_engine.spawn.list_creatures(OWNER) == []

    async def test_double_collect_has_one_winner(self, spawn_engine, clock):
        await _place(spawn_engine)
        clock.advance(minutes=1)
        await spawn_engine.trigger_sweep("spawn")
        cell = (await spawn_engine.spawn.list_creatures(OWNER))[0]["field_index"]

        results = await asyncio.gather(
            spawn_engine.collect_creature(OWNER, cell),
            spawn_engine.collect_creature(OWNER, cell),
            return_exceptions=True,
        )

        assert sum(1 for r in results if isinstance(r, dict)) == 1
        assert sum(1 for r in results if isinstance(r, AlreadyCollectedError)) == 1
        creatures = await spawn_engine.get_inventory(OWNER, "creature")
        assert sum(stack["quantity"] for stack in creatures) == 1

    async def test_collect_after_despawn(self, spawn_engine, clock, economy):
        await _place(spawn_engine)
        clock.advance(minutes=1)
        await spawn_engine.trigger_sweep("spawn")
        cell = (await spawn_engine.spawn.list_creatures(OWNER))[0]["field_index"]
        clock.advance(ms=economy.creature_despawn_ms)

        with pytest.raises(NotFoundError):
            await spawn_engine.collect_creature(OWNER, cell)

    async def test_collect_empty_cell(self, spawn_engine):
        await spawn_engine.register_owner(OWNER)

        with pytest.raises(AlreadyCollectedError):
            await spawn_engine.collect_creature(OWNER, 0)

    async def test_armed_consumable_not_ready(self, spawn_engine):
        await _place(spawn_engine)

        with pytest.raises(NotReadyError) as exc_info:
            await spawn_engine.collect_consumable(OWNER, ORIGIN)

        assert exc_info.value.details["remaining_ms"] > 0

    async def test_exhausted_consumable_drops_seeds(self, spawn_engine, clock):
        await _place(spawn_engine, tier=3)
        for _ in range(2):
            clock.advance(minutes=1)
            await spawn_engine.trigger_sweep("spawn")

        harvest = await spawn_engine.collect_consumable(OWNER, ORIGIN)

        assert harvest["state"] == "exhausted"
        assert harvest["seed_rarity"] in (2, 3, 4)
        assert 1 <= harvest["seed_quantity"] <= 4
        seeds = await spawn_engine.get_inventory(OWNER, "seed")
        assert seeds == [
            {
                "asset_kind": "seed",
                "asset_id": harvest["seed_rarity"],
                "rarity": harvest["seed_rarity"],
                "quantity": harvest["seed_quantity"],
            }
        ]

        with pytest.raises(AlreadyCollectedError):
            await spawn_engine.collect_consumable(OWNER, ORIGIN)

    async def test_expired_consumable_harvestable(self, spawn_engine, clock, economy):
        await _place(spawn_engine)
        clock.advance(ms=economy.consumable_lifetime_ms)

        harvest = await spawn_engine.collect_consumable(OWNER, ORIGIN)

        assert harvest["state"] == "expired"
        assert harvest["spawn_count"] == 0
