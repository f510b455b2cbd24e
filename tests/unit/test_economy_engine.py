"""
Unit tests for EconomyEngine: owner registration, admin grants and the
complete seed -> flower -> consumable -> creature -> sale loop.
"""

import asyncio

import pytest

from meadow.core.exceptions import DatabaseError
from meadow.database.models import AssetKind
from meadow.modules.shared.exceptions import NotFoundError, ValidationError


class TestOwners:
    async def test_register_is_idempotent(self, engine, clock):
        first = await engine.register_owner(77)
        clock.advance(minutes=3)
        second = await engine.register_owner(77)

        assert first["created"] is True
        assert second["created"] is False
        assert second["last_payout_at"] == first["last_payout_at"]

    async def test_concurrent_registration_creates_one_account(self, engine):
        results = await asyncio.gather(*(engine.register_owner(78) for _ in range(3)))

        assert sum(1 for r in results if r["created"]) == 1

    async def test_summary_for_unknown_owner(self, engine):
        with pytest.raises(NotFoundError):
            await engine.get_economy_summary(404)

    @pytest.mark.parametrize("owner_id", [0, -5, "7", None])
    async def test_invalid_owner_id(self, engine, owner_id):
        with pytest.raises(ValidationError):
            await engine.register_owner(owner_id)


class TestGrants:
    async def test_grant_classifies_creature(self, engine, owner):
        granted = await engine.grant_asset(owner, "creature", 990, quantity=2)

        assert granted == {"asset_kind": "creature", "asset_id": 990, "rarity": 7, "quantity": 2}

    async def test_grant_requires_registered_owner(self, engine):
        with pytest.raises(NotFoundError):
            await engine.grant_asset(424242, "seed", 3)

        assert await engine.inventory.get_quantity_standalone(424242, "seed", 3) == 0

    async def test_store_rejects_stack_without_account(self, engine):
        """Foreign keys are enforced below the service checks too."""
        with pytest.raises(DatabaseError):
            await engine.inventory.acquire_standalone(424242, AssetKind.SEED, 3, 3)

    async def test_unknown_kind(self, engine, owner):
        with pytest.raises(ValidationError):
            await engine.grant_asset(owner, "pebble", 1)

    async def test_seed_tier_must_exist(self, engine, owner):
        with pytest.raises(ValidationError):
            await engine.grant_asset(owner, "seed", 9)

    async def test_inventory_listing_filters_by_kind(self, engine, owner):
        await engine.grant_asset(owner, "seed", 1)
        await engine.grant_asset(owner, "flower", 60)

        inventory = await engine.get_inventory(owner)
        seeds = await engine.get_inventory(owner, "seed")

        assert [stack["asset_kind"] for stack in inventory] == ["flower", "seed"]
        assert seeds == [{"asset_kind": "seed", "asset_id": 1, "rarity": 1, "quantity": 1}]


class TestFullLoop:
    async def test_seed_to_sale(self, make_engine, clock):
        engine = make_engine(
            spawn_count_range=(1, 1),
            spawn_delay_range_ms=(60_000, 60_000),
            ambient_spawn_chance=0.0,
        )
        owner, fan = 501, 502
        await engine.register_owner(owner)
        await engine.register_owner(fan)

        # Three common seeds grow into three common flowers
        await engine.grant_asset(owner, "seed", 1, quantity=3)
        for index in (0, 1, 2):
            await engine.plant_seed(owner, index, 1)
        clock.advance(seconds=75)
        flowers = [(await engine.harvest_plant(owner, index))["flower_id"] for index in (0, 1, 2)]

        crafted = await engine.craft_consumable(owner, flowers)
        assert crafted["consumable_id"] == 1

        await engine.place_consumable(owner, 22, 1)
        clock.advance(minutes=1)
        reports = await engine.trigger_sweep()
        assert reports["spawn"]["succeeded"] == 1

        field = await engine.get_field(owner)
        creature = field["creatures"][0]
        await engine.collect_creature(owner, creature["field_index"])
        harvest = await engine.collect_consumable(owner, 22)
        assert harvest["state"] == "exhausted"

        exhibit = await engine.exhibit_creature(owner, creature["asset_id"], 1, 0)
        await engine.register_like(fan, owner, 1)
        clock.advance(hours=72)
        sale = await engine.sell_creature(owner, exhibit["creature_id"])

        assert sale["sale_value"] == 10
        summary = await engine.get_economy_summary(owner)
        assert summary["balance"] == sale["balance"]
        assert summary["exhibited"] == 0
        assert (await engine.get_field(owner))["exhibits"] == []


class TestLifecycle:
    async def test_start_and_stop_sweeps(self, engine, owner):
        await engine.start()
        assert engine.is_running
        assert set(engine.sweeps) == {"spawn", "income", "ambient"}

        await engine.stop()
        assert not engine.is_running
