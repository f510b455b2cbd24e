"""
Unit tests for AmbientService and the ambient sweep.
"""

from datetime import timedelta

import pytest

from meadow.database.models import SpawnedCreature
from meadow.modules.shared.exceptions import AlreadyCollectedError, NotFoundError

OWNER = 4004


@pytest.fixture
def sunny(make_engine):
    """Every upkeep step places a drop worth exactly 2 suns."""
    return make_engine(ambient_spawn_chance=1.0, ambient_amount_range=(2, 2))


class TestUpkeep:
    async def test_drop_placed_on_free_cell(self, sunny, clock):
        await sunny.register_owner(OWNER)

        outcome = await sunny.ambient.process_owner(OWNER, clock.now())

        assert outcome.placed_at_index is not None
        drops = await sunny.ambient.list_drops(OWNER)
        assert [d["field_index"] for d in drops] == [outcome.placed_at_index]
        assert drops[0]["amount"] == 2

    async def test_active_drops_capped(self, sunny, clock, economy):
        await sunny.register_owner(OWNER)

        for _ in range(economy.ambient_max_active + 2):
            await sunny.trigger_sweep("ambient")

        assert len(await sunny.ambient.list_drops(OWNER)) == economy.ambient_max_active

    async def test_zero_chance_places_nothing(self, make_engine, clock):
        engine = make_engine(ambient_spawn_chance=0.0)
        await engine.register_owner(OWNER)

        outcome = await engine.ambient.process_owner(OWNER, clock.now())

        assert not outcome.changed

    async def test_expired_drops_fade(self, sunny, clock, economy):
        await sunny.register_owner(OWNER)
        await sunny.ambient.process_owner(OWNER, clock.now())
        clock.advance(ms=economy.ambient_lifetime_ms)

        outcome = await sunny.ambient.process_owner(OWNER, clock.now())

        assert outcome.expired == 1
        assert len(await sunny.ambient.list_drops(OWNER)) == 1

    async def test_stale_creatures_fly_away(self, sunny, clock):
        await sunny.register_owner(OWNER)
        now = clock.now()
        async with sunny.db.get_transaction() as session:
            session.add(
                SpawnedCreature(owner_id=OWNER, field_index=0, rarity=1, asset_id=7,
                                spawned_at=now, despawn_at=now + timedelta(hours=1))
            )
            session.add(
                SpawnedCreature(owner_id=OWNER, field_index=1, rarity=1, asset_id=8,
                                spawned_at=now, despawn_at=None)
            )
        clock.advance(hours=1)

        outcome = await sunny.ambient.process_owner(OWNER, clock.now())

        assert outcome.despawned == 1
        assert [c["asset_id"] for c in await sunny.spawn.list_creatures(OWNER)] == [8]


class TestCollect:
    async def test_collect_adds_suns(self, sunny, clock):
        await sunny.register_owner(OWNER)
        outcome = await sunny.ambient.process_owner(OWNER, clock.now())

        collected = await sunny.collect_ambient(OWNER, outcome.placed_at_index)

        assert collected == {"field_index": outcome.placed_at_index, "amount": 2, "suns": 2}
        assert (await sunny.get_economy_summary(OWNER))["suns"] == 2

        with pytest.raises(AlreadyCollectedError):
            await sunny.collect_ambient(OWNER, outcome.placed_at_index)

    async def test_faded_drop_not_collectable(self, sunny, clock, economy):
        await sunny.register_owner(OWNER)
        outcome = await sunny.ambient.process_owner(OWNER, clock.now())
        clock.advance(ms=economy.ambient_lifetime_ms)

        with pytest.raises(NotFoundError):
            await sunny.collect_ambient(OWNER, outcome.placed_at_index)
