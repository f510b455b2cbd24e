"""
Unit tests for IncomeService.

Decaying passive income, whole-minute settlement, exhibition, likes and
sales.
"""

import asyncio
import warnings
from datetime import timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.exc import SAWarning

from meadow.database.models import EconomyLedgerEntry, LedgerSource
from meadow.modules.shared.constants import HOUR_MS, MINUTE_MS
from meadow.modules.shared.exceptions import (
    AlreadyLikedError,
    InsufficientInventoryError,
    NotFoundError,
    NotSellableError,
    SlotOccupiedError,
    ValidationError,
)

MYTHICAL = 1000
UNCOMMON = 500
FAN = 3003


async def _exhibit(engine, owner, asset_id, frame_id=1, slot_index=0):
    await engine.grant_asset(owner, "creature", asset_id)
    return await engine.exhibit_creature(owner, asset_id, frame_id, slot_index)


async def _ledger(engine, owner, source):
    async with engine.db.get_session() as session:
        result = await session.execute(
            select(EconomyLedgerEntry.amount).where(
                EconomyLedgerEntry.owner_id == owner,
                EconomyLedgerEntry.source_type == source.value,
            )
        )
        return list(result.scalars().all())


class TestPassiveIncome:
    async def test_rate_decays_to_midpoint(self, engine, owner, clock):
        await _exhibit(engine, owner, MYTHICAL)
        clock.advance(hours=36)

        summary = await engine.get_economy_summary(owner)

        assert summary["hourly_rate"] == pytest.approx(55.0)
        assert summary["exhibited"] == 1

    async def test_whole_minute_settlement(self, engine, owner, clock):
        """A mythical creature 36h in pays 9 credits for 10.5 minutes."""
        await _exhibit(engine, owner, MYTHICAL)
        clock.advance(hours=36)
        first = await engine.income.process_owner_income(owner, clock.now())
        assert first == 1980

        anchor = clock.now()
        clock.advance(minutes=10, seconds=30)
        credited = await engine.income.process_owner_income(owner, clock.now())

        assert credited == 9
        summary = await engine.get_economy_summary(owner)
        assert summary["balance"] == 1989
        assert summary["last_payout_at"] == anchor + timedelta(minutes=10)
        assert await _ledger(engine, owner, LedgerSource.PASSIVE_INCOME) == [1980, 9]

    async def test_settlement_is_idempotent(self, engine, owner, clock):
        await _exhibit(engine, owner, MYTHICAL)
        clock.advance(minutes=30)

        assert await engine.income.process_owner_income(owner, clock.now()) > 0
        assert await engine.income.process_owner_income(owner, clock.now()) == 0

    async def test_concurrent_settlements_pay_once(self, engine, owner, clock):
        await _exhibit(engine, owner, MYTHICAL)
        clock.advance(minutes=30)
        now = clock.now()

        results = await asyncio.gather(
            engine.income.process_owner_income(owner, now),
            engine.income.process_owner_income(owner, now),
        )

        assert sorted(results)[0] == 0
        summary = await engine.get_economy_summary(owner)
        assert summary["balance"] == max(results)

    async def test_income_sweep_covers_exhibiting_owners(self, engine, owner, clock):
        await engine.register_owner(FAN)
        await _exhibit(engine, owner, MYTHICAL)
        clock.advance(minutes=6)

        report = await engine.trigger_sweep("income")

        assert report["income"]["processed"] == 1
        assert report["income"]["succeeded"] == 1
        assert (await engine.get_economy_summary(owner))["balance"] == 9
        assert (await engine.get_economy_summary(FAN))["balance"] == 0

    async def test_exhibiting_owners_listed_once(self, engine, owner):
        await engine.register_owner(FAN)
        await _exhibit(engine, owner, MYTHICAL, slot_index=0)
        await _exhibit(engine, owner, UNCOMMON, slot_index=1)
        await _exhibit(engine, FAN, UNCOMMON)

        with warnings.catch_warnings():
            warnings.simplefilter("error", SAWarning)
            owners = await engine.income.owners_with_exhibits()

        assert owners == sorted([owner, FAN])

    async def test_idle_owner_anchor_still_advances(self, engine, owner, clock):
        clock.advance(minutes=5)
        assert await engine.income.process_owner_income(owner, clock.now()) == 0

        summary = await engine.get_economy_summary(owner)
        assert summary["last_payout_at"] == clock.now()
        assert summary["balance"] == 0


class TestExhibition:
    async def test_exhibit_moves_creature_out_of_inventory(self, engine, owner):
        exhibit = await _exhibit(engine, owner, UNCOMMON)

        assert exhibit["rarity"] == 2
        assert exhibit["remaining_ms"] == 72 * HOUR_MS
        assert await engine.get_inventory(owner, "creature") == []

    async def test_taken_slot_rejected(self, engine, owner):
        await _exhibit(engine, owner, UNCOMMON)
        await engine.grant_asset(owner, "creature", MYTHICAL)

        with pytest.raises(SlotOccupiedError):
            await engine.exhibit_creature(owner, MYTHICAL, 1, 0)

        stacks = await engine.get_inventory(owner, "creature")
        assert stacks[0]["asset_id"] == MYTHICAL

    async def test_exhibit_requires_inventory(self, engine, owner):
        with pytest.raises(InsufficientInventoryError):
            await engine.exhibit_creature(owner, UNCOMMON, 1, 0)

    async def test_remove_returns_creature(self, engine, owner):
        exhibit = await _exhibit(engine, owner, UNCOMMON)

        removed = await engine.remove_exhibited_creature(owner, exhibit["creature_id"])

        assert removed["asset_id"] == UNCOMMON
        stacks = await engine.get_inventory(owner, "creature")
        assert stacks[0]["quantity"] == 1
        with pytest.raises(NotFoundError):
            await engine.get_sell_status(exhibit["creature_id"])


class TestLikes:
    async def test_like_discounts_every_creature_in_frame(self, engine, owner):
        await engine.register_owner(FAN)
        first = await _exhibit(engine, owner, UNCOMMON, slot_index=0)
        second = await _exhibit(engine, owner, MYTHICAL, slot_index=1)
        other_frame = await _exhibit(engine, owner, UNCOMMON, frame_id=2)

        result = await engine.register_like(FAN, owner, 1)

        assert result["affected"] == 2
        for exhibit in (first, second):
            status = await engine.get_sell_status(exhibit["creature_id"])
            assert status["remaining_ms"] == 72 * HOUR_MS - MINUTE_MS
        untouched = await engine.get_sell_status(other_frame["creature_id"])
        assert untouched["remaining_ms"] == 72 * HOUR_MS

    async def test_second_like_rejected(self, engine, owner):
        await engine.register_owner(FAN)
        exhibit = await _exhibit(engine, owner, UNCOMMON)
        await engine.register_like(FAN, owner, 1)

        with pytest.raises(AlreadyLikedError):
            await engine.register_like(FAN, owner, 1)

        status = await engine.get_sell_status(exhibit["creature_id"])
        assert status["remaining_ms"] == 72 * HOUR_MS - MINUTE_MS

    async def test_self_like_rejected(self, engine, owner):
        with pytest.raises(ValidationError):
            await engine.register_like(owner, owner, 1)

    async def test_liker_needs_account(self, engine, owner):
        with pytest.raises(NotFoundError):
            await engine.register_like(FAN, owner, 1)


class TestSales:
    async def test_not_sellable_before_countdown(self, engine, owner, clock):
        exhibit = await _exhibit(engine, owner, UNCOMMON)
        clock.advance(hours=71)

        with pytest.raises(NotSellableError) as exc_info:
            await engine.sell_creature(owner, exhibit["creature_id"])

        assert exc_info.value.details["remaining_ms"] == HOUR_MS

    async def test_like_brings_sale_forward(self, engine, owner, clock):
        await engine.register_owner(FAN)
        exhibit = await _exhibit(engine, owner, UNCOMMON)
        await engine.register_like(FAN, owner, 1)
        clock.advance(ms=72 * HOUR_MS - MINUTE_MS)

        status = await engine.get_sell_status(exhibit["creature_id"])
        assert status["can_sell"] is True

        sale = await engine.sell_creature(owner, exhibit["creature_id"])

        passive = sum(await _ledger(engine, owner, LedgerSource.PASSIVE_INCOME))
        assert sale["sale_value"] == 25
        assert sale["balance"] == 25 + passive
        assert await _ledger(engine, owner, LedgerSource.SALE) == [25]
        assert (await engine.get_economy_summary(owner))["exhibited"] == 0

    async def test_sell_twice(self, engine, owner, clock):
        exhibit = await _exhibit(engine, owner, UNCOMMON)
        clock.advance(hours=72)
        await engine.sell_creature(owner, exhibit["creature_id"])

        with pytest.raises(NotFoundError):
            await engine.sell_creature(owner, exhibit["creature_id"])

    async def test_cannot_sell_someone_elses_creature(self, engine, owner, clock):
        await engine.register_owner(FAN)
        exhibit = await _exhibit(engine, owner, UNCOMMON)
        clock.advance(hours=72)

        with pytest.raises(NotFoundError):
            await engine.sell_creature(FAN, exhibit["creature_id"])
