"""
Income Service
==============

Purpose
-------
Passive income from exhibited creatures, the sell countdown, frame likes
and sales.

Domain
------
- Each exhibited creature earns a linearly decaying hourly rate, from its
  tier's start rate down to the floor over `income_decay_window_ms`.
- Income is settled over whole elapsed minutes since the owner's
  `last_payout_at`:

      credited = floor(total_rate_per_hour * minutes / 60)
      last_payout_at += minutes          (exactly; leftover seconds carry)

- Settlement is a single compare-and-set on `last_payout_at` that adds the
  credits in the same statement. A lost compare-and-set credits nothing;
  the next sweep settles from the winner's anchor, so no minute is paid
  twice or dropped.
- Income is settled before the exhibited set changes (exhibit, remove,
  sell), so every minute is paid at the rate of the creatures exhibited
  at settlement time.
- The sell countdown is `max(0, sell_window - age - discount)`; each like
  on a frame adds `like_discount_ms` to the discount of every creature in
  it. A creature is sellable exactly when the countdown is zero.
- The ledger is append-only; entries are written only for non-zero credits.

Dependencies
------------
- DatabaseService: For transaction management
- DecayValuator: For rates and countdowns
- InventoryService: For moving creatures in and out of frames
- OwnerService: For accounts and atomic balance increments
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from meadow.core.logging.logger import LogContext, get_logger
from meadow.database.models import (
    AssetKind,
    EconomyLedgerEntry,
    ExhibitedCreature,
    FrameLike,
    LedgerSource,
    OwnerAccount,
)
from meadow.modules.shared.base_repository import BaseRepository
from meadow.modules.shared.base_service import BaseService
from meadow.modules.shared.exceptions import (
    AlreadyCollectedError,
    AlreadyLikedError,
    NotFoundError,
    NotSellableError,
    SlotOccupiedError,
    ValidationError,
)
from meadow.modules.shared.formulas import accrue_income
from meadow.modules.shared.validators import validate_id, validate_timestamp

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from meadow.core.config.economy import EconomyConfig
    from meadow.core.database.service import DatabaseService
    from meadow.modules.income.valuator import DecayValuator
    from meadow.modules.inventory.service import InventoryService
    from meadow.modules.owner.service import OwnerService
    from meadow.modules.rarity.table import RarityTable


class IncomeService(BaseService):
    """
    Public Methods
    --------------
    - process_owner_income() -> Settle pending income for one owner
    - owners_with_exhibits() -> Candidates for the income sweep
    - get_economy_summary() -> Current rate and balances
    - get_sell_status() -> Countdown of one exhibited creature
    - exhibit_creature() / remove_exhibited_creature() -> Frame placement
    - like_frame() -> Shorten every countdown in another owner's frame
    - sell_creature() -> Turn a matured creature into credits
    """

    def __init__(
        self,
        db: DatabaseService,
        economy: EconomyConfig,
        rarity: RarityTable,
        valuator: DecayValuator,
        inventory: InventoryService,
        owners: OwnerService,
    ) -> None:
        super().__init__(economy, get_logger(__name__))
        self.db = db
        self.rarity = rarity
        self.valuator = valuator
        self.inventory = inventory
        self.owners = owners

        self._owner_repo: BaseRepository[OwnerAccount] = BaseRepository[OwnerAccount](
            model_class=OwnerAccount,
            logger=self.log,
        )
        self._exhibit_repo: BaseRepository[ExhibitedCreature] = BaseRepository[
            ExhibitedCreature
        ](model_class=ExhibitedCreature, logger=self.log)
        self._like_repo: BaseRepository[FrameLike] = BaseRepository[FrameLike](
            model_class=FrameLike,
            logger=self.log,
        )
        self._ledger_repo: BaseRepository[EconomyLedgerEntry] = BaseRepository[
            EconomyLedgerEntry
        ](model_class=EconomyLedgerEntry, logger=self.log)

    # ========================================================================
    # Income settlement
    # ========================================================================

    async def owners_with_exhibits(self) -> List[int]:
        async with self.db.get_session() as session:
            result = await session.execute(
                select(ExhibitedCreature.owner_id)
                .distinct()
                .order_by(ExhibitedCreature.owner_id)
            )
            return list(result.scalars().all())

    async def process_owner_income(self, owner_id: int, now: datetime) -> int:
        """
        Settle income for `owner_id` up to the last whole minute before `now`.

        Returns:
            Credits paid by this call (0 if nothing accrued or a concurrent
            settlement won)
        """
        validate_timestamp(now)
        async with self.db.get_transaction() as session:
            return await self._settle(session, owner_id, now)

    async def _settle(self, session: AsyncSession, owner_id: int, now: datetime) -> int:
        account = await self.owners.get_account(session, owner_id, fresh=True)
        anchor = account.last_payout_at

        rate = await self._current_rate(session, owner_id, now)
        accrual = accrue_income(rate, anchor, now)
        if accrual.minutes == 0:
            return 0

        updated = await self._owner_repo.update_where(
            session,
            OwnerAccount.owner_id == owner_id,
            OwnerAccount.last_payout_at == anchor,
            values={
                "last_payout_at": accrual.new_anchor,
                "credits": OwnerAccount.credits + accrual.credited,
            },
        )
        if updated == 0:
            self.log.debug(
                "Income settlement lost compare-and-set",
                extra={"owner_id": owner_id, "anchor": anchor},
            )
            return 0

        if accrual.credited > 0:
            self._ledger_repo.add(
                session,
                EconomyLedgerEntry(
                    owner_id=owner_id,
                    amount=accrual.credited,
                    source_type=LedgerSource.PASSIVE_INCOME.value,
                    details={
                        "minutes": accrual.minutes,
                        "rate_per_hour": rate,
                        "from": anchor.isoformat(),
                        "to": accrual.new_anchor.isoformat(),
                    },
                    timestamp=now,
                ),
            )
            self.log.info(
                "Passive income credited",
                extra={
                    "owner_id": owner_id,
                    "credited": accrual.credited,
                    "minutes": accrual.minutes,
                    "rate_per_hour": rate,
                },
            )
        return accrual.credited

    async def _current_rate(self, session: AsyncSession, owner_id: int, now: datetime) -> float:
        result = await session.execute(
            select(ExhibitedCreature.rarity, ExhibitedCreature.placed_at).where(
                ExhibitedCreature.owner_id == owner_id
            )
        )
        return self.valuator.total_rate(result.all(), now)

    # ========================================================================
    # Reads
    # ========================================================================

    async def get_economy_summary(self, owner_id: int, now: datetime) -> Dict[str, Any]:
        validate_id(owner_id, "owner_id")
        validate_timestamp(now)
        async with self.db.get_session() as session:
            account = await self.owners.get_account(session, owner_id)
            rate = await self._current_rate(session, owner_id, now)
            exhibited = await self._exhibit_repo.count(
                session, ExhibitedCreature.owner_id == owner_id
            )
            return {
                "owner_id": owner_id,
                "hourly_rate": rate,
                "balance": account.credits,
                "suns": account.suns,
                "exhibited": exhibited,
                "last_payout_at": account.last_payout_at,
            }

    async def get_sell_status(self, creature_id: int, now: datetime) -> Dict[str, Any]:
        """
        Raises:
            NotFoundError: No exhibited creature with this id
        """
        validate_id(creature_id, "creature_id")
        validate_timestamp(now)
        async with self.db.get_session() as session:
            exhibit = await self._exhibit_repo.get(session, creature_id)
            if exhibit is None:
                raise NotFoundError("ExhibitedCreature", creature_id)
            remaining = self.valuator.sell_remaining_ms(exhibit.placed_at, exhibit.discount_ms, now)
            return {
                "creature_id": creature_id,
                "can_sell": remaining == 0,
                "remaining_ms": remaining,
                "hourly_rate": self.valuator.hourly_rate(exhibit.rarity, exhibit.placed_at, now),
            }

    async def list_exhibits(self, owner_id: int, now: datetime) -> List[Dict[str, Any]]:
        async with self.db.get_session() as session:
            rows = await self._exhibit_repo.find_many_where(
                session,
                ExhibitedCreature.owner_id == owner_id,
                order_by=(ExhibitedCreature.frame_id, ExhibitedCreature.slot_index),
            )
            return [
                {
                    "id": row.id,
                    "frame_id": row.frame_id,
                    "slot_index": row.slot_index,
                    "asset_id": row.asset_id,
                    "rarity": row.rarity,
                    "discount_ms": row.discount_ms,
                    "hourly_rate": self.valuator.hourly_rate(row.rarity, row.placed_at, now),
                    "remaining_ms": self.valuator.sell_remaining_ms(
                        row.placed_at, row.discount_ms, now
                    ),
                }
                for row in rows
            ]

    # ========================================================================
    # Exhibition
    # ========================================================================

    async def exhibit_creature(
        self,
        owner_id: int,
        asset_id: int,
        frame_id: int,
        slot_index: int,
        now: datetime,
    ) -> Dict[str, Any]:
        """
        Move one creature from inventory into a frame slot.

        Raises:
            InsufficientInventoryError: Owner holds no such creature
            SlotOccupiedError: The frame slot is taken
        """
        validate_id(owner_id, "owner_id")
        validate_id(asset_id, "asset_id")
        validate_id(frame_id, "frame_id")
        self.validate_non_negative_int(slot_index, "slot_index")
        validate_timestamp(now)
        tier = self.rarity.classify(asset_id, AssetKind.CREATURE)

        async with LogContext(owner_id=owner_id, operation="exhibit_creature"):
            async with self.db.get_transaction() as session:
                await self._settle(session, owner_id, now)

                taken = await self._exhibit_repo.exists(
                    session,
                    ExhibitedCreature.owner_id == owner_id,
                    ExhibitedCreature.frame_id == frame_id,
                    ExhibitedCreature.slot_index == slot_index,
                )
                if taken:
                    raise SlotOccupiedError(owner_id, f"frame {frame_id} slot", slot_index)

                await self.inventory.consume(session, owner_id, AssetKind.CREATURE, asset_id)

                exhibit = self._exhibit_repo.add(
                    session,
                    ExhibitedCreature(
                        owner_id=owner_id,
                        frame_id=frame_id,
                        slot_index=slot_index,
                        asset_id=asset_id,
                        rarity=tier.ordinal,
                        placed_at=now,
                        discount_ms=0,
                    ),
                )
                try:
                    await session.flush()
                except IntegrityError as exc:
                    raise SlotOccupiedError(
                        owner_id, f"frame {frame_id} slot", slot_index
                    ) from exc

                result = {
                    "creature_id": exhibit.id,
                    "asset_id": asset_id,
                    "rarity": tier.ordinal,
                    "frame_id": frame_id,
                    "slot_index": slot_index,
                    "remaining_ms": self.economy.sell_window_ms,
                }

            self.log_operation("exhibit_creature", owner_id=owner_id, **result)
            return result

    async def remove_exhibited_creature(
        self, owner_id: int, creature_id: int, now: datetime
    ) -> Dict[str, Any]:
        """
        Take an exhibited creature back into inventory. Its countdown and
        accrued discount are lost.
        """
        validate_id(owner_id, "owner_id")
        validate_id(creature_id, "creature_id")
        validate_timestamp(now)

        async with LogContext(owner_id=owner_id, operation="remove_exhibited_creature"):
            async with self.db.get_transaction() as session:
                exhibit = await self._owned_exhibit(session, owner_id, creature_id)
                await self._settle(session, owner_id, now)

                removed = await self._exhibit_repo.delete_where(
                    session, ExhibitedCreature.id == creature_id
                )
                if removed == 0:
                    raise AlreadyCollectedError("ExhibitedCreature", owner_id, exhibit.slot_index)

                await self.inventory.acquire(
                    session, owner_id, AssetKind.CREATURE, exhibit.asset_id, exhibit.rarity
                )
                result = {
                    "creature_id": creature_id,
                    "asset_id": exhibit.asset_id,
                    "frame_id": exhibit.frame_id,
                    "slot_index": exhibit.slot_index,
                }

            self.log_operation("remove_exhibited_creature", owner_id=owner_id, **result)
            return result

    # ========================================================================
    # Likes
    # ========================================================================

    async def like_frame(
        self, liker_id: int, frame_owner_id: int, frame_id: int, now: datetime
    ) -> Dict[str, Any]:
        """
        Register `liker_id`'s like on a frame and shorten the countdown of
        every creature in it by `like_discount_ms`.

        Raises:
            ValidationError: Owners cannot like their own frames
            AlreadyLikedError: This liker already liked this frame
            NotFoundError: Liker has no account
        """
        validate_id(liker_id, "liker_id")
        validate_id(frame_owner_id, "frame_owner_id")
        validate_id(frame_id, "frame_id")
        validate_timestamp(now)
        if liker_id == frame_owner_id:
            raise ValidationError("frame_owner_id", "owners cannot like their own frames")

        discount = self.economy.like_discount_ms

        async with LogContext(owner_id=liker_id, operation="like_frame"):
            async with self.db.get_transaction() as session:
                await self.owners.get_account(session, liker_id)

                if not await self._insert_like(session, liker_id, frame_owner_id, frame_id, now):
                    raise AlreadyLikedError(liker_id, frame_owner_id, frame_id)

                affected = await self._exhibit_repo.update_where(
                    session,
                    ExhibitedCreature.owner_id == frame_owner_id,
                    ExhibitedCreature.frame_id == frame_id,
                    values={"discount_ms": ExhibitedCreature.discount_ms + discount},
                )

            self.log_operation(
                "like_frame",
                liker_id=liker_id,
                frame_owner_id=frame_owner_id,
                frame_id=frame_id,
                affected=affected,
            )
            return {
                "frame_owner_id": frame_owner_id,
                "frame_id": frame_id,
                "discount_ms": discount,
                "affected": affected,
            }

    async def _insert_like(
        self,
        session: AsyncSession,
        liker_id: int,
        frame_owner_id: int,
        frame_id: int,
        now: datetime,
    ) -> bool:
        values = dict(
            liker_id=liker_id,
            frame_owner_id=frame_owner_id,
            frame_id=frame_id,
            created_at=now,
        )
        result = await session.execute(
            self._like_repo.conflict_insert(session)
            .values(**values)
            .on_conflict_do_nothing(
                index_elements=[FrameLike.liker_id, FrameLike.frame_owner_id, FrameLike.frame_id]
            )
        )
        return result.rowcount > 0

    # ========================================================================
    # Sales
    # ========================================================================

    async def sell_creature(self, owner_id: int, creature_id: int, now: datetime) -> Dict[str, Any]:
        """
        Sell a matured exhibited creature for its tier's sale value.

        Raises:
            NotFoundError: Owner has no exhibited creature with this id
            NotSellableError: Countdown not at zero (carries remaining_ms)
            AlreadyCollectedError: Sold concurrently
        """
        validate_id(owner_id, "owner_id")
        validate_id(creature_id, "creature_id")
        validate_timestamp(now)

        async with LogContext(owner_id=owner_id, operation="sell_creature"):
            async with self.db.get_transaction() as session:
                exhibit = await self._owned_exhibit(session, owner_id, creature_id)
                remaining = self.valuator.sell_remaining_ms(
                    exhibit.placed_at, exhibit.discount_ms, now
                )
                if remaining > 0:
                    raise NotSellableError(creature_id, remaining)

                await self._settle(session, owner_id, now)

                removed = await self._exhibit_repo.delete_where(
                    session, ExhibitedCreature.id == creature_id
                )
                if removed == 0:
                    raise AlreadyCollectedError("ExhibitedCreature", owner_id, exhibit.slot_index)

                value = self.valuator.sale_value(exhibit.rarity)
                await self.owners.add_credits(session, owner_id, value)
                self._ledger_repo.add(
                    session,
                    EconomyLedgerEntry(
                        owner_id=owner_id,
                        amount=value,
                        source_type=LedgerSource.SALE.value,
                        details={
                            "creature_id": creature_id,
                            "asset_id": exhibit.asset_id,
                            "rarity": exhibit.rarity,
                        },
                        timestamp=now,
                    ),
                )
                account = await self.owners.get_account(session, owner_id, fresh=True)
                result = {
                    "creature_id": creature_id,
                    "asset_id": exhibit.asset_id,
                    "rarity": exhibit.rarity,
                    "sale_value": value,
                    "balance": account.credits,
                }

            self.log_operation("sell_creature", owner_id=owner_id, **result)
            return result

    async def _owned_exhibit(
        self, session: AsyncSession, owner_id: int, creature_id: int
    ) -> ExhibitedCreature:
        exhibit = await self._exhibit_repo.find_one_where(
            session,
            ExhibitedCreature.id == creature_id,
            ExhibitedCreature.owner_id == owner_id,
        )
        if exhibit is None:
            raise NotFoundError("ExhibitedCreature", creature_id)
        return exhibit
