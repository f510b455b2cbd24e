"""
Owner Account Service
=====================

Purpose
-------
Create owner accounts and apply balance changes to them.

Domain
------
- `register_owner()` is idempotent: registering an existing owner returns
  the stored account unchanged. Two concurrent registrations end with one
  row.
- A new account's income anchor (`last_payout_at`) starts at registration
  time.
- Credits and suns only change through single atomic increments
  (`SET credits = credits + :n`); nothing reads a balance and writes it back.

Dependencies
------------
- DatabaseService: For transaction management
- Logger: For structured logging
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict

from meadow.core.logging.logger import get_logger
from meadow.database.models import OwnerAccount
from meadow.modules.shared.base_repository import BaseRepository
from meadow.modules.shared.base_service import BaseService
from meadow.modules.shared.exceptions import NotFoundError
from meadow.modules.shared.validators import validate_id, validate_timestamp

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from meadow.core.config.economy import EconomyConfig
    from meadow.core.database.service import DatabaseService


class OwnerService(BaseService):
    """
    Public Methods
    --------------
    - register_owner() -> Create the account if missing
    - get_account() -> Load an account (NotFoundError if missing)
    - add_credits() / add_suns() -> Atomic balance increments
    """

    def __init__(self, db: DatabaseService, economy: EconomyConfig) -> None:
        super().__init__(economy, get_logger(__name__))
        self.db = db
        self._owner_repo: BaseRepository[OwnerAccount] = BaseRepository[OwnerAccount](
            model_class=OwnerAccount,
            logger=self.log,
        )

    # ========================================================================
    # PUBLIC API
    # ========================================================================

    async def register_owner(self, owner_id: int, now: datetime) -> Dict[str, Any]:
        """
        Create an account for `owner_id`, or return the existing one.

        Returns:
            Dict with owner_id, credits, suns, last_payout_at and a `created`
            flag telling whether this call created the row
        """
        validate_id(owner_id, "owner_id")
        validate_timestamp(now)

        async with self.db.get_transaction() as session:
            created = await self._insert_if_missing(session, owner_id, now)
            account = await self.get_account(session, owner_id, fresh=True)
            result = self._account_dict(account)

        if created:
            self.log_operation("register_owner", owner_id=owner_id)
        result["created"] = created
        return result

    async def get_account(
        self, session: AsyncSession, owner_id: int, *, fresh: bool = False
    ) -> OwnerAccount:
        """
        Raises:
            NotFoundError: If the owner has no account
        """
        if fresh:
            # Bypass the identity map after guarded bulk updates
            account = await session.get(OwnerAccount, owner_id, populate_existing=True)
        else:
            account = await self._owner_repo.get(session, owner_id)
        if account is None:
            raise NotFoundError("OwnerAccount", owner_id)
        return account

    async def add_credits(self, session: AsyncSession, owner_id: int, amount: int) -> None:
        await self._increment(session, owner_id, OwnerAccount.credits, amount)

    async def add_suns(self, session: AsyncSession, owner_id: int, amount: int) -> None:
        await self._increment(session, owner_id, OwnerAccount.suns, amount)

    async def get_balances(self, owner_id: int) -> Dict[str, Any]:
        async with self.db.get_session() as session:
            return self._account_dict(await self.get_account(session, owner_id))

    # ========================================================================
    # Internals
    # ========================================================================

    async def _insert_if_missing(
        self, session: AsyncSession, owner_id: int, now: datetime
    ) -> bool:
        values = dict(
            owner_id=owner_id,
            credits=0,
            suns=0,
            last_payout_at=now,
            field_version=0,
            created_at=now,
        )
        result = await session.execute(
            self._owner_repo.conflict_insert(session)
            .values(**values)
            .on_conflict_do_nothing(index_elements=[OwnerAccount.owner_id])
        )
        return result.rowcount > 0

    async def _increment(self, session: AsyncSession, owner_id: int, column, amount: int) -> None:
        self.validate_non_negative_int(amount, column.key)
        if amount == 0:
            return
        updated = await self._owner_repo.update_where(
            session,
            OwnerAccount.owner_id == owner_id,
            values={column.key: column + amount},
        )
        if updated == 0:
            raise NotFoundError("OwnerAccount", owner_id)
        self.log.debug(
            "Balance incremented",
            extra={"owner_id": owner_id, "balance": column.key, "amount": amount},
        )

    @staticmethod
    def _account_dict(account: OwnerAccount) -> Dict[str, Any]:
        return {
            "owner_id": account.owner_id,
            "credits": account.credits,
            "suns": account.suns,
            "last_payout_at": account.last_payout_at,
        }
