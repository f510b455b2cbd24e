"""
Base Repository Pattern

Purpose
-------
Type-safe, generic data access following SQLAlchemy 2.0 async patterns.
Repositories encapsulate queries; services own the business rules and the
transaction boundaries.

Design Notes
------------
This base repository provides:
- Single/multi-row lookups by condition
- Guarded bulk UPDATE/DELETE returning the affected row count, which is how
  services implement compare-and-set and "exactly one winner" collects
- Existence/counting utilities
- Structured debug logging

What this class does NOT do:
- Manage transactions (DatabaseService handles that)
- Contain business logic

Usage
-----
    class PlacedConsumableRepository(BaseRepository[PlacedConsumable]):
        async def due(self, session, now):
            return await self.find_many_where(
                session, PlacedConsumable.next_spawn_at <= now
            )
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, List, Optional, Type, TypeVar

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from meadow.core.exceptions import ConfigurationError

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")

# Dialects whose INSERT supports ON CONFLICT clauses
_CONFLICT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class BaseRepository(Generic[T]):
    """
    Generic base repository.

    Type Parameters:
        T: The SQLAlchemy model class this repository manages
    """

    def __init__(self, model_class: Type[T], logger: Logger) -> None:
        self.model_class = model_class
        self.log = logger

    @property
    def _name(self) -> str:
        return self.model_class.__name__

    async def get(self, session: AsyncSession, id_value: Any) -> Optional[T]:
        """Get a single record by primary key."""
        instance = await session.get(self.model_class, id_value)
        self.log.debug(
            f"Repository.get: {self._name}",
            extra={"model": self._name, "id": id_value, "found": instance is not None},
        )
        return instance

    async def find_one_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        for_update: bool = False,
    ) -> Optional[T]:
        """
        Find a single record matching conditions.

        Args:
            session: Database session
            *conditions: SQLAlchemy filter conditions
            for_update: If True, use SELECT FOR UPDATE (ignored by SQLite)
        """
        stmt = select(self.model_class).where(*conditions)
        if for_update:
            stmt = stmt.with_for_update()

        result = await session.execute(stmt)
        instance = result.scalar_one_or_none()

        self.log.debug(
            f"Repository.find_one_where: {self._name}",
            extra={"model": self._name, "found": instance is not None},
        )
        return instance

    async def find_many_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        order_by: Optional[Any] = None,
        limit: Optional[int] = None,
    ) -> List[T]:
        """
        Find multiple records matching conditions.

        Args:
            session: Database session
            *conditions: SQLAlchemy filter conditions
            order_by: Optional ordering column/expression, or a tuple of them
            limit: Optional maximum number of results
        """
        stmt = select(self.model_class).where(*conditions)
        if isinstance(order_by, (list, tuple)):
            stmt = stmt.order_by(*order_by)
        elif order_by is not None:
            stmt = stmt.order_by(order_by)
        if limit is not None:
            stmt = stmt.limit(limit)

        result = await session.execute(stmt)
        instances = list(result.scalars().all())

        self.log.debug(
            f"Repository.find_many_where: {self._name}",
            extra={"model": self._name, "found_count": len(instances), "limit": limit},
        )
        return instances

    async def scalars_where(
        self,
        session: AsyncSession,
        column: Any,
        *conditions: ColumnElement[bool],
    ) -> List[Any]:
        """Fetch one column for all matching rows."""
        result = await session.execute(select(column).where(*conditions))
        return list(result.scalars().all())

    async def exists(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> bool:
        return await self.count(session, *conditions) > 0

    async def count(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> int:
        stmt = select(func.count()).select_from(self.model_class).where(*conditions)
        result = await session.execute(stmt)
        count = result.scalar_one()

        self.log.debug(
            f"Repository.count: {self._name}",
            extra={"model": self._name, "count": count},
        )
        return count

    def add(self, session: AsyncSession, instance: T) -> T:
        session.add(instance)
        self.log.debug(f"Repository.add: {self._name}", extra={"model": self._name})
        return instance

    async def update_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        values: dict,
    ) -> int:
        """
        Issue a single guarded UPDATE and return the number of rows changed.

        A zero result means the guard did not hold (row gone or changed by a
        concurrent writer); callers decide what that means.
        """
        stmt = (
            update(self.model_class)
            .where(*conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)

        self.log.debug(
            f"Repository.update_where: {self._name}",
            extra={"model": self._name, "rowcount": result.rowcount},
        )
        return result.rowcount

    async def delete_where(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> int:
        """Issue a single DELETE and return the number of rows removed."""
        stmt = (
            delete(self.model_class)
            .where(*conditions)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)

        self.log.debug(
            f"Repository.delete_where: {self._name}",
            extra={"model": self._name, "rowcount": result.rowcount},
        )
        return result.rowcount

    def conflict_insert(self, session: AsyncSession) -> Any:
        """
        INSERT construct with `on_conflict_do_update` / `on_conflict_do_nothing`
        for the session's dialect.

        Raises:
            ConfigurationError: The dialect has no ON CONFLICT clause
        """
        dialect = session.get_bind().dialect.name
        factory = _CONFLICT_INSERTS.get(dialect)
        if factory is None:
            raise ConfigurationError(
                "DATABASE_URL", f"dialect '{dialect}' has no INSERT ... ON CONFLICT support"
            )
        return factory(self.model_class)

    async def flush(self, session: AsyncSession) -> None:
        await session.flush()
