"""
Database Service - Core Infrastructure Layer

Purpose
-------
Async database engine and session management for the Meadow engine.
Provides atomic transactions with commit/rollback discipline and converts
driver-level failures into the infrastructure exception hierarchy.

Responsibilities
----------------
- Own a single AsyncEngine and session factory per service instance
- Provide async context managers for read sessions and atomic transactions
- Commit on success, roll back on any exception
- Translate connection/driver errors into `TransientStoreError`
- Create and drop the schema (tests and first boot)
- Expose a lightweight health check

Non-Responsibilities
--------------------
- Domain logic or business rules
- Migrations (the schema is created from model metadata)
- Retry policies; sweeps retry on their next iteration

Architecture Notes
------------------
**Instances, not a singleton**:
The engine facade is handed a `DatabaseService` so tests can run each case
against its own SQLite file while production points at PostgreSQL.

**Transaction Model**:
- `get_transaction()` is the primary interface for all state mutations
- Never call `session.commit()` inside service code
- Concurrency control is done with compare-and-set UPDATEs and store-native
  atomic increments rather than long-held row locks

**Connection Pooling**:
- Pooled engine for PostgreSQL (pool_size / max_overflow / recycle / timeout)
- NullPool for SQLite and for the testing environment

Usage Example
-------------
>>> db = DatabaseService()
>>> await db.initialize()
>>> async with db.get_transaction() as session:
>>>     await InventoryService.acquire(session, owner_id, AssetKind.CREATURE, 512, 3)
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Optional

from sqlalchemy import event, text
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from meadow.core.config.config import Config
from meadow.core.database.base import Base
from meadow.core.exceptions import (
    DatabaseError,
    ErrorSeverity,
    TransientStoreError,
    get_error_severity,
)
from meadow.core.logging.logger import get_logger

logger = get_logger(__name__)

_SEVERITY_LEVELS = {
    ErrorSeverity.DEBUG: logging.DEBUG,
    ErrorSeverity.INFO: logging.INFO,
    ErrorSeverity.WARNING: logging.WARNING,
    ErrorSeverity.ERROR: logging.ERROR,
    ErrorSeverity.CRITICAL: logging.CRITICAL,
}


# ============================================================================
# Exceptions
# ============================================================================


class DatabaseInitializationError(RuntimeError):
    """Raised when database engine initialization fails."""


class DatabaseNotInitializedError(RuntimeError):
    """Raised when database operations are attempted before initialization."""


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # SQLite leaves foreign keys off per connection unless asked
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# ============================================================================
# Configuration Snapshot
# ============================================================================


@dataclass(frozen=True)
class DatabaseSettings:
    """
    Immutable snapshot of database configuration.

    Built from `Config` unless a URL is supplied explicitly.
    """

    url: str
    echo: bool = False
    pool_size: int = 10
    max_overflow: int = 10
    pool_recycle: int = 1800
    pool_timeout: int = 30
    statement_timeout_ms: int = 30_000
    use_null_pool: bool = False

    @property
    def is_postgres(self) -> bool:
        return self.url.startswith(("postgresql://", "postgresql+asyncpg://"))

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def url_scheme(self) -> str:
        return self.url.split(":", 1)[0] if ":" in self.url else "unknown"

    @classmethod
    def from_config(cls, url: Optional[str] = None) -> "DatabaseSettings":
        database_url = url or getattr(Config, "DATABASE_URL", None)
        if not database_url or not isinstance(database_url, str):
            raise DatabaseInitializationError(
                "DATABASE_URL must be configured as a non-empty string"
            )
        return cls(
            url=database_url,
            echo=bool(Config.DATABASE_ECHO),
            pool_size=int(Config.DATABASE_POOL_SIZE),
            max_overflow=int(Config.DATABASE_MAX_OVERFLOW),
            pool_recycle=int(Config.DATABASE_POOL_RECYCLE),
            pool_timeout=int(Config.DATABASE_POOL_TIMEOUT),
            statement_timeout_ms=int(Config.DATABASE_STATEMENT_TIMEOUT_MS),
            use_null_pool=Config.is_testing() or database_url.startswith("sqlite"),
        )


# ============================================================================
# DatabaseService
# ============================================================================


class DatabaseService:
    """
    Async engine and session management.

    Public API
    ----------
    - initialize() / shutdown()
    - create_schema() / drop_schema()
    - get_session() -> read access, no automatic commit
    - get_transaction() -> atomic write transaction (preferred)
    - health_check()
    - dialect_name
    """

    def __init__(
        self,
        url: Optional[str] = None,
        settings: Optional[DatabaseSettings] = None,
    ) -> None:
        self._settings_override = settings
        self._url = url
        self._settings: Optional[DatabaseSettings] = None
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None
        self._init_lock = asyncio.Lock()

    # ========================================================================
    # Initialization & Shutdown
    # ========================================================================

    async def initialize(self) -> None:
        """
        Create the engine and session factory. Idempotent.

        Raises
        ------
        DatabaseInitializationError
            If configuration is invalid or engine creation fails.
        """
        async with self._init_lock:
            if self._engine is not None:
                logger.debug("DatabaseService already initialized; skipping")
                return

            try:
                settings = self._settings_override or DatabaseSettings.from_config(
                    self._url
                )

                engine_kwargs: dict[str, Any] = {"echo": settings.echo}
                if settings.use_null_pool:
                    engine_kwargs["poolclass"] = NullPool
                else:
                    engine_kwargs.update(
                        pool_size=settings.pool_size,
                        max_overflow=settings.max_overflow,
                        pool_recycle=settings.pool_recycle,
                        pool_timeout=settings.pool_timeout,
                    )
                if settings.is_sqlite:
                    # Writers wait for the file lock instead of failing fast
                    engine_kwargs["connect_args"] = {"timeout": 30}

                self._engine = create_async_engine(settings.url, **engine_kwargs)
                if settings.is_sqlite:
                    event.listen(self._engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
                self._session_factory = async_sessionmaker(
                    bind=self._engine,
                    class_=AsyncSession,
                    expire_on_commit=False,
                )
                self._settings = settings

            except DatabaseInitializationError:
                logger.error("DATABASE_URL is not configured or invalid")
                raise
            except Exception as exc:
                logger.error(
                    "DatabaseService initialization failed",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )
                raise DatabaseInitializationError(
                    f"Database initialization failed: {exc}"
                ) from exc

            logger.info(
                "DatabaseService initialized",
                extra={
                    "url_scheme": settings.url_scheme,
                    "null_pool": settings.use_null_pool,
                },
            )

    async def shutdown(self) -> None:
        """Dispose the engine. Safe to call multiple times."""
        async with self._init_lock:
            if self._engine is None:
                return
            try:
                await self._engine.dispose()
                logger.info("DatabaseService shutdown complete")
            finally:
                self._engine = None
                self._session_factory = None
                self._settings = None

    async def create_schema(self) -> None:
        engine = self._require_engine()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema ensured", extra={"tables": len(Base.metadata.tables)})

    async def drop_schema(self) -> None:
        engine = self._require_engine()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    # ========================================================================
    # Introspection
    # ========================================================================

    @property
    def is_initialized(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> AsyncEngine:
        return self._require_engine()

    @property
    def dialect_name(self) -> str:
        return self._require_engine().dialect.name

    async def health_check(self) -> bool:
        """
        Run `SELECT 1`. Returns False instead of raising on failure.
        """
        if self._engine is None:
            logger.warning("Health check called on uninitialized DatabaseService")
            return False

        start = time.perf_counter()
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except (OperationalError, DBAPIError) as exc:
            logger.warning(
                "Database health check failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return False
        finally:
            logger.debug(
                "Database health check completed",
                extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
            )

    # ========================================================================
    # Session & Transaction Context Managers
    # ========================================================================

    def _require_engine(self) -> AsyncEngine:
        if self._engine is None or self._session_factory is None:
            logger.error("DatabaseService operation attempted before initialization")
            raise DatabaseNotInitializedError(
                "DatabaseService must be initialized before use. "
                "Call initialize() during startup."
            )
        return self._engine

    async def _apply_statement_timeout(self, session: AsyncSession) -> None:
        assert self._settings is not None
        if self._settings.is_postgres:
            await session.execute(
                text(f"SET LOCAL statement_timeout = {self._settings.statement_timeout_ms}")
            )

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Session without automatic commit, for reads.

        Uncommitted writes made through it are discarded on exit.
        """
        self._require_engine()
        assert self._session_factory is not None

        async with self._session_factory() as session:
            try:
                await self._apply_statement_timeout(session)
                yield session
            except (OperationalError, DBAPIError) as exc:
                raise TransientStoreError("read session", exc) from exc
            finally:
                await session.close()

    @asynccontextmanager
    async def get_transaction(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Session wrapped in an atomic transaction.

        On Success: commits.

        On Exception: rolls back, then
        - OperationalError and other driver errors become `TransientStoreError`
        - IntegrityError becomes `DatabaseError` (not retryable)
        - anything else (domain exceptions included) is re-raised unchanged
        """
        self._require_engine()
        assert self._session_factory is not None

        start = time.perf_counter()
        async with self._session_factory() as session:
            try:
                await self._apply_statement_timeout(session)
                yield session
                await session.commit()
                logger.debug(
                    "Database transaction committed",
                    extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
                )

            except IntegrityError as exc:
                await session.rollback()
                logger.error(
                    "IntegrityError in transaction; rolled back",
                    extra={"error": str(exc.orig), "error_type": type(exc).__name__},
                )
                raise DatabaseError("transaction", exc) from exc

            except (OperationalError, DBAPIError) as exc:
                await session.rollback()
                logger.warning(
                    "Store error in transaction; rolled back",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "duration_ms": (time.perf_counter() - start) * 1000.0,
                    },
                )
                raise TransientStoreError("transaction", exc) from exc

            except Exception as exc:
                await session.rollback()
                level = _SEVERITY_LEVELS[get_error_severity(exc)]
                logger.log(
                    level,
                    "Error in transaction; rolled back",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "duration_ms": (time.perf_counter() - start) * 1000.0,
                    },
                    exc_info=level >= logging.ERROR,
                )
                raise

            finally:
                await session.close()
