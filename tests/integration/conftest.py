"""
Integration fixtures: a real PostgreSQL via testcontainers.

Overrides the SQLite `db` fixture so every engine-level fixture in the root
conftest runs against PostgreSQL in this directory. Skipped when Docker is
not reachable.
"""

from __future__ import annotations

from typing import AsyncGenerator, Generator

import pytest
import pytest_asyncio
from testcontainers.postgres import PostgresContainer

from meadow.core.database.service import DatabaseService
from meadow.core.logging.logger import get_logger

logger = get_logger(__name__)


@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """
    Start a PostgreSQL testcontainer.

    Scope: session (container persists across all tests)
    """
    logger.info("Starting PostgreSQL testcontainer...")
    container = PostgresContainer(image="postgres:17-alpine", driver="asyncpg")
    try:
        container.start()
    except Exception as exc:
        pytest.skip(f"PostgreSQL testcontainer unavailable: {exc}")

    logger.info("PostgreSQL testcontainer started: %s", container.get_connection_url())
    yield container

    logger.info("Stopping PostgreSQL testcontainer...")
    container.stop()


@pytest_asyncio.fixture
async def db(postgres_container) -> AsyncGenerator[DatabaseService, None]:
    """Clean schema per test."""
    service = DatabaseService(url=postgres_container.get_connection_url())
    await service.initialize()
    await service.drop_schema()
    await service.create_schema()
    yield service
    await service.drop_schema()
    await service.shutdown()
