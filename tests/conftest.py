"""
Pytest Configuration and Fixtures for Meadow Tests
==================================================

Purpose
-------
Centralized fixtures for the Meadow test suite: a throwaway database per
test, a manually advanced clock, a seeded random generator and a wired
`EconomyEngine`.

Architecture Notes
------------------
- Unit tests run against a temporary SQLite file (aiosqlite), one per test
- Integration tests start PostgreSQL with testcontainers and are skipped
  when Docker is unavailable
- Environment flags are set before `meadow` is imported so that `Config`
  loads in testing mode and never writes log files
"""

from __future__ import annotations

import os
import random
from datetime import datetime, timezone
from typing import AsyncGenerator

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

import pytest
import pytest_asyncio

from meadow.core.clock import VirtualClock
from meadow.core.config.economy import EconomyConfig
from meadow.core.database.service import DatabaseService
from meadow.modules.economy import EconomyEngine

T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


def pytest_collection_modifyitems(config, items):
    """Mark everything outside tests/integration as a unit test."""
    for item in items:
        if "integration" not in item.keywords:
            item.add_marker(pytest.mark.unit)


# ============================================================================
# CORE FIXTURES
# ============================================================================


@pytest.fixture
def economy() -> EconomyConfig:
    return EconomyConfig.default()


@pytest.fixture
def clock() -> VirtualClock:
    return VirtualClock(T0)


@pytest.fixture
def rng() -> random.Random:
    return random.Random(20250101)


# ============================================================================
# DATABASE FIXTURES
# ============================================================================


@pytest_asyncio.fixture
async def db(tmp_path) -> AsyncGenerator[DatabaseService, None]:
    """
    Fresh SQLite database file with the full schema.

    Scope: function (clean slate per test)
    """
    service = DatabaseService(url=f"sqlite+aiosqlite:///{tmp_path / 'meadow.db'}")
    await service.initialize()
    await service.create_schema()
    yield service
    await service.shutdown()


@pytest_asyncio.fixture
async def engine(db, economy, clock, rng) -> AsyncGenerator[EconomyEngine, None]:
    meadow_engine = EconomyEngine(db, economy, clock, rng, shutdown_timeout=5)
    yield meadow_engine
    await meadow_engine.stop()


@pytest.fixture
def make_engine(db, clock, rng):
    """Build an engine over the shared database with economy overrides."""

    def _make(**overrides) -> EconomyEngine:
        economy = EconomyConfig.default().with_overrides(**overrides)
        return EconomyEngine(db, economy, clock, rng, shutdown_timeout=5)

    return _make


@pytest_asyncio.fixture
async def owner(engine) -> int:
    owner_id = 1001
    await engine.register_owner(owner_id)
    return owner_id
