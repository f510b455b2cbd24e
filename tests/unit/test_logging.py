"""
Unit tests for the logging subsystem: LogContext propagation, the context
filter and queue health.
"""

import asyncio
import logging

from meadow.core.logging.logger import (
    ContextFilter,
    LogContext,
    get_log_context,
    get_logging_health,
)


def _record(**extra):
    record = logging.LogRecord("meadow.test", logging.INFO, __file__, 1, "msg", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestLogContext:
    def test_nested_context_inherits_and_restores(self):
        with LogContext(component="spawn_sweep") as outer:
            with LogContext(owner_id=7, operation="collect_creature"):
                inner = get_log_context()
            after = get_log_context()

        assert inner["component"] == "spawn_sweep"
        assert inner["owner_id"] == "7"
        assert inner["correlation_id"] == outer.context["correlation_id"]
        assert "owner_id" not in after
        assert get_log_context() == {}

    async def test_context_is_task_local(self):
        seen = {}

        async def worker(owner_id):
            async with LogContext(owner_id=owner_id):
                await asyncio.sleep(0)
                seen[owner_id] = get_log_context()["owner_id"]

        await asyncio.gather(worker(1), worker(2))

        assert seen == {1: "1", 2: "2"}


class TestContextFilter:
    def test_record_gets_ambient_context(self):
        with LogContext(owner_id=42, operation="sell_creature", correlation_id="abc123"):
            record = _record()
            ContextFilter().filter(record)

        assert record.owner_id == "42"
        assert record.operation == "sell_creature"
        assert record.correlation_id == "abc123"
        assert record.component == "test"

    def test_explicit_extra_wins(self):
        with LogContext(owner_id=42):
            record = _record(owner_id="99")
            ContextFilter().filter(record)

        assert record.owner_id == "99"


def test_logging_health_reports_pipeline():
    health = get_logging_health()

    assert health.initialized
    assert health.queue_max_size > 0
