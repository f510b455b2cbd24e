"""
Unit tests for PeriodicSweep: per-unit error policy, repair and lifecycle.
"""

import asyncio

import pytest

from meadow.core.exceptions import TransientStoreError
from meadow.core.scheduler import PeriodicSweep
from meadow.modules.shared.exceptions import InvariantViolation, NotReadyError, ValidationError


class ScriptedSweep(PeriodicSweep[str]):
    """Units are names; behaviour per unit comes from a script."""

    def __init__(self, clock, script, **kwargs):
        super().__init__("scripted", clock, kwargs.pop("interval_ms", 10), **kwargs)
        self.script = script
        self.repaired_units = []
        self.calls = 0

    async def load_units(self, now):
        return list(self.script)

    async def process(self, unit, now):
        self.calls += 1
        action = self.script[unit]
        if isinstance(action, BaseException):
            raise action
        return action

    async def repair(self, unit, error):
        self.repaired_units.append(unit)


class TestErrorPolicy:
    async def test_outcomes_are_counted(self, clock):
        sweep = ScriptedSweep(
            clock,
            {
                "changed": True,
                "idle": False,
                "busy": NotReadyError("spawn"),
                "flaky": TransientStoreError("spawn", RuntimeError("locked")),
                "broken": InvariantViolation("PlacedConsumable", 9, "count too high"),
                "bug": KeyError("boom"),
            },
        )

        report = await sweep.run_once()

        assert report.processed == 6
        assert report.succeeded == 1
        assert report.skipped == 2
        assert report.failed == 3
        assert report.repaired == 1
        assert sweep.repaired_units == ["broken"]
        assert sorted(report.errors) == ["INVARIANT_VIOLATION", "KeyError", "TRANSIENT_STORE_ERROR"]

    async def test_one_bad_unit_does_not_stop_others(self, clock):
        sweep = ScriptedSweep(clock, {"a": RuntimeError("x"), "b": True, "c": True})

        report = await sweep.run_once()

        assert report.succeeded == 2
        assert sweep.iterations == 1
        assert sweep.last_report is report

    async def test_report_uses_one_timestamp(self, clock):
        sweep = ScriptedSweep(clock, {})

        report = await sweep.trigger()

        assert report.started_at == clock.now()
        assert report.to_dict()["name"] == "scripted"


class TestLifecycle:
    def test_interval_must_be_positive(self, clock):
        with pytest.raises(ValueError):
            ScriptedSweep(clock, {}, interval_ms=0)

    async def test_start_runs_iterations_until_stopped(self, clock):
        sweep = ScriptedSweep(clock, {"a": True}, shutdown_timeout=2)

        await sweep.start()
        await sweep.start()
        assert sweep.is_running
        await asyncio.sleep(0.1)
        await sweep.stop()

        assert not sweep.is_running
        assert sweep.iterations >= 2

    async def test_stop_cancels_iteration_past_timeout(self, clock):
        class SlowSweep(ScriptedSweep):
            async def process(self, unit, now):
                await asyncio.sleep(10)
                return True

        sweep = SlowSweep(clock, {"a": True}, shutdown_timeout=0.05)
        await sweep.start()
        await asyncio.sleep(0.01)

        await sweep.stop()

        assert not sweep.is_running
        assert sweep.iterations == 0

    async def test_stop_without_start(self, clock):
        await ScriptedSweep(clock, {}).stop()


class TestEngineTrigger:
    async def test_rejects_unknown_sweep(self, engine):
        with pytest.raises(ValidationError):
            await engine.trigger_sweep("weather")

    async def test_trigger_all_runs_each_sweep_once(self, engine, mocker):
        spies = {name: mocker.spy(sweep, "run_once") for name, sweep in engine.sweeps.items()}

        reports = await engine.trigger_sweep()

        assert list(reports) == ["spawn", "income", "ambient"]
        assert {name: spy.call_count for name, spy in spies.items()} == {
            "spawn": 1,
            "income": 1,
            "ambient": 1,
        }
