"""
PeriodicSweep: long-lived evaluation loop for the Meadow engine.

Purpose
-------
Run one evaluation pass ("sweep") over every eligible unit of work at a
fixed cadence, with explicit lifecycle control. Spawn, income and ambient
processing are each one subclass.

Responsibilities
----------------
- Own exactly one background task per sweep, started with `start()` and
  stopped with `stop()`
- Serialize iterations: a manual `trigger()` waits for the running
  iteration instead of overlapping it
- Process units concurrently up to `max_concurrency`
- Isolate failures per unit; one unit never stalls or aborts the rest
- Report what each iteration did (`SweepReport`)

Design Decisions
----------------
- **One loop per sweep, no per-entity timers**: timing precision is one
  interval, resource usage is independent of entity count.
- **Injectable clock**: every iteration reads `now` once from the clock and
  hands it to all units, so a `VirtualClock` drives sweeps deterministically.
- **Graceful shutdown**: `stop()` sets the stop event, waits for the
  in-flight iteration up to `shutdown_timeout`, and only then cancels.
- **Per-unit error policy**:
    - TransientStoreError -> warning, retried next iteration
    - InvariantViolation -> error, then `repair()` for that unit
    - ConflictError -> debug, counted as skipped
    - anything else -> warning if retryable, otherwise logged with
      traceback at its severity

Dependencies
------------
- asyncio (stdlib)
- meadow.core.clock (time source)
- meadow.core.logging (LogContext per iteration)
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Generic, List, Optional, Sequence, TypeVar

from meadow.core.config.config import Config
from meadow.core.exceptions import TransientStoreError, is_transient_error, should_alert
from meadow.core.logging.logger import LogContext, get_logger
from meadow.modules.shared.exceptions import ConflictError, InvariantViolation

if TYPE_CHECKING:
    from meadow.core.clock import Clock

logger = get_logger(__name__)

U = TypeVar("U")


@dataclass
class SweepReport:
    """Outcome counters of one sweep iteration."""

    name: str
    started_at: datetime
    processed: int = 0
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0
    repaired: int = 0
    duration_ms: float = 0.0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class PeriodicSweep(Generic[U]):
    """
    Base class for periodic sweeps.

    Subclasses implement:
    - `load_units(now)` -> the units due in this iteration
    - `process(unit, now)` -> True if the unit changed state, False if it
      was evaluated and had nothing to do
    - optionally `repair(unit, error)` for invariant violations

    Examples
    --------
    >>> sweep = SpawnScheduler(spawn_service, clock, interval_ms=60_000)
    >>> await sweep.start()
    >>> report = await sweep.trigger()
    >>> await sweep.stop()
    """

    def __init__(
        self,
        name: str,
        clock: Clock,
        interval_ms: int,
        *,
        max_concurrency: Optional[int] = None,
        shutdown_timeout: Optional[float] = None,
    ) -> None:
        if interval_ms <= 0:
            raise ValueError(f"Sweep interval must be positive, got {interval_ms}")

        self.name = name
        self.clock = clock
        self.interval_ms = interval_ms
        self.max_concurrency = max_concurrency or Config.SWEEP_MAX_CONCURRENCY
        self.shutdown_timeout = (
            shutdown_timeout if shutdown_timeout is not None else Config.SWEEP_SHUTDOWN_TIMEOUT
        )

        self._task: Optional[asyncio.Task[None]] = None
        self._stop_event = asyncio.Event()
        self._iteration_lock = asyncio.Lock()

        self.iterations = 0
        self.last_report: Optional[SweepReport] = None

    # ========================================================================
    # Subclass hooks
    # ========================================================================

    async def load_units(self, now: datetime) -> Sequence[U]:
        raise NotImplementedError

    async def process(self, unit: U, now: datetime) -> bool:
        raise NotImplementedError

    async def repair(self, unit: U, error: InvariantViolation) -> None:
        """Bring a unit back to a consistent state. Default: nothing."""

    # ========================================================================
    # Lifecycle
    # ========================================================================

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the background loop. No-op if already running."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._task = asyncio.create_task(self._run_loop(), name=f"sweep:{self.name}")
        logger.info(
            f"Sweep '{self.name}' started",
            extra={"sweep": self.name, "interval_ms": self.interval_ms},
        )

    async def stop(self) -> None:
        """
        Stop the loop after the in-flight iteration finishes.

        Cancels only if the iteration outlives `shutdown_timeout`.
        """
        if self._task is None:
            return

        self._stop_event.set()
        task = self._task
        try:
            await asyncio.wait_for(asyncio.shield(task), timeout=self.shutdown_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"Sweep '{self.name}' did not finish within shutdown timeout; cancelling",
                extra={"sweep": self.name, "shutdown_timeout": self.shutdown_timeout},
            )
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        self._task = None
        logger.info(
            f"Sweep '{self.name}' stopped",
            extra={"sweep": self.name, "iterations": self.iterations},
        )

    async def trigger(self) -> SweepReport:
        """Run one iteration now (administrative/manual)."""
        return await self.run_once()

    # ========================================================================
    # Iteration
    # ========================================================================

    async def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self.run_once()
            except Exception as exc:
                # Loading units failed; the next iteration retries
                logger.error(
                    f"Sweep '{self.name}' iteration failed",
                    extra={"sweep": self.name, "error_type": type(exc).__name__},
                    exc_info=True,
                )

            try:
                await asyncio.wait_for(
                    self._stop_event.wait(),
                    timeout=self.interval_ms / 1000.0,
                )
            except asyncio.TimeoutError:
                pass

    async def run_once(self) -> SweepReport:
        async with self._iteration_lock:
            async with LogContext(component=f"{self.name}_sweep"):
                start = time.perf_counter()
                now = self.clock.now()
                report = SweepReport(name=self.name, started_at=now)

                units = await self.load_units(now)
                semaphore = asyncio.Semaphore(self.max_concurrency)
                await asyncio.gather(
                    *(self._run_unit(unit, now, report, semaphore) for unit in units)
                )

                report.duration_ms = (time.perf_counter() - start) * 1000.0
                self.iterations += 1
                self.last_report = report

                log = logger.info if report.processed else logger.debug
                log(
                    f"Sweep '{self.name}' iteration complete",
                    extra={
                        "sweep": self.name,
                        "processed": report.processed,
                        "succeeded": report.succeeded,
                        "skipped": report.skipped,
                        "failed": report.failed,
                        "duration_ms": report.duration_ms,
                    },
                )
                return report

    async def _run_unit(
        self,
        unit: U,
        now: datetime,
        report: SweepReport,
        semaphore: asyncio.Semaphore,
    ) -> None:
        async with semaphore:
            report.processed += 1
            try:
                changed = await self.process(unit, now)
            except TransientStoreError as exc:
                report.failed += 1
                report.errors.append(exc.error_code)
                logger.warning(
                    f"Transient store error in sweep '{self.name}'; retrying next iteration",
                    extra={"sweep": self.name, "unit": repr(unit), "error": str(exc)},
                )
                return
            except InvariantViolation as exc:
                report.failed += 1
                report.errors.append(exc.error_code)
                logger.error(
                    f"Invariant violation in sweep '{self.name}'",
                    extra={"sweep": self.name, "unit": repr(unit), **exc.details},
                )
                await self._repair(unit, exc, report)
                return
            except ConflictError as exc:
                report.skipped += 1
                logger.debug(
                    f"Conflict in sweep '{self.name}'; skipped",
                    extra={"sweep": self.name, "unit": repr(unit), "error_code": exc.error_code},
                )
                return
            except Exception as exc:
                report.failed += 1
                report.errors.append(type(exc).__name__)
                if is_transient_error(exc):
                    logger.warning(
                        f"Retryable error in sweep '{self.name}'; retrying next iteration",
                        extra={"sweep": self.name, "unit": repr(unit), "error": str(exc)},
                    )
                    return
                logger.log(
                    logging.ERROR if should_alert(exc) else logging.WARNING,
                    f"Unexpected error in sweep '{self.name}'",
                    extra={"sweep": self.name, "unit": repr(unit), "error_type": type(exc).__name__},
                    exc_info=True,
                )
                return

            if changed:
                report.succeeded += 1
            else:
                report.skipped += 1

    async def _repair(self, unit: U, error: InvariantViolation, report: SweepReport) -> None:
        try:
            await self.repair(unit, error)
        except Exception:
            logger.error(
                f"Repair failed in sweep '{self.name}'",
                extra={"sweep": self.name, "unit": repr(unit)},
                exc_info=True,
            )
            return
        report.repaired += 1
