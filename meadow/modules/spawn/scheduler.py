"""
Spawn Scheduler

One periodic sweep over every due placed consumable system-wide. Each
consumable is evaluated in its own transaction; the sweep runtime isolates
failures so one bad row never stalls the rest.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from meadow.core.scheduler.sweep import PeriodicSweep
from meadow.modules.shared.exceptions import InvariantViolation

if TYPE_CHECKING:
    from meadow.core.clock import Clock
    from meadow.modules.spawn.service import SpawnService


class SpawnScheduler(PeriodicSweep[int]):
    def __init__(
        self,
        spawn_service: SpawnService,
        clock: Clock,
        interval_ms: Optional[int] = None,
        **kwargs,
    ) -> None:
        super().__init__(
            "spawn",
            clock,
            interval_ms or spawn_service.economy.sweep_interval_ms("spawn"),
            **kwargs,
        )
        self.spawn_service = spawn_service

    async def load_units(self, now: datetime) -> List[int]:
        return await self.spawn_service.due_consumable_ids(now)

    async def process(self, unit: int, now: datetime) -> bool:
        outcome = await self.spawn_service.evaluate_consumable(unit, now)
        return outcome.spawned

    async def repair(self, unit: int, error: InvariantViolation) -> None:
        await self.spawn_service.force_exhaust(unit)
