"""
Ambient Sweep

Runs field upkeep (despawn, fade, new sun drops) for every owner on its own
cadence, independently of the spawn and income sweeps.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from meadow.core.scheduler.sweep import PeriodicSweep

if TYPE_CHECKING:
    from meadow.core.clock import Clock
    from meadow.modules.ambient.service import AmbientService


class AmbientSweep(PeriodicSweep[int]):
    def __init__(
        self,
        ambient_service: AmbientService,
        clock: Clock,
        interval_ms: Optional[int] = None,
        **kwargs,
    ) -> None:
        super().__init__(
            "ambient",
            clock,
            interval_ms or ambient_service.economy.sweep_interval_ms("ambient"),
            **kwargs,
        )
        self.ambient_service = ambient_service

    async def load_units(self, now: datetime) -> List[int]:
        return await self.ambient_service.owner_ids()

    async def process(self, unit: int, now: datetime) -> bool:
        outcome = await self.ambient_service.process_owner(unit, now)
        return outcome.changed
