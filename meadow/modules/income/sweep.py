"""
Income Sweep

Periodically settles passive income for every owner with at least one
exhibited creature. Owners are independent units; a lost compare-and-set
for one owner is picked up on the next iteration.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from meadow.core.scheduler.sweep import PeriodicSweep

if TYPE_CHECKING:
    from meadow.core.clock import Clock
    from meadow.modules.income.service import IncomeService


class IncomeSweep(PeriodicSweep[int]):
    def __init__(
        self,
        income_service: IncomeService,
        clock: Clock,
        interval_ms: Optional[int] = None,
        **kwargs,
    ) -> None:
        super().__init__(
            "income",
            clock,
            interval_ms or income_service.economy.sweep_interval_ms("income"),
            **kwargs,
        )
        self.income_service = income_service

    async def load_units(self, now: datetime) -> List[int]:
        return await self.income_service.owners_with_exhibits()

    async def process(self, unit: int, now: datetime) -> bool:
        credited = await self.income_service.process_owner_income(unit, now)
        return credited > 0
