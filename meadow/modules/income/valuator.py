"""
Decay Valuator

Binds the pure decay formulas to tier parameters and configured windows.
Everything here is recomputed from timestamps and the accrued discount on
every call; there is no stored countdown state to drift.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Iterable, Tuple

from meadow.modules.shared.formulas import countdown_remaining, elapsed_ms, linear_decay

if TYPE_CHECKING:
    from meadow.core.config.economy import EconomyConfig
    from meadow.modules.rarity.table import RarityTable


class DecayValuator:
    """
    Example:
        >>> valuator = DecayValuator(economy, rarity)
        >>> valuator.hourly_rate(7, placed_at, placed_at + timedelta(hours=36))
        55.0
    """

    def __init__(self, economy: EconomyConfig, rarity: RarityTable) -> None:
        self.economy = economy
        self.rarity = rarity

    def hourly_rate(self, rarity: int, placed_at: datetime, now: datetime) -> float:
        """Current income per hour of one exhibited creature."""
        tier = self.rarity.tier(rarity)
        return linear_decay(
            tier.income_start_per_hour,
            tier.income_floor_per_hour,
            self.economy.income_decay_window_ms,
            elapsed_ms(placed_at, now),
        )

    def total_rate(self, creatures: Iterable[Tuple[int, datetime]], now: datetime) -> float:
        """Sum of hourly rates for (rarity, placed_at) pairs."""
        return sum(self.hourly_rate(rarity, placed_at, now) for rarity, placed_at in creatures)

    def sell_remaining_ms(self, placed_at: datetime, discount_ms: int, now: datetime) -> int:
        return countdown_remaining(
            self.economy.sell_window_ms,
            elapsed_ms(placed_at, now),
            discount_ms,
        )

    def can_sell(self, placed_at: datetime, discount_ms: int, now: datetime) -> bool:
        return self.sell_remaining_ms(placed_at, discount_ms, now) == 0

    def sale_value(self, rarity: int) -> int:
        return self.rarity.tier(rarity).sale_value
