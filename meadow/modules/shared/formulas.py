"""
Meadow Economy Formulas

Purpose
-------
Pure calculation functions for the economy: value decay, countdowns with
discounts, whole-minute income accrual, weighted picks and tier shifts.

Design Notes
------------
All formulas:
- Accept parameters explicitly (no config, clock or database access)
- Are deterministic; randomness arrives as an already-drawn roll
- Are recomputed from timestamps on every call, so repeating a calculation
  never changes its result

Usage
-----
    from meadow.modules.shared.formulas import linear_decay

    rate = linear_decay(100, 10, window_ms=72 * HOUR_MS, elapsed_ms=36 * HOUR_MS)
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Sequence

MINUTE = timedelta(minutes=1)


def linear_decay(start: float, floor: float, window_ms: int, elapsed_ms: int) -> float:
    """
    Value of a linearly decaying quantity after `elapsed_ms`.

    value(t) = max(floor, start - (start - floor) * min(t, D) / D)

    Negative elapsed time is treated as zero; a zero window means the value
    is already at its floor.

    Example:
        >>> linear_decay(100, 10, window_ms=72 * 3_600_000, elapsed_ms=36 * 3_600_000)
        55.0
        >>> linear_decay(100, 10, window_ms=1000, elapsed_ms=5000)
        10.0
    """
    if window_ms <= 0:
        return float(floor)
    t = min(max(elapsed_ms, 0), window_ms)
    return max(float(floor), start - (start - floor) * t / window_ms)


def countdown_remaining(window_ms: int, elapsed_ms: int, discount_ms: int = 0) -> int:
    """
    Milliseconds left on a countdown shortened by an accrued discount.

    remaining(t) = max(0, D - t - discount)

    Example:
        >>> countdown_remaining(10_000, 4_000, 1_000)
        5000
        >>> countdown_remaining(10_000, 12_000)
        0
    """
    return max(0, window_ms - max(elapsed_ms, 0) - max(discount_ms, 0))


@dataclass(frozen=True)
class IncomeAccrual:
    """Result of settling income over whole elapsed minutes."""

    minutes: int
    credited: int
    new_anchor: datetime


def accrue_income(rate_per_hour: float, last_payout_at: datetime, now: datetime) -> IncomeAccrual:
    """
    Settle income for the whole minutes elapsed since `last_payout_at`.

    credited = floor(rate_per_hour * minutes / 60)
    new_anchor = last_payout_at + minutes (exactly; leftover seconds carry over)

    Example:
        >>> from datetime import timezone
        >>> t0 = datetime(2025, 1, 1, tzinfo=timezone.utc)
        >>> accrue_income(55, t0, t0 + timedelta(minutes=10, seconds=30)).credited
        9
    """
    elapsed = now - last_payout_at
    if elapsed < MINUTE:
        return IncomeAccrual(minutes=0, credited=0, new_anchor=last_payout_at)

    minutes = elapsed // MINUTE
    # Multiply before dividing so exact rates stay exact
    credited = math.floor(rate_per_hour * minutes / 60)
    return IncomeAccrual(
        minutes=minutes,
        credited=max(credited, 0),
        new_anchor=last_payout_at + minutes * MINUTE,
    )


def weighted_index(weights: Sequence[float], roll: float) -> int:
    """
    Index of the first weight whose cumulative sum reaches `roll`.

    `roll` is expected in [0, sum(weights)). Rolls at or beyond the total
    resolve to the last index.

    Example:
        >>> weighted_index([45, 30, 15], 44.9)
        0
        >>> weighted_index([45, 30, 15], 45.1)
        1
    """
    cumulative = 0.0
    for index, weight in enumerate(weights):
        cumulative += weight
        if roll <= cumulative:
            return index
    return len(weights) - 1


def shifted_ordinal(
    ordinal: int,
    roll: float,
    up_probability: float,
    down_probability: float,
    lowest: int,
    highest: int,
) -> int:
    """
    Shift a tier ordinal by at most one step according to `roll` in [0, 1).

    [0, up) shifts up, [up, up + down) shifts down, anything else keeps the
    ordinal. The result is clamped to [lowest, highest].

    Example:
        >>> shifted_ordinal(3, 0.10, 0.15, 0.30, 1, 7)
        4
        >>> shifted_ordinal(1, 0.20, 0.15, 0.30, 1, 7)
        1
    """
    if roll < up_probability:
        ordinal += 1
    elif roll < up_probability + down_probability:
        ordinal -= 1
    return min(max(ordinal, lowest), highest)


def average_ordinal(ordinals: Sequence[int]) -> int:
    """
    Rounded mean of tier ordinals, halves rounding up.

    Example:
        >>> average_ordinal([1, 2, 2])
        2
        >>> average_ordinal([1, 1, 2])
        1
        >>> average_ordinal([1, 2])
        2
    """
    if not ordinals:
        raise ValueError("average_ordinal needs at least one ordinal")
    return math.floor(sum(ordinals) / len(ordinals) + 0.5)


def elapsed_ms(start: datetime, end: datetime) -> int:
    """Whole milliseconds between two instants (negative if end precedes start)."""
    delta = end - start
    return (delta.days * 86_400 + delta.seconds) * 1000 + delta.microseconds // 1000
