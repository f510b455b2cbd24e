"""
Unit tests for the economy formulas.

Decay, countdowns, whole-minute accrual, weighted picks and tier shifts.
"""

from datetime import datetime, timedelta, timezone

import pytest

from meadow.modules.shared.constants import HOUR_MS
from meadow.modules.shared.formulas import (
    accrue_income,
    average_ordinal,
    countdown_remaining,
    elapsed_ms,
    linear_decay,
    shifted_ordinal,
    weighted_index,
)

T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)
WINDOW = 72 * HOUR_MS


class TestLinearDecay:
    """Rate falls linearly from start to floor over the window."""

    def test_starts_at_start_value(self):
        assert linear_decay(100, 10, WINDOW, 0) == 100

    def test_halfway(self):
        assert linear_decay(100, 10, WINDOW, WINDOW // 2) == pytest.approx(55.0)

    def test_clamped_at_floor_after_window(self):
        assert linear_decay(100, 10, WINDOW, WINDOW * 3) == 10

    def test_negative_elapsed_counts_as_zero(self):
        assert linear_decay(100, 10, WINDOW, -5_000) == 100

    def test_zero_window_is_floor(self):
        assert linear_decay(100, 10, 0, 0) == 10

    def test_monotonically_non_increasing(self):
        values = [linear_decay(20, 2, WINDOW, t) for t in range(0, WINDOW * 2, HOUR_MS)]
        assert all(a >= b for a, b in zip(values, values[1:]))


class TestCountdown:
    def test_discount_shortens_remaining(self):
        assert countdown_remaining(10_000, 4_000, 1_000) == 5_000

    def test_never_negative(self):
        assert countdown_remaining(10_000, 9_000, 5_000) == 0
        assert countdown_remaining(10_000, 12_000) == 0


class TestAccrueIncome:
    """Only whole minutes are paid; the anchor moves by exactly those minutes."""

    def test_ten_and_a_half_minutes_at_55_per_hour(self):
        accrual = accrue_income(55, T0, T0 + timedelta(minutes=10, seconds=30))

        assert accrual.minutes == 10
        assert accrual.credited == 9
        assert accrual.new_anchor == T0 + timedelta(minutes=10)

    def test_under_a_minute_pays_nothing(self):
        accrual = accrue_income(600, T0, T0 + timedelta(seconds=59))

        assert accrual.minutes == 0
        assert accrual.credited == 0
        assert accrual.new_anchor == T0

    def test_zero_rate_still_advances_anchor(self):
        accrual = accrue_income(0, T0, T0 + timedelta(minutes=5))

        assert accrual.credited == 0
        assert accrual.new_anchor == T0 + timedelta(minutes=5)

    def test_exact_rates_are_not_lost_to_rounding(self):
        assert accrue_income(60, T0, T0 + timedelta(minutes=7)).credited == 7


class TestWeightedIndex:
    def test_boundaries(self):
        weights = [45, 30, 15]
        assert weighted_index(weights, 0.0) == 0
        assert weighted_index(weights, 44.9) == 0
        assert weighted_index(weights, 45.1) == 1
        assert weighted_index(weights, 89.99) == 2

    def test_roll_past_total_resolves_to_last(self):
        assert weighted_index([1, 1], 5.0) == 1


class TestShiftedOrdinal:
    @pytest.mark.parametrize(
        "roll, expected",
        [(0.0, 4), (0.149, 4), (0.15, 2), (0.449, 2), (0.45, 3), (0.99, 3)],
    )
    def test_roll_bands(self, roll, expected):
        assert shifted_ordinal(3, roll, 0.15, 0.30, 1, 7) == expected

    def test_clamped_at_both_ends(self):
        assert shifted_ordinal(1, 0.20, 0.15, 0.30, 1, 7) == 1
        assert shifted_ordinal(7, 0.05, 0.15, 0.30, 1, 7) == 7


class TestAverageOrdinal:
    def test_rounds_half_up(self):
        assert average_ordinal([1, 2]) == 2
        assert average_ordinal([1, 1, 2]) == 1
        assert average_ordinal([1, 2, 2]) == 2

    def test_empty_rejected(self):
        with pytest.raises(ValueError):
            average_ordinal([])


def test_elapsed_ms_is_signed():
    assert elapsed_ms(T0, T0 + timedelta(seconds=1, microseconds=2500)) == 1002
    assert elapsed_ms(T0 + timedelta(seconds=1), T0) == -1000
