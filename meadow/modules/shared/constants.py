"""
Meadow Economy Constants

Purpose
-------
Built-in defaults for economy balance: rarity tiers, id ranges, timing
windows, spawn bounds and income curves. `EconomyConfig.default()` is built
from these values and an optional YAML file may override any of them.

IMPORTANT:
Nothing in the engine reads these directly at runtime. Services receive an
`EconomyConfig`, so tests and deployments can run with different balance
without monkeypatching module globals.

Design Notes
------------
- Values are annotated with typing.Final to signal immutability
- Durations are milliseconds
- Per-tier tuples are ordered lowest tier first
"""

from __future__ import annotations

from typing import Final, Tuple

SECOND_MS: Final[int] = 1_000
MINUTE_MS: Final[int] = 60 * SECOND_MS
HOUR_MS: Final[int] = 60 * MINUTE_MS

# ============================================================================
# RARITY TIERS
# ============================================================================

TIER_NAMES: Final[Tuple[str, ...]] = (
    "common",
    "uncommon",
    "rare",
    "super_rare",
    "epic",
    "legendary",
    "mythical",
)

# Relative probability mass; only proportions matter
TIER_WEIGHTS: Final[Tuple[float, ...]] = (45.0, 30.0, 15.0, 7.0, 2.5, 0.4, 0.1)

# Inclusive id ranges per asset kind
FLOWER_ID_RANGES: Final[Tuple[Tuple[int, int], ...]] = (
    (1, 55),
    (56, 100),
    (101, 135),
    (136, 160),
    (161, 180),
    (181, 195),
    (196, 200),
)

CREATURE_ID_RANGES: Final[Tuple[Tuple[int, int], ...]] = (
    (1, 443),
    (444, 743),
    (744, 843),
    (844, 918),
    (919, 963),
    (964, 988),
    (989, 1000),
)

# Seed-to-flower growth time per tier
MATURATION_WINDOWS_MS: Final[Tuple[int, ...]] = (
    75 * SECOND_MS,
    120 * SECOND_MS,
    180 * SECOND_MS,
    300 * SECOND_MS,
    450 * SECOND_MS,
    540 * SECOND_MS,
    600 * SECOND_MS,
)

# ============================================================================
# INCOME & SALES
# ============================================================================

INCOME_START_PER_HOUR: Final[Tuple[float, ...]] = (1, 2, 5, 10, 20, 50, 100)
INCOME_FLOOR_RATIO: Final[float] = 0.10  # floor = 10% of the starting rate
SALE_VALUES: Final[Tuple[int, ...]] = (10, 25, 50, 100, 200, 500, 1000)

INCOME_DECAY_WINDOW_MS: Final[int] = 72 * HOUR_MS
SELL_WINDOW_MS: Final[int] = 72 * HOUR_MS
LIKE_DISCOUNT_MS: Final[int] = MINUTE_MS

# ============================================================================
# FIELD GRID
# ============================================================================

GRID_WIDTH: Final[int] = 10
GRID_SIZE: Final[int] = 50

# ============================================================================
# SPAWNING
# ============================================================================

SPAWN_COUNT_RANGE: Final[Tuple[int, int]] = (2, 4)
SPAWN_DELAY_RANGE_MS: Final[Tuple[int, int]] = (1 * MINUTE_MS, 5 * MINUTE_MS)
CONSUMABLE_LIFETIME_MS: Final[int] = 72 * HOUR_MS
CREATURE_DESPAWN_MS: Final[int] = 72 * HOUR_MS

# Harvest reward shift probabilities; the remainder keeps the tier
SHIFT_UP_PROBABILITY: Final[float] = 0.15
SHIFT_DOWN_PROBABILITY: Final[float] = 0.30
SEED_DROP_QUANTITY_RANGE: Final[Tuple[int, int]] = (1, 4)

CRAFT_FLOWERS_REQUIRED: Final[int] = 3

# ============================================================================
# AMBIENT DROPS
# ============================================================================

AMBIENT_SPAWN_CHANCE: Final[float] = 0.25
AMBIENT_MAX_ACTIVE: Final[int] = 3
AMBIENT_AMOUNT_RANGE: Final[Tuple[int, int]] = (1, 3)
AMBIENT_LIFETIME_MS: Final[int] = 30 * MINUTE_MS

# ============================================================================
# SWEEP CADENCE
# ============================================================================

SPAWN_SWEEP_INTERVAL_MS: Final[int] = MINUTE_MS
INCOME_SWEEP_INTERVAL_MS: Final[int] = MINUTE_MS
AMBIENT_SWEEP_INTERVAL_MS: Final[int] = 30 * SECOND_MS
