"""
Economy configuration for Meadow.

Purpose
-------
Build the immutable `EconomyConfig` value that every engine component
receives explicitly. It is assembled once at process start from the
built-in defaults in `meadow.modules.shared.constants`, optionally overlaid
with a YAML file, validated, and never mutated afterwards.

Responsibilities
----------------
- Hold rarity tiers (weights, id ranges, maturation, income curve, sale value)
- Hold timing windows, spawn bounds, grid geometry and sweep cadence
- Accept both snake_case keys and the camelCase option names
  (`weights`, `ranges`, `decayWindowMs`, `sweepIntervalMs`, `spawnCountRange`)
- Reject inconsistent configuration with `ConfigurationError`

Non-Responsibilities
--------------------
- Process settings such as database URLs (see `meadow.core.config.config`)
- Runtime reloading; a new config means a new engine

YAML Example
------------
    weights: [45, 30, 15, 7, 2.5, 0.4, 0.1]
    ranges:
      creature: [[1, 443], [444, 743], ...]
    decayWindowMs: 259200000
    sweepIntervalMs:
      spawn: 60000
      ambient: 30000
    spawnCountRange: [2, 4]
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import yaml

from meadow.core.config.config import Config
from meadow.core.exceptions import ConfigurationError
from meadow.core.logging.logger import get_logger
from meadow.modules.shared import constants as C

logger = get_logger(__name__)

IdRange = Tuple[int, int]

RANGED_KINDS: Tuple[str, ...] = ("flower", "creature")
SWEEP_NAMES: Tuple[str, ...] = ("spawn", "income", "ambient")


# ============================================================================
# Value Types
# ============================================================================


@dataclass(frozen=True, slots=True)
class TierSpec:
    """One rarity tier as configured. Ordinals start at 1."""

    ordinal: int
    name: str
    weight: float
    flower_range: IdRange
    creature_range: IdRange
    maturation_window_ms: int
    income_start_per_hour: float
    income_floor_per_hour: float
    sale_value: int

    def id_range(self, kind: str) -> IdRange:
        if kind == "flower":
            return self.flower_range
        if kind == "creature":
            return self.creature_range
        raise ValueError(f"Asset kind '{kind}' has no id range")


@dataclass(frozen=True, slots=True)
class EconomyConfig:
    """
    Immutable economy balance.

    Build with `EconomyConfig.default()`, `EconomyConfig.from_mapping()` or
    `load_economy_config()`; tests use `dataclasses.replace()` on the default
    to tweak single values (validation runs again on every construction).
    """

    tiers: Tuple[TierSpec, ...]

    grid_width: int = C.GRID_WIDTH
    grid_size: int = C.GRID_SIZE

    spawn_count_range: IdRange = C.SPAWN_COUNT_RANGE
    spawn_delay_range_ms: IdRange = C.SPAWN_DELAY_RANGE_MS
    consumable_lifetime_ms: int = C.CONSUMABLE_LIFETIME_MS
    creature_despawn_ms: Optional[int] = C.CREATURE_DESPAWN_MS

    shift_up_probability: float = C.SHIFT_UP_PROBABILITY
    shift_down_probability: float = C.SHIFT_DOWN_PROBABILITY
    seed_drop_quantity_range: IdRange = C.SEED_DROP_QUANTITY_RANGE
    craft_flowers_required: int = C.CRAFT_FLOWERS_REQUIRED

    income_decay_window_ms: int = C.INCOME_DECAY_WINDOW_MS
    sell_window_ms: int = C.SELL_WINDOW_MS
    like_discount_ms: int = C.LIKE_DISCOUNT_MS

    ambient_spawn_chance: float = C.AMBIENT_SPAWN_CHANCE
    ambient_max_active: int = C.AMBIENT_MAX_ACTIVE
    ambient_amount_range: IdRange = C.AMBIENT_AMOUNT_RANGE
    ambient_lifetime_ms: int = C.AMBIENT_LIFETIME_MS

    sweep_intervals_ms: Tuple[Tuple[str, int], ...] = field(
        default=(
            ("spawn", C.SPAWN_SWEEP_INTERVAL_MS),
            ("income", C.INCOME_SWEEP_INTERVAL_MS),
            ("ambient", C.AMBIENT_SWEEP_INTERVAL_MS),
        )
    )

    def __post_init__(self) -> None:
        self.validate()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def sweep_interval_ms(self, name: str) -> int:
        for sweep_name, interval in self.sweep_intervals_ms:
            if sweep_name == name:
                return interval
        raise KeyError(name)

    def with_overrides(self, **changes: Any) -> "EconomyConfig":
        return replace(self, **changes)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self) -> None:
        validate_tiers(self.tiers)

        if self.grid_width <= 0 or self.grid_size <= 0:
            raise ConfigurationError("grid", "grid_width and grid_size must be positive")

        _require_range("spawn_count_range", self.spawn_count_range, minimum=0)
        _require_range("spawn_delay_range_ms", self.spawn_delay_range_ms, minimum=1)
        _require_range(
            "seed_drop_quantity_range", self.seed_drop_quantity_range, minimum=1
        )
        _require_range("ambient_amount_range", self.ambient_amount_range, minimum=1)

        for key in (
            "consumable_lifetime_ms",
            "income_decay_window_ms",
            "sell_window_ms",
            "ambient_lifetime_ms",
        ):
            if getattr(self, key) <= 0:
                raise ConfigurationError(key, "must be positive")

        if self.creature_despawn_ms is not None and self.creature_despawn_ms <= 0:
            raise ConfigurationError("creature_despawn_ms", "must be positive or null")
        if self.like_discount_ms < 0:
            raise ConfigurationError("like_discount_ms", "must not be negative")
        if self.craft_flowers_required <= 0:
            raise ConfigurationError("craft_flowers_required", "must be positive")
        if self.ambient_max_active < 0:
            raise ConfigurationError("ambient_max_active", "must not be negative")

        for key in ("shift_up_probability", "shift_down_probability", "ambient_spawn_chance"):
            value = getattr(self, key)
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(key, f"probability {value} outside [0, 1]")
        if self.shift_up_probability + self.shift_down_probability > 1.0:
            raise ConfigurationError(
                "shift_probabilities", "shift up + shift down must not exceed 1"
            )

        names = [name for name, _ in self.sweep_intervals_ms]
        if sorted(names) != sorted(SWEEP_NAMES):
            raise ConfigurationError(
                "sweep_interval_ms", f"expected intervals for {SWEEP_NAMES}, got {names}"
            )
        for name, interval in self.sweep_intervals_ms:
            if interval <= 0:
                raise ConfigurationError("sweep_interval_ms", f"{name} interval must be positive")

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def default(cls) -> "EconomyConfig":
        return cls.from_mapping({})

    @classmethod
    def from_mapping(cls, overrides: Mapping[str, Any]) -> "EconomyConfig":
        """
        Build a config from defaults overlaid with `overrides`.

        Raises:
            ConfigurationError: Unknown keys, malformed values or a result
                that fails validation.
        """
        normalized = _normalize_keys(overrides)

        per_tier: Dict[str, List[Any]] = {
            "tier_names": list(C.TIER_NAMES),
            "weights": list(C.TIER_WEIGHTS),
            "maturation_windows_ms": list(C.MATURATION_WINDOWS_MS),
            "income_start_per_hour": list(C.INCOME_START_PER_HOUR),
            "income_floor_per_hour": [
                start * C.INCOME_FLOOR_RATIO for start in C.INCOME_START_PER_HOUR
            ],
            "sale_values": list(C.SALE_VALUES),
        }
        ranges: Dict[str, List[IdRange]] = {
            "flower": list(C.FLOWER_ID_RANGES),
            "creature": list(C.CREATURE_ID_RANGES),
        }
        scalars: Dict[str, Any] = {}
        sweep_intervals = {
            "spawn": C.SPAWN_SWEEP_INTERVAL_MS,
            "income": C.INCOME_SWEEP_INTERVAL_MS,
            "ambient": C.AMBIENT_SWEEP_INTERVAL_MS,
        }

        floor_overridden = "income_floor_per_hour" in normalized

        for key, value in normalized.items():
            if key == "weights" and isinstance(value, Mapping):
                per_tier["weights"] = _weights_by_name(
                    value, normalized.get("tier_names", per_tier["tier_names"])
                )
            elif key in per_tier:
                per_tier[key] = _as_list(key, value)
            elif key == "ranges":
                ranges.update(_parse_ranges(value))
            elif key == "sweep_interval_ms":
                sweep_intervals.update(_parse_sweep_intervals(value))
            elif key in _SCALAR_FIELDS:
                scalars[key] = _coerce_scalar(key, value)
            else:
                raise ConfigurationError(key, "unknown economy option")

        if "income_start_per_hour" in normalized and not floor_overridden:
            per_tier["income_floor_per_hour"] = [
                start * C.INCOME_FLOOR_RATIO
                for start in per_tier["income_start_per_hour"]
            ]

        tier_count = len(per_tier["tier_names"])
        for key, values in per_tier.items():
            if len(values) != tier_count:
                raise ConfigurationError(
                    key, f"expected {tier_count} per-tier values, got {len(values)}"
                )
        for kind, kind_ranges in ranges.items():
            if len(kind_ranges) != tier_count:
                raise ConfigurationError(
                    f"ranges.{kind}",
                    f"expected {tier_count} ranges, got {len(kind_ranges)}",
                )

        tiers = tuple(
            TierSpec(
                ordinal=index + 1,
                name=str(per_tier["tier_names"][index]),
                weight=float(per_tier["weights"][index]),
                flower_range=ranges["flower"][index],
                creature_range=ranges["creature"][index],
                maturation_window_ms=int(per_tier["maturation_windows_ms"][index]),
                income_start_per_hour=float(per_tier["income_start_per_hour"][index]),
                income_floor_per_hour=float(per_tier["income_floor_per_hour"][index]),
                sale_value=int(per_tier["sale_values"][index]),
            )
            for index in range(tier_count)
        )

        return cls(
            tiers=tiers,
            sweep_intervals_ms=tuple(
                (name, int(sweep_intervals[name])) for name in SWEEP_NAMES
            ),
            **scalars,
        )

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "EconomyConfig":
        config_path = Path(path)
        if not config_path.is_file():
            raise ConfigurationError("ECONOMY_CONFIG_PATH", f"file not found: {config_path}")

        try:
            with config_path.open("r", encoding="utf-8") as handle:
                data = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError("ECONOMY_CONFIG_PATH", f"invalid YAML: {exc}") from exc

        if not isinstance(data, Mapping):
            raise ConfigurationError("ECONOMY_CONFIG_PATH", "top level must be a mapping")

        return cls.from_mapping(data)


# ============================================================================
# Validation Helpers
# ============================================================================


def validate_tiers(tiers: Sequence[TierSpec]) -> None:
    """
    Check the tier list is usable for classification and sampling.

    Weights must be positive. For each ranged asset kind the tier ranges must
    be well-formed, disjoint and contiguous, which makes them cover exactly
    `[first.low, last.high]`.
    """
    if not tiers:
        raise ConfigurationError("tiers", "at least one rarity tier is required")

    for expected, tier in enumerate(tiers, start=1):
        if tier.ordinal != expected:
            raise ConfigurationError("tiers", f"tier ordinals must be 1..n, got {tier.ordinal}")
        if not tier.weight > 0:
            raise ConfigurationError("weights", f"tier '{tier.name}' weight must be positive")
        if tier.maturation_window_ms < 0:
            raise ConfigurationError("maturation_windows_ms", f"tier '{tier.name}' is negative")
        if tier.income_floor_per_hour < 0 or tier.income_floor_per_hour > tier.income_start_per_hour:
            raise ConfigurationError(
                "income_floor_per_hour",
                f"tier '{tier.name}' floor must be within [0, start]",
            )
        if tier.sale_value < 0:
            raise ConfigurationError("sale_values", f"tier '{tier.name}' is negative")

    for kind in RANGED_KINDS:
        previous: Optional[IdRange] = None
        for tier in tiers:
            low, high = tier.id_range(kind)
            if low > high:
                raise ConfigurationError(
                    f"ranges.{kind}", f"tier '{tier.name}' range [{low}, {high}] is inverted"
                )
            if previous is not None and low != previous[1] + 1:
                problem = "overlaps" if low <= previous[1] else "leaves a gap after"
                raise ConfigurationError(
                    f"ranges.{kind}",
                    f"tier '{tier.name}' range [{low}, {high}] {problem} {list(previous)}",
                )
            previous = (low, high)


def _require_range(key: str, value: IdRange, minimum: int) -> None:
    low, high = value
    if low < minimum or low > high:
        raise ConfigurationError(key, f"expected {minimum} <= min <= max, got {list(value)}")


# ============================================================================
# Parsing Helpers
# ============================================================================

_SCALAR_FIELDS = {
    "grid_width": int,
    "grid_size": int,
    "spawn_count_range": tuple,
    "spawn_delay_range_ms": tuple,
    "consumable_lifetime_ms": int,
    "creature_despawn_ms": int,
    "shift_up_probability": float,
    "shift_down_probability": float,
    "seed_drop_quantity_range": tuple,
    "craft_flowers_required": int,
    "income_decay_window_ms": int,
    "sell_window_ms": int,
    "like_discount_ms": int,
    "ambient_spawn_chance": float,
    "ambient_max_active": int,
    "ambient_amount_range": tuple,
    "ambient_lifetime_ms": int,
}

# Short option names mapped onto the field they configure
_ALIASES = {
    "decay_window_ms": "income_decay_window_ms",
    "sweep_intervals_ms": "sweep_interval_ms",
    "names": "tier_names",
    "maturation_window_ms": "maturation_windows_ms",
    "sale_value": "sale_values",
}

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _normalize_keys(data: Mapping[str, Any]) -> Dict[str, Any]:
    normalized: Dict[str, Any] = {}
    for raw_key, value in data.items():
        key = _CAMEL_BOUNDARY.sub("_", str(raw_key)).lower()
        key = _ALIASES.get(key, key)
        if key in normalized:
            raise ConfigurationError(str(raw_key), "option given more than once")
        normalized[key] = value
    return normalized


def _as_list(key: str, value: Any) -> List[Any]:
    if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
        raise ConfigurationError(key, "expected a list with one value per tier")
    return list(value)


def _as_pair(key: str, value: Any) -> IdRange:
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)) and len(value) == 2:
        try:
            return int(value[0]), int(value[1])
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(key, f"expected two integers, got {value!r}") from exc
    raise ConfigurationError(key, f"expected [min, max], got {value!r}")


def _coerce_scalar(key: str, value: Any) -> Any:
    kind = _SCALAR_FIELDS[key]
    if kind is tuple:
        return _as_pair(key, value)
    if value is None and key == "creature_despawn_ms":
        return None
    try:
        return kind(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(key, f"expected {kind.__name__}, got {value!r}") from exc


def _weights_by_name(value: Mapping[str, Any], names: Sequence[str]) -> List[float]:
    unknown = set(value) - set(names)
    if unknown:
        raise ConfigurationError("weights", f"unknown tier names {sorted(unknown)}")
    missing = [name for name in names if name not in value]
    if missing:
        raise ConfigurationError("weights", f"missing weights for {missing}")
    return [float(value[name]) for name in names]


def _parse_ranges(value: Any) -> Dict[str, List[IdRange]]:
    # A bare list configures creature ids, the kind classification defaults to
    if isinstance(value, Mapping):
        parsed: Dict[str, List[IdRange]] = {}
        for kind, kind_ranges in value.items():
            if kind not in RANGED_KINDS:
                raise ConfigurationError("ranges", f"unknown asset kind '{kind}'")
            parsed[kind] = [
                _as_pair(f"ranges.{kind}", item) for item in _as_list("ranges", kind_ranges)
            ]
        return parsed
    return {
        "creature": [_as_pair("ranges", item) for item in _as_list("ranges", value)]
    }


def _parse_sweep_intervals(value: Any) -> Dict[str, int]:
    if isinstance(value, Mapping):
        unknown = set(value) - set(SWEEP_NAMES)
        if unknown:
            raise ConfigurationError("sweep_interval_ms", f"unknown sweeps {sorted(unknown)}")
        return {name: int(interval) for name, interval in value.items()}
    try:
        interval = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError("sweep_interval_ms", f"expected int, got {value!r}") from exc
    return {name: interval for name in SWEEP_NAMES}


# ============================================================================
# Process Entry Point
# ============================================================================


def load_economy_config(path: Optional[Union[str, Path]] = None) -> EconomyConfig:
    """
    Load the process-wide economy config.

    Uses `path`, else `Config.ECONOMY_CONFIG_PATH`, else built-in defaults.
    """
    source = path or Config.ECONOMY_CONFIG_PATH
    if source:
        economy = EconomyConfig.from_yaml(source)
    else:
        economy = EconomyConfig.default()

    logger.info(
        "Economy configuration loaded",
        extra={
            "source": str(source) if source else "defaults",
            "tiers": len(economy.tiers),
            "spawn_count_range": list(economy.spawn_count_range),
            "sweep_intervals_ms": dict(economy.sweep_intervals_ms),
        },
    )
    return economy
