"""
Rarity Table

Purpose
-------
Classify asset ids into rarity tiers and draw tiers and ids at random
according to the configured weights.

Responsibilities
----------------
- Deterministic id -> tier lookup, stable across restarts
- Weighted tier sampling via cumulative weights
- Uniform id draws within a tier's range
- Harvest-reward tier shifts and crafting tier averages

Design Notes
------------
- Built once from `EconomyConfig` and passed explicitly; there is no global
  table.
- Unmapped ids classify as the lowest tier instead of raising, so content
  outside the configured id space degrades gracefully.
- Every random operation takes a `random.Random`, which keeps draws
  reproducible under a seeded generator.
"""

from __future__ import annotations

import bisect
import random
from typing import Dict, Iterable, List, Sequence, Tuple, Union

from meadow.core.config.economy import EconomyConfig, TierSpec, validate_tiers
from meadow.database.models.enums import AssetKind
from meadow.modules.shared.exceptions import ValidationError
from meadow.modules.shared.formulas import average_ordinal, shifted_ordinal, weighted_index

RarityTier = TierSpec

KindLike = Union[AssetKind, str]


class RarityTable:
    """
    Immutable tier table.

    Example:
        >>> table = RarityTable.from_config(EconomyConfig.default())
        >>> table.classify(500).name
        'uncommon'
        >>> table.classify(99_999).name
        'common'
    """

    def __init__(
        self,
        tiers: Sequence[TierSpec],
        shift_up_probability: float = 0.15,
        shift_down_probability: float = 0.30,
    ) -> None:
        validate_tiers(tiers)
        self._tiers: Tuple[TierSpec, ...] = tuple(tiers)
        self._weights: Tuple[float, ...] = tuple(t.weight for t in self._tiers)
        self._total_weight: float = sum(self._weights)
        self._shift_up = shift_up_probability
        self._shift_down = shift_down_probability

        # Sorted range starts per kind for bisect lookups
        self._lows: Dict[AssetKind, List[int]] = {}
        for kind in (AssetKind.FLOWER, AssetKind.CREATURE):
            self._lows[kind] = [t.id_range(kind.value)[0] for t in self._tiers]

    @classmethod
    def from_config(cls, economy: EconomyConfig) -> "RarityTable":
        return cls(
            economy.tiers,
            shift_up_probability=economy.shift_up_probability,
            shift_down_probability=economy.shift_down_probability,
        )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def tiers(self) -> Tuple[TierSpec, ...]:
        return self._tiers

    @property
    def lowest(self) -> TierSpec:
        return self._tiers[0]

    @property
    def highest(self) -> TierSpec:
        return self._tiers[-1]

    @property
    def total_weight(self) -> float:
        return self._total_weight

    def tier(self, ordinal: int) -> TierSpec:
        """
        Tier by ordinal.

        Raises:
            ValidationError: If no tier has this ordinal
        """
        if isinstance(ordinal, bool) or not isinstance(ordinal, int):
            raise ValidationError("rarity", f"rarity must be an integer, got {ordinal!r}")
        if not 1 <= ordinal <= len(self._tiers):
            raise ValidationError(
                "rarity", f"rarity must be between 1 and {len(self._tiers)}, got {ordinal}"
            )
        return self._tiers[ordinal - 1]

    def id_range(self, tier: TierSpec, kind: KindLike) -> Tuple[int, int]:
        kind = AssetKind(kind)
        if not kind.ranged:
            return tier.ordinal, tier.ordinal
        return tier.id_range(kind.value)

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def classify(self, asset_id: int, kind: KindLike = AssetKind.CREATURE) -> TierSpec:
        """
        Tier of an asset id. Never raises for unmapped ids.

        Seeds and consumables are identified by their ordinal; flowers and
        creatures by range.
        """
        kind = AssetKind(kind)
        if not kind.ranged:
            if 1 <= asset_id <= len(self._tiers):
                return self._tiers[asset_id - 1]
            return self.lowest

        position = bisect.bisect_right(self._lows[kind], asset_id) - 1
        if position < 0:
            return self.lowest
        tier = self._tiers[position]
        low, high = tier.id_range(kind.value)
        if low <= asset_id <= high:
            return tier
        return self.lowest

    # ------------------------------------------------------------------
    # Sampling
    # ------------------------------------------------------------------

    def sample_tier(self, rng: random.Random) -> TierSpec:
        """
        Draw r in [0, total weight) and return the first tier reaching it.

        No engine operation draws an unconditioned tier today: garden and
        spawn draws start from a tier the owner chose or earned and only call
        `sample_asset_id` and `shift_tier`. This is the table's weighted roll
        for callers outside the engine loop, such as admin tooling seeding
        random grants, and is covered by the distribution tests in
        `tests/unit/test_rarity.py`.
        """
        roll = rng.random() * self._total_weight
        return self._tiers[weighted_index(self._weights, roll)]

    def sample_asset_id(
        self,
        tier: TierSpec,
        rng: random.Random,
        kind: KindLike = AssetKind.CREATURE,
    ) -> int:
        low, high = self.id_range(tier, kind)
        return rng.randint(low, high)

    def shift_tier(self, tier: TierSpec, rng: random.Random) -> TierSpec:
        """
        Move one tier up or down with the configured probabilities,
        clamped at both ends of the table.
        """
        ordinal = shifted_ordinal(
            tier.ordinal,
            rng.random(),
            self._shift_up,
            self._shift_down,
            self.lowest.ordinal,
            self.highest.ordinal,
        )
        return self._tiers[ordinal - 1]

    def average_tier(self, tiers: Iterable[TierSpec]) -> TierSpec:
        ordinal = average_ordinal([t.ordinal for t in tiers])
        ordinal = min(max(ordinal, self.lowest.ordinal), self.highest.ordinal)
        return self._tiers[ordinal - 1]
