"""
Unit tests for EconomyConfig loading and validation.
"""

import pytest
import yaml

from meadow.core.config.economy import EconomyConfig, load_economy_config
from meadow.core.exceptions import ConfigurationError

VALID_CREATURE_RANGES = [[1, 100], [101, 200], [201, 300], [301, 400], [401, 500], [501, 600], [601, 700]]


def _write_yaml(tmp_path, data) -> str:
    path = tmp_path / "economy.yaml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return str(path)


class TestDefaults:
    def test_default_has_seven_tiers(self):
        economy = EconomyConfig.default()

        assert [t.name for t in economy.tiers][0] == "common"
        assert len(economy.tiers) == 7
        assert economy.tiers[-1].creature_range == (989, 1000)
        assert economy.sweep_interval_ms("ambient") == 30_000

    def test_floor_is_ten_percent_of_start(self):
        economy = EconomyConfig.default()
        assert economy.tiers[5].income_start_per_hour == 50
        assert economy.tiers[5].income_floor_per_hour == pytest.approx(5)


class TestYamlOverrides:
    """Option names may be camelCase or snake_case."""

    def test_camel_case_options(self, tmp_path):
        path = _write_yaml(
            tmp_path,
            {
                "weights": [50, 25, 15, 6, 3, 0.9, 0.1],
                "decayWindowMs": 3_600_000,
                "sweepIntervalMs": {"spawn": 1_000},
                "spawnCountRange": [1, 2],
                "ranges": VALID_CREATURE_RANGES,
            },
        )

        economy = load_economy_config(path)

        assert economy.tiers[0].weight == 50
        assert economy.income_decay_window_ms == 3_600_000
        assert economy.sweep_interval_ms("spawn") == 1_000
        assert economy.sweep_interval_ms("income") == 60_000
        assert economy.spawn_count_range == (1, 2)
        assert economy.tiers[1].creature_range == (101, 200)

    def test_weights_by_tier_name(self):
        economy = EconomyConfig.from_mapping(
            {
                "weights": {
                    "common": 1,
                    "uncommon": 1,
                    "rare": 1,
                    "super_rare": 1,
                    "epic": 1,
                    "legendary": 1,
                    "mythical": 5,
                }
            }
        )
        assert economy.tiers[-1].weight == 5

    def test_single_sweep_interval_applies_to_all(self):
        economy = EconomyConfig.from_mapping({"sweep_interval_ms": 5_000})
        assert dict(economy.sweep_intervals_ms) == {"spawn": 5_000, "income": 5_000, "ambient": 5_000}

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            EconomyConfig.from_yaml(tmp_path / "absent.yaml")


class TestValidation:
    def test_overlapping_ranges_rejected(self):
        ranges = [list(r) for r in VALID_CREATURE_RANGES]
        ranges[1][0] = 100
        with pytest.raises(ConfigurationError, match="overlaps"):
            EconomyConfig.from_mapping({"ranges": ranges})

    def test_gap_in_ranges_rejected(self):
        ranges = [list(r) for r in VALID_CREATURE_RANGES]
        ranges[2][0] = 205
        with pytest.raises(ConfigurationError, match="gap"):
            EconomyConfig.from_mapping({"ranges": {"creature": ranges}})

    def test_wrong_tier_count_rejected(self):
        with pytest.raises(ConfigurationError):
            EconomyConfig.from_mapping({"weights": [1, 2, 3]})

    def test_non_positive_weight_rejected(self):
        with pytest.raises(ConfigurationError):
            EconomyConfig.from_mapping({"weights": [45, 30, 15, 7, 2.5, 0.4, 0]})

    def test_unknown_option_rejected(self):
        with pytest.raises(ConfigurationError):
            EconomyConfig.from_mapping({"spawnCountRnage": [1, 2]})

    def test_overrides_are_revalidated(self):
        with pytest.raises(ConfigurationError):
            EconomyConfig.default().with_overrides(spawn_count_range=(4, 2))

    def test_shift_probabilities_bounded(self):
        with pytest.raises(ConfigurationError):
            EconomyConfig.from_mapping({"shift_up_probability": 0.8, "shift_down_probability": 0.5})
