"""
Configuration subsystem for Meadow.

Static vs Economy Configuration
-------------------------------
**Static (Config):**
- Loaded from environment variables at startup (.env supported)
- Database URL, pool sizes, logging switches, sweep parallelism

**Economy (EconomyConfig):**
- Built-in defaults optionally overlaid with a YAML file
- Rarity tiers, timing windows, spawn bounds, income curves
- Immutable; passed explicitly to every component that needs it
"""

from meadow.core.config.config import Config, Environment
from meadow.core.config.economy import (
    EconomyConfig,
    TierSpec,
    load_economy_config,
    validate_tiers,
)

__all__ = [
    "Config",
    "Environment",
    "EconomyConfig",
    "TierSpec",
    "load_economy_config",
    "validate_tiers",
]
