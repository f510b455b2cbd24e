"""
Base Service Foundation

Purpose
-------
Foundation class for all domain services in Meadow. Services implement
business logic, open transactions through `DatabaseService`, enforce rules
and raise domain exceptions.

Design Notes
------------
This base class provides:
- Structured logging with operation context
- Typed access to the immutable `EconomyConfig`
- Input validation helpers that raise `ValidationError`

What this class does NOT do:
- Own the engine or sessions (that is DatabaseService's job)
- Read the wall clock; callers pass `now` so sweeps and tests control time

Usage
-----
    class GardenService(BaseService):
        def __init__(self, db, economy, rarity, inventory, occupancy, rng):
            super().__init__(economy, get_logger(__name__))
            self.db = db
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from meadow.core.exceptions import ConfigurationError

from .exceptions import ValidationError

if TYPE_CHECKING:
    from logging import Logger

    from meadow.core.config.economy import EconomyConfig


class BaseService:
    """
    Base class for all domain services.

    Args:
        economy: Immutable economy configuration
        logger: Structured logger instance
    """

    def __init__(self, economy: EconomyConfig, logger: Logger) -> None:
        self.economy = economy
        self.log = logger

    def get_config(self, key: str) -> Any:
        """
        Read one economy setting by name.

        Raises:
            ConfigurationError: If the setting does not exist
        """
        try:
            return getattr(self.economy, key)
        except AttributeError as exc:
            raise ConfigurationError(key, "unknown economy setting") from exc

    def log_operation(self, operation: str, **context: Any) -> None:
        self.log.info(
            f"Service operation: {operation}",
            extra={"operation_name": operation, **context},
        )

    def log_error(self, operation: str, error: Exception, **context: Any) -> None:
        self.log.error(
            f"Service error during {operation}: {error}",
            extra={
                "operation_name": operation,
                "error_type": type(error).__name__,
                "error_message": str(error),
                **context,
            },
        )

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    def validate_positive_int(self, value: int, name: str) -> None:
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ValidationError(name, f"{name} must be a positive integer, got {value!r}")

    def validate_non_negative_int(self, value: int, name: str) -> None:
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValidationError(
                name, f"{name} must be a non-negative integer, got {value!r}"
            )

    def validate_range(self, value: int, name: str, min_val: int, max_val: int) -> None:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(name, f"{name} must be an integer, got {value!r}")
        if not (min_val <= value <= max_val):
            raise ValidationError(
                name, f"{name} must be between {min_val} and {max_val}, got {value}"
            )

    def validate_field_index(self, field_index: int) -> None:
        self.validate_range(field_index, "field_index", 0, self.economy.grid_size - 1)
