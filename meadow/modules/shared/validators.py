"""
Meadow Domain Validators

Purpose
-------
Validation utilities for caller input. Validators raise structured domain
exceptions on failure and return None (or the normalized value) on success.

Design Notes
------------
Validators:
- Accept data to validate as parameters
- Never touch the database
- Are reused by every service and by the engine facade

Usage
-----
    from meadow.modules.shared.validators import validate_id

    validate_id(owner_id, "owner_id")
    kind = validate_asset_kind("creature")
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, NoReturn, Optional, Sequence

from meadow.core.logging.logger import get_logger
from meadow.database.models.enums import AssetKind

from .exceptions import NotFoundError, ValidationError

logger = get_logger(__name__)

# Ids are stored as BIGINT
MAX_ID = 2**63 - 1


def _raise_validation_error(field_name: str, value: Any, message: str) -> NoReturn:
    logger.debug(
        "Validation failed",
        extra={"field": field_name, "value": repr(value)[:100], "reason": message},
    )
    raise ValidationError(field_name, message)


def validate_id(value: Any, field_name: str) -> int:
    """
    Validate a positive integer identifier.

    Example:
        >>> validate_id(42, "owner_id")
        42
    """
    if isinstance(value, bool) or not isinstance(value, int):
        _raise_validation_error(field_name, value, f"{field_name} must be an integer")
    if not 1 <= value <= MAX_ID:
        _raise_validation_error(field_name, value, f"{field_name} must be between 1 and {MAX_ID}")
    return value


def validate_quantity(value: Any, field_name: str = "quantity") -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        _raise_validation_error(field_name, value, f"{field_name} must be a positive integer")
    return value


def validate_asset_kind(value: Any) -> AssetKind:
    try:
        return AssetKind(value)
    except ValueError:
        _raise_validation_error(
            "asset_kind",
            value,
            f"asset_kind must be one of {[kind.value for kind in AssetKind]}",
        )


def validate_id_list(values: Any, field_name: str, expected_count: Optional[int] = None) -> List[int]:
    """
    Validate a list of ids. Duplicates are allowed (the same asset may be
    used more than once when the owner holds enough of it).
    """
    if isinstance(values, (str, bytes)) or not isinstance(values, Sequence):
        _raise_validation_error(field_name, values, f"{field_name} must be a list of ids")
    if expected_count is not None and len(values) != expected_count:
        _raise_validation_error(
            field_name, values, f"{field_name} must contain exactly {expected_count} ids"
        )
    return [validate_id(value, field_name) for value in values]


def validate_timestamp(value: Any, field_name: str = "now") -> datetime:
    if not isinstance(value, datetime) or value.tzinfo is None:
        _raise_validation_error(field_name, value, f"{field_name} must be a timezone-aware datetime")
    return value


def validate_exists(instance: Optional[Any], resource_type: str, identifier: Any = None) -> None:
    """
    Raises:
        NotFoundError: If instance is None
    """
    if instance is None:
        raise NotFoundError(resource_type, identifier)
