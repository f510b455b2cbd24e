"""
Domain exceptions for the Meadow economy engine.

Purpose
-------
Define the domain exception hierarchy raised by services for business rule
violations and owner-facing errors. The presentation layer renders them from
`error_code` and `details`; sweeps use the class to decide how to log.

Design Notes
------------
- All domain exceptions inherit from `MeadowDomainException` and share the
  metadata shape of the infrastructure hierarchy (`message`, `details`,
  `severity`, `is_retryable`, `error_code`).
- `ConflictError` covers "someone else got there first" and "not yet"
  situations. Sweeps treat it as a skip, never as a failure.
- `InvariantViolation` means persisted state is inconsistent; sweeps log it
  and repair the row.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from meadow.core.exceptions import ErrorSeverity


class MeadowDomainException(Exception):
    """
    Base exception for all Meadow domain-level errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling

    Example:
        >>> raise MeadowDomainException(
        ...     "Harvest failed",
        ...     {"reason": "field is empty"}
        ... )
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message: str = message
        self.details: Dict[str, Any] = details or {}
        self.severity: ErrorSeverity = severity or self.DEFAULT_SEVERITY
        self.is_retryable: bool = (
            is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
        )
        self.error_code: str = error_code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"severity={self.severity.value!r}, "
            f"is_retryable={self.is_retryable!r}"
            ")"
        )


class ValidationError(MeadowDomainException):
    """
    Raised when caller input fails domain validation.

    Never retried: the same input fails the same way.

    Args:
        field: Name of the field that failed validation
        message: Explanation of why validation failed
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.validation_message = message
        super().__init__(
            f"Validation error for {field}: {message}",
            details={"field": field, "validation_message": message},
            error_code=f"VALIDATION_{field.upper()}",
        )


class NotFoundError(MeadowDomainException):
    """
    Raised when a referenced owner, creature or placement does not exist.

    Args:
        resource_type: Type of resource (e.g. "OwnerAccount", "PlantedSeed")
        identifier: Optional identifier for the missing resource
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, resource_type: str, identifier: Optional[Any] = None) -> None:
        self.resource_type = resource_type
        self.identifier = identifier

        if identifier is not None:
            message = f"{resource_type} not found: {identifier}"
        else:
            message = f"{resource_type} not found"

        super().__init__(
            message,
            details={"resource_type": resource_type, "identifier": identifier},
            error_code=f"{resource_type.upper()}_NOT_FOUND",
        )


class InsufficientInventoryError(MeadowDomainException):
    """
    Raised when an owner holds fewer units of an asset than an action needs.

    Args:
        asset_kind: Kind of asset (seed, flower, consumable, creature)
        asset_id: Asset identifier
        required: Units required
        current: Units held when the decrement was attempted
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, asset_kind: str, asset_id: int, required: int, current: int) -> None:
        self.asset_kind = asset_kind
        self.asset_id = asset_id
        self.required = required
        self.current = current
        super().__init__(
            f"Insufficient {asset_kind} #{asset_id}: need {required}, have {current}",
            details={
                "asset_kind": asset_kind,
                "asset_id": asset_id,
                "required": required,
                "current": current,
            },
            error_code="INSUFFICIENT_INVENTORY",
        )


# ============================================================================
# Conflicts
# ============================================================================


class ConflictError(MeadowDomainException):
    """
    Raised when the current state does not allow an action right now.

    Includes lost races (already collected, slot taken) and actions that
    are simply early (not mature, not sellable).
    """

    DEFAULT_SEVERITY = ErrorSeverity.DEBUG
    DEFAULT_RETRYABLE = False


class SlotOccupiedError(ConflictError):
    """A field cell or frame slot already holds something."""

    def __init__(self, owner_id: int, location: str, index: int) -> None:
        self.owner_id = owner_id
        self.location = location
        self.index = index
        super().__init__(
            f"{location} {index} is already occupied",
            details={"owner_id": owner_id, "location": location, "index": index},
            error_code="SLOT_OCCUPIED",
        )


class AlreadyCollectedError(ConflictError):
    """The row was removed by a concurrent collect, or never existed at this cell."""

    def __init__(self, resource_type: str, owner_id: int, field_index: int) -> None:
        self.resource_type = resource_type
        self.owner_id = owner_id
        self.field_index = field_index
        super().__init__(
            f"{resource_type} at field {field_index} is already collected",
            details={
                "resource_type": resource_type,
                "owner_id": owner_id,
                "field_index": field_index,
            },
            error_code="ALREADY_COLLECTED",
        )


class AlreadyLikedError(ConflictError):
    def __init__(self, liker_id: int, frame_owner_id: int, frame_id: int) -> None:
        super().__init__(
            f"Frame {frame_id} of owner {frame_owner_id} already liked",
            details={
                "liker_id": liker_id,
                "frame_owner_id": frame_owner_id,
                "frame_id": frame_id,
            },
            error_code="ALREADY_LIKED",
        )


class NotReadyError(ConflictError):
    """
    Raised when an action is attempted before its time.

    Args:
        action: Name of the attempted action
        remaining_ms: Milliseconds until the action becomes possible, if known
    """

    DEFAULT_RETRYABLE = True

    def __init__(self, action: str, remaining_ms: Optional[int] = None, reason: str = "") -> None:
        self.action = action
        self.remaining_ms = remaining_ms
        message = f"{action} is not ready"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message,
            details={"action": action, "remaining_ms": remaining_ms, "reason": reason},
            error_code="NOT_READY",
            is_retryable=True,
        )


class NotSellableError(ConflictError):
    """Raised when an exhibited creature's countdown has not reached zero."""

    DEFAULT_RETRYABLE = True

    def __init__(self, creature_id: int, remaining_ms: int) -> None:
        self.creature_id = creature_id
        self.remaining_ms = remaining_ms
        super().__init__(
            f"Creature {creature_id} is not sellable yet ({remaining_ms} ms remaining)",
            details={"creature_id": creature_id, "remaining_ms": remaining_ms},
            error_code="NOT_SELLABLE",
            is_retryable=True,
        )


# ============================================================================
# Integrity
# ============================================================================


class InvariantViolation(MeadowDomainException):
    """
    Raised when persisted state breaks an invariant the engine maintains.

    Args:
        entity: Model name of the offending row
        identifier: Its primary key
        message: Which invariant failed
    """

    DEFAULT_SEVERITY = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE = False

    def __init__(self, entity: str, identifier: Any, message: str) -> None:
        self.entity = entity
        self.identifier = identifier
        super().__init__(
            f"Invariant violated on {entity} {identifier}: {message}",
            details={"entity": entity, "identifier": identifier},
            error_code="INVARIANT_VIOLATION",
        )
