"""
Infrastructure exceptions for the Meadow economy engine.

Purpose
-------
Define the exception hierarchy for infrastructure-level failures: store
connectivity, configuration problems and other engineering concerns that are
not caused by an owner's action.

Design Notes
------------
- All infrastructure exceptions inherit from `MeadowInfrastructureException`.
- Each exception carries `message`, `details`, `severity`, `is_retryable` and
  a stable `error_code`.
- `TransientStoreError` is what sweeps see when the store hiccups; they log it
  at warning level and pick the unit up again on the next iteration.
- Helper functions (`is_transient_error`, `get_error_severity`, `should_alert`)
  understand both this hierarchy and the domain one, since both share the
  same metadata shape.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels for logging and alerting."""

    DEBUG = "debug"  # Expected, e.g. a lost compare-and-set
    INFO = "info"  # Normal operation, e.g. validation failures
    WARNING = "warning"  # Handled, e.g. retryable store errors
    ERROR = "error"
    CRITICAL = "critical"


class MeadowInfrastructureException(Exception):
    """
    Base exception for all Meadow infrastructure-level errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling

    Example:
        >>> raise MeadowInfrastructureException(
        ...     "Store unreachable",
        ...     {"host": "localhost", "port": 5432}
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


class ConfigurationError(MeadowInfrastructureException):
    """
    Raised when a configuration key is invalid or missing.

    Economy configuration is validated once at startup; any violation
    (overlapping id ranges, non-positive weights, inverted bounds) surfaces
    as this error and aborts the process.

    Args:
        config_key: The configuration key that has issues
        message: Description of the configuration problem
    """

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL
    DEFAULT_RETRYABLE = False

    def __init__(self, config_key: str, message: str) -> None:
        self.config_key = config_key
        super().__init__(
            f"Configuration error for {config_key}: {message}",
            details={
                "config_key": config_key,
                "message": message,
            },
            error_code="CONFIG_ERROR",
        )


class DatabaseError(MeadowInfrastructureException):
    """
    Raised when a database operation fails for a non-transient reason.

    Args:
        operation: Description of the database operation that failed
        original_error: The underlying database exception
    """

    DEFAULT_SEVERITY = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE = False

    def __init__(self, operation: str, original_error: Exception) -> None:
        self.operation = operation
        self.original_error = original_error
        super().__init__(
            f"Database error during {operation}: {original_error}",
            details={
                "operation": operation,
                "error": str(original_error),
                "error_type": type(original_error).__name__,
            },
            error_code="DATABASE_ERROR",
        )


class TransientStoreError(DatabaseError):
    """
    Raised when the store is temporarily unavailable.

    Connection drops, serialization failures and lock timeouts land here.
    Callers may retry; sweeps retry automatically on their next iteration.
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING

    def __init__(self, operation: str, original_error: Exception) -> None:
        super().__init__(operation, original_error)
        self.error_code = "TRANSIENT_STORE_ERROR"
        self.severity = self.DEFAULT_SEVERITY
        self.is_retryable = True


# Utility functions for exception handling patterns


def _structured(exc: Exception) -> bool:
    # Domain exceptions share the metadata shape without sharing a base class
    return hasattr(exc, "is_retryable") and hasattr(exc, "severity")


def is_transient_error(exc: Exception) -> bool:
    """
    Check if an exception represents a transient error that can be retried.

    Args:
        exc: Exception to check

    Returns:
        True if error is retryable, False otherwise.
    """
    if _structured(exc):
        return bool(exc.is_retryable)
    return False


def get_error_severity(exc: Exception) -> ErrorSeverity:
    """
    Get the severity level of an exception for logging.

    Unknown exceptions are treated as ERROR.
    """
    if _structured(exc) and isinstance(exc.severity, ErrorSeverity):
        return exc.severity
    return ErrorSeverity.ERROR


def should_alert(exc: Exception) -> bool:
    """True if severity is ERROR or CRITICAL."""
    return get_error_severity(exc) in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)
