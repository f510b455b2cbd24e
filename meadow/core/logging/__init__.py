"""
Meadow Logging Infrastructure

Exports the structured logging subsystem, log context helpers,
and configuration interface.
"""

from meadow.core.logging.logger import (
    LogContext,
    LoggerConfig,
    get_log_context,
    get_logger,
    get_logging_health,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "setup_logging",
    "shutdown_logging",
    "get_logger",
    "get_logging_health",
    "LogContext",
    "get_log_context",
    "LoggerConfig",
]
