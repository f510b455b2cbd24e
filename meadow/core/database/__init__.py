"""
Database subsystem for Meadow.

Provides the async SQLAlchemy engine and session management, plus the ORM
base classes and mixins used by model definitions.
"""

from meadow.core.database.base import (
    Base,
    IdMixin,
    TimestampMixin,
    UTCDateTime,
    utc_now,
)
from meadow.core.database.service import (
    DatabaseInitializationError,
    DatabaseNotInitializedError,
    DatabaseService,
    DatabaseSettings,
)

__all__ = [
    # ORM Base & Mixins
    "Base",
    "IdMixin",
    "TimestampMixin",
    "UTCDateTime",
    "utc_now",
    # Service
    "DatabaseService",
    "DatabaseSettings",
    "DatabaseInitializationError",
    "DatabaseNotInitializedError",
]
