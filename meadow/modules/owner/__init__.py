"""Owner accounts and balances."""

from .service import OwnerService

__all__ = ["OwnerService"]
