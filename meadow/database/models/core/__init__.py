from .owner_account import OwnerAccount

__all__ = ["OwnerAccount"]
