from .economy_ledger import EconomyLedgerEntry
from .inventory_stack import InventoryStack

__all__ = ["EconomyLedgerEntry", "InventoryStack"]
