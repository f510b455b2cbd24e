from .table import RarityTable, RarityTier

__all__ = ["RarityTable", "RarityTier"]
