"""Creature despawn and ambient sun drops."""

from .service import AmbientOutcome, AmbientService
from .sweep import AmbientSweep

__all__ = ["AmbientOutcome", "AmbientService", "AmbientSweep"]
