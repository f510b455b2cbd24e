from .exhibited_creature import ExhibitedCreature
from .frame_like import FrameLike

__all__ = ["ExhibitedCreature", "FrameLike"]
