from .base import HashRecord, coerce_int
from .battle import Battle
from .character import GENERAL_LEAGUE, Character, normalize_owner

__all__ = [
    "GENERAL_LEAGUE",
    "Battle",
    "Character",
    "HashRecord",
    "coerce_int",
    "normalize_owner",
]
