from __future__ import annotations

from typing import Any, Literal

from pydantic import field_validator

from .base import HashRecord, coerce_int
from .character import GENERAL_LEAGUE


class Battle(HashRecord):
    """An immutable record of one resolved battle.

    Attributes:
        id: "battle:<timestamp>-<suffix>".
        character1: Initiating character id.
        character2: Opponent character id.
        winner: Winning character id. On a draw, the nominal side the oracle picked.
        is_draw: Whether the battle was drawn.
        explanation: Narrative of the battle.
        timestamp: Resolution time in epoch milliseconds.
        league: League of the initiating character at resolution time.
        source: "oracle" if the LLM decided, "fallback" if the local decision did.
    """

    id: str
    character1: str
    character2: str
    winner: str
    is_draw: bool = False
    explanation: str = ""
    timestamp: int
    league: str = GENERAL_LEAGUE
    source: Literal["oracle", "fallback"] = "fallback"

    @field_validator("timestamp", mode="before")
    @classmethod
    def coerce_timestamp(cls, v: Any) -> Any:
        return coerce_int(v)
