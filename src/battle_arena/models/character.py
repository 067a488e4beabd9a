from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator

from .base import HashRecord, coerce_int

GENERAL_LEAGUE = "general"


def normalize_owner(owner: str) -> str:
    """Lower-case wallet addresses; Discord ids are digits and stay as-is."""
    owner = owner.strip()
    if owner.lower().startswith("0x"):
        return owner.lower()
    return owner


class Character(HashRecord):
    """A text-described fighter owned by one user.

    Attributes:
        id: "<owner>_<createdAt>".
        owner: Normalized owner id (wallet address or Discord user id).
        name: Display name.
        traits: Free text the oracle judges.
        elo: Current rating.
        wins: Battles won.
        losses: Battles lost.
        draws: Battles drawn.
        league: League the character ranks in.
        created_at: Creation time in epoch milliseconds.
    """

    id: str
    owner: str
    name: str
    traits: str
    elo: int = 1000
    wins: int = Field(default=0, ge=0)
    losses: int = Field(default=0, ge=0)
    draws: int = Field(default=0, ge=0)
    league: str = GENERAL_LEAGUE
    created_at: int = 0

    @field_validator("elo", "wins", "losses", "draws", "created_at", mode="before")
    @classmethod
    def coerce_numbers(cls, v: Any) -> Any:
        return coerce_int(v)

    @field_validator("league", mode="before")
    @classmethod
    def default_league(cls, v: Any) -> Any:
        # Records written before leagues existed have no league field.
        return v or GENERAL_LEAGUE

    def owned_by(self, owner_id: str) -> bool:
        return normalize_owner(self.owner) == normalize_owner(owner_id)
