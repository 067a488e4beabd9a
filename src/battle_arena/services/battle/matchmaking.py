"""Opponent selection for the battle arena."""

from __future__ import annotations

import random
from typing import Protocol

import structlog

from battle_arena.models import Character

logger = structlog.get_logger()

DEFAULT_OPPONENT_WINDOW = 200


class ScoredIndex(Protocol):
    """Read access to a ranking index (member id -> score)."""

    async def range_by_score(self, min_score: float, max_score: float) -> list[tuple[str, float]]:
        ...

    async def entries(self) -> list[tuple[str, float]]:
        """Every member, ascending by score."""
        ...


async def find_opponent(
    character: Character,
    index: ScoredIndex,
    owned_ids: set[str],
    window: int = DEFAULT_OPPONENT_WINDOW,
    rng: random.Random | None = None,
) -> str | None:
    """Pick an opponent for a character.

    Candidates inside [elo - window, elo + window] are chosen uniformly at
    random. When the window is empty, the whole index is scanned in ascending
    score order and the candidate with the smallest Elo difference wins; ties
    go to the first one seen.

    Args:
        character: Character looking for a battle.
        index: Global ranking index.
        owned_ids: Every character id owned by the same owner (never matched).
        window: Half-width of the preferred Elo window.
        rng: Random source for the in-window choice.

    Returns:
        Opponent character id, or None if nobody is eligible.
    """
    rng = rng or random.Random()  # noqa: S311
    excluded = set(owned_ids) | {character.id}

    in_window = await index.range_by_score(character.elo - window, character.elo + window)
    candidates = [member for member, _ in in_window if member not in excluded]
    if candidates:
        opponent = rng.choice(candidates)
        logger.debug(
            "opponent_found",
            character_id=character.id,
            opponent_id=opponent,
            candidates=len(candidates),
        )
        return opponent

    best: str | None = None
    best_diff: float | None = None
    for member, score in await index.entries():
        if member in excluded:
            continue
        diff = abs(score - character.elo)
        if best_diff is None or diff < best_diff:
            best, best_diff = member, diff

    if best is None:
        logger.info("no_opponent", character_id=character.id)
    else:
        logger.debug(
            "opponent_found_outside_window",
            character_id=character.id,
            opponent_id=best,
            elo_diff=best_diff,
        )
    return best
