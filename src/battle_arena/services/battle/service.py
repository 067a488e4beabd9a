"""Battle service orchestrating one battle from request to persisted record."""

from __future__ import annotations

import random
import uuid
from dataclasses import dataclass
from typing import Any

import structlog

from battle_arena.core.config import BattleConfig
from battle_arena.core.errors import (
    CharacterNotFoundError,
    CooldownActiveError,
    NoOpponentError,
    ValidationError,
)
from battle_arena.core.timeutils import now_ms
from battle_arena.models import Battle
from battle_arena.services.storage import ArenaRepository

from .matchmaking import find_opponent
from .oracle import OutcomeOracle
from .updates import RatingUpdate, build_rating_update, plan_battle_writes

logger = structlog.get_logger()


@dataclass(frozen=True)
class BattleResult:
    """Persisted battle and the participants' new stats."""

    battle: Battle
    update: RatingUpdate

    def to_public(self) -> dict[str, Any]:
        return {
            "battle": self.battle.to_public(),
            "updatedStats": self.update.updated_stats(),
        }


def new_battle_id(now: int) -> str:
    return f"battle:{now}-{uuid.uuid4().hex[:8]}"


class BattleService:
    """Runs battles: cooldown, opponent, outcome, ratings, persistence.

    Every check that can reject a request runs before the first write. The
    cooldown claim is the first write and is atomic, so two concurrent
    battles for one character cannot both be persisted.
    """

    def __init__(
        self,
        repository: ArenaRepository,
        oracle: OutcomeOracle,
        config: BattleConfig | None = None,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize battle service.

        Args:
            repository: Typed store access.
            oracle: Outcome decision (LLM with local fallback).
            config: Battle rules. Defaults to the repository's.
            rng: Random source for opponent selection.
        """
        self.repository = repository
        self.oracle = oracle
        self.config = config or repository.battle_config
        self.rng = rng or random.Random()  # noqa: S311

    async def start_battle(
        self, owner_id: str, character_id: str, now: int | None = None
    ) -> BattleResult:
        """Run one battle for a character the caller owns.

        Args:
            owner_id: Authenticated caller.
            character_id: Initiating character.
            now: Request time in epoch milliseconds (defaults to the clock).

        Raises:
            ValidationError: If character_id is empty.
            CharacterNotFoundError: If the character or the picked opponent is missing.
            NotOwnerError: If the caller does not own the character.
            CooldownActiveError: If the character battled too recently.
            NoOpponentError: If nobody is eligible to fight.
            PersistenceError: If a store write fails partway.
        """
        now = now if now is not None else now_ms()
        repo = self.repository

        character = await repo.require_owned_character(owner_id, character_id)

        # CooldownCheck
        previous = await repo.last_battle_raw(character.id)
        remaining = await repo.cooldown_remaining(character.id, now)
        if remaining > 0:
            logger.info("battle_rejected", character_id=character.id, remaining=remaining)
            raise CooldownActiveError(remaining)

        # OpponentSelection
        owned_ids = await repo.owned_character_ids(character.owner)
        opponent_id = await find_opponent(
            character,
            repo.global_index(),
            owned_ids,
            window=self.config.opponent_window,
            rng=self.rng,
        )
        if opponent_id is None:
            raise NoOpponentError(character.id)
        opponent = await repo.get_character(opponent_id)
        if opponent is None:
            logger.warning("stale_index_entry", opponent_id=opponent_id)
            raise CharacterNotFoundError(opponent_id)

        # OutcomeDecision
        outcome = await self.oracle.decide(character, opponent)

        # RatingUpdate
        update = build_rating_update(
            character,
            opponent,
            outcome,
            battle_id=new_battle_id(now),
            now=now,
            k_factor=self.config.k_factor,
        )

        # Persistence
        if not await repo.claim_cooldown(character.id, previous, now):
            remaining = await repo.cooldown_remaining(character.id, now)
            logger.info("battle_rejected", character_id=character.id, reason="concurrent battle")
            raise CooldownActiveError(max(remaining, 1))

        writes = plan_battle_writes(update, owner_id, repo.keys, repo.league_config)
        await repo.apply_writes(writes, context=update.battle.id)

        logger.info(
            "battle_resolved",
            battle_id=update.battle.id,
            character1=character.id,
            character2=opponent.id,
            winner=update.battle.winner,
            is_draw=update.battle.is_draw,
            source=outcome.source,
            winner_elo=update.winner.elo,
            loser_elo=update.loser.elo,
        )
        return BattleResult(battle=update.battle, update=update)

    async def get_battle(self, battle_id: str) -> Battle:
        return await self.repository.require_battle(battle_id)

    async def get_battles(
        self,
        character_id: str | None = None,
        owner_id: str | None = None,
        limit: int = 20,
    ) -> list[Battle]:
        """Battle history of a character or an owner, newest first.

        Raises:
            ValidationError: If neither a character nor an owner is given.
        """
        if character_id:
            return await self.repository.battles_for_character(character_id, limit)
        if owner_id:
            return await self.repository.battles_for_owner(owner_id, limit)
        raise ValidationError("Battle ID or character ID is required")

    async def cooldown_status(self, character_id: str, now: int | None = None) -> int:
        """Seconds until the character may battle again (0 when ready)."""
        if not character_id:
            raise ValidationError("Character ID is required")
        await self.repository.require_character(character_id)
        now = now if now is not None else now_ms()
        return await self.repository.cooldown_remaining(character_id, now)
