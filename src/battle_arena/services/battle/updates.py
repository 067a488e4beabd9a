"""Turn a decided battle into new character records and an ordered write plan."""

from __future__ import annotations

from dataclasses import dataclass

from battle_arena.core.config import LeagueConfig
from battle_arena.models import Battle, Character, normalize_owner
from battle_arena.ranking.elo import compute_updated_ratings
from battle_arena.services.storage import HashWrite, ListPush, ScoreWrite, StoreKeys, StoreWrite
from battle_arena.services.storage.writes import dedupe

from .oracle import BattleOutcome


@dataclass(frozen=True)
class RatingUpdate:
    """Everything a resolved battle changes, computed before any write.

    Attributes:
        winner: Winner record after the update (nominal side on a draw).
        loser: Loser record after the update.
        battle: Battle record to persist.
    """

    winner: Character
    loser: Character
    battle: Battle

    @property
    def characters(self) -> tuple[Character, Character]:
        return self.winner, self.loser

    def updated_stats(self) -> dict[str, dict[str, int | str]]:
        """Post-battle ratings and counters of both participants."""
        return {
            "winner": _stats(self.winner),
            "loser": _stats(self.loser),
        }


def _stats(character: Character) -> dict[str, int | str]:
    return {
        "id": character.id,
        "elo": character.elo,
        "wins": character.wins,
        "losses": character.losses,
        "draws": character.draws,
    }


def build_rating_update(
    initiator: Character,
    opponent: Character,
    outcome: BattleOutcome,
    battle_id: str,
    now: int,
    k_factor: int = 32,
) -> RatingUpdate:
    """Apply an outcome to both characters.

    Args:
        initiator: Character that started the battle (oracle "character1").
        opponent: Selected opponent (oracle "character2").
        outcome: Oracle decision.
        battle_id: Id of the new battle record.
        now: Resolution time in epoch milliseconds.
        k_factor: Elo K-factor.
    """
    if outcome.winner == "character1":
        winner, loser = initiator, opponent
    else:
        winner, loser = opponent, initiator

    new_winner_elo, new_loser_elo = compute_updated_ratings(
        winner.elo, loser.elo, outcome.is_draw, k_factor
    )

    if outcome.is_draw:
        winner = winner.model_copy(update={"elo": new_winner_elo, "draws": winner.draws + 1})
        loser = loser.model_copy(update={"elo": new_loser_elo, "draws": loser.draws + 1})
    else:
        winner = winner.model_copy(update={"elo": new_winner_elo, "wins": winner.wins + 1})
        loser = loser.model_copy(update={"elo": new_loser_elo, "losses": loser.losses + 1})

    battle = Battle(
        id=battle_id,
        character1=initiator.id,
        character2=opponent.id,
        winner=winner.id,
        is_draw=outcome.is_draw,
        explanation=outcome.narrative,
        timestamp=now,
        league=initiator.league,
        source=outcome.source,
    )
    return RatingUpdate(winner=winner, loser=loser, battle=battle)


def plan_battle_writes(
    update: RatingUpdate,
    initiator_owner: str,
    keys: StoreKeys,
    leagues: LeagueConfig,
) -> list[StoreWrite]:
    """Ordered, idempotent writes that persist a rating update.

    Order: character hashes, global index, each character's own league
    index, the general index, the mirrored league index (both participants,
    when either belongs to it), the battle record, then history lists for
    both characters and the initiating owner.
    """
    characters = update.characters
    writes: list[StoreWrite] = [
        HashWrite(keys.character(c.id), c.to_hash()) for c in characters
    ]

    writes.extend(ScoreWrite(keys.global_ranking(), c.id, c.elo) for c in characters)
    writes.extend(ScoreWrite(keys.league_ranking(c.league), c.id, c.elo) for c in characters)
    writes.extend(
        ScoreWrite(keys.league_ranking(leagues.general), c.id, c.elo) for c in characters
    )

    mirrored = leagues.mirrored_league
    if mirrored is not None and any(c.league == mirrored for c in characters):
        writes.extend(ScoreWrite(keys.league_ranking(mirrored), c.id, c.elo) for c in characters)

    battle = update.battle
    writes.append(HashWrite(keys.battle(battle.id), battle.to_hash()))
    writes.extend(ListPush(keys.character_battles(c.id), battle.id) for c in characters)
    writes.append(ListPush(keys.owner_battles(normalize_owner(initiator_owner)), battle.id))

    return dedupe(writes)
