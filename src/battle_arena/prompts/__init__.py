"""Prompt templates for the battle arena.

Loads prompts from 'prompts.yaml' in the parent directory.
"""

from __future__ import annotations

from pathlib import Path

import structlog
import yaml

from battle_arena.models import Character

logger = structlog.get_logger()

PROMPTS_PATH = Path(__file__).parent.parent / "prompts.yaml"


def _load_prompts() -> dict[str, str]:
    if not PROMPTS_PATH.exists():
        raise FileNotFoundError(f"Missing prompts file: {PROMPTS_PATH}")

    with open(PROMPTS_PATH, encoding="utf-8") as f:
        data = yaml.safe_load(f)
        if not isinstance(data, dict):
            raise TypeError(f"Invalid prompts file: {PROMPTS_PATH} (must be dict)")
        return data


# Load on import
_PROMPTS = _load_prompts()


def judge_battle_prompt(character1: Character, character2: Character, win_chance: float) -> str:
    """Prompt asking the oracle to decide a battle.

    Args:
        character1: Initiating character.
        character2: Opponent.
        win_chance: Advisory probability (0-1) that character1 wins.
    """
    return _PROMPTS["judge_battle"].format(
        name1=character1.name,
        traits1=character1.traits,
        elo1=character1.elo,
        name2=character2.name,
        traits2=character2.traits,
        elo2=character2.elo,
        win_chance=win_chance * 100,
    )


def fallback_draw_narrative(character1: Character, character2: Character) -> str:
    return _PROMPTS["fallback_draw"].format(
        name1=character1.name,
        traits1=character1.traits,
        name2=character2.name,
        traits2=character2.traits,
    )


def fallback_win_narrative(winner: Character, loser: Character) -> str:
    return _PROMPTS["fallback_win"].format(
        winner_name=winner.name,
        winner_traits=winner.traits,
        loser_name=loser.name,
        loser_traits=loser.traits,
    )
