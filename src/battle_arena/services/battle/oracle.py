"""Battle outcome decision.

The oracle asks an LLM to judge two characters by their traits and narrate
the fight. Whenever that is impossible (no client, transport failure, empty
or blocked response, undecodable text, timeout) a local decision weighted by
Elo is used instead, so callers always receive an outcome.
"""

from __future__ import annotations

import asyncio
import json
import random
import re
from dataclasses import dataclass
from typing import Literal

import structlog
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from battle_arena.core.config import OracleConfig
from battle_arena.models import Character
from battle_arena.prompts import (
    fallback_draw_narrative,
    fallback_win_narrative,
    judge_battle_prompt,
)
from battle_arena.ranking.elo import calculate_expected_win_chance
from battle_arena.services.llm import GenerationConfig, LLMClient

logger = structlog.get_logger()

Side = Literal["character1", "character2"]


class OracleVerdict(BaseModel):
    """JSON object the oracle is asked to return."""

    model_config = ConfigDict(populate_by_name=True)

    winner: Literal["character1", "character2", "draw"]
    narrative: str = Field(min_length=1)
    is_draw: bool | None = Field(default=None, alias="isDraw")


@dataclass(frozen=True)
class BattleOutcome:
    """Decided outcome of one battle.

    Attributes:
        winner: Winning side. On a draw, a nominal side used for bookkeeping.
        is_draw: Whether the battle was drawn.
        narrative: Story of the battle.
        source: "oracle" or "fallback".
    """

    winner: Side
    is_draw: bool
    narrative: str
    source: Literal["oracle", "fallback"]


@dataclass(frozen=True)
class Decoded:
    outcome: BattleOutcome


@dataclass(frozen=True)
class DecodeFailure:
    reason: str


def _random_side(rng: random.Random) -> Side:
    return "character1" if rng.random() < 0.5 else "character2"


def decode_outcome(text: str, rng: random.Random) -> Decoded | DecodeFailure:
    """Decode oracle text into an outcome.

    Markdown code fences around the JSON object are stripped. A "draw" winner
    gets a random nominal side with is_draw set; an explicit isDraw flag is
    honored for either side.

    Args:
        text: Raw generated text (may contain markdown).
        rng: Random source for the nominal draw side.
    """
    json_text = text.strip()

    if "```" in json_text:
        match = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", json_text)
        if match:
            json_text = match.group(1)

    match = re.search(r"\{[\s\S]*\}", json_text)
    if match:
        json_text = match.group(0)

    try:
        verdict = OracleVerdict.model_validate(json.loads(json_text))
    except json.JSONDecodeError as e:
        return DecodeFailure(f"invalid json: {e}")
    except PydanticValidationError as e:
        return DecodeFailure(f"unexpected shape: {e.error_count()} error(s)")

    if verdict.winner == "draw":
        return Decoded(BattleOutcome(_random_side(rng), True, verdict.narrative, "oracle"))

    is_draw = bool(verdict.is_draw)
    return Decoded(BattleOutcome(verdict.winner, is_draw, verdict.narrative, "oracle"))


def fallback_decision(
    character1: Character,
    character2: Character,
    rng: random.Random,
    draw_band: float = 0.15,
    divisor: float = 400.0,
) -> BattleOutcome:
    """Decide a battle locally from Elo.

    A single uniform draw r decides: r above 1 - draw_band is a draw,
    otherwise character1 wins when r is below its expected win chance.
    """
    p = calculate_expected_win_chance(character1.elo, character2.elo, divisor)
    r = rng.random()

    if r > 1.0 - draw_band:
        return BattleOutcome(
            winner=_random_side(rng),
            is_draw=True,
            narrative=fallback_draw_narrative(character1, character2),
            source="fallback",
        )

    if r < p:
        winner, loser, side = character1, character2, "character1"
    else:
        winner, loser, side = character2, character1, "character2"
    return BattleOutcome(
        winner=side,
        is_draw=False,
        narrative=fallback_win_narrative(winner, loser),
        source="fallback",
    )


class OutcomeOracle:
    """Decide battles with an optional LLM client and a local fallback."""

    def __init__(
        self,
        client: LLMClient | None,
        config: OracleConfig | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.client = client
        self.config = config or OracleConfig()
        self.rng = rng or random.Random()  # noqa: S311
        self.generation = GenerationConfig(
            temperature=self.config.temperature,
            top_p=self.config.top_p,
            top_k=self.config.top_k,
            max_output_tokens=self.config.max_output_tokens,
        )

    async def decide(self, character1: Character, character2: Character) -> BattleOutcome:
        """Decide a battle between an initiator and its opponent. Never raises."""
        if self.client is None:
            logger.info("oracle_fallback", reason="no client")
            return self._fallback(character1, character2)

        win_chance = calculate_expected_win_chance(
            character1.elo, character2.elo, self.config.advisory_divisor
        )
        prompt = judge_battle_prompt(character1, character2, win_chance)

        try:
            response = await asyncio.wait_for(
                self.client.complete(prompt, self.generation),
                timeout=self.config.timeout_seconds,
            )
        except TimeoutError:
            logger.warning("oracle_fallback", reason="timeout", timeout=self.config.timeout_seconds)
            return self._fallback(character1, character2)
        except Exception as e:
            logger.warning("oracle_fallback", reason="call failed", error=str(e))
            return self._fallback(character1, character2)

        decoded = decode_outcome(response.content, self.rng)
        if isinstance(decoded, DecodeFailure):
            logger.warning(
                "oracle_fallback",
                reason="decode failed",
                detail=decoded.reason,
                preview=response.content[:200],
            )
            return self._fallback(character1, character2)

        logger.debug(
            "oracle_decided",
            winner=decoded.outcome.winner,
            is_draw=decoded.outcome.is_draw,
            total_tokens=response.total_tokens,
        )
        return decoded.outcome

    def _fallback(self, character1: Character, character2: Character) -> BattleOutcome:
        return fallback_decision(
            character1,
            character2,
            self.rng,
            draw_band=self.config.draw_band,
            divisor=self.config.fallback_divisor,
        )
