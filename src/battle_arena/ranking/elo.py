"""Elo rating calculations for the battle arena."""

from __future__ import annotations

import math

DEFAULT_K_FACTOR = 32


def calculate_expected_win_chance(
    rating_a: float, rating_b: float, divisor: float = 400.0
) -> float:
    """Calculate expected win probability for player A against player B.

    Uses the standard Elo formula:
    E_A = 1 / (1 + 10^((R_B - R_A) / divisor))

    A larger divisor flattens the curve. The rating update uses 400; the win
    chance quoted to the oracle uses 1500.

    Args:
        rating_a: Rating of player A.
        rating_b: Rating of player B.
        divisor: Logistic scale.

    Returns:
        Probability that A wins (0.0 to 1.0).
    """
    return 1.0 / (1.0 + 10 ** ((rating_b - rating_a) / divisor))


def round_half_away_from_zero(value: float) -> int:
    """Round to the nearest integer, .5 going away from zero (2.5 -> 3, -2.5 -> -3)."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def compute_updated_ratings(
    winner_rating: int,
    loser_rating: int,
    is_draw: bool,
    k_factor: int = DEFAULT_K_FACTOR,
) -> tuple[int, int]:
    """Update Elo ratings after a battle.

    On a draw both sides score 0.5, so the "winner" label is only a side
    marker and the result is symmetric.

    Args:
        winner_rating: Current rating of the winner (or first side of a draw).
        loser_rating: Current rating of the loser (or second side of a draw).
        is_draw: Whether the battle was drawn.
        k_factor: K-factor for updates.

    Returns:
        Tuple of (new_winner_rating, new_loser_rating), rounded half away from zero.
    """
    expected_winner = calculate_expected_win_chance(winner_rating, loser_rating)
    expected_loser = 1.0 - expected_winner

    if is_draw:
        actual_winner, actual_loser = 0.5, 0.5
    else:
        actual_winner, actual_loser = 1.0, 0.0

    new_winner = winner_rating + k_factor * (actual_winner - expected_winner)
    new_loser = loser_rating + k_factor * (actual_loser - expected_loser)

    return round_half_away_from_zero(new_winner), round_half_away_from_zero(new_loser)


def apply_trait_penalty(rating: int, penalty: float) -> int:
    """Rating after rewriting a character's traits (e.g. 0.25 -> keep 75%)."""
    return round_half_away_from_zero(rating * (1.0 - penalty))
