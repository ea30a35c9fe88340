"""
Points calculation service.
Derives the point value of one activity from difficulty and challenge multipliers.
"""

from decimal import Decimal, ROUND_DOWN
from typing import Optional, Union
from squadfit.utils.constants import (
    BASE_POINTS,
    DEFAULT_DIFFICULTY_MULTIPLIER,
    MIN_CHALLENGE_MULTIPLIER,
)
from squadfit.database.models import Exercise


Number = Union[int, float, Decimal]


# ============================================================================
# Helper Functions
# ============================================================================

def _to_decimal(value: Number) -> Decimal:
    """Convert through str() so 1.1 stays 1.1 and not 1.100000000000000088..."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def difficulty_multiplier_for(exercise: Exercise) -> int:
    """
    Get the difficulty multiplier for an exercise.

    The difficulty rank is used directly as the multiplier; exercises without
    a difficulty count as rank 1.
    """
    if exercise.difficulty_id is None:
        return DEFAULT_DIFFICULTY_MULTIPLIER
    return int(exercise.difficulty_id)


# ============================================================================
# Main Calculation
# ============================================================================

def calculate_points(
    difficulty_multiplier: int,
    challenge_multiplier: Optional[Number] = None,
    base_points: int = BASE_POINTS,
) -> int:
    """
    Calculate the points awarded for a single activity.

    Formula: points = base_points × difficulty_multiplier × challenge_multiplier

    Raw measurements (quantity, duration, ...) are intentionally not part of
    the formula. The result is truncated toward zero, never rounded up.

    Args:
        difficulty_multiplier: Exercise difficulty rank (positive integer)
        challenge_multiplier: Active challenge multiplier (>= 1), or None for no challenge
        base_points: Points per activity before multipliers

    Returns:
        Non-negative integer point value

    Raises:
        ValueError: If any input is out of range
    """
    if isinstance(difficulty_multiplier, bool) or not isinstance(difficulty_multiplier, int):
        raise ValueError(f"Difficulty multiplier must be an integer, got {difficulty_multiplier!r}")
    if difficulty_multiplier < 1:
        raise ValueError(f"Difficulty multiplier must be positive, got {difficulty_multiplier}")
    if base_points < 0:
        raise ValueError(f"Base points must be non-negative, got {base_points}")

    if challenge_multiplier is None:
        challenge_multiplier = MIN_CHALLENGE_MULTIPLIER
    multiplier = _to_decimal(challenge_multiplier)
    if multiplier < MIN_CHALLENGE_MULTIPLIER:
        raise ValueError(f"Challenge multiplier must be >= {MIN_CHALLENGE_MULTIPLIER}, got {challenge_multiplier}")

    raw = Decimal(base_points) * Decimal(difficulty_multiplier) * multiplier
    return int(raw.to_integral_value(rounding=ROUND_DOWN))
