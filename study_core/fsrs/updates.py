"""
Memory Updates

Implements the stability, difficulty and interval formulas applied on
every rating.

Key principles:
- Spaced, effortful success produces the largest stability gains
- Failures shrink stability, more so when recall was expected (high R)
- Difficulty drifts towards a neutral value and stays inside fixed bounds
"""

from __future__ import annotations

import math

from study_core.fsrs.constants import Rating
from study_core.fsrs.parameters import DEFAULT_PARAMETERS, FSRSParameters


def initial_stability(
    rating: Rating,
    params: FSRSParameters = DEFAULT_PARAMETERS
) -> float:
    """Seed stability for a card's first rating."""
    return max(params.min_stability, params.initial_stability[rating])


def initial_difficulty(
    rating: Rating,
    params: FSRSParameters = DEFAULT_PARAMETERS
) -> float:
    """Seed difficulty for a card's first rating."""
    return _clamp_difficulty(params.initial_difficulty[rating], params)


def update_difficulty(
    difficulty: float,
    rating: Rating,
    params: FSRSParameters = DEFAULT_PARAMETERS
) -> float:
    """
    Update difficulty based on retrieval outcome.

    Formula:
        D_new = clip(
            D + delta(rating) - (D - 1) * decay,
            min=1,
            max=10
        )

    Conceptually:
    - Failure and hard recall push difficulty up
    - Easy recall pulls it down
    - The decay term drags every card back towards the GOOD fixed point,
      1 + delta(GOOD) / decay, so old ratings fade out over time

    Args:
        difficulty: Current difficulty
        rating: User rating
        params: Parameter table

    Returns:
        New difficulty value (clipped to the configured bounds)
    """
    delta_d = params.difficulty_delta[rating]
    reversion = (difficulty - params.min_difficulty) * params.difficulty_decay
    return _clamp_difficulty(difficulty + delta_d - reversion, params)


def update_stability_on_success(
    stability: float,
    difficulty: float,
    retrievability: float,
    rating: Rating,
    params: FSRSParameters = DEFAULT_PARAMETERS
) -> float:
    """
    Update stability after successful retrieval (Hard/Good/Easy).

    Formula:
        gain = e^w * (D_max + 1 - D) * S^(-damping) * (e^((1 - R) * k) - 1)
        S_new = S * (1 + (gain + min_gain) * m(rating))

    Where:
        - (e^((1 - R) * k) - 1) rewards risky (well-spaced) success
        - (D_max + 1 - D) slows learning for difficult cards
        - S^(-damping) makes large stabilities grow proportionally less
        - min_gain keeps same-day successes (R = 1) growing
        - m(rating) = hard_penalty for HARD, 1 for GOOD, easy_bonus for EASY

    Args:
        stability: Current stability (S)
        difficulty: Difficulty after this rating's update
        retrievability: Retrievability at review time (R)
        rating: HARD, GOOD or EASY
        params: Parameter table

    Returns:
        New stability value, strictly greater than the old one
    """
    if rating == Rating.AGAIN:
        raise ValueError("Use update_stability_on_failure for AGAIN ratings")

    recall_gain = (
        math.exp(params.recall_growth)
        * (params.max_difficulty + 1.0 - difficulty)
        * math.pow(stability, -params.stability_damping)
        * (math.exp((1.0 - retrievability) * params.retrievability_gain) - 1.0)
    )

    if rating == Rating.HARD:
        multiplier = params.hard_penalty
    elif rating == Rating.EASY:
        multiplier = params.easy_bonus
    else:
        multiplier = 1.0

    new_stability = stability * (1.0 + (recall_gain + params.min_recall_gain) * multiplier)
    return max(params.min_stability, new_stability)


def update_stability_on_failure(
    stability: float,
    difficulty: float,
    retrievability: float,
    params: FSRSParameters = DEFAULT_PARAMETERS
) -> float:
    """
    Update stability after failed retrieval (Again).

    Formula:
        S_f = a * D^(-b) * ((S + 1)^c - 1) * e^((1 - R) * g)
        S_new = max(S_min, min(S_f, S * ceiling))

    The ceiling guarantees a lapse always costs stability; S_min keeps it
    positive.

    Args:
        stability: Current stability
        difficulty: Difficulty after this rating's update
        retrievability: Retrievability at review time

    Returns:
        New stability value (reduced)
    """
    forgotten = (
        params.forget_scale
        * math.pow(difficulty, -params.forget_difficulty_exp)
        * (math.pow(stability + 1.0, params.forget_stability_exp) - 1.0)
        * math.exp((1.0 - retrievability) * params.forget_retrievability_gain)
    )
    return max(params.min_stability, min(forgotten, stability * params.forget_ceiling))


def next_interval(
    stability: float,
    rating: Rating,
    params: FSRSParameters = DEFAULT_PARAMETERS
) -> int:
    """
    Whole days until the next presentation.

    interval = round(S * factor(rating)), bounded to [1, max_interval_days].
    """
    raw = stability * params.interval_factor[rating]
    return int(min(params.max_interval_days, max(1, round(raw))))


def _clamp_difficulty(value: float, params: FSRSParameters) -> float:
    return max(params.min_difficulty, min(params.max_difficulty, value))
