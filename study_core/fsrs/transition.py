"""
Transition - FSRS Algorithm Logic

Pure state transition (no database calls, no clock reads).

Main workflow:
1. Validate rating and review time
2. Seed a new card, or compute retrievability for a seen one
3. Apply the difficulty and stability update rules
4. Derive the lifecycle phase and the next due date
5. Return a fresh CardMemoryState; the input is never modified

Persistence and event logging are handled by the scheduling module.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta
from typing import Union

from study_core.errors import InvalidTimestamp
from study_core.fsrs import updates
from study_core.fsrs.constants import CardPhase, Rating
from study_core.fsrs.memory_state import (
    CardMemoryState,
    calculate_retrievability,
    days_between,
    is_aware,
)
from study_core.fsrs.parameters import DEFAULT_PARAMETERS, FSRSParameters


RatingLike = Union[Rating, int, str]


def elapsed_days_since_review(state: CardMemoryState, now: datetime) -> float:
    """
    Days since the card's last review, validated against `now`.

    Raises:
        InvalidTimestamp: if `now` is naive or earlier than the last review
    """
    if not is_aware(now):
        raise InvalidTimestamp(f"Review time for card {state.card_id} must be timezone-aware")

    if state.last_reviewed_at is None:
        return 0.0

    if now < state.last_reviewed_at:
        raise InvalidTimestamp(
            f"Review time {now.isoformat()} precedes last review "
            f"{state.last_reviewed_at.isoformat()} of card {state.card_id}"
        )
    return max(0.0, days_between(state.last_reviewed_at, now))


def transition(
    state: CardMemoryState,
    rating: RatingLike,
    now: datetime,
    params: FSRSParameters = DEFAULT_PARAMETERS
) -> CardMemoryState:
    """
    Compute the memory state that results from rating a card at `now`.

    New cards take their stability and difficulty from the seed tables.
    EASY on a brand-new card graduates it straight to REVIEW (easy bonus
    rule); every other first rating starts LEARNING.

    Seen cards:
    - AGAIN shrinks stability, counts a lapse, and moves to RELEARNING
    - HARD/GOOD/EASY grow stability; LEARNING/RELEARNING cards graduate
      to REVIEW once stability reaches the graduation threshold

    Args:
        state: Current memory state (not modified)
        rating: AGAIN, HARD, GOOD or EASY (enum, int 1-4, or name)
        now: Timezone-aware review time
        params: Parameter table

    Returns:
        New CardMemoryState

    Raises:
        InvalidRating: rating outside the four buttons
        InvalidTimestamp: naive `now`, or `now` before the last review
    """
    rating = Rating.parse(rating)
    elapsed_days = elapsed_days_since_review(state, now)

    lapses = state.lapses + 1 if rating == Rating.AGAIN else state.lapses

    if state.is_new:
        stability = updates.initial_stability(rating, params)
        difficulty = updates.initial_difficulty(rating, params)
        phase = CardPhase.REVIEW if rating == Rating.EASY else CardPhase.LEARNING
    else:
        retrievability = calculate_retrievability(
            state.stability, elapsed_days, params.decay_scale
        )
        # Stability updates use the difficulty after this rating
        difficulty = updates.update_difficulty(state.difficulty, rating, params)

        if rating == Rating.AGAIN:
            stability = updates.update_stability_on_failure(
                state.stability, difficulty, retrievability, params
            )
            phase = CardPhase.RELEARNING
        else:
            stability = updates.update_stability_on_success(
                state.stability, difficulty, retrievability, rating, params
            )
            phase = _phase_after_success(state.phase, stability, params)

    interval_days = updates.next_interval(stability, rating, params)

    return replace(
        state,
        stability=stability,
        difficulty=difficulty,
        phase=phase,
        due_at=now + timedelta(days=interval_days),
        last_reviewed_at=now,
        reps=state.reps + 1,
        lapses=lapses,
        elapsed_days_at_last_review=elapsed_days,
    )


def _phase_after_success(
    phase: CardPhase,
    stability: float,
    params: FSRSParameters
) -> CardPhase:
    if phase == CardPhase.REVIEW or stability >= params.graduation_stability:
        return CardPhase.REVIEW
    return phase
