"""
FSRS Constants and Parameters

Enums and default values for the memory model in one place.
The defaults below seed FSRSParameters; deployments override them through
a parameters file rather than by editing this module.
"""

from __future__ import annotations

from enum import Enum, IntEnum

from study_core.errors import InvalidRating


# ---- Ratings ----

class Rating(IntEnum):
    """Button pressed after the answer is revealed."""
    AGAIN = 1   # Retrieval failed
    HARD = 2    # Retrieved with high effort
    GOOD = 3    # Retrieved normally
    EASY = 4    # Retrieved fluently

    @classmethod
    def parse(cls, value: object) -> "Rating":
        """
        Coerce a rating from an enum member, an int 1-4 or a name.

        Raises:
            InvalidRating: for anything outside the four ratings
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            raise InvalidRating(f"Invalid rating: {value!r}")
        if isinstance(value, int):
            try:
                return cls(value)
            except ValueError:
                raise InvalidRating(f"Invalid rating: {value!r}") from None
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise InvalidRating(f"Invalid rating: {value!r}") from None
        raise InvalidRating(f"Invalid rating: {value!r}")


class CardPhase(str, Enum):
    """Lifecycle stage of a card."""
    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"
    RELEARNING = "relearning"


# ---- Global Constants ----

DECAY_SCALE = 9.0           # R = exp(-t / (9 * S)) ~= 0.9 at t == S
S_MIN = 0.1                 # Minimum stability (days)
D_MIN = 1.0                 # Minimum difficulty
D_MAX = 10.0                # Maximum difficulty
D_NEUTRAL = 5.0             # Placeholder difficulty for unseen cards
GRADUATION_STABILITY = 3.0  # Stability (days) at which Learning becomes Review
MAX_INTERVAL_DAYS = 36500   # Hard cap on any scheduled interval


# ---- Seed Values for a Card's First Rating ----

INITIAL_STABILITY = {
    Rating.AGAIN: 0.4,
    Rating.HARD: 0.6,
    Rating.GOOD: 2.4,
    Rating.EASY: 5.8,
}

INITIAL_DIFFICULTY = {
    Rating.AGAIN: 7.0,
    Rating.HARD: 6.0,
    Rating.GOOD: 5.0,
    Rating.EASY: 3.5,
}


# ---- Difficulty Update ----
# D' = clamp(D + DELTA[rating] - (D - 1) * DECAY, D_MIN, D_MAX)
# A run of GOOD ratings settles at 1 + DELTA[GOOD] / DECAY.

DIFFICULTY_DELTA = {
    Rating.AGAIN: +1.5,
    Rating.HARD: +0.6,
    Rating.GOOD: +0.2,
    Rating.EASY: -0.6,
}

DIFFICULTY_DECAY = 0.05


# ---- Stability Growth ----

RECALL_GROWTH = 1.49         # exp(w) scale of the recall gain
STABILITY_DAMPING = 0.14     # Larger stabilities grow proportionally less
RETRIEVABILITY_GAIN = 0.94   # Reward for recalling at low retrievability
MIN_RECALL_GAIN = 0.2        # Growth floor for same-day successes
HARD_PENALTY = 0.5
EASY_BONUS = 2.0

FORGET_SCALE = 2.18
FORGET_DIFFICULTY_EXP = 0.05
FORGET_STABILITY_EXP = 0.34
FORGET_RETRIEVABILITY_GAIN = 1.26
FORGET_CEILING = 0.9         # Post-lapse stability is at most 90% of the old one


# ---- Interval Factors ----

INTERVAL_FACTOR = {
    Rating.AGAIN: 1.0,
    Rating.HARD: 0.8,
    Rating.GOOD: 1.0,
    Rating.EASY: 1.3,
}
