"""
Memory State - FSRS Card State and Retrievability

Defines the core memory state variables and derived quantities for FSRS.

Key concepts:
- Stability (S): Days until retrievability decays to ~90%
- Difficulty (D): How hard the card is to recall (1-10 scale)
- Retrievability (R): Probability of successful recall at time t

All records here are immutable. A review never edits a state in place; it
produces a new one.
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Optional

from study_core.fsrs.constants import (
    CardPhase,
    D_NEUTRAL,
    DECAY_SCALE,
    Rating,
    S_MIN,
)


SECONDS_PER_DAY = 86400.0


@dataclass(frozen=True)
class CardMemoryState:
    """
    Scheduling state for a single card.

    Invariant: phase is NEW exactly when reps == 0.
    """
    card_id: str
    stability: float  # S, in days
    difficulty: float  # D, range 1-10
    phase: CardPhase
    due_at: datetime
    last_reviewed_at: Optional[datetime] = None
    reps: int = 0
    lapses: int = 0
    elapsed_days_at_last_review: float = 0.0

    def __post_init__(self):
        if self.stability <= 0:
            raise ValueError(f"Card {self.card_id}: stability must be > 0")
        if self.reps < 0 or self.lapses < 0:
            raise ValueError(f"Card {self.card_id}: reps and lapses must be >= 0")
        if (self.phase == CardPhase.NEW) != (self.reps == 0):
            raise ValueError(
                f"Card {self.card_id}: phase {self.phase.value} inconsistent with reps={self.reps}"
            )

    @property
    def is_new(self) -> bool:
        return self.reps == 0

    def snapshot(self) -> "MemorySnapshot":
        return MemorySnapshot(
            stability=self.stability,
            difficulty=self.difficulty,
            phase=self.phase,
            due_at=self.due_at,
            last_reviewed_at=self.last_reviewed_at,
            reps=self.reps,
            lapses=self.lapses,
        )


@dataclass(frozen=True)
class MemorySnapshot:
    """Point-in-time copy of the scheduling fields, stored on review events."""
    stability: float
    difficulty: float
    phase: CardPhase
    due_at: datetime
    last_reviewed_at: Optional[datetime]
    reps: int
    lapses: int


@dataclass(frozen=True)
class Card:
    """
    A flashcard record: taxonomy metadata plus the memory state it owns.
    """
    card_id: str
    memory: CardMemoryState
    topic: str = "General"
    system: str = "General"
    tags: tuple[str, ...] = ()
    rotation: Optional[str] = None
    difficulty_label: Optional[str] = None  # Authoring label: easy / medium / hard

    def __post_init__(self):
        if self.memory.card_id != self.card_id:
            raise ValueError(
                f"Card {self.card_id} holds memory state of card {self.memory.card_id}"
            )

    def with_memory(self, memory: CardMemoryState) -> "Card":
        return replace(self, memory=memory)


@dataclass(frozen=True)
class ReviewEvent:
    """
    Append-only record of one submitted rating.

    The engine is the sole producer of this content; storage only keeps it.
    """
    card_id: str
    timestamp: datetime
    rating: Rating
    prior: MemorySnapshot
    resulting: MemorySnapshot
    elapsed_days: float
    topic: str = "General"
    system: str = "General"
    session_id: Optional[str] = None
    time_spent_ms: Optional[int] = None
    event_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def was_new(self) -> bool:
        return self.prior.phase == CardPhase.NEW

    @property
    def is_success(self) -> bool:
        return self.rating != Rating.AGAIN


def new_card_state(card_id: str, created_at: Optional[datetime] = None) -> CardMemoryState:
    """
    Initialize state for a new card (never seen before).

    Stability and difficulty are placeholders until the first rating
    replaces them with the seed table values. due_at is advisory only.

    Args:
        card_id: Card identifier
        created_at: Creation time (defaults to now, UTC)

    Returns:
        New CardMemoryState in phase NEW
    """
    if created_at is None:
        created_at = datetime.now(timezone.utc)

    return CardMemoryState(
        card_id=card_id,
        stability=S_MIN,
        difficulty=D_NEUTRAL,
        phase=CardPhase.NEW,
        due_at=created_at,
    )


def calculate_retrievability(
    stability: float,
    elapsed_days: float,
    decay_scale: float = DECAY_SCALE
) -> float:
    """
    Calculate retrievability using exponential decay.

    Formula: R = exp(-Δt / (9 * S))

    Where:
    - Δt = time since last review (in days)
    - S = stability (in days)

    Interpretation:
    - Immediately after review: R = 1.0
    - At Δt == S: R = exp(-1/9) ~= 0.90, the reference threshold
    - As time passes: R decays smoothly towards 0

    Args:
        stability: Current stability in days
        elapsed_days: Time since last review in days
        decay_scale: Multiplier on stability in the exponent

    Returns:
        Retrievability between 0 and 1
    """
    if elapsed_days <= 0:
        return 1.0

    return math.exp(-elapsed_days / (stability * decay_scale))


def days_between(start: datetime, end: datetime) -> float:
    """Fractional days from start to end (negative if end is earlier)."""
    return (end - start).total_seconds() / SECONDS_PER_DAY


def is_aware(timestamp: datetime) -> bool:
    """True when the timestamp carries a UTC offset."""
    return timestamp.tzinfo is not None and timestamp.utcoffset() is not None
