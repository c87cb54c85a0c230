"""
FSRS - Free Spaced Repetition Scheduler

Memory model and scheduling API for the study engine.

This module implements:
- Interpretable memory state (Stability, Difficulty, Retrievability)
- Exponential forgetting curve: R = exp(-Δt/(9S))
- A pure rating -> next-state transition
- Calendar logic and persistence around it (Scheduler)

Quick start:
    from study_core import fsrs

    store = fsrs.SqlAlchemyStore("sqlite:///logs/study.db")
    store.init_db()

    scheduler = fsrs.Scheduler(store)
    outcome = scheduler.apply_rating(card, fsrs.Rating.GOOD, now)
    if outcome.warning:
        ...  # storage unavailable; retry later
"""

# Pure algorithm
from study_core.fsrs.transition import transition

# Scheduler API
from study_core.fsrs.scheduling import (
    RatingOutcome,
    Scheduler,
    format_interval,
    study_day_start,
)

# Storage
from study_core.fsrs.storage import ReviewStore, InMemoryStore
from study_core.fsrs.database import SqlAlchemyStore, create_store_engine

# Constants and parameters
from study_core.fsrs.constants import (
    CardPhase,
    Rating,
    S_MIN,
    D_MIN,
    D_MAX,
    GRADUATION_STABILITY,
    MAX_INTERVAL_DAYS,
)
from study_core.fsrs.parameters import DEFAULT_PARAMETERS, FSRSParameters

# Memory state
from study_core.fsrs.memory_state import (
    Card,
    CardMemoryState,
    MemorySnapshot,
    ReviewEvent,
    calculate_retrievability,
    new_card_state,
)


__all__ = [
    # Core algorithm
    "transition",

    # Scheduler
    "RatingOutcome",
    "Scheduler",
    "format_interval",
    "study_day_start",

    # Storage
    "ReviewStore",
    "InMemoryStore",
    "SqlAlchemyStore",
    "create_store_engine",

    # Constants and parameters
    "CardPhase",
    "Rating",
    "S_MIN",
    "D_MIN",
    "D_MAX",
    "GRADUATION_STABILITY",
    "MAX_INTERVAL_DAYS",
    "DEFAULT_PARAMETERS",
    "FSRSParameters",

    # Memory state
    "Card",
    "CardMemoryState",
    "MemorySnapshot",
    "ReviewEvent",
    "calculate_retrievability",
    "new_card_state",
]
