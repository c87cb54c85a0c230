"""
Session state and outcome types used by the session controller.

A session is always in exactly one of four states:

    Presenting(card) -> Revealed(card) -> Rated(card, rating)
        -> Presenting(next) | Complete
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Union

from study_core.fsrs.constants import Rating


@dataclass(frozen=True)
class Presenting:
    """Front of a card is shown."""
    card_id: str


@dataclass(frozen=True)
class Revealed:
    """Answer is shown; waiting for a rating."""
    card_id: str
    revealed_at: datetime


@dataclass(frozen=True)
class Rated:
    """Rating applied; waiting for advance()."""
    card_id: str
    rating: Rating


@dataclass(frozen=True)
class SessionSummary:
    """
    Final counters of a session, emitted once on completion.
    """
    session_id: str
    reviewed: int
    correct: int
    incorrect: int
    accuracy: float
    duration_seconds: float


@dataclass(frozen=True)
class Complete:
    """Terminal state. Read-only."""
    summary: SessionSummary


SessionState = Union[Presenting, Revealed, Rated, Complete]


@dataclass(frozen=True)
class CardOutcome:
    """
    Emitted after every rating for downstream consumers (points, streaks).
    """
    card_id: str
    rating: Rating
    session_id: str
    timestamp: datetime
