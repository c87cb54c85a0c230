"""
Constants for retention analytics.
"""

from __future__ import annotations

from typing import Final


DEFAULT_WINDOW_DAYS: Final[int] = 30
MIN_SAMPLE_SIZE: Final[int] = 5

# Strength labels: weak < WEAK_BELOW <= moderate < STRONG_FROM <= strong
WEAK_BELOW: Final[float] = 0.70
STRONG_FROM: Final[float] = 0.85

EVENT_COLUMNS: Final[list[str]] = [
    "event_id",
    "card_id",
    "topic",
    "system",
    "timestamp",
    "rating",
    "success",
    "was_new",
    "session_id",
    "time_spent_ms",
]
