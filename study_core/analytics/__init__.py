"""
Analytics package exports.
"""

from study_core.analytics.service import (
    compute_daily_reviews,
    compute_topic_performance,
    deck_stats,
)
from study_core.analytics.types import (
    DEFAULT_THRESHOLDS,
    DeckStats,
    Strength,
    StrengthThresholds,
    TopicPerformance,
)

__all__ = [
    "compute_daily_reviews",
    "compute_topic_performance",
    "deck_stats",
    "DEFAULT_THRESHOLDS",
    "DeckStats",
    "Strength",
    "StrengthThresholds",
    "TopicPerformance",
]
