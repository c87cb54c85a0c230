"""
Service layer for retention analytics.

Everything here is read-only: results are rebuilt from review events on
every call and never cached or updated incrementally.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

import pandas as pd

from study_core.analytics.constants import DEFAULT_WINDOW_DAYS, MIN_SAMPLE_SIZE
from study_core.analytics.metrics import (
    compute_daily_reviews as _daily_reviews_df,
    compute_retention_by_topic,
    filter_window,
)
from study_core.analytics.queries import events_to_df
from study_core.analytics.types import (
    DEFAULT_THRESHOLDS,
    DeckStats,
    StrengthThresholds,
    TopicPerformance,
)
from study_core.errors import InvalidTimestamp
from study_core.fsrs.constants import CardPhase
from study_core.fsrs.memory_state import Card, ReviewEvent, is_aware
from study_core.fsrs.scheduling import Scheduler


def compute_topic_performance(
    events: Iterable[ReviewEvent],
    window_days: float = DEFAULT_WINDOW_DAYS,
    as_of: Optional[datetime] = None,
    min_sample_size: int = MIN_SAMPLE_SIZE,
    thresholds: StrengthThresholds = DEFAULT_THRESHOLDS,
    weakest_first: bool = True,
) -> list[TopicPerformance]:
    """
    Retention rate and strength label per (topic, system).

    Args:
        events: Review events (any order)
        window_days: Length of the trailing window
        as_of: End of the window; defaults to the latest event so the
            result depends on the inputs only
        min_sample_size: Groups with fewer events are left out entirely
        thresholds: Strength cut points
        weakest_first: Sort by ascending retention; otherwise by topic

    Returns:
        List of TopicPerformance, deterministic for the same inputs
    """
    if window_days <= 0:
        raise ValueError("window_days must be > 0")
    if as_of is not None and not is_aware(as_of):
        raise InvalidTimestamp("as_of must be timezone-aware")

    events_df = events_to_df(events)
    if events_df.empty:
        return []
    if as_of is None:
        as_of = events_df["timestamp"].max().to_pydatetime()

    scoped = filter_window(events_df, window_days, as_of)
    by_topic = compute_retention_by_topic(scoped)
    by_topic = by_topic[by_topic["sample_size"] >= min_sample_size]

    if weakest_first:
        by_topic = by_topic.sort_values(["retention_rate", "topic", "system"], kind="mergesort")
    else:
        by_topic = by_topic.sort_values(["topic", "system"], kind="mergesort")

    return [
        TopicPerformance(
            topic=row.topic,
            system=row.system,
            retention_rate=float(row.retention_rate),
            strength=thresholds.classify(float(row.retention_rate)),
            sample_size=int(row.sample_size),
        )
        for row in by_topic.itertuples(index=False)
    ]


def compute_daily_reviews(events: Iterable[ReviewEvent]) -> pd.DataFrame:
    """
    Daily review counts and retention for dashboards.

    Returns:
        DataFrame indexed by UTC day with columns reviews, correct, retention
    """
    return _daily_reviews_df(events_to_df(events))


def deck_stats(
    cards: Iterable[Card],
    as_of: datetime,
    scheduler: Optional[Scheduler] = None
) -> DeckStats:
    """
    Count cards by phase and due status.
    """
    if scheduler is None:
        scheduler = Scheduler()

    total = new = learning = review = due = 0
    review_stability = []
    review_difficulty = []
    for card in cards:
        memory = card.memory
        total += 1
        if memory.phase == CardPhase.NEW:
            new += 1
        elif memory.phase == CardPhase.REVIEW:
            review += 1
            review_stability.append(memory.stability)
            review_difficulty.append(memory.difficulty)
        else:
            learning += 1
        if scheduler.is_due(memory, as_of):
            due += 1

    return DeckStats(
        total=total,
        new=new,
        learning=learning,
        review=review,
        due=due,
        average_stability=sum(review_stability) / review if review else None,
        average_difficulty=sum(review_difficulty) / review if review else None,
    )
