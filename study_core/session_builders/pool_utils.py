"""
Pool utilities for the queue builder.

These helpers provide shared, minimal primitives for ordering, capping and
mixing card pools. They hold no state and make no storage calls.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, TypeVar

from study_core.fsrs.memory_state import Card, ReviewEvent
from study_core.fsrs.scheduling import study_day_start
from study_core.session_builders.pool_types import DailyCounts


T = TypeVar("T")


def due_sort_key(card: Card) -> tuple[datetime, str]:
    """Most overdue first, card id as tie-breaker."""
    return (card.memory.due_at, card.card_id)


def take(items: list[T], limit: int) -> list[T]:
    """
    First `limit` items; a negative budget takes nothing.
    """
    if limit <= 0:
        return []
    return items[:limit]


def interleave_new(review_ids: list[T], new_ids: list[T], spacing: int) -> list[T]:
    """
    Mix new cards into the review sequence.

    Every `spacing`-th slot holds a new card while review cards remain, so
    any window of `spacing` consecutive cards contains at most one new card.
    New cards left over once reviews run out are appended in order.
    """
    if spacing < 1:
        raise ValueError("spacing must be >= 1")

    mixed: list[T] = []
    r = n = 0
    while r < len(review_ids):
        if n < len(new_ids) and (len(mixed) + 1) % spacing == 0:
            mixed.append(new_ids[n])
            n += 1
        else:
            mixed.append(review_ids[r])
            r += 1
    mixed.extend(new_ids[n:])
    return mixed


def count_studied_today(
    events: Iterable[ReviewEvent],
    as_of: datetime,
    rollover_hour: int = 4
) -> DailyCounts:
    """
    Distinct new and review cards rated since the start of the study day.

    A card counts as new when the day's first rating of it found it unseen.
    """
    day_start = study_day_start(as_of, rollover_hour)

    new_ids: set[str] = set()
    review_ids: set[str] = set()
    for event in sorted(events, key=lambda e: e.timestamp):
        if event.timestamp < day_start or event.timestamp > as_of:
            continue
        if event.card_id in new_ids or event.card_id in review_ids:
            continue
        if event.was_new:
            new_ids.add(event.card_id)
        else:
            review_ids.add(event.card_id)

    return DailyCounts(new_count=len(new_ids), review_count=len(review_ids))
