"""
Queue Builder - Daily Study Queue Creation

Creates the study queue from two pools:
1. Review pool: seen cards whose due date has passed
2. New pool: cards never seen before

Queue Logic:
- Apply deck filters
- Keep only due cards (new cards are always due); upcoming cards never
  enter a session early
- Cap each pool by what is left of today's budget
- Order each pool most overdue first, then by card id
- Mix new cards in at most one per `new_card_spacing` cards
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Iterable, Optional, Union

from study_core.fsrs.memory_state import Card
from study_core.fsrs.scheduling import Scheduler
from study_core.fsrs.storage import CardPredicate, ReviewStore
from study_core.session_builders.pool_types import DailyCounts, StudyQueue
from study_core.session_builders.pool_utils import (
    count_studied_today,
    due_sort_key,
    interleave_new,
    take,
)

if TYPE_CHECKING:
    from study_core.config import EngineSettings

logger = logging.getLogger(__name__)

# ---- Queue Configuration ----
DAILY_NEW_CAP = 20
DAILY_REVIEW_CAP = 200
NEW_CARD_SPACING = 5         # At most one new card in every 5


FilterArg = Union[None, CardPredicate, Iterable[CardPredicate]]


def _predicates(filters: FilterArg) -> list[Callable[[Card], bool]]:
    if filters is None:
        return []
    if callable(filters):
        return [filters]
    return list(filters)


def build(
    all_cards: Iterable[Card],
    filters: FilterArg = None,
    daily_new_cap: int = DAILY_NEW_CAP,
    daily_review_cap: int = DAILY_REVIEW_CAP,
    already_studied_today: Optional[DailyCounts] = None,
    now: Optional[datetime] = None,
    new_card_spacing: int = NEW_CARD_SPACING,
    scheduler: Optional[Scheduler] = None,
) -> StudyQueue:
    """
    Build the ordered study queue for one session.

    Args:
        all_cards: Every card the user owns
        filters: A predicate, or an iterable of predicates that must all match
        daily_new_cap: New cards allowed per study day
        daily_review_cap: Review cards allowed per study day
        already_studied_today: Budget already consumed today
        now: Reference time for due checks
        new_card_spacing: Minimum window holding at most one new card
        scheduler: Supplies the due rule (a storage-less Scheduler by default)

    Returns:
        StudyQueue, possibly empty
    """
    if now is None:
        raise ValueError("build() needs the reference time `now`")
    if already_studied_today is None:
        already_studied_today = DailyCounts()
    if scheduler is None:
        scheduler = Scheduler()

    predicates = _predicates(filters)
    selected = [c for c in all_cards if all(p(c) for p in predicates)]

    due = [c for c in selected if scheduler.is_due(c.memory, now)]
    new_cards = sorted((c for c in due if c.memory.is_new), key=due_sort_key)
    review_cards = sorted((c for c in due if not c.memory.is_new), key=due_sort_key)

    new_cards = take(new_cards, daily_new_cap - already_studied_today.new_count)
    review_cards = take(review_cards, daily_review_cap - already_studied_today.review_count)

    new_ids = [c.card_id for c in new_cards]
    review_ids = [c.card_id for c in review_cards]
    queue = StudyQueue(
        card_ids=interleave_new(review_ids, new_ids, new_card_spacing),
        new_card_ids=frozenset(new_ids),
    )

    logger.info(
        "[QUEUE] %d selected, %d due -> queue of %d (%d review, %d new)",
        len(selected), len(due), len(queue), len(review_ids), len(new_ids),
    )
    return queue


def build_for_today(
    store: ReviewStore,
    now: datetime,
    filters: FilterArg = None,
    daily_new_cap: Optional[int] = None,
    daily_review_cap: Optional[int] = None,
    new_card_spacing: Optional[int] = None,
    scheduler: Optional[Scheduler] = None,
    settings: Optional[EngineSettings] = None,
) -> tuple[StudyQueue, dict[str, Card]]:
    """
    Load cards and today's reviews from storage, then build the queue.

    Caps and spacing passed explicitly win; otherwise they come from
    `settings`, then from the module defaults.

    Returns:
        (queue, cards by id) ready to hand to a SessionController
    """
    if settings is not None:
        daily_new_cap = settings.daily_new_cap if daily_new_cap is None else daily_new_cap
        daily_review_cap = settings.daily_review_cap if daily_review_cap is None else daily_review_cap
        new_card_spacing = settings.new_card_spacing if new_card_spacing is None else new_card_spacing
    if scheduler is None:
        if settings is not None:
            scheduler = Scheduler.from_settings(settings, store)
        else:
            scheduler = Scheduler(store)

    cards = store.load_cards(_predicates(filters))
    # Two days always covers the current study day, whatever the rollover hour
    events = store.load_review_events(window_days=2, as_of=now)
    studied = count_studied_today(events, now, scheduler.day_rollover_hour)

    queue = build(
        cards,
        daily_new_cap=DAILY_NEW_CAP if daily_new_cap is None else daily_new_cap,
        daily_review_cap=DAILY_REVIEW_CAP if daily_review_cap is None else daily_review_cap,
        already_studied_today=studied,
        now=now,
        new_card_spacing=NEW_CARD_SPACING if new_card_spacing is None else new_card_spacing,
        scheduler=scheduler,
    )
    return queue, {c.card_id: c for c in cards}
