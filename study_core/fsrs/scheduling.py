"""
Scheduling - Main FSRS API for Review Management

This module ties the pure transition to the calendar and to storage.

Main workflow:
1. User rates a card
2. The transition function computes the new memory state
3. A review event is built from the before/after snapshots
4. State and event are written to storage; a failed write is reported as a
   PersistenceWarning instead of interrupting the session
"""

from __future__ import annotations

import logging
import math
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Iterator, Optional

from study_core.errors import InvalidTimestamp, PersistenceWarning
from study_core.fsrs.constants import Rating
from study_core.fsrs.memory_state import Card, CardMemoryState, ReviewEvent, days_between, is_aware
from study_core.fsrs.parameters import DEFAULT_PARAMETERS, FSRSParameters
from study_core.fsrs.storage import ReviewStore
from study_core.fsrs.transition import RatingLike, transition

if TYPE_CHECKING:
    from study_core.config import EngineSettings

logger = logging.getLogger(__name__)

LOCK_STRIPES = 64           # Card ids hash onto a fixed pool of locks


@dataclass(frozen=True)
class RatingOutcome:
    """
    Result of applying one rating.

    `warning` is set when the new state could not be persisted; the state
    and event are still valid and the caller may retry the write.
    """
    card: Card
    event: ReviewEvent
    warning: Optional[PersistenceWarning] = None

    @property
    def state(self) -> CardMemoryState:
        return self.card.memory

    @property
    def persisted(self) -> bool:
        return self.warning is None


class Scheduler:
    """
    Thin orchestration over the memory model.

    Stateless apart from its collaborators: it never caches card state
    between calls. Ratings for the same card are serialized through a
    lock striped by card id, since transitions do not commute.
    """

    def __init__(
        self,
        store: Optional[ReviewStore] = None,
        params: FSRSParameters = DEFAULT_PARAMETERS,
        day_rollover_hour: int = 4,
    ):
        self.store = store
        self.params = params
        self.day_rollover_hour = day_rollover_hour
        self._locks = [threading.Lock() for _ in range(LOCK_STRIPES)]

    @classmethod
    def from_settings(cls, settings: EngineSettings, store: Optional[ReviewStore] = None) -> Scheduler:
        """Scheduler using the configured parameter table and rollover hour."""
        return cls(store, settings.fsrs_parameters(), settings.day_rollover_hour)

    # ---- Queries ----

    def is_due(self, state: CardMemoryState, as_of: datetime) -> bool:
        """
        True when the card should be shown at `as_of`.

        New cards are always due; their due_at is advisory until the first
        review.
        """
        _require_aware(as_of)
        if state.is_new:
            return True
        return state.due_at <= as_of

    def days_until_due(self, state: CardMemoryState, as_of: datetime) -> int:
        """
        Whole days until due, rounded up; negative when overdue.
        """
        _require_aware(as_of)
        hours = (state.due_at - as_of).total_seconds() / 3600.0
        return math.ceil(hours / 24.0)

    def preview_intervals(self, state: CardMemoryState, now: datetime) -> dict[Rating, float]:
        """
        Interval in days that each rating would schedule, without applying it.
        """
        preview = {}
        for rating in Rating:
            result = transition(state, rating, now, self.params)
            preview[rating] = days_between(now, result.due_at)
        return preview

    def study_day_start(self, as_of: datetime) -> datetime:
        """
        Start of the study day containing `as_of` (UTC, at the rollover hour).
        """
        return study_day_start(as_of, self.day_rollover_hour)

    # ---- Commands ----

    def apply_rating(
        self,
        card: Card,
        rating: RatingLike,
        now: datetime,
        session_id: Optional[str] = None,
        time_spent_ms: Optional[int] = None,
    ) -> RatingOutcome:
        """
        Rate a card, persist the result and return it.

        Args:
            card: Card record holding the current memory state
            rating: AGAIN, HARD, GOOD or EASY
            now: Timezone-aware review time
            session_id: Optional session identifier stored on the event
            time_spent_ms: Optional answer latency stored on the event

        Returns:
            RatingOutcome with the updated card, the review event and a
            PersistenceWarning if storage failed

        Raises:
            InvalidRating, InvalidTimestamp: nothing is persisted
        """
        with self._card_lock(card.card_id):
            prior = card.memory
            resulting = transition(prior, rating, now, self.params)
            updated = card.with_memory(resulting)

            event = ReviewEvent(
                card_id=card.card_id,
                timestamp=now,
                rating=Rating.parse(rating),
                prior=prior.snapshot(),
                resulting=resulting.snapshot(),
                elapsed_days=resulting.elapsed_days_at_last_review,
                topic=card.topic,
                system=card.system,
                session_id=session_id,
                time_spent_ms=time_spent_ms,
            )
            warning = self.persist(updated, event)

        logger.debug(
            "[SCHEDULER] %s rated %s: %s -> %s, S=%.2f D=%.2f due %s",
            card.card_id, event.rating.name, prior.phase.value, resulting.phase.value,
            resulting.stability, resulting.difficulty, resulting.due_at.isoformat(),
        )
        return RatingOutcome(card=updated, event=event, warning=warning)

    def persist(
        self,
        card: Card,
        event: ReviewEvent,
        save_state: bool = True
    ) -> Optional[PersistenceWarning]:
        """
        Write a card and its review event to storage.

        Any storage failure is logged and returned as a PersistenceWarning;
        scheduling does not wait on storage availability. With
        `save_state=False` only the event is appended, for retries whose
        card snapshot has since been superseded.
        """
        if self.store is None:
            return None
        try:
            if save_state:
                self.store.save_card(card)
            self.store.append_review_event(event)
        except Exception as exc:
            logger.warning("[SCHEDULER] Could not persist review of %s: %s", card.card_id, exc)
            return PersistenceWarning(card.card_id, exc)
        return None

    @contextmanager
    def _card_lock(self, card_id: str) -> Iterator[None]:
        with self._locks[hash(card_id) % LOCK_STRIPES]:
            yield


def _require_aware(as_of: datetime) -> None:
    if not is_aware(as_of):
        raise InvalidTimestamp("as_of must be timezone-aware")


def format_interval(days: float) -> str:
    """
    Format an interval for display on a rating button.
    """
    if days < 1 / 1440:
        return "<1m"
    if days < 1 / 24:
        return f"{round(days * 24 * 60)}m"
    if days < 1:
        return f"{round(days * 24)}h"
    if days < 30:
        return f"{round(days)}d"
    if days < 365:
        return f"{round(days / 30)}mo"
    return f"{days / 365:.1f}y"


def study_day_start(as_of: datetime, rollover_hour: int = 4) -> datetime:
    """
    Start of the study day containing `as_of`.

    A study day runs from `rollover_hour` UTC to the same hour the next day,
    so a late-night session still counts towards the previous day.
    """
    _require_aware(as_of)
    as_of = as_of.astimezone(timezone.utc)
    start = as_of.replace(hour=rollover_hour, minute=0, second=0, microsecond=0)
    if as_of < start:
        start -= timedelta(days=1)
    return start
