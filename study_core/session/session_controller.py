"""
Session lifecycle controller.

Drives one study session over a StudyQueue: present -> reveal -> rate ->
advance. Cards rated AGAIN come back later in the same session.
"""

from __future__ import annotations

import logging
import random
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable, Mapping, Optional, Union

from study_core.errors import InvalidSessionTransition, InvalidTimestamp
from study_core.fsrs.constants import Rating
from study_core.fsrs.memory_state import Card, ReviewEvent, is_aware
from study_core.fsrs.scheduling import RatingOutcome, Scheduler
from study_core.fsrs.transition import RatingLike
from study_core.session.session_types import (
    CardOutcome,
    Complete,
    Presenting,
    Rated,
    Revealed,
    SessionState,
    SessionSummary,
)
from study_core.session_builders.pool_types import StudyQueue

if TYPE_CHECKING:
    from study_core.config import EngineSettings

logger = logging.getLogger(__name__)

# ---- Requeue Configuration ----
REQUEUE_MIN_OFFSET = 3      # AGAIN cards return after at least 3 other cards
REQUEUE_MAX_OFFSET = 8


Subscriber = Callable[[Union[CardOutcome, SessionSummary]], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionController:
    """
    Explicit state machine for a single study session.

    Invalid calls raise InvalidSessionTransition and leave the state
    unchanged. A rating that fails validation keeps the session in Revealed
    so the caller can prompt again.
    """

    def __init__(
        self,
        queue: StudyQueue,
        cards: Mapping[str, Card],
        scheduler: Scheduler,
        session_id: Optional[str] = None,
        clock: Callable[[], datetime] = _utcnow,
        rng: Optional[random.Random] = None,
        requeue_min_offset: int = REQUEUE_MIN_OFFSET,
        requeue_max_offset: int = REQUEUE_MAX_OFFSET,
    ):
        if not 1 <= requeue_min_offset <= requeue_max_offset:
            raise ValueError("requeue offsets must satisfy 1 <= min <= max")
        missing = [card_id for card_id in queue.card_ids if card_id not in cards]
        if missing:
            raise ValueError(f"Queue references unknown cards: {missing}")

        self.queue = queue
        self.scheduler = scheduler
        self.session_id = session_id or str(uuid.uuid4())
        self._cards = dict(cards)
        self._clock = clock
        self._rng = rng or random.Random()
        self._requeue_min = requeue_min_offset
        self._requeue_max = requeue_max_offset
        self._subscribers: list[Subscriber] = []

        self.reviewed = 0
        self.correct = 0
        self.incorrect = 0
        self.started_at = clock()
        self.pending_writes: list[tuple[Card, ReviewEvent]] = []

        if queue.exhausted:
            self._state: SessionState = self._complete()
        else:
            self._state = Presenting(queue.current())
        logger.info("[SESSION] %s started with %d cards", self.session_id, len(queue))

    @classmethod
    def from_settings(
        cls,
        settings: EngineSettings,
        queue: StudyQueue,
        cards: Mapping[str, Card],
        scheduler: Scheduler,
        **kwargs,
    ) -> SessionController:
        """Controller using the configured requeue offsets."""
        return cls(
            queue,
            cards,
            scheduler,
            requeue_min_offset=settings.requeue_min_offset,
            requeue_max_offset=settings.requeue_max_offset,
            **kwargs,
        )

    # ---- Read access ----

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_complete(self) -> bool:
        return isinstance(self._state, Complete)

    @property
    def summary(self) -> Optional[SessionSummary]:
        if isinstance(self._state, Complete):
            return self._state.summary
        return None

    @property
    def current_card(self) -> Optional[Card]:
        if isinstance(self._state, Complete):
            return None
        return self._cards[self._state.card_id]

    def card(self, card_id: str) -> Card:
        """Latest in-session version of a card."""
        return self._cards[card_id]

    def remaining(self) -> int:
        """Cards still to be shown, the current one included."""
        if isinstance(self._state, Complete):
            return 0
        remaining = len(self.queue.remaining())
        return remaining - 1 if isinstance(self._state, Rated) else remaining

    @property
    def progress(self) -> float:
        """Share of queue entries done, 0.0 to 1.0."""
        if not len(self.queue):
            return 1.0
        return (len(self.queue) - self.remaining()) / len(self.queue)

    def subscribe(self, callback: Subscriber) -> None:
        """
        Register a consumer for CardOutcome and SessionSummary records.
        """
        self._subscribers.append(callback)

    # ---- Transitions ----

    def reveal(self, now: Optional[datetime] = None) -> Revealed:
        state = self._state
        if not isinstance(state, Presenting):
            raise InvalidSessionTransition("reveal", state)
        now = now or self._clock()
        if not is_aware(now):
            raise InvalidTimestamp("Reveal time must be timezone-aware")
        self._state = Revealed(state.card_id, now)
        return self._state

    def rate(self, rating: RatingLike, now: Optional[datetime] = None) -> RatingOutcome:
        """
        Rate the revealed card through the scheduler.

        AGAIN re-inserts the card a random 3 to 8 cards ahead (clamped to
        the end of the queue). A PersistenceWarning on the outcome puts the
        write on `pending_writes` for a later flush.

        Raises:
            InvalidSessionTransition: not in Revealed
            InvalidRating, InvalidTimestamp: state stays Revealed
        """
        state = self._state
        if not isinstance(state, Revealed):
            raise InvalidSessionTransition("rate", state)

        rating = Rating.parse(rating)
        now = now or self._clock()
        if not is_aware(now):
            raise InvalidTimestamp(f"Review time for card {state.card_id} must be timezone-aware")
        time_spent_ms = max(0, int((now - state.revealed_at).total_seconds() * 1000))

        outcome = self.scheduler.apply_rating(
            self._cards[state.card_id],
            rating,
            now,
            session_id=self.session_id,
            time_spent_ms=time_spent_ms,
        )
        self._cards[state.card_id] = outcome.card
        if outcome.warning is not None:
            self.pending_writes.append((outcome.card, outcome.event))

        if rating == Rating.AGAIN:
            offset = self._rng.randint(self._requeue_min, self._requeue_max)
            position = self.queue.insert_ahead(state.card_id, offset)
            logger.debug("[SESSION] Requeued %s at position %d", state.card_id, position)

        self._state = Rated(state.card_id, rating)
        self._emit(CardOutcome(state.card_id, rating, self.session_id, now))
        return outcome

    def advance(self) -> SessionState:
        """
        Count the rated card and move to the next one, or complete.
        """
        state = self._state
        if not isinstance(state, Rated):
            raise InvalidSessionTransition("advance", state)

        self._count(state.rating)
        next_id = self.queue.advance()
        if next_id is None:
            self._state = self._complete()
        else:
            self._state = Presenting(next_id)
        return self._state

    def back(self) -> Presenting:
        """
        Show the previous queue entry again.

        Only allowed before the current card is rated. Memory state is not
        touched; reviews are recorded only by rate().
        """
        state = self._state
        if not isinstance(state, (Presenting, Revealed)) or self.queue.cursor == 0:
            raise InvalidSessionTransition("back", state)
        self._state = Presenting(self.queue.step_back())
        return self._state

    def end(self) -> Complete:
        """
        Stop early. Ratings already applied stay applied.
        """
        state = self._state
        if isinstance(state, Complete):
            raise InvalidSessionTransition("end", state)
        if isinstance(state, Rated):
            self._count(state.rating)
        self._state = self._complete()
        return self._state

    def flush_pending(self) -> int:
        """
        Retry writes that failed during the session.

        Every buffered event is appended. The card itself is only saved
        when the buffered snapshot is still its latest in-session state;
        a card rated again since then already stored a newer one.

        Returns:
            Number of writes still pending
        """
        still_pending = []
        for card, event in self.pending_writes:
            latest = self._cards.get(card.card_id) is card
            if self.scheduler.persist(card, event, save_state=latest) is not None:
                still_pending.append((card, event))
        self.pending_writes = still_pending
        if still_pending:
            logger.warning("[SESSION] %d writes still pending for %s", len(still_pending), self.session_id)
        return len(still_pending)

    # ---- Internals ----

    def _count(self, rating: Rating) -> None:
        self.reviewed += 1
        if rating == Rating.AGAIN:
            self.incorrect += 1
        else:
            self.correct += 1

    def _complete(self) -> Complete:
        if self.pending_writes:
            self.flush_pending()
        duration = (self._clock() - self.started_at).total_seconds()
        summary = SessionSummary(
            session_id=self.session_id,
            reviewed=self.reviewed,
            correct=self.correct,
            incorrect=self.incorrect,
            accuracy=self.correct / self.reviewed if self.reviewed else 0.0,
            duration_seconds=max(0.0, duration),
        )
        logger.info(
            "[SESSION] %s complete: %d reviewed, %d correct",
            self.session_id, summary.reviewed, summary.correct,
        )
        self._emit(summary)
        return Complete(summary)

    def _emit(self, record: Union[CardOutcome, SessionSummary]) -> None:
        for callback in self._subscribers:
            callback(record)
