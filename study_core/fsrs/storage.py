"""
Storage port for card records and review events.

The engine reads cards and writes append-only review events through this
interface and assumes nothing about durability or latency. Adapters:
    - InMemoryStore: dict-backed, for tests and embedding
    - SqlAlchemyStore (study_core.fsrs.database): relational persistence
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional

from study_core.fsrs.memory_state import Card, ReviewEvent


CardPredicate = Callable[[Card], bool]


class ReviewStore(ABC):
    """
    Port for loading cards and recording reviews.

    Any method may raise StorageError; callers decide whether that is fatal.
    """

    @abstractmethod
    def load_cards(self, filters: Optional[Iterable[CardPredicate]] = None) -> list[Card]:
        """
        Load all cards matching every predicate in `filters`.
        """

    @abstractmethod
    def save_card(self, card: Card) -> None:
        """
        Insert or replace a card record, memory state included.
        """

    @abstractmethod
    def append_review_event(self, event: ReviewEvent) -> None:
        """
        Append one review event. Events are never updated afterwards.
        """

    @abstractmethod
    def load_review_events(
        self,
        card_ids: Optional[Iterable[str]] = None,
        window_days: Optional[float] = None,
        as_of: Optional[datetime] = None,
    ) -> list[ReviewEvent]:
        """
        Load review events, oldest first.

        Args:
            card_ids: Restrict to these cards (all cards when None)
            window_days: Restrict to the trailing window ending at `as_of`
            as_of: End of the window (defaults to now, UTC)
        """


def window_start(window_days: Optional[float], as_of: Optional[datetime]) -> Optional[datetime]:
    """Earliest timestamp inside a trailing window, or None for no window."""
    if window_days is None:
        return None
    if as_of is None:
        as_of = datetime.now(timezone.utc)
    return as_of - timedelta(days=window_days)


def matches_all(card: Card, filters: Optional[Iterable[CardPredicate]]) -> bool:
    if not filters:
        return True
    return all(predicate(card) for predicate in filters)


class InMemoryStore(ReviewStore):
    """
    Process-local store. Card order follows insertion order.
    """

    def __init__(self, cards: Optional[Iterable[Card]] = None):
        self._cards: dict[str, Card] = {}
        self._events: list[ReviewEvent] = []
        for card in cards or ():
            self._cards[card.card_id] = card

    def load_cards(self, filters: Optional[Iterable[CardPredicate]] = None) -> list[Card]:
        filters = list(filters) if filters else None
        return [c for c in self._cards.values() if matches_all(c, filters)]

    def get_card(self, card_id: str) -> Optional[Card]:
        return self._cards.get(card_id)

    def save_card(self, card: Card) -> None:
        self._cards[card.card_id] = card

    def append_review_event(self, event: ReviewEvent) -> None:
        self._events.append(event)

    def load_review_events(
        self,
        card_ids: Optional[Iterable[str]] = None,
        window_days: Optional[float] = None,
        as_of: Optional[datetime] = None,
    ) -> list[ReviewEvent]:
        wanted = set(card_ids) if card_ids is not None else None
        start = window_start(window_days, as_of)

        result = []
        for event in self._events:
            if wanted is not None and event.card_id not in wanted:
                continue
            if start is not None and event.timestamp < start:
                continue
            if as_of is not None and event.timestamp > as_of:
                continue
            result.append(event)
        result.sort(key=lambda e: e.timestamp)
        return result
