"""
Typed queue models shared by the queue builder and the session controller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class DailyCounts:
    """
    Budget already consumed in the current study day.
    """
    new_count: int = 0
    review_count: int = 0


@dataclass
class StudyQueue:
    """
    Session-scoped ordered card ids plus a cursor.

    Built once by the queue builder; afterwards only the session controller
    moves the cursor or re-inserts cards.
    """
    card_ids: list[str] = field(default_factory=list)
    new_card_ids: frozenset = frozenset()
    cursor: int = 0

    def __len__(self) -> int:
        return len(self.card_ids)

    @property
    def is_empty(self) -> bool:
        return not self.card_ids

    @property
    def exhausted(self) -> bool:
        return self.cursor >= len(self.card_ids)

    @property
    def new_count(self) -> int:
        return sum(1 for card_id in self.card_ids if card_id in self.new_card_ids)

    def current(self) -> Optional[str]:
        if self.exhausted:
            return None
        return self.card_ids[self.cursor]

    def advance(self) -> Optional[str]:
        """
        Move past the current entry and return the next one, if any.
        """
        if not self.exhausted:
            self.cursor += 1
        return self.current()

    def step_back(self) -> str:
        if self.cursor == 0:
            raise IndexError("Queue cursor is already at the first card")
        self.cursor -= 1
        return self.card_ids[self.cursor]

    def insert_ahead(self, card_id: str, offset: int) -> int:
        """
        Insert `card_id` so that `offset` entries separate it from the
        current one.

        Offsets past the end are clamped so the card is appended.

        Returns:
            The index the card was inserted at
        """
        position = min(self.cursor + 1 + offset, len(self.card_ids))
        self.card_ids.insert(position, card_id)
        return position

    def remaining(self) -> list[str]:
        """Card ids from the current entry to the end."""
        return self.card_ids[self.cursor:]
