"""
Deck filters applied before queue construction.

The engine does not define the taxonomy; it only matches card metadata
against the values a caller selected.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from study_core.fsrs.constants import CardPhase
from study_core.fsrs.memory_state import Card


def _as_set(values: Optional[Iterable]) -> frozenset:
    if values is None:
        return frozenset()
    if isinstance(values, str):
        return frozenset([values])
    return frozenset(values)


@dataclass(frozen=True)
class DeckFilter:
    """
    Card predicate over taxonomy fields.

    Each non-empty field must match; an empty field places no constraint.
    Tags match when the card carries any of the selected tags.
    """
    tags: frozenset = frozenset()
    systems: frozenset = frozenset()
    topics: frozenset = frozenset()
    rotations: frozenset = frozenset()
    phases: frozenset = frozenset()
    difficulty_labels: frozenset = frozenset()

    @classmethod
    def create(
        cls,
        tags: Optional[Iterable[str]] = None,
        systems: Optional[Iterable[str]] = None,
        topics: Optional[Iterable[str]] = None,
        rotations: Optional[Iterable[str]] = None,
        phases: Optional[Iterable] = None,
        difficulty_labels: Optional[Iterable[str]] = None,
    ) -> "DeckFilter":
        return cls(
            tags=_as_set(tags),
            systems=_as_set(systems),
            topics=_as_set(topics),
            rotations=_as_set(rotations),
            phases=frozenset(CardPhase(p) for p in _as_set(phases)),
            difficulty_labels=_as_set(difficulty_labels),
        )

    @property
    def is_empty(self) -> bool:
        return not (self.tags or self.systems or self.topics or self.rotations
                    or self.phases or self.difficulty_labels)

    def __call__(self, card: Card) -> bool:
        return self.matches(card)

    def matches(self, card: Card) -> bool:
        if self.tags and not self.tags.intersection(card.tags):
            return False
        if self.systems and card.system not in self.systems:
            return False
        if self.topics and card.topic not in self.topics:
            return False
        if self.rotations and card.rotation not in self.rotations:
            return False
        if self.phases and card.memory.phase not in self.phases:
            return False
        if self.difficulty_labels and card.difficulty_label not in self.difficulty_labels:
            return False
        return True
