import random
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from study_core.fsrs.constants import CardPhase
from study_core.fsrs.memory_state import Card, CardMemoryState, new_card_state
from study_core.fsrs.storage import InMemoryStore


T0 = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def build_card(
    card_id: str,
    phase: CardPhase = CardPhase.NEW,
    stability: float = 5.0,
    difficulty: float = 5.0,
    due_at: Optional[datetime] = None,
    last_reviewed_at: Optional[datetime] = None,
    reps: Optional[int] = None,
    lapses: int = 0,
    topic: str = "Cardiology",
    system: str = "Cardiovascular",
    tags: tuple = (),
    rotation: Optional[str] = None,
    difficulty_label: Optional[str] = None,
) -> Card:
    """Card in any phase; seen cards default to one review a stability ago."""
    if phase == CardPhase.NEW:
        memory = new_card_state(card_id, created_at=due_at or T0)
    else:
        if last_reviewed_at is None:
            last_reviewed_at = T0 - timedelta(days=stability)
        memory = CardMemoryState(
            card_id=card_id,
            stability=stability,
            difficulty=difficulty,
            phase=phase,
            due_at=due_at or last_reviewed_at + timedelta(days=round(stability)),
            last_reviewed_at=last_reviewed_at,
            reps=reps if reps is not None else 3,
            lapses=lapses,
        )
    return Card(
        card_id=card_id,
        memory=memory,
        topic=topic,
        system=system,
        tags=tuple(tags),
        rotation=rotation,
        difficulty_label=difficulty_label,
    )


@pytest.fixture
def t0():
    return T0


@pytest.fixture
def make_card():
    return build_card


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def rng():
    return random.Random(1234)


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def tick(self, **delta) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


@pytest.fixture
def clock():
    return FixedClock(T0)
