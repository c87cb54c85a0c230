"""Tests for the session state machine."""

import random
from datetime import datetime, timedelta

import pytest

from study_core.config import EngineSettings
from study_core.errors import InvalidRating, InvalidSessionTransition, InvalidTimestamp, StorageError
from study_core.fsrs.constants import CardPhase, Rating
from study_core.fsrs.scheduling import Scheduler
from study_core.fsrs.storage import InMemoryStore
from study_core.session import (
    CardOutcome,
    Complete,
    Presenting,
    Rated,
    Revealed,
    SessionController,
    SessionSummary,
)
from study_core.session_builders.pool_types import StudyQueue


def start(make_card, clock, rng, n=3, store=None, **kwargs):
    cards = {f"c{i}": make_card(f"c{i}") for i in range(n)}
    store = store if store is not None else InMemoryStore(cards.values())
    queue = StudyQueue(card_ids=list(cards))
    controller = SessionController(
        queue, cards, Scheduler(store), session_id="s1", clock=clock, rng=rng, **kwargs
    )
    return controller, store


def review(controller, rating, clock=None):
    controller.reveal()
    if clock is not None:
        clock.tick(seconds=4)
    controller.rate(rating)
    return controller.advance()


class FlakyStore(InMemoryStore):
    def __init__(self, cards=None):
        super().__init__(cards)
        self.down = True

    def append_review_event(self, event):
        if self.down:
            raise StorageError("connection refused")
        super().append_review_event(event)


class FailOnceStore(InMemoryStore):
    """Store whose first event append fails."""

    def __init__(self, cards=None):
        super().__init__(cards)
        self.failures_left = 1

    def append_review_event(self, event):
        if self.failures_left:
            self.failures_left -= 1
            raise StorageError("connection reset")
        super().append_review_event(event)


class TestTransitions:
    def test_happy_path(self, make_card, clock, rng):
        controller, store = start(make_card, clock, rng)

        assert controller.state == Presenting("c0")
        assert isinstance(controller.reveal(), Revealed)
        clock.tick(seconds=3)
        outcome = controller.rate(Rating.GOOD)
        assert controller.state == Rated("c0", Rating.GOOD)
        assert outcome.event.time_spent_ms == 3000
        assert outcome.event.session_id == "s1"
        assert controller.advance() == Presenting("c1")
        assert controller.card("c0").memory.reps == 1

    def test_reveal_twice(self, make_card, clock, rng):
        controller, _ = start(make_card, clock, rng)
        controller.reveal()
        with pytest.raises(InvalidSessionTransition):
            controller.reveal()
        assert isinstance(controller.state, Revealed)

    def test_rate_before_reveal(self, make_card, clock, rng):
        controller, store = start(make_card, clock, rng)
        with pytest.raises(InvalidSessionTransition):
            controller.rate(Rating.GOOD)
        assert store.load_review_events() == []

    def test_advance_before_rate(self, make_card, clock, rng):
        controller, _ = start(make_card, clock, rng)
        controller.reveal()
        with pytest.raises(InvalidSessionTransition):
            controller.advance()

    def test_rate_twice(self, make_card, clock, rng):
        controller, _ = start(make_card, clock, rng)
        controller.reveal()
        controller.rate(Rating.GOOD)
        with pytest.raises(InvalidSessionTransition):
            controller.rate(Rating.EASY)

    def test_invalid_rating_keeps_revealed(self, make_card, clock, rng):
        controller, store = start(make_card, clock, rng)
        controller.reveal()
        with pytest.raises(InvalidRating):
            controller.rate("medium")
        assert isinstance(controller.state, Revealed)
        assert store.load_review_events() == []

        controller.rate("good")
        assert isinstance(controller.state, Rated)

    def test_naive_review_time_keeps_revealed(self, make_card, clock, rng):
        controller, store = start(make_card, clock, rng)
        controller.reveal()
        with pytest.raises(InvalidTimestamp):
            controller.rate(Rating.GOOD, now=datetime(2024, 3, 1, 12, 5))
        assert isinstance(controller.state, Revealed)
        assert store.load_review_events() == []

    def test_naive_reveal_time(self, make_card, clock, rng):
        controller, _ = start(make_card, clock, rng)
        with pytest.raises(InvalidTimestamp):
            controller.reveal(now=datetime(2024, 3, 1, 12, 0))
        assert controller.state == Presenting("c0")


class TestCounters:
    def test_summary(self, make_card, clock, rng):
        controller, _ = start(make_card, clock, rng, n=3)
        review(controller, Rating.GOOD, clock)
        review(controller, Rating.HARD, clock)
        state = review(controller, Rating.EASY, clock)

        assert isinstance(state, Complete)
        assert state.summary == SessionSummary(
            session_id="s1", reviewed=3, correct=3, incorrect=0, accuracy=1.0, duration_seconds=12.0,
        )

    def test_again_counts_incorrect_and_requeues(self, make_card, clock, rng):
        controller, _ = start(make_card, clock, rng, n=2)
        review(controller, Rating.AGAIN)
        assert controller.incorrect == 1
        assert controller.queue.card_ids == ["c0", "c1", "c0"]

        review(controller, Rating.GOOD)
        state = review(controller, Rating.GOOD)
        assert isinstance(state, Complete)
        assert state.summary.reviewed == 3
        assert state.summary.correct == 2
        assert state.summary.accuracy == pytest.approx(2 / 3)

    def test_empty_queue_completes_immediately(self, make_card, clock, rng):
        controller = SessionController(StudyQueue(), {}, Scheduler(), clock=clock, rng=rng)
        assert controller.is_complete
        assert controller.summary.reviewed == 0
        assert controller.summary.accuracy == 0.0
        assert controller.progress == 1.0


class TestRequeue:
    @pytest.mark.parametrize("seed", range(25))
    def test_again_card_reappears_before_complete(self, make_card, clock, seed):
        controller, _ = start(make_card, clock, random.Random(seed), n=12)
        shown = []
        target_rated = False
        while not controller.is_complete:
            card_id = controller.state.card_id
            shown.append(card_id)
            rating = Rating.GOOD
            if card_id == "c4" and not target_rated:
                rating = Rating.AGAIN
                target_rated = True
            review(controller, rating)

        assert shown.count("c4") == 2
        first = shown.index("c4")
        between = shown.index("c4", first + 1) - first - 1
        # Seven cards follow c4, so an offset of 8 is clamped to the end
        assert 3 <= between <= 7

    def test_requeue_clamped_at_end(self, make_card, clock):
        controller, _ = start(make_card, clock, random.Random(0), n=2)
        review(controller, Rating.GOOD)
        review(controller, Rating.AGAIN)
        assert controller.state == Presenting("c1")
        assert controller.remaining() == 1
        review(controller, Rating.GOOD)
        assert controller.is_complete

    def test_offsets_from_settings(self, make_card, clock):
        cards = {f"c{i}": make_card(f"c{i}") for i in range(10)}
        controller = SessionController.from_settings(
            EngineSettings(requeue_min_offset=1, requeue_max_offset=1),
            StudyQueue(card_ids=list(cards)),
            cards,
            Scheduler(),
            clock=clock,
            rng=random.Random(7),
        )
        review(controller, Rating.AGAIN)
        assert controller.queue.card_ids[:3] == ["c0", "c1", "c0"]

    def test_offsets_validated(self, make_card, clock, rng):
        with pytest.raises(ValueError):
            start(make_card, clock, rng, requeue_min_offset=5, requeue_max_offset=2)


class TestBack:
    def test_back_before_rating(self, make_card, clock, rng):
        controller, store = start(make_card, clock, rng)
        review(controller, Rating.GOOD)
        events_before = len(store.load_review_events())
        memory_before = controller.card("c0").memory

        controller.reveal()
        assert controller.back() == Presenting("c0")
        assert len(store.load_review_events()) == events_before
        assert controller.card("c0").memory == memory_before

    def test_back_without_history(self, make_card, clock, rng):
        controller, _ = start(make_card, clock, rng)
        with pytest.raises(InvalidSessionTransition):
            controller.back()

    def test_back_after_rating(self, make_card, clock, rng):
        controller, _ = start(make_card, clock, rng)
        review(controller, Rating.GOOD)
        controller.reveal()
        controller.rate(Rating.GOOD)
        with pytest.raises(InvalidSessionTransition):
            controller.back()


class TestComplete:
    def test_no_operations_after_complete(self, make_card, clock, rng):
        controller, _ = start(make_card, clock, rng, n=1)
        review(controller, Rating.GOOD)
        assert controller.is_complete
        summary = controller.summary

        for operation in (controller.reveal, controller.advance, controller.back, controller.end):
            with pytest.raises(InvalidSessionTransition):
                operation()
        with pytest.raises(InvalidSessionTransition):
            controller.rate(Rating.GOOD)
        assert controller.summary is summary
        assert controller.current_card is None
        assert controller.remaining() == 0

    def test_end_early_keeps_applied_ratings(self, make_card, clock, rng):
        controller, store = start(make_card, clock, rng, n=3)
        review(controller, Rating.GOOD)
        controller.reveal()
        controller.rate(Rating.AGAIN)
        state = controller.end()

        assert state.summary.reviewed == 2
        assert state.summary.incorrect == 1
        assert len(store.load_review_events()) == 2


class TestOutcomes:
    def test_subscribers_receive_outcomes_and_summary(self, make_card, clock, rng):
        controller, _ = start(make_card, clock, rng, n=2)
        received = []
        controller.subscribe(received.append)

        review(controller, Rating.GOOD)
        review(controller, Rating.HARD)

        assert [type(r) for r in received] == [CardOutcome, CardOutcome, SessionSummary]
        assert received[0] == CardOutcome("c0", Rating.GOOD, "s1", clock.now)
        assert received[-1].reviewed == 2


class TestPendingWrites:
    def test_failed_writes_buffered_and_flushed(self, make_card, clock, rng):
        store = FlakyStore()
        controller, _ = start(make_card, clock, rng, n=2, store=store)

        controller.reveal()
        outcome = controller.rate(Rating.GOOD)
        assert outcome.warning is not None
        assert len(controller.pending_writes) == 1
        assert isinstance(controller.state, Rated)

        store.down = False
        assert controller.flush_pending() == 0
        assert controller.pending_writes == []
        assert len(store.load_review_events()) == 1

    def test_flush_never_rolls_back_a_newer_state(self, make_card, clock, rng):
        store = FailOnceStore()
        controller, _ = start(make_card, clock, rng, n=2, store=store)

        controller.reveal()
        assert controller.rate(Rating.AGAIN).warning is not None
        controller.advance()
        review(controller, Rating.GOOD, clock)
        assert controller.state == Presenting("c0")
        review(controller, Rating.GOOD, clock)

        assert controller.is_complete
        assert controller.pending_writes == []
        assert controller.card("c0").memory.reps == 2
        assert store.get_card("c0").memory == controller.card("c0").memory
        events = [e for e in store.load_review_events() if e.card_id == "c0"]
        assert sorted(e.rating for e in events) == [Rating.AGAIN, Rating.GOOD]

    def test_flushed_on_completion(self, make_card, clock, rng):
        store = FlakyStore()
        controller, _ = start(make_card, clock, rng, n=1, store=store)
        controller.reveal()
        controller.rate(Rating.GOOD)
        store.down = False
        controller.advance()

        assert controller.is_complete
        assert controller.pending_writes == []
        assert len(store.load_review_events()) == 1


class TestProgress:
    def test_progress_moves_forward(self, make_card, clock, rng):
        controller, _ = start(make_card, clock, rng, n=4)
        assert controller.progress == 0.0
        assert controller.remaining() == 4
        review(controller, Rating.GOOD)
        assert controller.remaining() == 3
        assert controller.progress == pytest.approx(0.25)


def test_time_spent_never_negative(make_card, clock, rng):
    controller, _ = start(make_card, clock, rng)
    controller.reveal(now=clock.now + timedelta(seconds=10))
    outcome = controller.rate(Rating.GOOD)
    assert outcome.event.time_spent_ms == 0


def test_phase_after_session(make_card, clock, rng):
    controller, store = start(make_card, clock, rng, n=1)
    review(controller, Rating.EASY)
    assert store.get_card("c0").memory.phase == CardPhase.REVIEW
