"""Tests for the Scheduler orchestration layer."""

import json
import threading
from datetime import datetime, timedelta, timezone

import pytest

from study_core.config import EngineSettings
from study_core.errors import InvalidRating, InvalidTimestamp, PersistenceWarning, StorageError
from study_core.fsrs.constants import CardPhase, Rating
from study_core.fsrs.scheduling import LOCK_STRIPES, Scheduler, format_interval, study_day_start
from study_core.fsrs.storage import InMemoryStore


class FailingStore(InMemoryStore):
    """Store whose writes fail until `healthy` is set."""

    def __init__(self, cards=None):
        super().__init__(cards)
        self.healthy = False

    def save_card(self, card):
        if not self.healthy:
            raise StorageError("database is locked")
        super().save_card(card)


class TestIsDue:
    def test_new_cards_always_due(self, make_card, t0):
        card = make_card("n1", due_at=t0 + timedelta(days=30))
        assert Scheduler().is_due(card.memory, t0)

    def test_seen_card_due_at_or_after_due_date(self, make_card, t0):
        card = make_card("r1", phase=CardPhase.REVIEW, due_at=t0)
        scheduler = Scheduler()
        assert scheduler.is_due(card.memory, t0)
        assert not scheduler.is_due(card.memory, t0 - timedelta(seconds=1))


class TestDaysUntilDue:
    @pytest.mark.parametrize("delta, expected", [
        (timedelta(days=3), 3),
        (timedelta(days=2, hours=1), 3),
        (timedelta(hours=5), 1),
        (timedelta(0), 0),
        (timedelta(days=-1, hours=-12), -1),
        (timedelta(days=-2), -2),
    ])
    def test_rounds_up(self, make_card, t0, delta, expected):
        card = make_card("r1", phase=CardPhase.REVIEW, due_at=t0 + delta)
        assert Scheduler().days_until_due(card.memory, t0) == expected


class TestApplyRating:
    def test_persists_card_and_event(self, make_card, store, t0):
        card = make_card("n1")
        store.save_card(card)
        scheduler = Scheduler(store)

        outcome = scheduler.apply_rating(card, "good", t0, session_id="s1", time_spent_ms=1500)

        assert outcome.persisted
        assert outcome.state.phase == CardPhase.LEARNING
        assert store.get_card("n1").memory == outcome.state
        events = store.load_review_events()
        assert len(events) == 1
        event = events[0]
        assert event is outcome.event
        assert event.rating == Rating.GOOD
        assert event.prior.phase == CardPhase.NEW
        assert event.resulting.reps == 1
        assert event.session_id == "s1"
        assert event.time_spent_ms == 1500
        assert event.topic == card.topic
        assert event.was_new

    def test_storage_failure_returns_warning(self, make_card, t0):
        card = make_card("r1", phase=CardPhase.REVIEW, stability=10.0)
        store = FailingStore([card])
        outcome = Scheduler(store).apply_rating(card, Rating.AGAIN, t0)

        assert isinstance(outcome.warning, PersistenceWarning)
        assert outcome.warning.card_id == "r1"
        assert isinstance(outcome.warning.cause, StorageError)
        assert not outcome.persisted
        assert outcome.state.phase == CardPhase.RELEARNING
        assert store.get_card("r1").memory == card.memory

    def test_retry_after_failure(self, make_card, t0):
        card = make_card("r1", phase=CardPhase.REVIEW)
        store = FailingStore([card])
        scheduler = Scheduler(store)
        outcome = scheduler.apply_rating(card, Rating.GOOD, t0)

        store.healthy = True
        assert scheduler.persist(outcome.card, outcome.event) is None
        assert store.get_card("r1").memory == outcome.state
        assert len(store.load_review_events()) == 1

    def test_without_store(self, make_card, t0):
        outcome = Scheduler().apply_rating(make_card("n1"), Rating.EASY, t0)
        assert outcome.persisted
        assert outcome.state.phase == CardPhase.REVIEW

    def test_validation_errors_persist_nothing(self, make_card, store, t0):
        card = make_card("r1", phase=CardPhase.REVIEW, last_reviewed_at=t0)
        scheduler = Scheduler(store)

        with pytest.raises(InvalidRating):
            scheduler.apply_rating(card, "meh", t0)
        with pytest.raises(InvalidTimestamp):
            scheduler.apply_rating(card, Rating.GOOD, t0 - timedelta(hours=1))
        assert store.load_review_events() == []

    def test_concurrent_ratings_are_serialized(self, make_card, store, t0):
        card = make_card("n1")
        scheduler = Scheduler(store)
        errors = []

        def rate():
            try:
                scheduler.apply_rating(card, Rating.GOOD, t0)
            except Exception as exc:  # pragma: no cover
                errors.append(exc)

        threads = [threading.Thread(target=rate) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(store.load_review_events()) == 8

    def test_lock_pool_does_not_grow(self, make_card, t0):
        scheduler = Scheduler()
        for i in range(200):
            scheduler.apply_rating(make_card(f"n{i}"), Rating.GOOD, t0)
        assert len(scheduler._locks) == LOCK_STRIPES

    def test_event_only_retry_keeps_stored_state(self, make_card, t0):
        card = make_card("r1", phase=CardPhase.REVIEW)
        store = FailingStore([card])
        scheduler = Scheduler(store)
        outcome = scheduler.apply_rating(card, Rating.GOOD, t0)

        store.healthy = True
        assert scheduler.persist(outcome.card, outcome.event, save_state=False) is None
        assert store.get_card("r1").memory == card.memory
        assert len(store.load_review_events()) == 1


class TestNaiveTimestamps:
    def test_is_due(self, make_card, t0):
        card = make_card("r1", phase=CardPhase.REVIEW, due_at=t0)
        with pytest.raises(InvalidTimestamp):
            Scheduler().is_due(card.memory, t0.replace(tzinfo=None))

    def test_is_due_for_new_card(self, make_card, t0):
        with pytest.raises(InvalidTimestamp):
            Scheduler().is_due(make_card("n1").memory, t0.replace(tzinfo=None))

    def test_days_until_due(self, make_card, t0):
        card = make_card("r1", phase=CardPhase.REVIEW, due_at=t0)
        with pytest.raises(InvalidTimestamp):
            Scheduler().days_until_due(card.memory, t0.replace(tzinfo=None))

    def test_study_day_start(self):
        with pytest.raises(InvalidTimestamp):
            study_day_start(datetime(2024, 3, 1, 9, 30))


class TestFromSettings:
    def test_uses_configured_values(self, tmp_path, store):
        path = tmp_path / "params.json"
        path.write_text(json.dumps({"easy_bonus": 3.0}))
        settings = EngineSettings(day_rollover_hour=6, fsrs_parameters_file=str(path))

        scheduler = Scheduler.from_settings(settings, store)

        assert scheduler.store is store
        assert scheduler.day_rollover_hour == 6
        assert scheduler.params.easy_bonus == 3.0


class TestPreviewIntervals:
    def test_new_card(self, make_card, t0):
        preview = Scheduler().preview_intervals(make_card("n1").memory, t0)
        assert preview[Rating.AGAIN] == pytest.approx(1.0)
        assert preview[Rating.GOOD] == pytest.approx(2.0)
        assert preview[Rating.EASY] == pytest.approx(8.0)

    def test_ordered_for_review_card(self, make_card, t0):
        card = make_card("r1", phase=CardPhase.REVIEW, stability=12.0)
        preview = Scheduler().preview_intervals(card.memory, t0)
        assert preview[Rating.AGAIN] <= preview[Rating.HARD] <= preview[Rating.GOOD] <= preview[Rating.EASY]


class TestFormatInterval:
    @pytest.mark.parametrize("days, text", [
        (0.0, "<1m"),
        (10 / 1440, "10m"),
        (3 / 24, "3h"),
        (4.0, "4d"),
        (60.0, "2mo"),
        (365 * 1.5, "1.5y"),
    ])
    def test_formats(self, days, text):
        assert format_interval(days) == text


class TestStudyDay:
    def test_after_rollover(self):
        as_of = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)
        assert study_day_start(as_of, 4) == datetime(2024, 3, 1, 4, 0, tzinfo=timezone.utc)

    def test_before_rollover_belongs_to_previous_day(self):
        as_of = datetime(2024, 3, 1, 2, 0, tzinfo=timezone.utc)
        assert Scheduler(day_rollover_hour=4).study_day_start(as_of) == datetime(
            2024, 2, 29, 4, 0, tzinfo=timezone.utc
        )
