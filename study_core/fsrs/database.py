"""
Database - FSRS Database I/O Operations

Handles all database operations for card records and review events.
Uses SQLAlchemy ORM; any SQLAlchemy URL works (Postgres in production,
SQLite for local use and tests).

This module handles ONLY database I/O.
Algorithm logic is handled by the transition module.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Iterator, Optional

from sqlalchemy import create_engine, inspect
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from study_core.errors import StorageError
from study_core.fsrs.constants import CardPhase, Rating
from study_core.fsrs.memory_state import Card, CardMemoryState, MemorySnapshot, ReviewEvent
from study_core.fsrs.models import Base, CardState as CardStateModel, ReviewEvent as ReviewEventModel
from study_core.fsrs.storage import CardPredicate, ReviewStore, matches_all, window_start

logger = logging.getLogger(__name__)


def create_store_engine(database_url: str) -> Engine:
    """
    Create a SQLAlchemy engine for the given URL.

    In-memory SQLite shares one connection so every session sees the same
    database; file-backed SQLite gets its directory created.

    Returns:
        SQLAlchemy Engine instance
    """
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        if url.database in (None, "", ":memory:"):
            return create_engine(
                database_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        return create_engine(database_url, connect_args={"check_same_thread": False})

    return create_engine(
        database_url,
        pool_size=5,           # Keep 5 connections open
        max_overflow=10,       # Allow up to 10 extra connections
        pool_pre_ping=True,    # Verify connections before use
        echo=False
    )


def _to_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    return value.astimezone(timezone.utc)


def _from_db(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything is stored as UTC
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SqlAlchemyStore(ReviewStore):
    """
    ReviewStore backed by the card_state and review_events tables.

    All rows are scoped to one user_id.
    """

    def __init__(self, database_url: Optional[str] = None, user_id: str = "default",
                 engine: Optional[Engine] = None):
        if engine is None:
            if database_url is None:
                raise ValueError("SqlAlchemyStore needs a database_url or an engine")
            engine = create_store_engine(database_url)
        self.engine = engine
        self.user_id = user_id
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.warning("[STORE] Database operation failed: %s", exc)
            raise StorageError(str(exc)) from exc
        finally:
            session.close()

    # ---- Schema ----

    def init_db(self) -> None:
        """
        Create the tables if they do not exist.

        Safe to call multiple times.
        """
        try:
            existing_tables = inspect(self.engine).get_table_names()
            if 'card_state' not in existing_tables or 'review_events' not in existing_tables:
                Base.metadata.create_all(self.engine)
                logger.info("[STORE] Created study tables")
        except SQLAlchemyError as exc:
            raise StorageError(str(exc)) from exc

    def reset_db(self) -> None:
        """
        DANGEROUS: Drop all tables and recreate them.

        All review history will be lost!
        """
        try:
            Base.metadata.drop_all(self.engine)
        except SQLAlchemyError as exc:
            raise StorageError(str(exc)) from exc
        logger.info("[STORE] All tables dropped")
        self.init_db()

    # ---- Cards ----

    def load_cards(self, filters: Optional[Iterable[CardPredicate]] = None) -> list[Card]:
        filters = list(filters) if filters else None
        with self._session() as session:
            rows = session.query(CardStateModel).filter(
                CardStateModel.user_id == self.user_id
            ).order_by(CardStateModel.card_id).all()
            cards = [self._card_from_row(row) for row in rows]
        return [c for c in cards if matches_all(c, filters)]

    def get_card(self, card_id: str) -> Optional[Card]:
        with self._session() as session:
            row = session.query(CardStateModel).filter(
                CardStateModel.user_id == self.user_id,
                CardStateModel.card_id == card_id
            ).first()
            return self._card_from_row(row) if row is not None else None

    def save_card(self, card: Card) -> None:
        self.save_cards([card])

    def save_cards(self, cards: list[Card]) -> None:
        """
        Save multiple cards in a single transaction.
        """
        if not cards:
            return
        with self._session() as session:
            for card in cards:
                row = session.query(CardStateModel).filter(
                    CardStateModel.user_id == self.user_id,
                    CardStateModel.card_id == card.card_id
                ).first()
                if row is None:
                    row = CardStateModel(user_id=self.user_id, card_id=card.card_id)
                    session.add(row)
                self._fill_card_row(row, card)

    # ---- Review events ----

    def append_review_event(self, event: ReviewEvent) -> None:
        self.append_review_events([event])

    def append_review_events(self, events: list[ReviewEvent]) -> None:
        """
        Append multiple review events in a single transaction.
        """
        if not events:
            return
        with self._session() as session:
            for event in events:
                session.add(self._event_row(event))

    def load_review_events(
        self,
        card_ids: Optional[Iterable[str]] = None,
        window_days: Optional[float] = None,
        as_of: Optional[datetime] = None,
    ) -> list[ReviewEvent]:
        start = window_start(window_days, as_of)
        with self._session() as session:
            query = session.query(ReviewEventModel).filter(
                ReviewEventModel.user_id == self.user_id
            )
            if card_ids is not None:
                query = query.filter(ReviewEventModel.card_id.in_(list(card_ids)))
            if start is not None:
                query = query.filter(ReviewEventModel.timestamp >= _to_utc(start))
            if as_of is not None:
                query = query.filter(ReviewEventModel.timestamp <= _to_utc(as_of))
            rows = query.order_by(ReviewEventModel.timestamp, ReviewEventModel.id).all()
            return [self._event_from_row(row) for row in rows]

    # ---- Row mapping ----

    @staticmethod
    def _fill_card_row(row: CardStateModel, card: Card) -> None:
        memory = card.memory
        row.topic = card.topic
        row.system = card.system
        row.tags = list(card.tags)
        row.rotation = card.rotation
        row.difficulty_label = card.difficulty_label
        row.stability = memory.stability
        row.difficulty = memory.difficulty
        row.phase = memory.phase.value
        row.due_at = _to_utc(memory.due_at)
        row.last_reviewed_at = _to_utc(memory.last_reviewed_at)
        row.reps = memory.reps
        row.lapses = memory.lapses
        row.elapsed_days_at_last_review = memory.elapsed_days_at_last_review

    @staticmethod
    def _card_from_row(row: CardStateModel) -> Card:
        memory = CardMemoryState(
            card_id=row.card_id,
            stability=row.stability,
            difficulty=row.difficulty,
            phase=CardPhase(row.phase),
            due_at=_from_db(row.due_at),
            last_reviewed_at=_from_db(row.last_reviewed_at),
            reps=row.reps,
            lapses=row.lapses,
            elapsed_days_at_last_review=row.elapsed_days_at_last_review,
        )
        return Card(
            card_id=row.card_id,
            memory=memory,
            topic=row.topic,
            system=row.system,
            tags=tuple(row.tags or ()),
            rotation=row.rotation,
            difficulty_label=row.difficulty_label,
        )

    def _event_row(self, event: ReviewEvent) -> ReviewEventModel:
        prior, resulting = event.prior, event.resulting
        return ReviewEventModel(
            event_id=event.event_id,
            user_id=self.user_id,
            card_id=event.card_id,
            topic=event.topic,
            system=event.system,
            timestamp=_to_utc(event.timestamp),
            rating=int(event.rating),
            elapsed_days=event.elapsed_days,
            time_spent_ms=event.time_spent_ms,
            stability_before=prior.stability,
            difficulty_before=prior.difficulty,
            phase_before=prior.phase.value,
            due_at_before=_to_utc(prior.due_at),
            last_reviewed_at_before=_to_utc(prior.last_reviewed_at),
            reps_before=prior.reps,
            lapses_before=prior.lapses,
            stability_after=resulting.stability,
            difficulty_after=resulting.difficulty,
            phase_after=resulting.phase.value,
            due_at_after=_to_utc(resulting.due_at),
            reps_after=resulting.reps,
            lapses_after=resulting.lapses,
            session_id=event.session_id,
        )

    @staticmethod
    def _event_from_row(row: ReviewEventModel) -> ReviewEvent:
        timestamp = _from_db(row.timestamp)
        prior = MemorySnapshot(
            stability=row.stability_before,
            difficulty=row.difficulty_before,
            phase=CardPhase(row.phase_before),
            due_at=_from_db(row.due_at_before),
            last_reviewed_at=_from_db(row.last_reviewed_at_before),
            reps=row.reps_before,
            lapses=row.lapses_before,
        )
        resulting = MemorySnapshot(
            stability=row.stability_after,
            difficulty=row.difficulty_after,
            phase=CardPhase(row.phase_after),
            due_at=_from_db(row.due_at_after),
            last_reviewed_at=timestamp,
            reps=row.reps_after,
            lapses=row.lapses_after,
        )
        return ReviewEvent(
            card_id=row.card_id,
            timestamp=timestamp,
            rating=Rating(row.rating),
            prior=prior,
            resulting=resulting,
            elapsed_days=row.elapsed_days,
            topic=row.topic,
            system=row.system,
            session_id=row.session_id,
            time_spent_ms=row.time_spent_ms,
            event_id=row.event_id,
        )
