"""
SQLAlchemy ORM Models for FSRS Database

Defines CardState and ReviewEvent tables for relational persistence.
"""

from sqlalchemy import JSON, Column, DateTime, Float, Index, Integer, String
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class CardState(Base):
    """
    Persistent card record: taxonomy metadata plus FSRS memory state.
    """
    __tablename__ = 'card_state'

    # Primary key: composite of user_id and card_id
    user_id = Column(String(255), primary_key=True, nullable=False)
    card_id = Column(String(255), primary_key=True, nullable=False)

    # Taxonomy used by deck filters and topic analytics
    topic = Column(String(255), nullable=False)
    system = Column(String(255), nullable=False)
    tags = Column(JSON, nullable=False, default=list)
    rotation = Column(String(255), nullable=True)
    difficulty_label = Column(String(50), nullable=True)

    # Memory model
    stability = Column(Float, nullable=False)  # Days until R decays to ~90%
    difficulty = Column(Float, nullable=False)  # 1-10
    phase = Column(String(20), nullable=False)  # new / learning / review / relearning
    due_at = Column(DateTime(timezone=True), nullable=False)
    last_reviewed_at = Column(DateTime(timezone=True), nullable=True)
    reps = Column(Integer, nullable=False, default=0)
    lapses = Column(Integer, nullable=False, default=0)
    elapsed_days_at_last_review = Column(Float, nullable=False, default=0.0)

    __table_args__ = (
        Index('idx_card_state_due', 'user_id', 'due_at'),
    )

    def __repr__(self):
        return f"<CardState({self.user_id}, {self.card_id}, {self.phase})>"


class ReviewEvent(Base):
    """
    Append-only log entry for a single rating.

    Captures the memory state before and after the review.
    """
    __tablename__ = 'review_events'

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String(64), nullable=False, unique=True)

    # User scope and card identifiers
    user_id = Column(String(255), nullable=False)
    card_id = Column(String(255), nullable=False)
    topic = Column(String(255), nullable=False)
    system = Column(String(255), nullable=False)

    # Timing and feedback
    timestamp = Column(DateTime(timezone=True), nullable=False)
    rating = Column(Integer, nullable=False)  # 1=AGAIN, 2=HARD, 3=GOOD, 4=EASY
    elapsed_days = Column(Float, nullable=False)
    time_spent_ms = Column(Integer, nullable=True)

    # State before review
    stability_before = Column(Float, nullable=False)
    difficulty_before = Column(Float, nullable=False)
    phase_before = Column(String(20), nullable=False)
    due_at_before = Column(DateTime(timezone=True), nullable=False)
    last_reviewed_at_before = Column(DateTime(timezone=True), nullable=True)
    reps_before = Column(Integer, nullable=False)
    lapses_before = Column(Integer, nullable=False)

    # State after review
    stability_after = Column(Float, nullable=False)
    difficulty_after = Column(Float, nullable=False)
    phase_after = Column(String(20), nullable=False)
    due_at_after = Column(DateTime(timezone=True), nullable=False)
    reps_after = Column(Integer, nullable=False)
    lapses_after = Column(Integer, nullable=False)

    # Session context (optional, for analytics)
    session_id = Column(String(255), nullable=True)

    __table_args__ = (
        Index('idx_review_events_card', 'user_id', 'card_id'),
        Index('idx_review_events_timestamp', 'user_id', 'timestamp'),
    )

    def __repr__(self):
        return f"<ReviewEvent(id={self.id}, {self.card_id}, rating={self.rating})>"
