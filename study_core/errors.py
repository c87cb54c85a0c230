"""
Error taxonomy for the study engine.

Integration errors (bad timestamps, bad ratings, illegal session moves) are
raised and never recovered inside the engine. Storage failures during a
session are not raised: they travel back to the caller as a
PersistenceWarning inside the rating outcome.
"""

from __future__ import annotations

from typing import Optional


class StudyEngineError(Exception):
    """Base class for all engine errors."""


class InvalidTimestamp(StudyEngineError, ValueError):
    """A review time precedes the card's last review, or carries no timezone."""


class InvalidRating(StudyEngineError, ValueError):
    """A rating outside Again/Hard/Good/Easy."""


class InvalidSessionTransition(StudyEngineError, RuntimeError):
    """An operation that the session's current state does not allow."""

    def __init__(self, operation: str, state: object):
        self.operation = operation
        self.state = state
        super().__init__(f"Cannot {operation}() while session is {state!r}")


class ConfigurationError(StudyEngineError, ValueError):
    """Settings or FSRS parameters failed validation."""


class StorageError(StudyEngineError):
    """The storage collaborator failed to read or write."""


class PersistenceWarning(Warning):
    """
    A rating was applied in memory but could not be written to storage.

    Returned to the caller, never raised by the scheduler.
    """

    def __init__(self, card_id: str, cause: Optional[BaseException] = None):
        self.card_id = card_id
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Review of card {card_id} not persisted{detail}")
