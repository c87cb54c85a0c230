"""Study session state machine."""

from study_core.session.session_controller import SessionController
from study_core.session.session_types import (
    CardOutcome,
    Complete,
    Presenting,
    Rated,
    Revealed,
    SessionState,
    SessionSummary,
)

__all__ = [
    "SessionController",
    "CardOutcome",
    "Complete",
    "Presenting",
    "Rated",
    "Revealed",
    "SessionState",
    "SessionSummary",
]
