"""Queue construction for study sessions."""

from study_core.session_builders.filters import DeckFilter
from study_core.session_builders.pool_types import DailyCounts, StudyQueue
from study_core.session_builders.pool_utils import count_studied_today, interleave_new
from study_core.session_builders.queue_builder import build, build_for_today

__all__ = [
    "DeckFilter",
    "DailyCounts",
    "StudyQueue",
    "count_studied_today",
    "interleave_new",
    "build",
    "build_for_today",
]
