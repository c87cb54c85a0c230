"""
Data-loading helpers for analytics.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

import pandas as pd

from study_core.analytics.constants import EVENT_COLUMNS
from study_core.fsrs.memory_state import ReviewEvent
from study_core.fsrs.storage import ReviewStore


def _empty_events_df() -> pd.DataFrame:
    return pd.DataFrame(columns=EVENT_COLUMNS + ["day_utc"])


def events_to_df(events: Iterable[ReviewEvent]) -> pd.DataFrame:
    """
    Flatten review events into a dataframe sorted by timestamp.
    """
    rows = [
        {
            "event_id": e.event_id,
            "card_id": e.card_id,
            "topic": e.topic,
            "system": e.system,
            "timestamp": e.timestamp,
            "rating": int(e.rating),
            "success": e.is_success,
            "was_new": e.was_new,
            "session_id": e.session_id,
            "time_spent_ms": e.time_spent_ms,
        }
        for e in events
    ]
    if not rows:
        return _empty_events_df()

    df = pd.DataFrame(rows, columns=EVENT_COLUMNS)
    df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True)
    df["day_utc"] = df["timestamp"].dt.floor("D")
    df = df.sort_values(["timestamp", "event_id"]).reset_index(drop=True)
    return df


def load_review_events_df(
    store: ReviewStore,
    window_days: Optional[float] = None,
    as_of: Optional[datetime] = None
) -> pd.DataFrame:
    """
    Load review events from storage into a dataframe.
    """
    return events_to_df(store.load_review_events(window_days=window_days, as_of=as_of))
