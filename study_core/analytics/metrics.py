"""
Metric computations for retention analytics.
"""

from __future__ import annotations

from datetime import datetime

import pandas as pd


def filter_window(events_df: pd.DataFrame, window_days: float, as_of: datetime) -> pd.DataFrame:
    """
    Keep events inside the trailing window [as_of - window_days, as_of].
    """
    if events_df.empty:
        return events_df
    end = pd.Timestamp(as_of).tz_convert("UTC")
    start = end - pd.Timedelta(days=window_days)
    mask = (events_df["timestamp"] >= start) & (events_df["timestamp"] <= end)
    return events_df[mask]


def compute_retention_by_topic(events_df: pd.DataFrame) -> pd.DataFrame:
    """
    Per (topic, system): sample size, successes and retention rate.
    """
    if events_df.empty:
        return pd.DataFrame(columns=["topic", "system", "sample_size", "successes", "retention_rate"])

    grouped = events_df.groupby(["topic", "system"], sort=True).agg(
        sample_size=("success", "size"),
        successes=("success", "sum"),
    ).reset_index()
    grouped["sample_size"] = grouped["sample_size"].astype("int64")
    grouped["successes"] = grouped["successes"].astype("int64")
    grouped["retention_rate"] = grouped["successes"] / grouped["sample_size"]
    return grouped


def build_day_index(events_df: pd.DataFrame) -> pd.DatetimeIndex:
    """
    Build a dense UTC day index spanning the event range.
    """
    if events_df.empty:
        return pd.DatetimeIndex([], tz="UTC")
    start = events_df["day_utc"].min()
    end = events_df["day_utc"].max()
    return pd.date_range(start=start, end=end, freq="D")


def compute_daily_reviews(events_df: pd.DataFrame) -> pd.DataFrame:
    """
    Reviews, successes and retention per UTC day.

    Days without reviews are present with zero counts and NaN retention.
    """
    day_index = build_day_index(events_df)
    if len(day_index) == 0:
        return pd.DataFrame(
            {
                "reviews": pd.Series(dtype="int64"),
                "correct": pd.Series(dtype="int64"),
                "retention": pd.Series(dtype="float64"),
            },
            index=day_index,
        )

    daily = events_df.groupby("day_utc").agg(
        reviews=("success", "size"),
        correct=("success", "sum"),
    )
    daily = daily.reindex(day_index, fill_value=0).astype("int64")
    daily["retention"] = (daily["correct"] / daily["reviews"]).where(daily["reviews"] > 0)
    return daily
