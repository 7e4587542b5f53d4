"""
Aggregation: window filtering and per-day / per-week score means.

All functions are pure transforms over the observation DataFrame built
by `observations.to_frame`. An empty input yields an empty result,
never an error.
"""

from typing import Dict

import numpy as np
import pandas as pd

from capacity_engine.observations import CAPACITY_STATES
from capacity_engine.temporal import week_start


def filter_window(df: pd.DataFrame, start: str, end: str) -> pd.DataFrame:
    """Rows whose calendar date lies in [start, end] inclusive."""
    mask = (df["local_date"] >= start) & (df["local_date"] <= end)
    return df.loc[mask]


def daily_means(df: pd.DataFrame, start: str | None = None, end: str | None = None) -> pd.Series:
    """
    Mean score per calendar date, sorted ascending by date.

    Missing days are absent from the index (no gap filling).
    """
    if start is not None and end is not None:
        df = filter_window(df, start, end)
    if df.empty:
        return pd.Series(dtype=np.float64, name="score")
    return df.groupby("local_date")["score"].mean().sort_index()


def daily_counts(df: pd.DataFrame) -> pd.Series:
    if df.empty:
        return pd.Series(dtype=np.int64)
    return df.groupby("local_date").size().sort_index()


def unique_dates(df: pd.DataFrame) -> set:
    return set(df["local_date"].unique())


def state_counts(df: pd.DataFrame) -> Dict[str, int]:
    """Count of observations per capacity state (all three keys always present)."""
    counts = df["state"].value_counts()
    return {state: int(counts.get(state, 0)) for state in CAPACITY_STATES}


def weekly_means(df: pd.DataFrame) -> list:
    """
    Sunday-aligned weekly aggregates of observation scores.

    Only weeks that contain observations are emitted. The standard
    deviation is the population value (ddof=0).
    """
    if df.empty:
        return []

    weeks = df["local_date"].map(week_start)
    points = []
    for start, group in df.groupby(weeks, sort=True):
        scores = group["score"].to_numpy(dtype=np.float64)
        end = (pd.Timestamp(start) + pd.Timedelta(days=7) - pd.Timedelta(milliseconds=1))
        points.append({
            "week_start": pd.Timestamp(start).to_pydatetime(),
            "week_end": end.to_pydatetime(),
            "mean_capacity": int(round(float(scores.mean()))),
            "std_dev": round(float(np.std(scores, ddof=0)), 1),
            "observation_count": int(len(scores)),
        })
    return points
