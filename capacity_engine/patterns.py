"""
Pattern classification: continuity, stability, and the verdict label.

Maps (stability, continuity) → a fixed-vocabulary verdict through the
ordered rule table in config. Every function is pure.

Volatility is the mean absolute day-over-day change of daily mean
scores. Scores live on 0-100, so volatility is normalized against a
maximum of 100 before being subtracted from 100 to give stability.
"""

import logging
from typing import Dict, Sequence, Tuple

import numpy as np
import pandas as pd

from capacity_engine.aggregate import daily_means, filter_window, state_counts, unique_dates
from capacity_engine.config import EngineConfig, FALLBACK_VERDICT, WindowConfig
from capacity_engine.downsample import downsample
from capacity_engine.temporal import calendar_days_between, month_abbrev, month_key, months_between

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Observation window
# ---------------------------------------------------------------------------

def compute_observation_window(df: pd.DataFrame, window: WindowConfig) -> Tuple[str, str]:
    """
    Actual covered window: earliest to latest in-range observation date.

    Falls back to the configured bounds when nothing is in range.
    """
    in_window = filter_window(df, window.window_start, window.window_end)
    if in_window.empty:
        return window.window_start, window.window_end
    dates = in_window["local_date"]
    return str(dates.min()), str(dates.max())


# ---------------------------------------------------------------------------
# Tracking continuity
# ---------------------------------------------------------------------------

def rate_continuity(percent: float, cfg: EngineConfig) -> str:
    c = cfg.continuity
    if percent >= c.high:
        return "high"
    if percent >= c.moderate:
        return "moderate"
    return "low"


def compute_tracking_continuity(
    df: pd.DataFrame,
    start: str,
    end: str,
    cfg: EngineConfig,
) -> Dict[str, object]:
    """Days with entries / calendar days in [start, end], as a rounded percent."""
    in_window = filter_window(df, start, end)
    days_with_entries = len(unique_dates(in_window))
    total_days = calendar_days_between(start, end)

    percent = round(100 * days_with_entries / total_days) if total_days > 0 else 0
    percent = int(np.clip(percent, 0, 100))

    return {
        "percent": percent,
        "rating": rate_continuity(percent, cfg),
        "days_with_entries": days_with_entries,
        "total_days": total_days,
    }


# ---------------------------------------------------------------------------
# Volatility / stability
# ---------------------------------------------------------------------------

def compute_volatility(values: Sequence[float]) -> float:
    """Mean absolute day-over-day change; 0 for fewer than 2 points."""
    data = np.asarray(values, dtype=np.float64)
    if len(data) < 2:
        return 0.0
    return float(np.abs(np.diff(data)).mean())


def compute_pattern_stability(values: Sequence[float], cfg: EngineConfig) -> Dict[str, float]:
    """
    stability = clamp(round(100 - min(100, normalized volatility)), 0, 100)

    Returns:
        {"stability_percent": int, "volatility_raw": float (2 dp)}
    """
    vol = compute_volatility(values)
    normalized = min(100.0, vol / cfg.stability.max_volatility * 100.0)
    stability = int(np.clip(round(100.0 - normalized), 0, 100))
    return {
        "stability_percent": stability,
        "volatility_raw": round(vol, 2),
    }


# ---------------------------------------------------------------------------
# Verdict
# ---------------------------------------------------------------------------

def classify_verdict(stability: float, continuity: float, cfg: EngineConfig) -> str:
    """
    First matching rule in `cfg.verdict_rules` wins.

    With the default table, continuity < 40 overrides everything, then
    stability bands 80 / 50 split on continuity >= 70.
    """
    for rule in cfg.verdict_rules:
        if rule.matches(stability, continuity):
            return rule.label
    return FALLBACK_VERDICT


# ---------------------------------------------------------------------------
# Chart series
# ---------------------------------------------------------------------------

def compute_chart_values(df: pd.DataFrame, start: str, end: str, cfg: EngineConfig) -> list:
    """Daily means in window, downsampled to the configured point count."""
    daily = daily_means(df, start, end)
    return downsample(
        daily.to_numpy(),
        cfg.chart.points,
        neutral=cfg.chart.neutral_value,
    )


def compute_chart_x_labels(start: str, end: str, cfg: EngineConfig) -> list:
    """
    Month abbreviations for the x-axis.

    More months than labels: first, middle, last. Fewer: repeat the last.
    """
    n = cfg.chart.x_labels
    labels = [month_abbrev(key) for key in months_between(start, end)]

    if len(labels) <= n:
        while len(labels) < n:
            labels.append(labels[-1] if labels else "???")
        return labels

    mid = len(labels) // 2
    return [labels[0], labels[mid], labels[-1]]


# ---------------------------------------------------------------------------
# Monthly breakdown
# ---------------------------------------------------------------------------

def compute_monthly_breakdown(df: pd.DataFrame, start: str, end: str, cfg: EngineConfig) -> list:
    """Per calendar month (ascending): count, stability, volatility, state counts."""
    in_window = filter_window(df, start, end)
    if in_window.empty:
        return []

    breakdown = []
    months = in_window["local_date"].map(month_key)
    for month, group in in_window.groupby(months, sort=True):
        stability = compute_pattern_stability(daily_means(group).to_numpy(), cfg)
        breakdown.append({
            "month": month,
            "signal_count": int(len(group)),
            "stability": stability["stability_percent"],
            "volatility": int(round(stability["volatility_raw"])),
            "distribution": state_counts(group),
        })
    return breakdown


# ---------------------------------------------------------------------------
# Combined pattern metrics
# ---------------------------------------------------------------------------

def compute_pattern_metrics(df: pd.DataFrame, start: str, end: str, cfg: EngineConfig) -> Dict:
    """Continuity + stability + verdict over [start, end]."""
    continuity = compute_tracking_continuity(df, start, end, cfg)
    stability = compute_pattern_stability(daily_means(df, start, end).to_numpy(), cfg)
    verdict = classify_verdict(stability["stability_percent"], continuity["percent"], cfg)

    logger.debug(
        "Pattern metrics %s..%s: continuity=%d%% stability=%d%% verdict=%s",
        start, end, continuity["percent"], stability["stability_percent"], verdict,
    )

    return {
        "continuity": continuity,
        "stability_percent": stability["stability_percent"],
        "volatility_raw": stability["volatility_raw"],
        "verdict": verdict,
    }
