"""
Trend projection: recency-weighted linear regression over recent days.

Only reports risk. A flat or improving fit returns None, as does a
history shorter than the minimum input days.
"""

import logging
from typing import Dict, Tuple

import numpy as np
import pandas as pd

from capacity_engine.aggregate import daily_means
from capacity_engine.config import EngineConfig
from capacity_engine.temporal import shift_date


logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Weighted least squares
# ---------------------------------------------------------------------------

def _weighted_linear_regression(
    y: np.ndarray,
    decay: float,
    epsilon: float = 1e-10,
) -> Tuple[float, float]:
    """
    Fit value = slope * index + intercept with weights decay ** (n - 1 - i).

    Closed-form weighted normal equations:
        slope     = (Σw·Σwxy − Σwx·Σwy) / (Σw·Σwx² − (Σwx)²)
        intercept = (Σwy − slope·Σwx) / Σw

    A degenerate denominator falls back to (0, unweighted mean).
    """
    n = len(y)
    if n == 0:
        return 0.0, 50.0
    if n == 1:
        return 0.0, float(y[0])

    x = np.arange(n, dtype=np.float64)
    w = decay ** (n - 1 - x)

    sum_w = w.sum()
    sum_wx = np.dot(w, x)
    sum_wy = np.dot(w, y)
    sum_wxx = np.dot(w, x * x)
    sum_wxy = np.dot(w, x * y)

    denom = sum_w * sum_wxx - sum_wx * sum_wx
    if abs(denom) < epsilon:
        return 0.0, float(y.mean())

    slope = (sum_w * sum_wxy - sum_wx * sum_wy) / denom
    intercept = (sum_wy - slope * sum_wx) / sum_w
    return float(slope), float(intercept)


# ---------------------------------------------------------------------------
# Projection
# ---------------------------------------------------------------------------

def select_recent_days(df: pd.DataFrame, reference_date: str, cfg: EngineConfig) -> pd.Series:
    """Daily means in [reference − max_input_days, reference], last `preferred` days."""
    p = cfg.projection
    cutoff = shift_date(reference_date, -p.max_input_days)
    daily = daily_means(df, cutoff, reference_date)
    return daily.tail(p.preferred_input_days)


def project_series(values: np.ndarray, cfg: EngineConfig) -> Dict | None:
    """
    Fit and project a daily series (oldest first).

    Returns None when the fit is flat or improving.
    """
    p = cfg.projection
    slope, intercept = _weighted_linear_regression(values, p.decay, p.degenerate_epsilon)

    if slope > p.flat_slope:
        logger.debug("Projection suppressed: slope %.4f above flat threshold %.2f", slope, p.flat_slope)
        return None

    last_index = len(values) - 1
    future = np.arange(last_index + 1, last_index + 1 + p.horizon_days, dtype=np.float64)
    raw = slope * future + intercept
    projected = [int(v) for v in np.clip(np.round(raw), 0, 100)]

    weeks_to_critical = None
    for i, value in enumerate(projected):
        if value <= p.critical_threshold:
            weeks_to_critical = round((i + 1) / 7, 1)
            break

    return {
        "projected_points": projected,
        "weeks_to_critical": weeks_to_critical,
        "trend_rate": round(slope * 7, 1),
        "has_overload_risk": True,
        "slope": round(slope, 3),
        "intercept": round(intercept, 1),
        "input_days": int(len(values)),
    }


def compute_projection_from_frame(
    df: pd.DataFrame,
    reference_date: str,
    cfg: EngineConfig,
) -> Dict | None:
    """Projection over the days leading up to `reference_date` (YYYY-MM-DD)."""
    p = cfg.projection
    recent = select_recent_days(df, reference_date, cfg)

    if len(recent) < p.min_input_days:
        logger.debug(
            "Projection skipped: %d days of data before %s (need %d)",
            len(recent), reference_date, p.min_input_days,
        )
        return None

    return project_series(recent.to_numpy(dtype=np.float64), cfg)
