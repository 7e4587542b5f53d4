"""
Pipeline orchestration: observations → frame → patterns → projection → report.

Analytical logic lives in aggregate, patterns, projection, report,
narrative, and impact. This module wires them together and owns the
only file read (`analyze`).

Entry points:
    compute_capacity_index      windowed index record (or None)
    compute_projection          declining-trend projection (or None)
    generate_quarterly_report   quarterly report (or None)
    analyze / analyze_data      index + projection + impact + narrative
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, Union

import pandas as pd

from capacity_engine.aggregate import filter_window, state_counts
from capacity_engine.config import EngineConfig, ReportConfig, WindowConfig
from capacity_engine.impact import compute_driver_stats, map_functional_impact, top_driver
from capacity_engine.narrative import generate_narrative
from capacity_engine.observations import load_observations, to_frame
from capacity_engine.patterns import (
    compute_chart_values,
    compute_chart_x_labels,
    compute_monthly_breakdown,
    compute_observation_window,
    compute_pattern_metrics,
)
from capacity_engine.projection import compute_projection_from_frame
from capacity_engine.provenance import generate_anonymized_id
from capacity_engine.report import build_quarterly_report
from capacity_engine.temporal import local_date, local_now

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Core computations (PURE FUNCTIONS: NO FILE I/O)
# ---------------------------------------------------------------------------

def _capacity_index_from_frame(
    df: pd.DataFrame,
    window: WindowConfig,
    cfg: EngineConfig,
    now: datetime,
) -> Dict | None:
    in_window = filter_window(df, window.window_start, window.window_end)
    unique_days = in_window["local_date"].nunique()

    if unique_days < window.minimum_days:
        logger.debug(
            "No capacity index: %d unique days in %s..%s (need %d)",
            unique_days, window.window_start, window.window_end, window.minimum_days,
        )
        return None

    start, end = compute_observation_window(df, window)
    metrics = compute_pattern_metrics(in_window, start, end, cfg)
    continuity = metrics["continuity"]

    distribution = state_counts(in_window)
    distribution["total"] = int(len(in_window))

    logger.info(
        "Capacity index %s..%s: continuity=%d%% stability=%d%% verdict=%s",
        start, end, continuity["percent"], metrics["stability_percent"], metrics["verdict"],
    )

    return {
        "observation_window_start": start,
        "observation_window_end": end,
        "window_status": "closed" if end < local_date(now) else "open",
        "patient_id": generate_anonymized_id(window.patient_id_seed or "default"),
        "total_days_in_window": continuity["total_days"],
        "days_with_entries": continuity["days_with_entries"],
        "tracking_continuity_percent": continuity["percent"],
        "tracking_continuity_rating": continuity["rating"],
        "pattern_stability_percent": metrics["stability_percent"],
        "volatility_raw": metrics["volatility_raw"],
        "verdict": metrics["verdict"],
        "chart_values": compute_chart_values(in_window, start, end, cfg),
        "chart_x_labels": compute_chart_x_labels(start, end, cfg),
        "monthly_breakdown": compute_monthly_breakdown(in_window, start, end, cfg),
        "overall_distribution": distribution,
        "total_signals": distribution["total"],
    }


def _analyze_df(
    df: pd.DataFrame,
    window: WindowConfig,
    cfg: EngineConfig,
    now: datetime,
) -> Dict:
    """
    Index, projection, impact, and narrative from one frame.

    impact and narrative are None whenever the index is.
    """
    capacity_index = _capacity_index_from_frame(df, window, cfg, now)
    projection = compute_projection_from_frame(df, window.window_end, cfg)

    if capacity_index is None:
        return {
            "capacity_index": None,
            "projection": projection,
            "impact": None,
            "narrative": None,
        }

    driver_stats = compute_driver_stats(filter_window(df, window.window_start, window.window_end))
    driver = top_driver(driver_stats)

    return {
        "capacity_index": capacity_index,
        "projection": projection,
        "impact": map_functional_impact(capacity_index, projection, driver_stats),
        "narrative": generate_narrative(
            capacity_index,
            projection,
            f"{driver} load" if driver else None,
        ),
    }


# ---------------------------------------------------------------------------
# Public Entry Points
# ---------------------------------------------------------------------------

ObservationInput = Iterable[Union[dict, object]]


def compute_capacity_index(
    observations: ObservationInput,
    window: WindowConfig,
    cfg: EngineConfig | None = None,
    now: datetime | None = None,
) -> Dict | None:
    """Capacity index for the window, or None below the unique-day gate."""
    if cfg is None:
        cfg = EngineConfig()
    if now is None:
        now = local_now(cfg.timezone)

    return _capacity_index_from_frame(to_frame(observations, cfg.timezone), window, cfg, now)


def compute_projection(
    observations: ObservationInput,
    window_end: str | None = None,
    cfg: EngineConfig | None = None,
    now: datetime | None = None,
) -> Dict | None:
    """
    Declining-trend projection ending at `window_end` (default: today).

    None when history is too short or the trend is not declining.
    """
    if cfg is None:
        cfg = EngineConfig()
    if window_end is None:
        window_end = local_date(now if now is not None else local_now(cfg.timezone))

    return compute_projection_from_frame(to_frame(observations, cfg.timezone), window_end, cfg)


def generate_quarterly_report(
    observations: ObservationInput,
    report_cfg: ReportConfig,
    cfg: EngineConfig | None = None,
    now: datetime | None = None,
) -> Dict | None:
    """Quarterly report, or None when the quarter has too few observations."""
    if cfg is None:
        cfg = EngineConfig()
    if now is None:
        now = local_now(cfg.timezone)

    return build_quarterly_report(to_frame(observations, cfg.timezone), report_cfg, cfg, now)


def analyze(
    filepath: Union[str, Path],
    window: WindowConfig,
    cfg: EngineConfig | None = None,
    now: datetime | None = None,
) -> Dict:
    """
    CLI-compatible entry point.
    Reads a JSON observation list and runs the analysis.
    """
    return analyze_data(load_observations(filepath), window, cfg, now)


def analyze_data(
    records: ObservationInput,
    window: WindowConfig,
    cfg: EngineConfig | None = None,
    now: datetime | None = None,
) -> Dict:
    """
    Backend / UI integration entry point.

    Accepts Observation instances or plain dicts. No file system usage.
    """
    if cfg is None:
        cfg = EngineConfig()
    if now is None:
        now = local_now(cfg.timezone)

    return _analyze_df(to_frame(records, cfg.timezone), window, cfg, now)
