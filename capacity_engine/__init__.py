"""
Capacity Engine v1.0: Deterministic Capacity Pattern Engine

Turns a stream of self-reported capacity observations into a windowed
capacity index, a declining-trend projection, and an immutable
quarterly report.

Architecture:
    config        All thresholds, gates, and rule tables (single source of truth)
    temporal      Calendar dates, weeks, quarters, local clock
    observations  Observation record, validation, DataFrame construction
    aggregate     Window filtering, daily and weekly means
    patterns      Continuity, stability, verdict, chart series, monthly breakdown
    downsample    Fixed-length chart series
    projection    Recency-weighted regression and critical-threshold crossing
    report        Quarterly report synthesis
    overlays      Heuristic composition and event correlation
    provenance    Anonymized ID, chain of custody, signal fidelity
    narrative     Template summary paragraph
    impact        Functional impact mapping
    formatting    Display strings, language governance, text summary
    pipeline      Orchestration: observations → patterns → projection → report

Public API:
    compute_capacity_index(observations, window)         → index record or None
    compute_projection(observations, window_end)         → projection or None
    generate_quarterly_report(observations, report_cfg)  → report or None
    analyze(filepath, window)                            → CLI mode
    analyze_data(records, window)                        → UI / backend mode
    format_summary(result)                               → formatted report
"""

from capacity_engine.config import EngineConfig, ReportConfig, WindowConfig
from capacity_engine.formatting import format_summary
from capacity_engine.observations import Observation
from capacity_engine.pipeline import (
    analyze,
    analyze_data,
    compute_capacity_index,
    compute_projection,
    generate_quarterly_report,
)

__version__ = "1.0.0"

__all__ = [
    "EngineConfig",
    "Observation",
    "ReportConfig",
    "WindowConfig",
    "analyze",
    "analyze_data",
    "compute_capacity_index",
    "compute_projection",
    "format_summary",
    "generate_quarterly_report",
]
