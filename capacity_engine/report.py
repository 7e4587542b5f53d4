"""
Quarterly report synthesis.

Composes record depth, distribution, pattern metrics, driver
correlations, week structure, notable episodes, clinical notes, chart
data, and longitudinal context for one calendar quarter, then attaches
the heuristic overlays and the provenance envelope.

Fewer than `min_observations` in the quarter → None.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List

import numpy as np
import pandas as pd

from capacity_engine.aggregate import daily_counts, daily_means, state_counts, weekly_means
from capacity_engine.config import EngineConfig, ReportConfig
from capacity_engine.downsample import sample_evenly
from capacity_engine.observations import CATEGORIES
from capacity_engine.overlays import compute_capacity_composition, compute_event_correlation
from capacity_engine.patterns import compute_pattern_stability
from capacity_engine.provenance import (
    compute_chain_of_custody,
    compute_provider_shield,
    compute_signal_fidelity,
)
from capacity_engine.temporal import (
    DAY_NAMES,
    calendar_days_between,
    current_quarter_id,
    day_of_week,
    epoch_ms,
    format_display_date,
    local_date,
    previous_quarter_id,
    quarter_date_range,
)

logger = logging.getLogger(__name__)


TIME_SLOTS = ("morning", "afternoon", "evening")


# ---------------------------------------------------------------------------
# Quarter selection
# ---------------------------------------------------------------------------

def select_quarter(df: pd.DataFrame, quarter_id: str) -> pd.DataFrame:
    """Observations whose local timestamp falls inside the quarter."""
    start, end = quarter_date_range(quarter_id)
    mask = (df["timestamp"] >= start) & (df["timestamp"] <= end)
    return df.loc[mask]


def compute_period(quarter_id: str) -> Dict:
    start, end = quarter_date_range(quarter_id)
    start_day, end_day = local_date(start), local_date(end)
    return {
        "quarter_id": quarter_id,
        "start_date": start,
        "end_date": end,
        "date_range_label": f"{format_display_date(start_day)} – {format_display_date(end_day)}",
    }


# ---------------------------------------------------------------------------
# Record depth & distribution
# ---------------------------------------------------------------------------

def compute_record_depth(df: pd.DataFrame, quarter_id: str, cfg: EngineConfig) -> Dict:
    r = cfg.report
    start, end = quarter_date_range(quarter_id)
    period_days = calendar_days_between(local_date(start), local_date(end))
    unique_days = int(df["local_date"].nunique())
    coverage = round(100 * unique_days / period_days)

    if coverage >= r.coverage_comprehensive:
        level = "comprehensive"
    elif coverage >= r.coverage_consistent:
        level = "consistent"
    elif coverage >= r.coverage_moderate:
        level = "moderate"
    else:
        level = "sparse"

    return {
        "total_observations": int(len(df)),
        "unique_days": unique_days,
        "period_days": period_days,
        "coverage_percent": coverage,
        "coverage_level": level,
    }


def compute_distribution(df: pd.DataFrame) -> Dict:
    """
    Counts are exact; percentages are rounded independently and may
    sum to 99 or 101.
    """
    counts = state_counts(df)
    total = len(df)

    def pct(n):
        return round(100 * n / total) if total else 0

    return {
        "resourced_percent": pct(counts["resourced"]),
        "stretched_percent": pct(counts["stretched"]),
        "depleted_percent": pct(counts["depleted"]),
        "counts": counts,
    }


# ---------------------------------------------------------------------------
# Pattern metrics
# ---------------------------------------------------------------------------

def score_to_level(score: float, cfg: EngineConfig) -> str:
    r = cfg.report
    if score < r.level_moderate:
        return "low"
    if score < r.level_high:
        return "moderate"
    return "high"


def _stability_description(score: float) -> str:
    if score >= 70:
        return "Capacity levels show consistent day-to-day patterns."
    if score >= 40:
        return "Moderate variation in day-to-day capacity observed."
    return "Significant variation in capacity levels across days."


def _volatility_description(score: float) -> str:
    if score >= 70:
        return "Frequent state transitions observed within observation periods."
    if score >= 40:
        return "Moderate state variability during observation periods."
    return "Capacity states tend to remain stable within observation periods."


def _recovery_lag_description(hours: float) -> str:
    if hours < 12:
        return "Recovery from depleted states typically occurs within the same day."
    if hours < 24:
        return "Recovery from depleted states typically spans overnight."
    if hours < 48:
        return "Recovery from depleted states often extends to the following day."
    return "Extended recovery periods observed following depleted states."


def compute_recovery_hours(df: pd.DataFrame) -> List[float]:
    """
    Hours from the first depleted entry of each run to the next
    non-depleted entry. Runs still open at the end are not counted.
    """
    hours = []
    run_start = None
    for state, ts in zip(df["state"], df["timestamp"]):
        if state == "depleted":
            if run_start is None:
                run_start = ts
        elif run_start is not None:
            hours.append((ts - run_start).total_seconds() / 3600.0)
            run_start = None
    return hours


def compute_report_pattern_metrics(df: pd.DataFrame, cfg: EngineConfig) -> List[Dict]:
    """Stability, volatility, and recovery-lag scores on 0-100."""
    r = cfg.report

    stability = compute_pattern_stability(daily_means(df).to_numpy(), cfg)["stability_percent"]

    states = df["state"].to_numpy()
    transitions = int((states[1:] != states[:-1]).sum()) if len(states) > 1 else 0
    volatility = min(100.0, transitions / len(df) * r.volatility_scale) if len(df) else 0.0

    recovery = compute_recovery_hours(df)
    avg_recovery_hours = float(np.mean(recovery)) if recovery else 0.0
    recovery_lag = min(100.0, avg_recovery_hours * r.recovery_lag_scale)

    return [
        {
            "id": "stability",
            "label": "Stability",
            "score": int(round(stability)),
            "level": score_to_level(stability, cfg),
            "description": _stability_description(stability),
        },
        {
            "id": "volatility",
            "label": "Volatility",
            "score": int(round(volatility)),
            "level": score_to_level(volatility, cfg),
            "description": _volatility_description(volatility),
        },
        {
            "id": "recovery_lag",
            "label": "Recovery Lag",
            "score": int(round(recovery_lag)),
            "level": score_to_level(recovery_lag, cfg),
            "description": _recovery_lag_description(avg_recovery_hours),
        },
    ]


def metric_score(metrics: List[Dict], metric_id: str, default: float | None = None):
    for m in metrics:
        if m["id"] == metric_id:
            return m["score"]
    return default


# ---------------------------------------------------------------------------
# Driver correlations
# ---------------------------------------------------------------------------

def compute_drivers(df: pd.DataFrame, cfg: EngineConfig) -> Dict:
    """
    Per tag: occurrences, frequency (% of all observations), and
    depletion correlation (share of that tag's entries that are depleted).

    Tags keep first-seen chronological order; ties in ranking keep it too.
    """
    r = cfg.report
    total = len(df)
    stats: Dict[str, Dict] = {}

    for tags, state, category in zip(df["tags"], df["state"], df["category"]):
        for tag in tags:
            entry = stats.setdefault(tag, {"total": 0, "depleted": 0, "category": category})
            entry["total"] += 1
            if state == "depleted":
                entry["depleted"] += 1

    drivers = [
        {
            "driver": tag,
            "category": s["category"],
            "occurrences": s["total"],
            "frequency": round(100 * s["total"] / total) if total else 0,
            "depletion_correlation": round(s["depleted"] / s["total"], 4),
            "is_top_depleter": False,
        }
        for tag, s in stats.items()
    ]

    raw_correlation = {tag: s["depleted"] / s["total"] for tag, s in stats.items()}
    by_depletion = sorted(drivers, key=lambda d: raw_correlation[d["driver"]], reverse=True)
    top_depleters = by_depletion[: r.top_depleters]
    for d in top_depleters:
        d["is_top_depleter"] = True

    return {
        "all": drivers,
        "top_overall": sorted(drivers, key=lambda d: d["occurrences"], reverse=True)[: r.top_overall],
        "top_depleters": top_depleters,
    }


# ---------------------------------------------------------------------------
# Week structure
# ---------------------------------------------------------------------------

def time_slot(hour: int, cfg: EngineConfig) -> str:
    r = cfg.report
    if hour < r.morning_end_hour:
        return "morning"
    if hour < r.afternoon_end_hour:
        return "afternoon"
    return "evening"


def compute_week_structure(df: pd.DataFrame, cfg: EngineConfig) -> Dict:
    """Hardest weekday, weekday variance, time-of-day means, vulnerable slot."""
    dows = df["timestamp"].map(day_of_week)
    depleted = df["state"] == "depleted"

    rates = []
    hardest = {
        "day_of_week": 0,
        "day_name": DAY_NAMES[0],
        "depletion_rate": 0,
        "raw_depletion_rate": 0.0,
    }
    best_rate = 0.0
    for dow in range(7):
        mask = dows == dow
        n = int(mask.sum())
        hits = float(depleted[mask].sum())
        rate = hits / n if n else 0.0
        rates.append(rate)
        if n and rate > best_rate:
            best_rate = rate
            hardest = {
                "day_of_week": dow,
                "day_name": DAY_NAMES[dow],
                "depletion_rate": round(rate * 100),
                "raw_depletion_rate": 100 * hits / n,
            }

    slots = df["timestamp"].map(lambda ts: time_slot(ts.hour, cfg))
    time_of_day = {}
    for slot in TIME_SLOTS:
        scores = df.loc[slots == slot, "score"]
        time_of_day[slot] = {
            "avg_capacity": int(round(float(scores.mean()))) if len(scores) else 0,
            "observations": int(len(scores)),
        }

    vulnerable = None
    lowest = float("inf")
    for slot in TIME_SLOTS:
        if time_of_day[slot]["observations"] > 0 and time_of_day[slot]["avg_capacity"] < lowest:
            lowest = time_of_day[slot]["avg_capacity"]
            vulnerable = slot

    return {
        "hardest_day": hardest,
        "day_of_week_variance": round(float(np.var(rates)) * 100),
        "time_of_day": time_of_day,
        "vulnerable_time_slot": vulnerable,
    }


# ---------------------------------------------------------------------------
# Notable episodes
# ---------------------------------------------------------------------------

def _close_episode(run: List, cfg: EngineConfig) -> Dict | None:
    r = cfg.report
    days = {row.local_date for row in run}
    if len(days) < r.episode_min_days:
        return None

    tags: List[str] = []
    for row in run:
        for tag in row.tags:
            if tag not in tags:
                tags.append(tag)

    start, end = run[0].timestamp.to_pydatetime(), run[-1].timestamp.to_pydatetime()
    return {
        "id": f"ep_{epoch_ms(start, cfg.timezone)}",
        "start_date": start,
        "end_date": end,
        "duration_days": len(days),
        "type": "depletion_cluster",
        "description": f"Depletion cluster observed across {len(days)} days",
        "associated_drivers": tags[: r.episode_max_tags],
    }


def compute_notable_episodes(df: pd.DataFrame, cfg: EngineConfig) -> List[Dict]:
    """Runs of consecutive depleted entries spanning at least two calendar days."""
    episodes = []
    run: List = []
    for row in df.itertuples(index=False):
        if row.state == "depleted":
            run.append(row)
            continue
        if run:
            episode = _close_episode(run, cfg)
            if episode:
                episodes.append(episode)
            run = []
    if run:
        episode = _close_episode(run, cfg)
        if episode:
            episodes.append(episode)

    return episodes[: cfg.report.max_episodes]


# ---------------------------------------------------------------------------
# Clinical notes (declarative rule table)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class NoteRule:
    """A note emitted when `applies(ctx)` holds. Lower priority sorts first."""

    category: str
    priority: int
    applies: Callable[[Dict], bool]
    text: Callable[[Dict], str]


NOTE_RULES: tuple = (
    NoteRule(
        category="observation",
        priority=1,
        applies=lambda ctx: ctx["record_depth"]["coverage_level"] == "sparse",
        text=lambda ctx: (
            "Record depth is limited for this period. Patterns may not fully "
            "represent typical capacity fluctuations."
        ),
    ),
    NoteRule(
        category="observation",
        priority=2,
        applies=lambda ctx: (
            ctx["depleted_percent"] > ctx["cfg"].report.elevated_depletion_percent
        ),
        text=lambda ctx: (
            "Observations suggest elevated depletion frequency during this period. "
            "Consider monitoring environmental and scheduling factors."
        ),
    ),
    NoteRule(
        category="observation",
        priority=3,
        applies=lambda ctx: (
            ctx["resourced_percent"] > ctx["cfg"].report.predominantly_resourced_percent
        ),
        text=lambda ctx: "Observations indicate predominantly resourced capacity during this period.",
    ),
    NoteRule(
        category="consideration",
        priority=2,
        applies=lambda ctx: (
            metric_score(ctx["pattern_metrics"], "volatility", 0) > ctx["cfg"].report.high_volatility_score
        ),
        text=lambda ctx: (
            "High day-to-day variability observed. Stable routines may support "
            "capacity predictability."
        ),
    ),
    NoteRule(
        category="pattern_note",
        priority=3,
        applies=lambda ctx: (
            ctx["week_structure"]["hardest_day"]["raw_depletion_rate"] > ctx["cfg"].report.hardest_day_rate
        ),
        text=lambda ctx: (
            f"{ctx['week_structure']['hardest_day']['day_name']} shows elevated depletion "
            "frequency. Consider adjusting scheduling or load on this day."
        ),
    ),
    NoteRule(
        category="pattern_note",
        priority=3,
        applies=lambda ctx: ctx["week_structure"]["vulnerable_time_slot"] is not None,
        text=lambda ctx: (
            f"{ctx['week_structure']['vulnerable_time_slot'].capitalize()} periods show lower "
            "average capacity. Consider load distribution across the day."
        ),
    ),
)


def generate_clinical_notes(
    distribution: Dict,
    pattern_metrics: List[Dict],
    week_structure: Dict,
    record_depth: Dict,
    cfg: EngineConfig,
    rules: tuple = NOTE_RULES,
) -> List[Dict]:
    """
    Evaluate every rule in order; stable-sort the hits by priority.

    Thresholds compare unrounded percents from the raw counts; the rounded
    percents are for display only.
    """
    counts = distribution["counts"]
    total = sum(counts.values())
    ctx = {
        "distribution": distribution,
        "depleted_percent": 100 * counts["depleted"] / total if total else 0.0,
        "resourced_percent": 100 * counts["resourced"] / total if total else 0.0,
        "pattern_metrics": pattern_metrics,
        "week_structure": week_structure,
        "record_depth": record_depth,
        "cfg": cfg,
    }
    notes = [
        {"category": rule.category, "text": rule.text(ctx), "priority": rule.priority}
        for rule in rules
        if rule.applies(ctx)
    ]
    return sorted(notes, key=lambda n: n["priority"])


# ---------------------------------------------------------------------------
# Chart data
# ---------------------------------------------------------------------------

def compute_daily_capacity(df: pd.DataFrame, cfg: EngineConfig) -> List[Dict]:
    means = daily_means(df)
    counts = daily_counts(df)
    points = [
        {
            "date": day,
            "capacity_index": int(round(float(means[day]))),
            "observation_count": int(counts[day]),
        }
        for day in means.index
    ]
    return sample_evenly(points, cfg.chart.daily_point_cap)


def compute_driver_frequency(df: pd.DataFrame) -> List[Dict]:
    """Per category tag: count, share of category-tagged entries, strain rate."""
    masks = {cat: df["tags"].map(lambda tags, c=cat: c in tags) for cat in CATEGORIES}
    total_tagged = sum(int(m.sum()) for m in masks.values())

    result = []
    for cat in CATEGORIES:
        mask = masks[cat]
        count = int(mask.sum())
        depleted = int((df.loc[mask, "state"] == "depleted").sum())
        result.append({
            "driver": cat,
            "count": count,
            "percentage": round(100 * count / total_tagged) if total_tagged else 0,
            "strain_rate": round(100 * depleted / count) if count else 0,
        })
    return result


def compute_chart_data(df: pd.DataFrame, distribution: Dict, cfg: EngineConfig) -> Dict:
    counts = distribution["counts"]
    return {
        "daily_capacity": compute_daily_capacity(df, cfg),
        "weekly_means": weekly_means(df),
        "driver_frequency": compute_driver_frequency(df),
        "state_distribution": [
            {"state": state, "count": counts[state], "percentage": distribution[f"{state}_percent"]}
            for state in ("resourced", "stretched", "depleted")
        ],
    }


# ---------------------------------------------------------------------------
# Longitudinal context
# ---------------------------------------------------------------------------

def compute_longitudinal_context(
    all_df: pd.DataFrame,
    quarter_id: str,
    distribution: Dict,
    report_cfg: ReportConfig,
    cfg: EngineConfig,
) -> Dict:
    r = cfg.report
    _, end = quarter_date_range(quarter_id)
    history = all_df.loc[all_df["timestamp"] <= end]

    prev_df = select_quarter(all_df, previous_quarter_id(quarter_id))
    has_previous = len(prev_df) >= r.min_observations

    comparison = None
    if report_cfg.include_previous_comparison and has_previous:
        prev_distribution = compute_distribution(prev_df)
        change = distribution["depleted_percent"] - prev_distribution["depleted_percent"]
        if change < -r.comparison_band:
            trend = "improving"
        elif change > r.comparison_band:
            trend = "declining"
        else:
            trend = "stable"
        comparison = {"capacity_trend": trend, "depletion_change": round(float(change), 1)}

    return {
        "total_record_days": int(history["local_date"].nunique()),
        "is_first_quarter": not has_previous,
        "previous_quarter_comparison": comparison,
    }


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------

def build_quarterly_report(
    all_df: pd.DataFrame,
    report_cfg: ReportConfig,
    cfg: EngineConfig,
    now: datetime,
) -> Dict | None:
    """Full report for one quarter, or None below the observation gate."""
    quarter_id = current_quarter_id(now) if report_cfg.quarter == "current" else report_cfg.quarter
    df = select_quarter(all_df, quarter_id)

    if len(df) < cfg.report.min_observations:
        logger.debug(
            "No report for %s: %d observations (need %d)",
            quarter_id, len(df), cfg.report.min_observations,
        )
        return None

    period = compute_period(quarter_id)
    record_depth = compute_record_depth(df, quarter_id, cfg)
    distribution = compute_distribution(df)
    pattern_metrics = compute_report_pattern_metrics(df, cfg)
    drivers = compute_drivers(df, cfg)
    week_structure = compute_week_structure(df, cfg)
    notable_episodes = compute_notable_episodes(df, cfg)
    clinical_notes = (
        generate_clinical_notes(distribution, pattern_metrics, week_structure, record_depth, cfg)
        if report_cfg.include_clinical_notes
        else []
    )
    chart_data = compute_chart_data(df, distribution, cfg)

    # Heuristic overlays: explanatory only, never inputs to the core metrics
    capacity_composition = compute_capacity_composition(df, drivers, cfg)
    event_correlation = compute_event_correlation(chart_data["weekly_means"], df, cfg)

    chain_of_custody = compute_chain_of_custody(period, record_depth, distribution, now, cfg)
    signal_fidelity = compute_signal_fidelity(df, record_depth, pattern_metrics, cfg)

    ids = df["id"].dropna().astype(str)

    logger.info(
        "Generated report %s: %d observations, verdict=%s",
        quarter_id, record_depth["total_observations"], signal_fidelity["verdict"],
    )

    return {
        "id": f"qcr_{quarter_id}_{epoch_ms(now, cfg.timezone)}",
        "version": "1.0",
        "generated_at": now,
        "status": "IMMUTABLE_SNAPSHOT",
        "is_demo_report": bool(ids.str.startswith("demo-").any()),
        "period": period,
        "record_depth": record_depth,
        "distribution": distribution,
        "pattern_metrics": pattern_metrics,
        "drivers": drivers,
        "week_structure": week_structure,
        "notable_episodes": notable_episodes,
        "clinical_notes": clinical_notes,
        "chart_data": chart_data,
        "capacity_composition": capacity_composition,
        "event_correlation": event_correlation,
        "longitudinal_context": compute_longitudinal_context(
            all_df, quarter_id, distribution, report_cfg, cfg
        ),
        "chain_of_custody": chain_of_custody,
        "signal_fidelity": signal_fidelity,
        "provider_shield": compute_provider_shield(),
    }
