"""
Heuristic overlays for the quarterly report.

Both overlays are explanatory annotations derived from timestamps and
tags. They never feed back into continuity, stability, the verdict, or
the projection.
"""

from datetime import timedelta
from typing import Dict, List

import numpy as np
import pandas as pd

from capacity_engine.config import EngineConfig


def _clamp_impact(value: int) -> int:
    return int(np.clip(value, -100, 100))


def label_impact(value: float, band: float) -> str:
    if value < -band:
        return "depleting"
    if value > band:
        return "compensatory"
    return "neutral"


def _hour_mask(df: pd.DataFrame, start_hour: int, end_hour: int) -> pd.Series:
    hours = df["timestamp"].dt.hour
    return (hours >= start_hour) & (hours < end_hour)


# ---------------------------------------------------------------------------
# Capacity composition
# ---------------------------------------------------------------------------

def compute_capacity_composition(df: pd.DataFrame, drivers: Dict, cfg: EngineConfig) -> Dict:
    """
    Quarter-level split of low capacity into four signed contributions.

    sleep       early-morning low-capacity share (negative)
    energy      afternoon low-capacity share (negative)
    brain       demand-tag depletion correlation above baseline
    subjective  high-capacity share above baseline
    """
    c = cfg.composition
    total = len(df)
    depleted = df["state"] == "depleted"

    if total:
        early = int((depleted & _hour_mask(df, c.early_morning_start_hour, c.early_morning_end_hour)).sum())
        afternoon = int((depleted & _hour_mask(df, c.afternoon_start_hour, c.afternoon_end_hour)).sum())
        resourced = int((df["state"] == "resourced").sum())
        sleep = -round(early / total * 100 * c.sleep_multiplier)
        energy = -round(afternoon / total * 100 * c.energy_multiplier)
        subjective = round((resourced / total - c.resourced_baseline) * c.subjective_multiplier)
    else:
        sleep = energy = subjective = 0

    demand = next((d for d in drivers["all"] if d["driver"] == c.demand_tag), None)
    brain = round((demand["depletion_correlation"] - c.demand_baseline) * 100) if demand else 0

    impacts = {"sleep": sleep, "energy": energy, "brain": brain, "subjective": subjective}
    return {
        "sleep_impact": _clamp_impact(sleep),
        "energy_impact": _clamp_impact(energy),
        "brain_impact": _clamp_impact(brain),
        "subjective_impact": _clamp_impact(subjective),
        "summary": {name: label_impact(value, c.label_band) for name, value in impacts.items()},
    }


# ---------------------------------------------------------------------------
# Event correlation
# ---------------------------------------------------------------------------

EVENT_CONCLUSIONS = {
    "sleep": "Decline primarily sleep-driven, not workload-driven.",
    "energy": "Decline correlated with reduced energy levels in preceding period.",
    "cognitive": "Elevated cognitive load identified as primary contributing factor.",
    "mixed": "Multiple factors contributed to capacity decline during this period.",
}


def compute_event_correlation(weekly: List[Dict], df: pd.DataFrame, cfg: EngineConfig) -> Dict | None:
    """
    Explain the lowest week by the days leading into it.

    Needs at least `min_weeks` weekly points; ties on the lowest mean
    resolve to the earliest week.
    """
    e = cfg.event_correlation
    c = cfg.composition
    if len(weekly) < e.min_weeks:
        return None

    means = [w["mean_capacity"] for w in weekly]
    lowest_index = int(np.argmin(means))
    lowest = weekly[lowest_index]

    week_start = lowest["week_start"]
    preceding_start = week_start - timedelta(days=e.preceding_days)
    ts = df["timestamp"]
    preceding = df.loc[(ts >= preceding_start) & (ts < week_start)]

    early_depleted = int(
        ((preceding["state"] == "depleted")
         & _hour_mask(preceding, c.early_morning_start_hour, c.early_morning_end_hour)).sum()
    )
    sleep_debt_change = round(100 * early_depleted / len(preceding)) if len(preceding) else 0

    preceding_mean = float(preceding["score"].mean()) if len(preceding) else 50.0
    overall_mean = float(np.mean(means))
    if preceding_mean < overall_mean - e.baseline_band:
        energy_variance = "below_baseline"
    elif preceding_mean > overall_mean + e.baseline_band:
        energy_variance = "above_baseline"
    else:
        energy_variance = "within_baseline"

    in_week = df.loc[(ts >= week_start) & (ts <= lowest["week_end"])]
    if len(in_week):
        demand_rate = float(in_week["tags"].map(lambda tags: e.demand_tag in tags).mean())
    else:
        demand_rate = 0.0
    if demand_rate > e.demand_elevated:
        cognitive_load = "elevated"
    elif demand_rate < e.demand_reduced:
        cognitive_load = "reduced"
    else:
        cognitive_load = "stable"

    if sleep_debt_change > e.sleep_debt_percent:
        primary = "sleep"
    elif energy_variance == "below_baseline":
        primary = "energy"
    elif cognitive_load == "elevated":
        primary = "cognitive"
    else:
        primary = "mixed"

    return {
        "week_number": lowest_index + 1,
        "week_start": week_start,
        "week_end": lowest["week_end"],
        "mean_capacity": lowest["mean_capacity"],
        "contributing_factors": {
            "sleep_debt_change": sleep_debt_change,
            "energy_variance": energy_variance,
            "cognitive_load": cognitive_load,
            "primary_driver": primary,
        },
        "conclusion": EVENT_CONCLUSIONS[primary],
    }
