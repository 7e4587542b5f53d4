"""
Session-ready narrative paragraph.

Deterministic template expansion over the capacity index and the
projection. Every phrase is drawn from a closed vocabulary that passes
the language-governance scan in `formatting`.
"""

from typing import Dict

from capacity_engine.observations import STATE_SCORES


def _shares(distribution: Dict) -> tuple:
    total = distribution["total"]
    return (
        distribution["resourced"] / total,
        distribution["stretched"] / total,
        distribution["depleted"] / total,
    )


def resolve_status(distribution: Dict) -> str:
    """Dominant status label from the overall state distribution."""
    if distribution["total"] == 0:
        return "undetermined"
    r, s, d = _shares(distribution)

    if r >= 0.5:
        return "predominantly resourced"
    if d >= 0.4:
        return "frequently near capacity limits"
    if s >= 0.5:
        return "consistently stretched"
    if r >= 0.3 and s >= 0.3:
        return "mixed between resourced and stretched"
    return "variable across states"


def resolve_trend_direction(stability_percent: float) -> str:
    if stability_percent >= 75:
        return "stable"
    if stability_percent >= 45:
        return "variable"
    return "shifting"


def resolve_dominant_pattern(distribution: Dict, stability_percent: float) -> str:
    if distribution["total"] == 0:
        return "insufficient data"
    r, _, d = _shares(distribution)

    if stability_percent >= 75 and r >= 0.5:
        return "sustained capacity with consistent patterns"
    if stability_percent >= 75 and d >= 0.3:
        return "persistent low capacity with limited variability"
    if stability_percent < 45:
        return "high day-to-day fluctuation in reported capacity"
    if d >= 0.4:
        return "recurrent capacity reduction episodes"
    if r < 0.2 and d < 0.2:
        return "mid-range capacity with moderate variation"
    return "mixed capacity patterns across the observation period"


def resolve_recovery_assessment(distribution: Dict, stability_percent: float) -> str:
    if distribution["total"] == 0:
        return "not assessable"
    r, _, d = _shares(distribution)

    if r >= 0.5 and d < 0.15:
        return "appears consistent with available resources for recovery"
    if r >= 0.3 and d < 0.3:
        return "shows periods of recovery interspersed with elevated load"
    if d >= 0.4 and stability_percent < 50:
        return "suggests limited recovery windows with sustained load"
    if d >= 0.3:
        return "indicates reduced capacity for self-regulation recovery"
    return "reflects a mixed recovery pattern warranting further observation"


def compute_baseline(distribution: Dict) -> int:
    """Weighted mean score of the distribution; 50 when empty."""
    total = distribution["total"]
    if total == 0:
        return 50
    weighted = sum(distribution[state] * score for state, score in STATE_SCORES.items())
    return round(weighted / total)


def generate_narrative(
    capacity_index: Dict,
    projection: Dict | None,
    top_driver_label: str | None = None,
) -> str:
    """
    Three or four sentences:
        1. period, status, stability trend, baseline
        2. dominant pattern and recovery
        3. top load factor (or none)
        4. projection note, only when a critical crossing is projected
    """
    distribution = capacity_index["overall_distribution"]
    stability = capacity_index["pattern_stability_percent"]

    status = resolve_status(distribution)
    trend = resolve_trend_direction(stability)
    pattern = resolve_dominant_pattern(distribution, stability)
    recovery = resolve_recovery_assessment(distribution, stability)
    baseline = compute_baseline(distribution)

    sentences = [
        f"Over the past {capacity_index['total_days_in_window']} days, this individual's "
        f"capacity has been {status} with a {trend} stability trend "
        f"({stability}/100, from {baseline}% baseline).",
        f"The primary pattern is {pattern}, with recovery that {recovery}.",
    ]

    if top_driver_label:
        sentences.append(f"The most frequently reported load factor is {top_driver_label}.")
    else:
        sentences.append("No single load factor predominates in the reported data.")

    if projection and projection["has_overload_risk"] and projection["weeks_to_critical"] is not None:
        sentences.append(
            "Current trajectory suggests capacity may reach a critical threshold within "
            f"approximately {projection['weeks_to_critical']} weeks if present patterns continue."
        )

    return " ".join(sentences)
