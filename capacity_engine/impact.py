"""
Functional impact mapping.

Translates capacity-index metrics and the projection into severity
labels across four functional domains, plus ranked intervention targets,
observed strengths, and short recent-pattern descriptors.
"""

from typing import Dict, List

import pandas as pd

from capacity_engine.observations import CATEGORIES

SEVERITY_ORDER = {
    "LOW": 1,
    "MODERATE": 2,
    "ELEVATED": 3,
    "HIGH": 4,
    "CRITICAL": 5,
}

MAX_TARGETS = 4
MAX_STRENGTHS = 4
MAX_PATTERNS = 4


# ---------------------------------------------------------------------------
# Driver statistics
# ---------------------------------------------------------------------------

def compute_driver_stats(df: pd.DataFrame) -> Dict[str, int]:
    """
    Per category: percent of its observations (tagged or categorized)
    that are stretched or depleted. 0 when the category never appears.
    """
    strained = df["state"].isin(("stretched", "depleted"))
    stats = {}
    for cat in CATEGORIES:
        mask = df["tags"].map(lambda tags, c=cat: c in tags) | (df["category"] == cat)
        n = int(mask.sum())
        stats[cat] = round(100 * int((strained & mask).sum()) / n) if n else 0
    return stats


def top_driver(driver_stats: Dict[str, int] | None) -> str | None:
    """Category with the highest strain rate; ties resolve sensory, demand, social."""
    if not driver_stats:
        return None
    best = max(driver_stats.get(cat, 0) for cat in CATEGORIES)
    if best <= 0:
        return None
    return next(cat for cat in CATEGORIES if driver_stats.get(cat, 0) == best)


# ---------------------------------------------------------------------------
# Domain assessments
# ---------------------------------------------------------------------------

def _item(domain: str, severity: str, descriptor: str) -> Dict[str, str]:
    return {"domain": domain, "severity": severity, "descriptor": descriptor}


def assess_work_performance(depleted_percent: float, trend_rate: float | None) -> Dict:
    if depleted_percent >= 50:
        if trend_rate is not None and trend_rate < -3:
            return _item("Work Performance", "CRITICAL",
                         "Sustained functional reduction with accelerating decline")
        return _item("Work Performance", "HIGH", "Sustained functional reduction observed")
    if depleted_percent >= 30:
        return _item("Work Performance", "ELEVATED", "Intermittent functional reduction patterns")
    if depleted_percent >= 15:
        return _item("Work Performance", "MODERATE", "Occasional capacity-related functional shifts")
    return _item("Work Performance", "LOW", "Functional capacity within sustainable range")


def assess_overload_risk(projection: Dict | None, depleted_percent: float) -> Dict:
    weeks = projection["weeks_to_critical"] if projection else None
    if weeks is not None:
        if weeks < 4:
            return _item("Overload Risk", "CRITICAL",
                         f"Projected critical threshold within {weeks} weeks")
        if weeks < 8:
            return _item("Overload Risk", "HIGH",
                         f"Projected capacity reduction within {weeks} weeks")
        return _item("Overload Risk", "ELEVATED", "Declining trajectory warrants monitoring")
    if depleted_percent >= 40:
        return _item("Overload Risk", "ELEVATED",
                     "Elevated depletion frequency without clear trajectory")
    if depleted_percent >= 20:
        return _item("Overload Risk", "MODERATE",
                     "Moderate depletion frequency within expected range")
    return _item("Overload Risk", "LOW", "No significant overload indicators")


def assess_recovery_capacity(resourced_percent: float, stability_percent: float) -> Dict:
    if resourced_percent >= 50 and stability_percent >= 60:
        return _item("Recovery Capacity", "LOW", "Consistent recovery patterns observed")
    if resourced_percent >= 35:
        return _item("Recovery Capacity", "MODERATE",
                     "Partial recovery patterns with some variability")
    if resourced_percent >= 20:
        return _item("Recovery Capacity", "ELEVATED", "Limited recovery windows identified")
    if stability_percent < 40:
        return _item("Recovery Capacity", "HIGH", "Minimal recovery periods with high instability")
    return _item("Recovery Capacity", "HIGH", "Reduced recovery capacity observed")


def assess_social_functioning(social_percent: float, depleted_percent: float) -> Dict:
    combined = social_percent * 0.6 + depleted_percent * 0.4
    if combined >= 45:
        return _item("Social Functioning", "HIGH", "Elevated social load with capacity impact")
    if combined >= 30:
        return _item("Social Functioning", "ELEVATED", "Social demands contributing to load patterns")
    if combined >= 15:
        return _item("Social Functioning", "MODERATE", "Social factors present in load profile")
    return _item("Social Functioning", "LOW", "Social functioning within reported norms")


# ---------------------------------------------------------------------------
# Targets, strengths, patterns
# ---------------------------------------------------------------------------

def derive_intervention_targets(items: List[Dict], driver: str | None, projection: Dict | None) -> List[Dict]:
    targets = []

    ranked = sorted(items, key=lambda i: SEVERITY_ORDER[i["severity"]], reverse=True)
    if ranked and SEVERITY_ORDER[ranked[0]["severity"]] >= SEVERITY_ORDER["ELEVATED"]:
        targets.append((ranked[0]["domain"], ranked[0]["descriptor"]))

    if projection and projection["has_overload_risk"]:
        targets.append(("Trajectory Monitoring", f"Current rate: {projection['trend_rate']} pts/week"))

    if driver:
        targets.append((f"{driver.capitalize()} Load Management", "Most frequently reported load factor"))

    recovery = next((i for i in items if i["domain"] == "Recovery Capacity"), None)
    if recovery and SEVERITY_ORDER[recovery["severity"]] >= SEVERITY_ORDER["ELEVATED"]:
        targets.append(("Recovery Window Expansion", recovery["descriptor"]))

    return [
        {"priority": rank, "label": label, "rationale": rationale}
        for rank, (label, rationale) in enumerate(targets[:MAX_TARGETS], start=1)
    ]


def derive_strengths(capacity_index: Dict) -> List[str]:
    dist = capacity_index["overall_distribution"]
    total = dist["total"]
    resourced_pct = 100 * dist["resourced"] / total if total else 0.0
    depleted_share = dist["depleted"] / total if total else 0.0

    strengths = []
    if capacity_index["tracking_continuity_percent"] >= 70:
        strengths.append("Consistent engagement with self-monitoring")
    if resourced_pct >= 40:
        strengths.append("Sustained periods of resourced capacity")
    if capacity_index["pattern_stability_percent"] >= 70:
        strengths.append("Stable capacity patterns over time")
    if capacity_index["days_with_entries"] >= 60:
        strengths.append("Extended longitudinal record available")
    if resourced_pct >= 25 and depleted_share < 0.2:
        strengths.append("Limited depletion episodes")
    return strengths[:MAX_STRENGTHS]


def derive_recent_patterns(capacity_index: Dict, projection: Dict | None) -> List[str]:
    stability = capacity_index["pattern_stability_percent"]
    patterns = []
    if stability >= 75:
        patterns.append("Stable day-to-day patterns")
    elif stability < 45:
        patterns.append("High day-to-day variability")
    else:
        patterns.append("Moderate pattern variability")

    dist = capacity_index["overall_distribution"]
    if dist["total"] > 0:
        depleted_pct = 100 * dist["depleted"] / dist["total"]
        if depleted_pct >= 30:
            patterns.append("Recurrent capacity reduction")
        elif depleted_pct >= 15:
            patterns.append("Occasional capacity dips")
        if 100 * dist["resourced"] / dist["total"] >= 50:
            patterns.append("Predominantly resourced periods")

    if projection and projection["has_overload_risk"]:
        patterns.append("Declining capacity trajectory")

    return patterns[:MAX_PATTERNS]


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def map_functional_impact(
    capacity_index: Dict,
    projection: Dict | None,
    driver_stats: Dict[str, int] | None = None,
) -> Dict:
    """
    Severity items for the four domains plus derived lists.

    `driver_stats` maps category → strain percent (see compute_driver_stats).
    """
    dist = capacity_index["overall_distribution"]
    total = dist["total"]
    depleted_pct = 100 * dist["depleted"] / total if total else 0.0
    resourced_pct = 100 * dist["resourced"] / total if total else 0.0
    social_pct = (driver_stats or {}).get("social", 0)
    trend_rate = projection["trend_rate"] if projection else None

    items = [
        assess_work_performance(depleted_pct, trend_rate),
        assess_overload_risk(projection, depleted_pct),
        assess_recovery_capacity(resourced_pct, capacity_index["pattern_stability_percent"]),
        assess_social_functioning(social_pct, depleted_pct),
    ]

    return {
        "items": items,
        "intervention_targets": derive_intervention_targets(items, top_driver(driver_stats), projection),
        "strengths": derive_strengths(capacity_index),
        "recent_patterns": derive_recent_patterns(capacity_index, projection),
    }
