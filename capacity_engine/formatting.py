"""
Display formatting and language governance.

Formatters enforce clamping, rounding, and maximum lengths for every
string shown to a reader. The governance scan rejects phrasing that
implies diagnosis, judgment, or advice.
"""

import re
from typing import Dict, Iterable, List

from capacity_engine.config import DEFAULT_VERDICT_RULES, FALLBACK_VERDICT
from capacity_engine.temporal import format_display_date

MAX_DISPLAY_LENGTH = 40
PATIENT_ID_PATTERN = re.compile(r"^\d{5}-[A-Z]{3}$")
PATIENT_ID_FALLBACK = "00000-UNK"

CONTINUITY_LABELS = {
    "high": "High Reliability",
    "moderate": "Moderate Reliability",
    "low": "Low Reliability",
}

# Case-insensitive substring match.
PROHIBITED_PHRASES = (
    "improving",
    "declining",
    "you should",
    "this means",
    "this indicates",
    "consider",
    "good",
    "bad",
    "healthy",
    "unhealthy",
    "normal",
    "abnormal",
    "diagnosis",
    "treatment",
    "intervention",
    "recommendation",
    "wellness score",
    "health score",
    "daily grade",
    "weekly grade",
    "progress percentage",
    "why are you",
    "suggested reason",
    "symptom",
    "mental health",
    "therapy",
    "clinical assessment",
    "cure",
    "ai-powered",
    "ai analysis",
)

ALL_VERDICT_STRINGS = tuple(rule.label for rule in DEFAULT_VERDICT_RULES) + (FALLBACK_VERDICT,)


# ---------------------------------------------------------------------------
# Individual formatters
# ---------------------------------------------------------------------------

def _clamp_percent(value: float) -> int:
    return max(0, min(100, round(value)))


def format_observation_window(start: str, end: str) -> str:
    return f"{start} to {end}"


def format_observation_window_display(start: str, end: str) -> str:
    """'Mon D, YYYY – Mon D, YYYY', truncated to 40 characters."""
    text = f"{format_display_date(start)} – {format_display_date(end)}"
    return text[:MAX_DISPLAY_LENGTH]


def format_tracking_continuity(percent: float, rating: str) -> str:
    return f"{_clamp_percent(percent)}% ({CONTINUITY_LABELS.get(rating, 'Unknown')})"


def format_pattern_stability(percent: float) -> str:
    return f"{_clamp_percent(percent)}%"


def format_verdict(verdict: str | None) -> str:
    if not verdict or not verdict.strip():
        return FALLBACK_VERDICT
    return verdict[:MAX_DISPLAY_LENGTH]


def format_patient_id(patient_id: str | None) -> str:
    if patient_id and PATIENT_ID_PATTERN.match(patient_id):
        return patient_id
    return PATIENT_ID_FALLBACK


def format_window_status(status: str) -> str:
    return "(Closed)" if status == "closed" else "(Open)"


def format_capacity_index(capacity_index: Dict) -> Dict[str, str]:
    """All display strings for a capacity index record."""
    start = capacity_index["observation_window_start"]
    end = capacity_index["observation_window_end"]
    return {
        "observation_window": format_observation_window(start, end),
        "observation_window_display": format_observation_window_display(start, end),
        "window_status": format_window_status(capacity_index["window_status"]),
        "patient_id": format_patient_id(capacity_index["patient_id"]),
        "tracking_continuity": format_tracking_continuity(
            capacity_index["tracking_continuity_percent"],
            capacity_index["tracking_continuity_rating"],
        ),
        "pattern_stability": format_pattern_stability(capacity_index["pattern_stability_percent"]),
        "verdict": format_verdict(capacity_index["verdict"]),
    }


# ---------------------------------------------------------------------------
# Language governance
# ---------------------------------------------------------------------------

def find_prohibited_words(text: str) -> List[str]:
    """Prohibited phrases found in `text` (empty list = compliant)."""
    lower = text.lower()
    return [phrase for phrase in PROHIBITED_PHRASES if phrase in lower]


def assert_governance_compliance(strings: Dict[str, str] | Iterable[str]) -> None:
    """Raise ValueError listing every field that carries a prohibited phrase."""
    items = strings.items() if isinstance(strings, dict) else enumerate(strings)
    violations = []
    for name, value in items:
        found = find_prohibited_words(value)
        if found:
            violations.append(f"{name}: contains prohibited word(s): {', '.join(found)}")
    if violations:
        raise ValueError("Governance violation:\n" + "\n".join(violations))


# ---------------------------------------------------------------------------
# Plain-text summary
# ---------------------------------------------------------------------------

def format_summary(result: Dict) -> str:
    """Format an `analyze` result as a human-readable text report."""
    ci = result["capacity_index"]
    lines = [
        "CAPACITY STATUS REPORT",
        "=" * 58,
        "",
    ]

    if ci is None:
        lines.append("  Insufficient history for a capacity index.")
        lines.append("")
        lines.append("=" * 58)
        return "\n".join(lines)

    fmt = format_capacity_index(ci)
    dist = ci["overall_distribution"]
    lines += [
        f"  Patient ID          : {fmt['patient_id']}",
        f"  Observation Window  : {fmt['observation_window_display']} {fmt['window_status']}",
        f"  Tracking Continuity : {fmt['tracking_continuity']}",
        f"  Pattern Stability   : {fmt['pattern_stability']} (volatility: {ci['volatility_raw']})",
        f"  Verdict             : {fmt['verdict']}",
        f"  Signals             : {ci['total_signals']} "
        f"(resourced {dist['resourced']} / stretched {dist['stretched']} / depleted {dist['depleted']})",
        f"  Chart               : {' '.join(str(v) for v in ci['chart_values'])}"
        f"  [{' | '.join(ci['chart_x_labels'])}]",
    ]

    if ci["monthly_breakdown"]:
        lines.append("")
        lines.append("  Monthly Breakdown:")
        for month in ci["monthly_breakdown"]:
            lines.append(
                f"    {month['month']} : {month['signal_count']:4d} signals"
                f"  stability {month['stability']:3d}%  volatility {month['volatility']:3d}"
            )

    projection = result["projection"]
    lines.append("")
    if projection is None:
        lines.append("  Projection          : No declining trend")
    else:
        weeks = projection["weeks_to_critical"]
        lines.append(
            f"  Projection          : {projection['trend_rate']:+.1f} pts/week"
            + (f", critical in ~{weeks} weeks" if weeks is not None else "")
        )

    impact = result["impact"]
    if impact:
        lines.append("")
        lines.append("  Functional Impact:")
        for item in impact["items"]:
            lines.append(f"    {item['domain']:19s} : {item['severity']:9s} {item['descriptor']}")

    if result["narrative"]:
        lines.append("")
        lines.append(f"  {result['narrative']}")

    lines.append("")
    lines.append("=" * 58)
    return "\n".join(lines)
