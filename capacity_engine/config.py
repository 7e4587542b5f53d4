"""
Centralized configuration for all thresholds, gates, and rule tables.

Every tunable constant lives here. The insufficient-data gates (90 unique
days, 7 quarterly observations, 14 projection days) are product policy,
so they are fields, not literals in the algorithm modules.
"""

import re
from dataclasses import dataclass, field
from datetime import date


QUARTER_PATTERN = re.compile(r"^(\d{4})-Q([1-4])$")


def _parse_iso_date(value: str, name: str) -> date:
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a YYYY-MM-DD date string, got {value!r}")


# ---------------------------------------------------------------------------
# Caller-facing inputs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class WindowConfig:
    """Observation window for the capacity index path."""

    window_start: str
    window_end: str
    minimum_days: int = 90
    patient_id_seed: str | None = None

    def __post_init__(self):
        start = _parse_iso_date(self.window_start, "window_start")
        end = _parse_iso_date(self.window_end, "window_end")
        if end < start:
            raise ValueError(
                f"window_end ({self.window_end}) is before window_start ({self.window_start})"
            )
        if self.minimum_days < 1:
            raise ValueError(f"minimum_days must be >= 1, got {self.minimum_days}")


@dataclass(frozen=True)
class ReportConfig:
    """Which quarter to report on and which optional sections to include."""

    quarter: str = "current"
    include_clinical_notes: bool = True
    include_previous_comparison: bool = True

    def __post_init__(self):
        if self.quarter != "current" and not QUARTER_PATTERN.match(self.quarter):
            raise ValueError(f"quarter must look like 2025-Q1 or be 'current', got {self.quarter!r}")


# ---------------------------------------------------------------------------
# Pattern classification
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ContinuityThresholds:
    """Cutoffs for the 3-level tracking continuity rating."""

    high: int = 70
    moderate: int = 40


@dataclass(frozen=True)
class VerdictRule:
    """
    One row of the verdict lookup table.

    Matches when lo <= value < hi on both axes. Rules are evaluated
    top-to-bottom and the first match wins.
    """

    label: str
    continuity_min: float = float("-inf")
    continuity_max: float = float("inf")
    stability_min: float = float("-inf")
    stability_max: float = float("inf")

    def matches(self, stability: float, continuity: float) -> bool:
        return (
            self.continuity_min <= continuity < self.continuity_max
            and self.stability_min <= stability < self.stability_max
        )


DEFAULT_VERDICT_RULES: tuple = (
    VerdictRule("Insufficient Observation", continuity_max=40),
    VerdictRule("Interpretable Capacity Trends", continuity_min=70, stability_min=80),
    VerdictRule("Partial Capacity Trends", stability_min=80),
    VerdictRule("Variable Capacity Patterns", continuity_min=70, stability_min=50),
    VerdictRule("Partial Capacity Patterns", stability_min=50),
    VerdictRule("Highly Variable Capacity", continuity_min=70),
    VerdictRule("Insufficient Stability"),
)

FALLBACK_VERDICT = "Insufficient Data"


@dataclass(frozen=True)
class StabilityParams:
    """Volatility is on the 0-100 score scale; this is its ceiling."""

    max_volatility: float = 100.0


# ---------------------------------------------------------------------------
# Chart series
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ChartParams:
    points: int = 6
    neutral_value: float = 50.0
    daily_point_cap: int = 60
    x_labels: int = 3


# ---------------------------------------------------------------------------
# Trend projection
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProjectionParams:
    """
    Recency-weighted regression over recent daily means.

    weight_i = decay ** (n - 1 - i), so the most recent day weighs 1.0.
    A slope above `flat_slope` (points/day) is treated as no risk.
    """

    min_input_days: int = 14
    preferred_input_days: int = 21
    max_input_days: int = 30
    decay: float = 0.95
    flat_slope: float = -0.15
    horizon_days: int = 42
    critical_threshold: float = 33.0
    degenerate_epsilon: float = 1e-10


# ---------------------------------------------------------------------------
# Quarterly report
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ReportThresholds:
    """Gates, bands, and scaling factors for the quarterly report."""

    min_observations: int = 7

    # Record depth coverage bands (percent)
    coverage_comprehensive: int = 80
    coverage_consistent: int = 50
    coverage_moderate: int = 25

    # Pattern metric level bands
    level_moderate: float = 33.0
    level_high: float = 66.0

    volatility_scale: float = 150.0
    recovery_lag_scale: float = 4.0

    # Drivers
    top_depleters: int = 3
    top_overall: int = 5

    # Episodes
    max_episodes: int = 5
    episode_min_days: int = 2
    episode_max_tags: int = 3

    # Time-of-day buckets (hour boundaries)
    morning_end_hour: int = 12
    afternoon_end_hour: int = 17

    # Clinical note triggers
    elevated_depletion_percent: float = 40.0
    predominantly_resourced_percent: float = 60.0
    high_volatility_score: float = 70.0
    hardest_day_rate: float = 50.0

    # Longitudinal comparison band (percentage points)
    comparison_band: float = 5.0


@dataclass(frozen=True)
class CompositionParams:
    """Heuristic multipliers for the capacity composition overlay."""

    early_morning_start_hour: int = 6
    early_morning_end_hour: int = 10
    afternoon_start_hour: int = 12
    afternoon_end_hour: int = 17
    sleep_multiplier: float = 2.5
    energy_multiplier: float = 2.0
    demand_baseline: float = 0.3
    resourced_baseline: float = 0.4
    subjective_multiplier: float = 50.0
    label_band: float = 15.0
    demand_tag: str = "demand"


@dataclass(frozen=True)
class EventCorrelationParams:
    """Decision-tree cutoffs for the lowest-week explanation."""

    min_weeks: int = 3
    preceding_days: int = 10
    sleep_debt_percent: float = 15.0
    baseline_band: float = 10.0
    demand_elevated: float = 0.5
    demand_reduced: float = 0.2
    demand_tag: str = "demand"


# ---------------------------------------------------------------------------
# Signal fidelity
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FidelityThresholds:
    """Bands for the data-quality envelope attached to each report."""

    expected_per_day: int = 2

    compliance_high: int = 80
    compliance_moderate: int = 60

    latency_base_seconds: float = 3.0
    latency_span_seconds: float = 7.0
    latency_min_seconds: float = 3.0
    latency_max_seconds: float = 10.0

    coherence_high: int = 70
    coherence_moderate: int = 40

    completion_complete: int = 80
    completion_partial: int = 50

    # (compliance, coherence, completion) minimums per verdict tier
    reliable: tuple = (70, 60, 60)
    acceptable: tuple = (50, 40, 40)


# ---------------------------------------------------------------------------
# Top-level config aggregate
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class EngineConfig:
    """Complete engine configuration. Pass to entry points to override defaults."""

    continuity: ContinuityThresholds = field(default_factory=ContinuityThresholds)
    stability: StabilityParams = field(default_factory=StabilityParams)
    chart: ChartParams = field(default_factory=ChartParams)
    projection: ProjectionParams = field(default_factory=ProjectionParams)
    report: ReportThresholds = field(default_factory=ReportThresholds)
    composition: CompositionParams = field(default_factory=CompositionParams)
    event_correlation: EventCorrelationParams = field(default_factory=EventCorrelationParams)
    fidelity: FidelityThresholds = field(default_factory=FidelityThresholds)
    verdict_rules: tuple = DEFAULT_VERDICT_RULES

    # IANA zone for deriving local calendar dates; None = system local time
    timezone: str | None = None
    protocol_version: str = "QCR-1.0-CLINICAL"
