"""
Provenance and signal-fidelity auditing.

- Anonymized patient identifier (deterministic NNNNN-AAA)
- Chain of custody with a content integrity hash
- Signal fidelity audit (compliance, input latency, coherence, completion)
- Provider shield statements
"""

import hashlib
import json
from datetime import datetime
from typing import Dict, List

import numpy as np
import pandas as pd

from capacity_engine.aggregate import daily_counts
from capacity_engine.config import EngineConfig

SOURCE_SYSTEM = "Capacity Intelligence Engine"
DATA_PROVENANCE = "Client-reported capacity observations"


# ---------------------------------------------------------------------------
# Anonymized patient ID
# ---------------------------------------------------------------------------

def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value >= 0x80000000 else value


def _utf16_units(text: str) -> List[int]:
    raw = text.encode("utf-16-le")
    return [raw[i] | (raw[i + 1] << 8) for i in range(0, len(raw), 2)]


def string_hash32(text: str) -> int:
    """Signed 32-bit rolling hash: h = h * 31 + unit, over UTF-16 code units."""
    h = 0
    for unit in _utf16_units(text):
        h = _to_int32((h << 5) - h + unit)
    return h


def generate_anonymized_id(seed: str) -> str:
    """
    Deterministic identifier of the form NNNNN-AAA.

    Five digits from the hash magnitude, three letters from the
    magnitude and from the hash arithmetically shifted by 8 and 16 bits.
    """
    h = string_hash32(seed)
    positive = abs(h)
    digits = f"{positive % 100000:05d}"
    letters = "".join(
        chr(65 + value % 26)
        for value in (positive, abs(h >> 8), abs(h >> 16))
    )
    return f"{digits}-{letters}"


# ---------------------------------------------------------------------------
# Chain of custody
# ---------------------------------------------------------------------------

def integrity_hash(payload: Dict) -> str:
    """'SHA256:' + first 16 uppercase hex digits of the canonical JSON digest."""
    content = json.dumps(payload, sort_keys=True, default=str)
    return "SHA256:" + hashlib.sha256(content.encode("utf-8")).hexdigest()[:16].upper()


def compute_chain_of_custody(
    period: Dict,
    record_depth: Dict,
    distribution: Dict,
    generated_at: datetime,
    cfg: EngineConfig,
) -> Dict:
    generated = generated_at.isoformat()
    return {
        "integrity_hash": integrity_hash({
            "period": period,
            "record_depth": record_depth,
            "distribution": distribution,
            "generated_at": generated,
        }),
        "protocol_version": cfg.protocol_version,
        "generated_timestamp": generated,
        "observation_window_start": period["start_date"].isoformat(),
        "observation_window_end": period["end_date"].isoformat(),
        "status": "IMMUTABLE_SNAPSHOT",
        "source_system": SOURCE_SYSTEM,
        "data_provenance": DATA_PROVENANCE,
    }


# ---------------------------------------------------------------------------
# Signal fidelity
# ---------------------------------------------------------------------------

def _band(value: float, high: float, moderate: float, labels) -> str:
    if value >= high:
        return labels[0]
    if value >= moderate:
        return labels[1]
    return labels[2]


def estimate_input_latency(df: pd.DataFrame, unique_days: int, cfg: EngineConfig) -> float:
    """
    Latency proxy in seconds: more days carrying two or more entries
    means more deliberate reporting. Always within [base, base + span].
    """
    f = cfg.fidelity
    counts = daily_counts(df)
    multi_days = int((counts >= 2).sum())
    ratio = multi_days / unique_days if unique_days > 0 else 0.0
    return f.latency_base_seconds + ratio * f.latency_span_seconds


def _fidelity_narrative(compliance: int, latency: float, coherence: int, verdict: str) -> str:
    if verdict == "CLINICALLY RELIABLE SIGNAL":
        return (
            f"This report reflects {compliance}% observation compliance with consistent "
            f"input patterns (mean latency {latency:.1f}s). Pattern coherence of {coherence}% "
            "indicates low probability of random or reflexive entry. Data quality supports "
            "clinical utility."
        )
    if verdict == "ACCEPTABLE SIGNAL QUALITY":
        return (
            f"This report reflects {compliance}% observation compliance. Input patterns and "
            "coherence metrics fall within acceptable ranges for clinical reference. Some gaps "
            "in coverage may limit pattern visibility."
        )
    return (
        f"This report reflects limited observation compliance ({compliance}%). Signal "
        "patterns show elevated variance that may affect reliability. Increased observation "
        "frequency would strengthen subsequent reports."
    )


def compute_signal_fidelity(
    df: pd.DataFrame,
    record_depth: Dict,
    pattern_metrics: List[Dict],
    cfg: EngineConfig,
) -> Dict:
    f = cfg.fidelity
    scores = {m["id"]: m["score"] for m in pattern_metrics}

    expected = record_depth["period_days"] * f.expected_per_day
    compliance = min(100, round(100 * record_depth["total_observations"] / expected))

    latency = estimate_input_latency(df, record_depth["unique_days"], cfg)
    if latency < f.latency_min_seconds:
        latency_interpretation = "Rapid response pattern"
    elif latency > f.latency_max_seconds:
        latency_interpretation = "Delayed response pattern"
    else:
        latency_interpretation = "Consistent with thoughtful reporting"

    coherence = round((scores.get("stability", 50) + 100 - scores.get("volatility", 50)) / 2)
    completion = record_depth["coverage_percent"]

    gates = np.array([compliance, coherence, completion])
    if (gates >= np.array(f.reliable)).all():
        verdict = "CLINICALLY RELIABLE SIGNAL"
    elif (gates >= np.array(f.acceptable)).all():
        verdict = "ACCEPTABLE SIGNAL QUALITY"
    else:
        verdict = "SIGNAL QUALITY CONCERNS"

    return {
        "compliance_rate": {
            "value": compliance,
            "level": _band(
                compliance, f.compliance_high, f.compliance_moderate,
                ("High Reliability", "Moderate Reliability", "Low Reliability"),
            ),
        },
        "input_latency": {
            "mean_seconds": round(latency, 1),
            "interpretation": latency_interpretation,
        },
        "pattern_consistency": {
            "value": coherence,
            "interpretation": _band(
                coherence, f.coherence_high, f.coherence_moderate,
                ("Low probability of random entry", "Moderate coherence", "High variance detected"),
            ),
        },
        "session_completion_rate": {
            "value": completion,
            "level": _band(
                completion, f.completion_complete, f.completion_partial,
                ("Complete", "Partial", "Incomplete"),
            ),
        },
        "verdict": verdict,
        "narrative_summary": _fidelity_narrative(compliance, latency, coherence, verdict),
    }


# ---------------------------------------------------------------------------
# Provider shield
# ---------------------------------------------------------------------------

def compute_provider_shield() -> Dict[str, str]:
    """Static attestation statements attached to every report."""
    return {
        "utility_statement": (
            "This report is provided as a supplementary resource to support clinical dialogue. "
            "It reflects client-reported observations and computed pattern metrics. "
            "This document does not constitute a diagnosis, treatment recommendation, "
            "or clinical assessment."
        ),
        "liability_disclaimer": (
            "IMPORTANT: This report is generated from self-reported data and algorithmic "
            "analysis. It is not a substitute for professional clinical judgment. Providers "
            "should integrate this information with their own assessments and clinical interviews."
        ),
        "data_handling_notice": (
            "Data Processing: All observations were processed locally. No personally "
            "identifiable health information was transmitted during report generation."
        ),
    }
