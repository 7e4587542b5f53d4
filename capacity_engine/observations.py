"""
Observation records and their tabular form.

Observations are produced by the surrounding application and never
mutated here. Every stage downstream works on the DataFrame built by
`to_frame`, which carries one row per observation with a numeric score.
"""

import json
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Iterable, Tuple, Union

import pandas as pd

from capacity_engine.temporal import local_date, to_local_datetime


CAPACITY_STATES = ("resourced", "stretched", "depleted")

STATE_SCORES = {
    "resourced": 100.0,
    "stretched": 50.0,
    "depleted": 0.0,
}

CATEGORIES = ("sensory", "demand", "social")

FRAME_COLUMNS = ["id", "state", "score", "timestamp", "local_date", "tags", "category", "note"]


@dataclass(frozen=True)
class Observation:
    """One self-reported capacity sample."""

    state: str
    timestamp: datetime
    local_date: str | None = None
    tags: Tuple[str, ...] = ()
    category: str | None = None
    note: str | None = None
    id: str | None = None

    def __post_init__(self):
        if self.state not in STATE_SCORES:
            raise ValueError(
                f"Unknown capacity state {self.state!r}; expected one of {CAPACITY_STATES}"
            )
        if self.category is not None and self.category not in CATEGORIES:
            raise ValueError(
                f"Unknown category {self.category!r}; expected one of {CATEGORIES}"
            )
        if self.timestamp is None:
            raise ValueError("Observation timestamp is required")
        if self.local_date is not None:
            try:
                date.fromisoformat(self.local_date)
            except (TypeError, ValueError):
                raise ValueError(f"local_date must be YYYY-MM-DD, got {self.local_date!r}")
        # Tags arrive as lists from JSON; freeze them.
        object.__setattr__(self, "tags", tuple(self.tags or ()))

    @property
    def score(self) -> float:
        return STATE_SCORES[self.state]

    @classmethod
    def from_dict(cls, record: dict) -> "Observation":
        if "state" not in record:
            raise ValueError(f"Observation record missing 'state': {record!r}")
        if "timestamp" not in record:
            raise ValueError(f"Observation record missing 'timestamp': {record!r}")
        return cls(
            state=record["state"],
            timestamp=record["timestamp"],
            local_date=record.get("local_date") or record.get("localDate"),
            tags=tuple(record.get("tags") or ()),
            category=record.get("category"),
            note=record.get("note"),
            id=record.get("id"),
        )


ObservationLike = Union[Observation, dict]


def coerce_observations(observations: Iterable[ObservationLike]) -> list:
    """Accept Observation instances or plain dicts; validate each."""
    result = []
    for item in observations:
        if isinstance(item, Observation):
            result.append(item)
        elif isinstance(item, dict):
            result.append(Observation.from_dict(item))
        else:
            raise ValueError(f"Unsupported observation type: {type(item).__name__}")
    return result


def to_frame(observations: Iterable[ObservationLike], tz: str | None = None) -> pd.DataFrame:
    """
    Build the working DataFrame, sorted chronologically.

    `local_date` is the explicit calendar date when given, otherwise the
    date of the timestamp in local time.
    """
    rows = []
    for obs in coerce_observations(observations):
        ts = to_local_datetime(obs.timestamp, tz)
        rows.append({
            "id": obs.id,
            "state": obs.state,
            "score": obs.score,
            "timestamp": ts,
            "local_date": obs.local_date or local_date(ts),
            "tags": obs.tags,
            "category": obs.category,
            "note": obs.note,
        })

    if not rows:
        df = pd.DataFrame(columns=FRAME_COLUMNS)
        df["score"] = df["score"].astype(float)
        df["timestamp"] = pd.to_datetime(df["timestamp"])
        return df

    df = pd.DataFrame(rows, columns=FRAME_COLUMNS)
    df["timestamp"] = pd.to_datetime(df["timestamp"])
    df.sort_values("timestamp", inplace=True, kind="mergesort")
    df.reset_index(drop=True, inplace=True)
    return df


# ---------------------------------------------------------------------------
# File loading (CLI mode only)
# ---------------------------------------------------------------------------

def load_observations(filepath: Union[str, Path]) -> list:
    """Load and validate a JSON list of observation records."""
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Observation file not found: {path}")

    with open(path, "r") as f:
        data = json.load(f)

    if not data:
        raise ValueError("Observation file is empty")
    if not isinstance(data, list):
        raise ValueError("Observation file must contain a JSON list")

    return coerce_observations(data)
