"""
Calendar utilities shared by every stage.

Dates travel through the engine as ISO "YYYY-MM-DD" strings so that
lexicographic comparison equals chronological comparison. Timestamps
are naive datetimes in local wall-clock time.
"""

import calendar
from datetime import date, datetime, time, timedelta, timezone
from typing import Tuple
from zoneinfo import ZoneInfo

import pandas as pd


MONTH_ABBREVIATIONS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------

def local_now(tz: str | None = None) -> datetime:
    """Current local wall-clock time as a naive datetime."""
    if tz is None:
        return datetime.now()
    return datetime.now(ZoneInfo(tz)).replace(tzinfo=None)


# ---------------------------------------------------------------------------
# Timestamp normalization
# ---------------------------------------------------------------------------

def to_local_datetime(value, tz: str | None = None) -> datetime:
    """
    Normalize a timestamp to a naive local datetime.

    Accepts datetime (naive = already local, aware = converted),
    pandas Timestamp, ISO-8601 string, or epoch milliseconds.
    """
    if value is None:
        raise ValueError("timestamp is required")

    if isinstance(value, bool):
        raise ValueError(f"Unsupported timestamp: {value!r}")

    if isinstance(value, (int, float)):
        instant = datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        return _aware_to_local(instant, tz)

    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            raise ValueError(f"Unparsable timestamp: {value!r}")

    if isinstance(value, pd.Timestamp):
        value = value.to_pydatetime()

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value
        return _aware_to_local(value, tz)

    if isinstance(value, date):
        return datetime.combine(value, time.min)

    raise ValueError(f"Unsupported timestamp type: {type(value).__name__}")


def _aware_to_local(instant: datetime, tz: str | None) -> datetime:
    if tz is None:
        return instant.astimezone().replace(tzinfo=None)
    return instant.astimezone(ZoneInfo(tz)).replace(tzinfo=None)


def local_date(ts: datetime) -> str:
    """Calendar date of a local timestamp as YYYY-MM-DD."""
    return ts.strftime("%Y-%m-%d")


def epoch_ms(ts: datetime, tz: str | None = None) -> int:
    """Naive local datetime → epoch milliseconds, read as wall time in `tz` (system zone when None)."""
    if ts.tzinfo is None and tz is not None:
        ts = ts.replace(tzinfo=ZoneInfo(tz))
    return int(round(ts.timestamp() * 1000))


# ---------------------------------------------------------------------------
# Day arithmetic
# ---------------------------------------------------------------------------

def calendar_days_between(start: str, end: str) -> int:
    """Count calendar days between two YYYY-MM-DD strings, inclusive."""
    return (date.fromisoformat(end) - date.fromisoformat(start)).days + 1


def shift_date(day: str, days: int) -> str:
    return (date.fromisoformat(day) + timedelta(days=days)).isoformat()


def month_key(day: str) -> str:
    """YYYY-MM-DD → YYYY-MM."""
    return day[:7]


def month_abbrev(day: str) -> str:
    """3-letter month abbreviation for a YYYY-MM-DD (or YYYY-MM) string."""
    try:
        return MONTH_ABBREVIATIONS[int(day[5:7]) - 1]
    except (ValueError, IndexError):
        return "???"


def months_between(start: str, end: str) -> list:
    """All YYYY-MM keys from start's month through end's month, inclusive."""
    year, month = int(start[:4]), int(start[5:7])
    end_year, end_month = int(end[:4]), int(end[5:7])
    keys = []
    while (year, month) <= (end_year, end_month):
        keys.append(f"{year:04d}-{month:02d}")
        month += 1
        if month > 12:
            month = 1
            year += 1
    return keys


def day_of_week(ts: datetime) -> int:
    """Sunday-indexed day of week (0 = Sunday ... 6 = Saturday)."""
    return (ts.weekday() + 1) % 7


def week_start(day: str) -> str:
    """The Sunday on or before the given date."""
    d = date.fromisoformat(day)
    return (d - timedelta(days=(d.weekday() + 1) % 7)).isoformat()


def format_display_date(day: str) -> str:
    """YYYY-MM-DD → 'Mon D, YYYY'."""
    d = date.fromisoformat(day)
    return f"{MONTH_ABBREVIATIONS[d.month - 1]} {d.day}, {d.year}"


# ---------------------------------------------------------------------------
# Quarters
# ---------------------------------------------------------------------------

def current_quarter_id(now: datetime) -> str:
    return f"{now.year}-Q{(now.month - 1) // 3 + 1}"


def parse_quarter_id(quarter_id: str) -> Tuple[int, int]:
    year_str, q_str = quarter_id.split("-")
    return int(year_str), int(q_str.lstrip("Q"))


def previous_quarter_id(quarter_id: str) -> str:
    year, quarter = parse_quarter_id(quarter_id)
    quarter -= 1
    if quarter < 1:
        quarter = 4
        year -= 1
    return f"{year}-Q{quarter}"


def quarter_date_range(quarter_id: str) -> Tuple[datetime, datetime]:
    """First instant and last instant (23:59:59.999) of a calendar quarter."""
    year, quarter = parse_quarter_id(quarter_id)
    start_month = (quarter - 1) * 3 + 1
    end_month = start_month + 2
    last_day = calendar.monthrange(year, end_month)[1]
    start = datetime(year, start_month, 1)
    end = datetime(year, end_month, last_day, 23, 59, 59, 999000)
    return start, end
