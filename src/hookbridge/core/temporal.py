"""Timestamp normalization and half-open interval arithmetic.

All timestamps inside the engine are timezone-aware UTC datetimes.
Naive timestamps are assumed UTC (same policy as canonical hashing).

Intervals are half-open: [valid_from, valid_to). Two intervals overlap iff
max(starts) < min(ends), so a zero-length interval overlaps nothing.
"""

from __future__ import annotations

from datetime import UTC, date, datetime
from typing import Any

import pandas as pd

MIN_SENTINEL = datetime(1, 1, 1, tzinfo=UTC)
MAX_SENTINEL = datetime(9999, 12, 31, tzinfo=UTC)


def is_null(value: Any) -> bool:
    """True for None, pd.NA, NaT and float NaN (missing values from frames)."""
    if value is None or value is pd.NA or value is pd.NaT:
        return True
    return isinstance(value, float) and value != value


def to_utc(value: Any) -> datetime:
    """Normalize a timestamp-like value to an aware UTC datetime.

    Accepts datetime, pandas.Timestamp, date (midnight) and ISO 8601 strings.

    Raises:
        ValueError: If the value is null or cannot be parsed
    """
    if is_null(value):
        raise ValueError("timestamp is null")
    if isinstance(value, pd.Timestamp):
        value = value.to_pydatetime()
    elif isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.strip())
        except ValueError as e:
            raise ValueError(f"not an ISO 8601 timestamp: {value!r}") from e
    elif isinstance(value, date) and not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)

    if not isinstance(value, datetime):
        raise ValueError(f"unsupported timestamp type {type(value).__name__}")
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def to_date(value: Any) -> date | None:
    """Normalize a date-like value to a calendar date; None for nulls.

    Datetimes are converted to UTC before taking their date.
    """
    if is_null(value):
        return None
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    if isinstance(value, str) and len(value.strip()) == 10:
        return date.fromisoformat(value.strip())
    return to_utc(value).date()


def date_start(day: date) -> datetime:
    """Midnight UTC at the start of day."""
    return datetime(day.year, day.month, day.day, tzinfo=UTC)


def encode_instant(value: datetime) -> str:
    """Render an instant for embedding in a hook (ISO 8601, UTC, microseconds)."""
    return to_utc(value).isoformat(timespec="microseconds")


def overlaps(a_from: datetime, a_to: datetime, b_from: datetime, b_to: datetime) -> bool:
    """Whether [a_from, a_to) and [b_from, b_to) share at least one instant."""
    return max(a_from, b_from) < min(a_to, b_to)


def intersect(
    a_from: datetime, a_to: datetime, b_from: datetime, b_to: datetime
) -> tuple[datetime, datetime] | None:
    """Intersection of two half-open intervals, or None if they do not overlap."""
    start = max(a_from, b_from)
    end = min(a_to, b_to)
    if start < end:
        return start, end
    return None
