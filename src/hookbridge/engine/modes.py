"""Temporal read modes over a bridge relation.

All three modes are pure row filters; none recomputes anything.

| Mode        | Predicate                                       |
|-------------|-------------------------------------------------|
| as_of(t)    | valid_from <= t < valid_to                      |
| as_is       | is_current                                      |
| as_of_event | valid_from <= date(epoch_hook) < valid_to       |

For as_of_event the event date is anchored at midnight UTC; rows without
an epoch hook are excluded.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from hookbridge.contracts import Relation, TemporalMode
from hookbridge.core.hooks import (
    EPOCH_HOOK_COLUMN,
    IS_CURRENT_COLUMN,
    VALID_FROM_COLUMN,
    VALID_TO_COLUMN,
    epoch_date,
)
from hookbridge.core.temporal import date_start, to_utc


def _require(relation: Relation, *columns: str) -> None:
    missing = [c for c in columns if not relation.has_column(c)]
    if missing:
        raise ValueError(f"{relation.name}: temporal read needs columns {missing}")


def event_anchor(row: Mapping[str, Any]) -> datetime | None:
    """Midnight UTC of the row's event date, or None for rows without an event."""
    token = row.get(EPOCH_HOOK_COLUMN)
    if token is None:
        return None
    return date_start(epoch_date(token))


def as_of(relation: Relation, instant: Any) -> Relation:
    """Rows valid at instant (datetime, pandas Timestamp, date or ISO string)."""
    _require(relation, VALID_FROM_COLUMN, VALID_TO_COLUMN)
    t = to_utc(instant)
    return relation.filter(lambda row: row[VALID_FROM_COLUMN] <= t < row[VALID_TO_COLUMN])


def as_is(relation: Relation) -> Relation:
    """Rows that are current."""
    _require(relation, IS_CURRENT_COLUMN)
    return relation.filter(lambda row: row[IS_CURRENT_COLUMN] is True)


def as_of_event(relation: Relation) -> Relation:
    """Event rows whose own event date falls inside their validity interval."""
    _require(relation, VALID_FROM_COLUMN, VALID_TO_COLUMN, EPOCH_HOOK_COLUMN)

    def _valid_at_event(row: Mapping[str, Any]) -> bool:
        anchor = event_anchor(row)
        return anchor is not None and row[VALID_FROM_COLUMN] <= anchor < row[VALID_TO_COLUMN]

    return relation.filter(_valid_at_event)


def read(relation: Relation, mode: TemporalMode, instant: Any = None) -> Relation:
    """Dispatch to a read mode by name.

    Raises:
        ValueError: If mode is AS_OF and no instant is given
    """
    mode = TemporalMode(mode)
    if mode is TemporalMode.AS_OF:
        if instant is None:
            raise ValueError("as_of needs an instant")
        return as_of(relation, instant)
    if mode is TemporalMode.AS_IS:
        return as_is(relation)
    return as_of_event(relation)
