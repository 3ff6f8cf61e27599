"""Versioning stage: raw change records -> contiguous per-key versions.

For each business key, records ordered by (captured_at, sequence) become
versions 1..N:

    valid_from(1)   = MIN_SENTINEL
    valid_from(n>1) = captured_at(n)
    valid_to(n)     = captured_at(n+1), or MAX_SENTINEL for the last version
    is_current      = valid_to == MAX_SENTINEL

so consecutive versions share a boundary and exactly one version per key is
current. The stage aborts on the first malformed record; it never returns
a partially versioned relation.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from hookbridge.contracts import (
    MalformedKeyError,
    MalformedTimestampError,
    NonMonotonicTimestampError,
    RawRecord,
    VersionedRecord,
)
from hookbridge.core.hooks import render_qualifier
from hookbridge.core.logging import get_logger
from hookbridge.core.temporal import MAX_SENTINEL, MIN_SENTINEL, is_null, to_utc

if TYPE_CHECKING:
    import pandas as pd

    from hookbridge.core.config import EntitySettings

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class _Normalized:
    key: str
    captured_at: datetime
    sequence: int | None
    record: RawRecord


def _normalize_key(relation: str, record: RawRecord) -> str:
    try:
        key = render_qualifier(record.business_key)
    except (TypeError, ValueError) as e:
        raise MalformedKeyError(relation, record) from e
    if key is None or not key.strip():
        raise MalformedKeyError(relation, record)
    return key


def _normalize(relation: str, record: RawRecord) -> _Normalized:
    key = _normalize_key(relation, record)
    try:
        captured_at = to_utc(record.captured_at)
    except ValueError as e:
        raise MalformedTimestampError(relation, record.captured_at, key=key) from e
    sequence = None if is_null(record.sequence) else int(record.sequence)
    return _Normalized(key=key, captured_at=captured_at, sequence=sequence, record=record)


def _order_history(relation: str, key: str, history: list[_Normalized]) -> list[_Normalized]:
    """Sort one key's records and reject load-timestamp ties with no tiebreak.

    Of several records captured at the same instant only the highest
    sequence survives: the others would hold for an empty interval and share
    its valid_from, and so its PIT hook.
    """
    ordered = sorted(history, key=lambda n: (n.captured_at, n.sequence if n.sequence is not None else 0))
    for previous, current in zip(ordered, ordered[1:], strict=False):
        if previous.captured_at != current.captured_at:
            continue
        if previous.sequence is None or current.sequence is None or previous.sequence == current.sequence:
            raise NonMonotonicTimestampError(relation, key, current.captured_at)
    survivors = [n for n, following in zip(ordered, ordered[1:], strict=False) if following.captured_at != n.captured_at]
    survivors.append(ordered[-1])
    return survivors


def _updated_at(relation: str, n: _Normalized, updated_at_column: str | None) -> datetime:
    if updated_at_column is None:
        return n.captured_at
    value = n.record.payload.get(updated_at_column)
    if is_null(value):
        return n.captured_at
    try:
        return to_utc(value)
    except ValueError as e:
        raise MalformedTimestampError(relation, value, key=n.key) from e


def version_records(
    relation: str,
    records: Iterable[RawRecord],
    *,
    updated_at_column: str | None = None,
) -> list[VersionedRecord]:
    """Build the version history of every business key in a raw relation.

    Args:
        relation: Relation name, used in errors and logs
        records: Raw records in any order
        updated_at_column: Payload column with the source update timestamp

    Returns:
        Versions ordered by business key, then version number. Records of
        one key captured at the same instant yield a single version, the
        highest-sequence one, so a key can have fewer versions than raw
        records.

    Raises:
        MalformedKeyError: A record has a null or empty business key
        MalformedTimestampError: A captured_at (or updated_at) cannot be parsed
        NonMonotonicTimestampError: Records for one key tie on captured_at
            without distinct sequence numbers
    """
    histories: dict[str, list[_Normalized]] = defaultdict(list)
    raw_count = 0
    for record in records:
        n = _normalize(relation, record)
        histories[n.key].append(n)
        raw_count += 1

    versions: list[VersionedRecord] = []
    for key in sorted(histories):
        ordered = _order_history(relation, key, histories[key])
        for i, n in enumerate(ordered):
            valid_from = MIN_SENTINEL if i == 0 else n.captured_at
            valid_to = ordered[i + 1].captured_at if i + 1 < len(ordered) else MAX_SENTINEL
            versions.append(
                VersionedRecord(
                    business_key=key,
                    version=i + 1,
                    valid_from=valid_from,
                    valid_to=valid_to,
                    is_current=valid_to == MAX_SENTINEL,
                    loaded_at=n.captured_at,
                    updated_at=_updated_at(relation, n, updated_at_column),
                    payload=dict(n.record.payload),
                )
            )

    logger.info(
        "versioned relation",
        relation=relation,
        raw_records=raw_count,
        business_keys=len(histories),
        versions=len(versions),
    )
    return versions


def records_from_frame(frame: pd.DataFrame, entity: EntitySettings) -> list[RawRecord]:
    """Read raw records from a DataFrame using the entity's column names.

    The load timestamp and sequence columns become record metadata; every
    other column (the key included) is carried in the payload. Missing
    values (NaN, NaT, pd.NA) become None.

    Raises:
        ValueError: If a configured column is absent from the frame
    """
    required = [entity.key_column, entity.loaded_at_column]
    if entity.sequence_column is not None:
        required.append(entity.sequence_column)
    missing = [c for c in required if c not in frame.columns]
    if missing:
        raise ValueError(f"{entity.name}: raw frame lacks columns {missing}")

    metadata = {entity.loaded_at_column}
    if entity.sequence_column is not None:
        metadata.add(entity.sequence_column)

    records: list[RawRecord] = []
    for row in frame.to_dict(orient="records"):
        payload: dict[str, Any] = {str(k): (None if is_null(v) else v) for k, v in row.items() if k not in metadata}
        records.append(
            RawRecord(
                business_key=payload.get(entity.key_column),
                payload=payload,
                captured_at=row[entity.loaded_at_column],
                sequence=row[entity.sequence_column] if entity.sequence_column is not None else None,
            )
        )
    return records


class VersioningStage:
    """Versioning for one configured entity."""

    def __init__(self, entity: EntitySettings) -> None:
        self._entity = entity

    @property
    def entity(self) -> EntitySettings:
        return self._entity

    def run(self, raw: Iterable[RawRecord] | pd.DataFrame) -> list[VersionedRecord]:
        """Version raw records given as RawRecords or as a raw DataFrame."""
        import pandas as pd

        records = records_from_frame(raw, self._entity) if isinstance(raw, pd.DataFrame) else raw
        return version_records(
            self._entity.name,
            records,
            updated_at_column=self._entity.updated_at_column,
        )
