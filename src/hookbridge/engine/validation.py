"""Stage-boundary invariant checks.

Driven by declared grain metadata: each relation names the columns that
must identify a row uniquely (normally its PIT hook column). Versioned
entities additionally must have exactly one current version per key.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence

from hookbridge.contracts import CurrentRecordError, GrainViolationError, Relation, VersionedRecord


def validate_grain(relation: Relation, grain: Sequence[str]) -> None:
    """Check that grain columns identify every row of relation uniquely.

    Raises:
        ValueError: If a grain column is not in the relation
        GrainViolationError: On the first duplicated grain value
    """
    missing = [c for c in grain if not relation.has_column(c)]
    if missing:
        raise ValueError(f"{relation.name}: grain columns {missing} not in relation")
    counts = Counter(tuple(row[c] for c in grain) for row in relation.rows)
    for value, count in counts.items():
        if count > 1:
            raise GrainViolationError(relation.name, tuple(grain), value if len(value) > 1 else value[0], count)


def validate_single_current(relation: str, records: Iterable[VersionedRecord]) -> None:
    """Check that every business key has exactly one current version.

    Raises:
        CurrentRecordError: On the first key (in key order) that does not
    """
    current: Counter[str] = Counter()
    keys: set[str] = set()
    for r in records:
        keys.add(r.business_key)
        if r.is_current:
            current[r.business_key] += 1
    for key in sorted(keys):
        if current[key] != 1:
            raise CurrentRecordError(relation, key, current[key])
