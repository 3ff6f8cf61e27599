# src/hookbridge/core/canonical.py
"""
Canonical JSON serialization for relation digests.

Two-phase approach:
1. Normalize: Convert the values a Relation can hold (numpy scalars,
   aware or naive datetimes, dates, Decimals, pandas missing markers)
   to JSON-safe primitives
2. Serialize: Produce deterministic JSON per RFC 8785/JCS (rfc8785 package)

Identical raw input must yield byte-identical derived relations, and the
digest is how a run proves it.

IMPORTANT: NaN and Infinity are strictly REJECTED, not silently converted.
"""

from __future__ import annotations

import hashlib
import math
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import numpy as np
import pandas as pd
import rfc8785

if TYPE_CHECKING:
    from hookbridge.contracts.schema import Relation


def _normalize_value(obj: Any) -> Any:
    """Convert a single cell value to a JSON-safe primitive.

    Datetimes (pandas Timestamps included) become UTC ISO strings, with
    naive values taken as UTC, the same policy as core.temporal.

    Raises:
        ValueError: If value is a NaN or infinite float or Decimal
    """
    if isinstance(obj, float | np.floating):
        if math.isnan(obj) or math.isinf(obj):
            raise ValueError(f"Cannot canonicalize non-finite float: {obj}. Use None for missing values, not NaN.")
        return float(obj)

    if obj is None or isinstance(obj, str | int | bool):
        return obj
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.bool_):
        return bool(obj)

    # Payload cells given directly as RawRecords may carry pandas markers
    if obj is pd.NA or obj is pd.NaT:
        return None

    if isinstance(obj, datetime):
        if obj.tzinfo is None:
            obj = obj.replace(tzinfo=UTC)
        return obj.astimezone(UTC).isoformat()
    if isinstance(obj, date):
        return obj.isoformat()

    if isinstance(obj, Decimal):
        if not obj.is_finite():
            raise ValueError(f"Cannot canonicalize non-finite Decimal: {obj}. Use None for missing values, not NaN/Infinity.")
        return str(obj)

    return obj


def _normalize_for_canonical(data: Any) -> Any:
    """Recursively normalize a data structure for canonical JSON."""
    if isinstance(data, dict):
        return {k: _normalize_for_canonical(v) for k, v in data.items()}
    if isinstance(data, list | tuple):
        return [_normalize_for_canonical(v) for v in data]
    return _normalize_value(data)


def canonical_json(obj: Any) -> str:
    """Produce canonical JSON for hashing.

    Returns:
        Canonical JSON string (no whitespace, sorted keys)

    Raises:
        ValueError: If data contains NaN, Infinity, or other non-finite values
        TypeError: If data contains types that cannot be serialized
    """
    normalized = _normalize_for_canonical(obj)
    result: bytes = rfc8785.dumps(normalized)
    return result.decode("utf-8")


def stable_hash(obj: Any) -> str:
    """SHA-256 hex digest of the canonical JSON of obj."""
    canonical = canonical_json(obj)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def relation_digest(relation: Relation) -> str:
    """Digest of a relation's name, schema and rows, in row order.

    Two runs over identical raw input must produce equal digests.
    """
    return stable_hash(
        {
            "name": relation.name,
            "columns": [[c.name, c.python_type.__name__] for c in relation.columns],
            "rows": [[row[name] for name in relation.column_names] for row in relation.rows],
        }
    )
