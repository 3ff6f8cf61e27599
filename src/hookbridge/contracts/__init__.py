"""Shared contracts for cross-boundary data types.

All dataclasses, enums and exceptions that cross stage boundaries are
defined here. This package is a LEAF MODULE with no import-time
dependencies on core/engine.

Import patterns:
    from hookbridge.contracts import BridgeRow, JoinPolicy, Relation

    # Settings classes live in core, not here
    from hookbridge.core.config import HookbridgeSettings
"""

from hookbridge.contracts.enums import JoinPolicy, OrphanPolicy, TemporalMode
from hookbridge.contracts.errors import (
    CurrentRecordError,
    GrainViolationError,
    HookbridgeError,
    HookCollisionError,
    JoinGraphError,
    MalformedKeyError,
    MalformedTimestampError,
    NonMonotonicTimestampError,
    OrphanReferenceError,
    SchemaConflictError,
)
from hookbridge.contracts.records import (
    BridgeRow,
    EventRow,
    HookedRecord,
    RawRecord,
    VersionedRecord,
)
from hookbridge.contracts.schema import VALID_COLUMN_TYPES, Column, Relation

__all__ = [
    # enums
    "JoinPolicy",
    "OrphanPolicy",
    "TemporalMode",
    # errors
    "CurrentRecordError",
    "GrainViolationError",
    "HookCollisionError",
    "HookbridgeError",
    "JoinGraphError",
    "MalformedKeyError",
    "MalformedTimestampError",
    "NonMonotonicTimestampError",
    "OrphanReferenceError",
    "SchemaConflictError",
    # records
    "BridgeRow",
    "EventRow",
    "HookedRecord",
    "RawRecord",
    "VersionedRecord",
    # schema
    "VALID_COLUMN_TYPES",
    "Column",
    "Relation",
]
