"""Record types flowing between stages.

These types answer: "What does each stage hand to the next?"

    RawRecord -> VersionedRecord -> HookedRecord -> BridgeRow -> EventRow

Everything here is immutable. Stages build new records; nothing is patched
in place, which is what makes every run a full recompute.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True, slots=True)
class RawRecord:
    """One append-only change record as read from the raw store.

    Attributes:
        business_key: Natural key of the entity (None/empty is rejected)
        payload: Source fields, carried verbatim
        captured_at: Load timestamp; datetime, pandas Timestamp or ISO string
        sequence: Ingestion sequence number, breaks captured_at ties
    """

    business_key: Any
    payload: dict[str, Any]
    captured_at: Any
    sequence: int | None = None


@dataclass(frozen=True, slots=True)
class VersionedRecord:
    """One version of a business key, valid over [valid_from, valid_to)."""

    business_key: str
    version: int
    valid_from: datetime
    valid_to: datetime
    is_current: bool
    loaded_at: datetime
    updated_at: datetime
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class HookedRecord:
    """A versioned record with every hook it is associated with.

    Attributes:
        entity: Entity name the record belongs to
        record: The underlying version
        primary_hook: Hook of the record's own business key
        pit_hook: Primary hook anchored at the version's valid_from
        hooks: Foreign and composite hooks by name, None where unreferenced
    """

    entity: str
    record: VersionedRecord
    primary_hook: str
    pit_hook: str
    hooks: dict[str, str | None] = field(default_factory=dict)

    @property
    def valid_from(self) -> datetime:
        return self.record.valid_from

    @property
    def valid_to(self) -> datetime:
        return self.record.valid_to

    @property
    def is_current(self) -> bool:
        return self.record.is_current


@dataclass(frozen=True, slots=True)
class BridgeRow:
    """A primary row resolved against its related entities for one interval.

    foreign_pit_hooks is keyed by join name in declared order. A None value
    means the join was outer and nothing overlapped.
    """

    peripheral: str
    pit_hook: str
    primary_pit_hook: str
    primary_hook: str
    foreign_pit_hooks: dict[str, str | None]
    valid_from: datetime
    valid_to: datetime
    is_current: bool
    loaded_at: datetime
    updated_at: datetime


@dataclass(frozen=True, slots=True)
class EventRow:
    """One calendar-anchored event of a bridge row.

    Attributes:
        bridge_pit_hook: PIT hook of the owning bridge row
        pit_hook: bridge_pit_hook combined with epoch_hook
        epoch_hook: Date-namespaced hook of the event date
        flags: Event type -> whether it occurred on this date
    """

    bridge_pit_hook: str
    pit_hook: str
    epoch_hook: str
    flags: dict[str, bool]
