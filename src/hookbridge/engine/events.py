"""Event unpivot: date attributes of a bridge row -> calendar-anchored events.

A primary version with N date columns (due_date, paid_date, ...) yields at
most N events for each of its bridge rows, one per non-null date. Events of
different types that land on the same calendar date share one row with both
flags set, so the event PIT hook (bridge PIT hook + epoch hook) is unique per
bridge row and date.

The event bridge relation joins each bridge row with its event rows. A
bridge row without any event is kept once with a null epoch hook and null
flags, so bridge coverage is never lost to the expansion.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from datetime import date
from typing import Any

from hookbridge.contracts import (
    BridgeRow,
    Column,
    EventRow,
    HookedRecord,
    MalformedTimestampError,
    Relation,
)
from hookbridge.core.config import BridgeSettings
from hookbridge.core.hooks import (
    BRIDGE_PIT_HOOK_COLUMN,
    BRIDGE_ROW_PIT_HOOK_COLUMN,
    EPOCH_HOOK_COLUMN,
    epoch_hook,
    event_column,
    event_pit_hook,
)
from hookbridge.core.logging import get_logger
from hookbridge.core.temporal import to_date
from hookbridge.engine.temporal_join import bridge_columns, bridge_row_values

logger = get_logger(__name__)


class EventUnpivot:
    """Expands bridge rows into event rows for one peripheral."""

    def __init__(self, bridge: BridgeSettings) -> None:
        self._bridge = bridge

    @property
    def event_types(self) -> list[str]:
        return [e.event_type for e in self._bridge.events]

    def _event_date(self, value: Any) -> date | None:
        try:
            return to_date(value)
        except (TypeError, ValueError) as e:
            raise MalformedTimestampError(self._bridge.peripheral, value) from e

    def expand(self, bridge_row: BridgeRow, source: Mapping[str, Any]) -> list[EventRow]:
        """Events of one bridge row.

        Args:
            bridge_row: The owning bridge row
            source: Payload holding the date attributes (the primary version's)

        Returns:
            One EventRow per distinct non-null date, in date order

        Raises:
            MalformedTimestampError: If a date attribute cannot be interpreted
        """
        by_day: dict[date, set[str]] = {}
        for event in self._bridge.events:
            day = self._event_date(source.get(event.column))
            if day is None:
                continue
            by_day.setdefault(day, set()).add(event.event_type)

        rows = []
        for day in sorted(by_day):
            epoch = epoch_hook(day)
            rows.append(
                EventRow(
                    bridge_pit_hook=bridge_row.pit_hook,
                    pit_hook=event_pit_hook(bridge_row.pit_hook, epoch),
                    epoch_hook=epoch,
                    flags={t: t in by_day[day] for t in self.event_types},
                )
            )
        return rows

    def unpivot(
        self,
        bridge_rows: Iterable[BridgeRow],
        primaries: Iterable[HookedRecord],
    ) -> list[tuple[BridgeRow, list[EventRow]]]:
        """Pair every bridge row with its events.

        Args:
            bridge_rows: Rows produced by the temporal join for this peripheral
            primaries: The primary entity's versions (date attributes source)

        Raises:
            KeyError: If a bridge row's primary version is not among primaries
        """
        payloads = {p.pit_hook: p.record.payload for p in primaries}
        pairs = []
        event_count = 0
        for row in bridge_rows:
            events = self.expand(row, payloads[row.primary_pit_hook]) if self._bridge.events else []
            event_count += len(events)
            pairs.append((row, events))
        logger.info(
            "unpivoted events",
            peripheral=self._bridge.peripheral,
            bridge_rows=len(pairs),
            event_rows=event_count,
        )
        return pairs


def event_bridge_columns(bridge: BridgeSettings) -> list[Column]:
    """Bridge columns plus the owning bridge row, the epoch hook and one flag per event type."""
    return [
        *bridge_columns(bridge),
        Column(BRIDGE_ROW_PIT_HOOK_COLUMN, str),
        Column(EPOCH_HOOK_COLUMN, str),
        *(Column(event_column(e.event_type), bool) for e in bridge.events),
    ]


def event_bridge_relation(
    bridge: BridgeSettings,
    pairs: Sequence[tuple[BridgeRow, Sequence[EventRow]]],
) -> Relation:
    """Per-peripheral event bridge: bridge rows left-joined with their events.

    Event rows take the event PIT hook as their _pit_hook__bridge so the
    relation keeps a unique grain; _pit_hook__bridge_row always holds the PIT
    hook of the bridge row a relation row came from.
    """
    flag_columns = {e.event_type: event_column(e.event_type) for e in bridge.events}
    rows: list[dict[str, Any]] = []
    for bridge_row, events in pairs:
        base = bridge_row_values(bridge, bridge_row)
        if not events:
            row = {**base, BRIDGE_ROW_PIT_HOOK_COLUMN: bridge_row.pit_hook, EPOCH_HOOK_COLUMN: None}
            rows.append({**row, **dict.fromkeys(flag_columns.values())})
            continue
        for event in events:
            row = {
                **base,
                BRIDGE_PIT_HOOK_COLUMN: event.pit_hook,
                BRIDGE_ROW_PIT_HOOK_COLUMN: event.bridge_pit_hook,
                EPOCH_HOOK_COLUMN: event.epoch_hook,
            }
            row.update({flag_columns[t]: flag for t, flag in event.flags.items()})
            rows.append(row)
    return Relation(name=bridge.peripheral, columns=tuple(event_bridge_columns(bridge)), rows=tuple(rows))
