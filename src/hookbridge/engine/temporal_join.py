"""Temporal join engine: resolve a peripheral's references across time.

For one primary version over [vf, vt) and one foreign hook, every version of
the related entity whose interval overlaps produces one output row with the
tightened interval

    new_vf     = max(primary.vf, related.vf)
    new_vt     = min(primary.vt, related.vt)
    is_current = primary.is_current and related.is_current

Multiplicity is explicit fan-out: if several related versions overlap, each
gets its own row. Because a key's versions are contiguous and disjoint, the
children partition the overlap exactly (durations sum to the overlap, no gap,
no double count).

Joins run in dependency order (see core.dag). Each join narrows the rows the
previous joins produced, so the final interval is the intersection over all
resolved relations. A join declared `via` another reads its foreign hook from
the record that join resolved.

Unmatched references follow the join's policy: OUTER (default) keeps the row
with a null foreign PIT hook and the interval unchanged; INNER drops it, and
a non-null hook with nothing overlapping is an orphan (warned, or fatal with
on_orphan=fail).
"""

from __future__ import annotations

from bisect import bisect_right
from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from hookbridge.contracts import (
    BridgeRow,
    Column,
    HookedRecord,
    JoinPolicy,
    OrphanPolicy,
    OrphanReferenceError,
    Relation,
)
from hookbridge.core.config import BridgeSettings, JoinSettings
from hookbridge.core.dag import build_join_graph
from hookbridge.core.hooks import (
    BRIDGE_PIT_HOOK_COLUMN,
    IS_CURRENT_COLUMN,
    LOADED_AT_COLUMN,
    PERIPHERAL_COLUMN,
    UPDATED_AT_COLUMN,
    VALID_FROM_COLUMN,
    VALID_TO_COLUMN,
    bridge_pit_hook,
    hook_column,
    pit_hook_column,
)
from hookbridge.core.logging import get_logger
from hookbridge.core.temporal import intersect, overlaps

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class _Partial:
    """A bridge row under construction: interval so far plus resolved records."""

    valid_from: datetime
    valid_to: datetime
    is_current: bool
    loaded_at: datetime
    updated_at: datetime
    resolved: dict[str, HookedRecord | None] = field(default_factory=dict)

    def unmatched(self, join: str) -> _Partial:
        return replace(self, resolved={**self.resolved, join: None})

    def tightened(self, join: str, related: HookedRecord, window: tuple[datetime, datetime]) -> _Partial:
        return _Partial(
            valid_from=window[0],
            valid_to=window[1],
            is_current=self.is_current and related.is_current,
            loaded_at=max(self.loaded_at, related.record.loaded_at),
            updated_at=max(self.updated_at, related.record.updated_at),
            resolved={**self.resolved, join: related},
        )


class VersionIndex:
    """Versions of one entity by primary hook, in valid_from order."""

    def __init__(self, records: Iterable[HookedRecord]) -> None:
        by_hook: dict[str, list[HookedRecord]] = defaultdict(list)
        for r in records:
            by_hook[r.primary_hook].append(r)
        self._versions = {h: sorted(rs, key=lambda r: r.valid_from) for h, rs in by_hook.items()}
        self._ends = {h: [r.valid_to for r in rs] for h, rs in self._versions.items()}

    def overlapping(self, primary_hook: str, valid_from: datetime, valid_to: datetime) -> list[HookedRecord]:
        """Versions of primary_hook whose interval overlaps [valid_from, valid_to)."""
        versions = self._versions.get(primary_hook)
        if versions is None:
            return []
        # First version that ends after valid_from; later ones start at or after it
        start = bisect_right(self._ends[primary_hook], valid_from)
        matches = []
        for r in versions[start:]:
            if r.valid_from >= valid_to:
                break
            if overlaps(valid_from, valid_to, r.valid_from, r.valid_to):
                matches.append(r)
        return matches

    def __len__(self) -> int:
        return len(self._versions)


class TemporalJoinEngine:
    """Resolves one peripheral's primary versions into bridge rows.

    Args:
        bridge: Bridge settings (peripheral, joins)
        related: Tagged versions of every entity a join targets, by entity name

    Raises:
        JoinGraphError: If the joins cannot be ordered
        ValueError: If a join targets an entity with no supplied versions
    """

    def __init__(self, bridge: BridgeSettings, related: Mapping[str, Sequence[HookedRecord]]) -> None:
        graph = build_join_graph(bridge.joins)
        self._bridge = bridge
        self._order: list[JoinSettings] = graph.execution_order()
        self._declared: list[str] = [j.name for j in graph.declared_order()]
        self._indexes: dict[str, VersionIndex] = {}
        for join in bridge.joins:
            if join.entity not in related:
                raise ValueError(f"{bridge.peripheral}: no versions supplied for entity '{join.entity}'")
            if join.entity not in self._indexes:
                self._indexes[join.entity] = VersionIndex(related[join.entity])

    @property
    def join_order(self) -> list[str]:
        return [j.name for j in self._order]

    def _apply(self, join: JoinSettings, primary: HookedRecord, partial: _Partial) -> list[_Partial]:
        source = primary if join.via is None else partial.resolved[join.via]
        foreign = None if source is None else source.hooks[join.hook]

        if foreign is not None:
            matches = self._indexes[join.entity].overlapping(foreign, partial.valid_from, partial.valid_to)
            if matches:
                children = []
                for related in matches:
                    window = intersect(partial.valid_from, partial.valid_to, related.valid_from, related.valid_to)
                    if window is not None:
                        children.append(partial.tightened(join.name, related, window))
                return children

        if join.policy is JoinPolicy.OUTER:
            if foreign is not None:
                logger.debug(
                    "unresolved reference kept",
                    peripheral=self._bridge.peripheral,
                    join=join.name,
                    foreign_hook=foreign,
                    primary_pit_hook=primary.pit_hook,
                )
            return [partial.unmatched(join.name)]

        if foreign is not None:
            if join.on_orphan is OrphanPolicy.FAIL:
                raise OrphanReferenceError(self._bridge.peripheral, join.name, foreign, primary.pit_hook)
            logger.warning(
                "orphan reference dropped",
                peripheral=self._bridge.peripheral,
                join=join.name,
                foreign_hook=foreign,
                primary_pit_hook=primary.pit_hook,
            )
        return []

    def resolve_row(self, primary: HookedRecord) -> list[BridgeRow]:
        """Resolve every join for one primary version.

        Returns:
            Zero or more bridge rows in valid_from order, each with an
            interval inside the primary's interval
        """
        partials = [
            _Partial(
                valid_from=primary.valid_from,
                valid_to=primary.valid_to,
                is_current=primary.is_current,
                loaded_at=primary.record.loaded_at,
                updated_at=primary.record.updated_at,
            )
        ]
        for join in self._order:
            partials = [child for p in partials for child in self._apply(join, primary, p)]
            if not partials:
                return []

        rows = []
        for p in partials:
            foreign_pits = {name: _pit_of(p.resolved[name]) for name in self._declared}
            rows.append(
                BridgeRow(
                    peripheral=self._bridge.peripheral,
                    pit_hook=bridge_pit_hook(
                        self._bridge.peripheral,
                        p.valid_from,
                        primary.pit_hook,
                        foreign_pits.values(),
                    ),
                    primary_pit_hook=primary.pit_hook,
                    primary_hook=primary.primary_hook,
                    foreign_pit_hooks=foreign_pits,
                    valid_from=p.valid_from,
                    valid_to=p.valid_to,
                    is_current=p.is_current,
                    loaded_at=p.loaded_at,
                    updated_at=p.updated_at,
                )
            )
        return rows

    def resolve(self, primaries: Iterable[HookedRecord]) -> list[BridgeRow]:
        """Resolve a whole primary relation, preserving its order."""
        rows: list[BridgeRow] = []
        primary_count = 0
        for primary in primaries:
            rows.extend(self.resolve_row(primary))
            primary_count += 1
        logger.info(
            "resolved bridge",
            peripheral=self._bridge.peripheral,
            primary_versions=primary_count,
            bridge_rows=len(rows),
            join_order=self.join_order,
        )
        return rows


def _pit_of(record: HookedRecord | None) -> str | None:
    return None if record is None else record.pit_hook


def bridge_columns(bridge: BridgeSettings) -> list[Column]:
    """Columns of a peripheral's bridge relation."""
    return [
        Column(PERIPHERAL_COLUMN, str),
        Column(BRIDGE_PIT_HOOK_COLUMN, str),
        Column(pit_hook_column(bridge.primary), str),
        Column(hook_column(bridge.primary), str),
        *(Column(pit_hook_column(j.name), str) for j in bridge.joins),
        Column(VALID_FROM_COLUMN, datetime),
        Column(VALID_TO_COLUMN, datetime),
        Column(IS_CURRENT_COLUMN, bool),
        Column(LOADED_AT_COLUMN, datetime),
        Column(UPDATED_AT_COLUMN, datetime),
    ]


def bridge_row_values(bridge: BridgeSettings, row: BridgeRow) -> dict[str, Any]:
    values: dict[str, Any] = {
        PERIPHERAL_COLUMN: row.peripheral,
        BRIDGE_PIT_HOOK_COLUMN: row.pit_hook,
        pit_hook_column(bridge.primary): row.primary_pit_hook,
        hook_column(bridge.primary): row.primary_hook,
    }
    values.update({pit_hook_column(name): pit for name, pit in row.foreign_pit_hooks.items()})
    values.update(
        {
            VALID_FROM_COLUMN: row.valid_from,
            VALID_TO_COLUMN: row.valid_to,
            IS_CURRENT_COLUMN: row.is_current,
            LOADED_AT_COLUMN: row.loaded_at,
            UPDATED_AT_COLUMN: row.updated_at,
        }
    )
    return values


def bridge_relation(bridge: BridgeSettings, rows: Sequence[BridgeRow]) -> Relation:
    """Per-peripheral bridge relation, one row per BridgeRow."""
    return Relation(
        name=bridge.peripheral,
        columns=tuple(bridge_columns(bridge)),
        rows=tuple(bridge_row_values(bridge, r) for r in rows),
    )
