"""Entity tagging: the explicit mapping from a version to its hooks.

A version's hooks come from its entity settings only (primary concept,
declared foreign references, declared composites), never from inspecting
payload column names.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Any

from hookbridge.contracts import Column, HookedRecord, Relation, VersionedRecord
from hookbridge.core.config import EntitySettings
from hookbridge.core.hooks import (
    IS_CURRENT_COLUMN,
    LOADED_AT_COLUMN,
    UPDATED_AT_COLUMN,
    VALID_FROM_COLUMN,
    VALID_TO_COLUMN,
    VERSION_COLUMN,
    HookRegistry,
    composite_hook,
    hook,
    hook_column,
    pit_hook,
    pit_hook_column,
    render_qualifier,
)
from hookbridge.core.logging import get_logger

logger = get_logger(__name__)


class EntityTagger:
    """Attaches primary, PIT, foreign and composite hooks to versions.

    Args:
        entity: Entity settings declaring the concept and references
        registry: When given, every token is registered and a collision
            between distinct inputs raises HookCollisionError
    """

    def __init__(self, entity: EntitySettings, *, registry: HookRegistry | None = None) -> None:
        self._entity = entity
        self._registry = registry

    def tag(self, record: VersionedRecord) -> HookedRecord:
        entity = self._entity
        primary = hook(entity.concept, record.business_key)
        if primary is None:
            # Versioning rejects null keys, so a null primary is a caller bug
            raise ValueError(f"{entity.name}: version {record.version} of {record.business_key!r} has no primary hook")
        pit = pit_hook(primary, record.valid_from)

        hooks: dict[str, str | None] = {}
        for reference in entity.hooks:
            value = record.payload.get(reference.column)
            hooks[reference.name] = hook(reference.concept, value)
            if self._registry is not None and hooks[reference.name] is not None:
                self._registry.register(hooks[reference.name], (reference.concept, render_qualifier(value)))

        for composite in entity.composites:
            components = [primary if name == entity.name else hooks[name] for name in composite.components]
            hooks[composite.name] = composite_hook(components)
            if self._registry is not None and hooks[composite.name] is not None:
                self._registry.register(hooks[composite.name], tuple(components))

        if self._registry is not None:
            self._registry.register(primary, (entity.concept, record.business_key))
            self._registry.register(pit, (primary, record.valid_from))

        return HookedRecord(entity=entity.name, record=record, primary_hook=primary, pit_hook=pit, hooks=hooks)

    def tag_all(self, records: Iterable[VersionedRecord]) -> list[HookedRecord]:
        tagged = [self.tag(r) for r in records]
        logger.debug("tagged versions", entity=self._entity.name, versions=len(tagged))
        return tagged


def _payload_columns(records: Sequence[HookedRecord]) -> list[str]:
    seen: dict[str, None] = {}
    for r in records:
        for name in r.record.payload:
            seen.setdefault(name, None)
    return list(seen)


def entity_relation(entity: EntitySettings, records: Sequence[HookedRecord]) -> Relation:
    """Versioned entity table for the downstream layer.

    Hook and bookkeeping columns come first, then payload columns in order
    of first appearance.

    Raises:
        ValueError: If a payload column collides with a convention column
    """
    hook_names = [h.name for h in entity.hooks] + [c.name for c in entity.composites]
    columns = [
        Column(pit_hook_column(entity.name), str),
        Column(hook_column(entity.name), str),
        *(Column(hook_column(name), str) for name in hook_names),
        Column(VERSION_COLUMN, int),
        Column(VALID_FROM_COLUMN, datetime),
        Column(VALID_TO_COLUMN, datetime),
        Column(IS_CURRENT_COLUMN, bool),
        Column(LOADED_AT_COLUMN, datetime),
        Column(UPDATED_AT_COLUMN, datetime),
    ]
    reserved = {c.name for c in columns}
    payload_names = _payload_columns(records)
    clashes = sorted(reserved.intersection(payload_names))
    if clashes:
        raise ValueError(f"{entity.name}: payload columns {clashes} collide with hook/record columns")
    columns.extend(Column(name, object) for name in payload_names)

    rows: list[dict[str, Any]] = []
    for r in records:
        v = r.record
        row: dict[str, Any] = {
            pit_hook_column(entity.name): r.pit_hook,
            hook_column(entity.name): r.primary_hook,
        }
        row.update({hook_column(name): r.hooks[name] for name in hook_names})
        row.update(
            {
                VERSION_COLUMN: v.version,
                VALID_FROM_COLUMN: v.valid_from,
                VALID_TO_COLUMN: v.valid_to,
                IS_CURRENT_COLUMN: v.is_current,
                LOADED_AT_COLUMN: v.loaded_at,
                UPDATED_AT_COLUMN: v.updated_at,
            }
        )
        row.update({name: v.payload.get(name) for name in payload_names})
        rows.append(row)
    return Relation(name=entity.name, columns=tuple(columns), rows=tuple(rows))
