"""Pipeline orchestrator: one full-recompute run over in-memory raw input.

Stage order and boundary checks:

    raw ─► VersioningStage ─► validate_single_current
        ─► EntityTagger / entity_relation ─► validate_grain(_pit_hook__<entity>)
        ─► TemporalJoinEngine (per bridge) ─► validate_grain(_pit_hook__bridge)
        ─► EventUnpivot ─► event_bridge_relation ─► validate_grain(_pit_hook__bridge)
        ─► BridgeUnionBuilder ─► unified_bridge

Nothing is returned until every stage has succeeded, so a failed run never
hands out a partial result.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from hookbridge.contracts import HookedRecord, RawRecord, Relation
from hookbridge.core.canonical import relation_digest
from hookbridge.core.config import BridgeSettings, EntitySettings, HookbridgeSettings
from hookbridge.core.dag import build_join_graph
from hookbridge.core.hooks import BRIDGE_PIT_HOOK_COLUMN, HookRegistry, pit_hook_column
from hookbridge.core.logging import get_logger, stage_context
from hookbridge.engine.events import EventUnpivot, event_bridge_relation
from hookbridge.engine.tagging import EntityTagger, entity_relation
from hookbridge.engine.temporal_join import TemporalJoinEngine, bridge_relation
from hookbridge.engine.union import BridgeUnionBuilder
from hookbridge.engine.validation import validate_grain, validate_single_current
from hookbridge.engine.versioning import VersioningStage

if TYPE_CHECKING:
    import pandas as pd

logger = get_logger(__name__)


@dataclass(frozen=True)
class PipelineResult:
    """Every relation derived by one run.

    Attributes:
        entities: Versioned, hooked entity relations by entity name
        bridges: Per-peripheral bridge relations (before event expansion)
        event_bridges: Per-peripheral bridges left-joined with their events
        unified_bridge: Union of the event bridges, or None with no bridges
    """

    entities: dict[str, Relation] = field(default_factory=dict)
    bridges: dict[str, Relation] = field(default_factory=dict)
    event_bridges: dict[str, Relation] = field(default_factory=dict)
    unified_bridge: Relation | None = None

    def relations(self) -> list[tuple[str, Relation]]:
        """All relations as (label, relation) pairs, in a stable order."""
        labelled = [(f"entity.{n}", r) for n, r in self.entities.items()]
        labelled += [(f"bridge.{n}", r) for n, r in self.bridges.items()]
        labelled += [(f"event_bridge.{n}", r) for n, r in self.event_bridges.items()]
        if self.unified_bridge is not None:
            labelled.append((self.unified_bridge.name, self.unified_bridge))
        return labelled

    def digests(self) -> dict[str, str]:
        return {label: relation_digest(relation) for label, relation in self.relations()}


class BridgePipeline:
    """Runs every configured entity and bridge through the stages.

    Args:
        settings: Validated settings
        check_collisions: Register every generated token in a HookRegistry
            shared across the run; a collision raises HookCollisionError
    """

    def __init__(self, settings: HookbridgeSettings, *, check_collisions: bool = False) -> None:
        self._settings = settings
        self._check_collisions = check_collisions

    @property
    def settings(self) -> HookbridgeSettings:
        return self._settings

    def plan(self) -> dict[str, list[str]]:
        """Join execution order per peripheral, without touching any data."""
        plan: dict[str, list[str]] = {}
        for bridge in self._settings.bridges:
            plan[bridge.peripheral] = [j.name for j in build_join_graph(bridge.joins).execution_order()]
        return plan

    def _entity(
        self,
        entity: EntitySettings,
        raw: Iterable[RawRecord] | pd.DataFrame,
        registry: HookRegistry | None,
    ) -> tuple[list[HookedRecord], Relation]:
        with stage_context(stage="entity", relation=entity.name):
            versions = VersioningStage(entity).run(raw)
            validate_single_current(entity.name, versions)
            hooked = EntityTagger(entity, registry=registry).tag_all(versions)
            relation = entity_relation(entity, hooked)
            validate_grain(relation, (pit_hook_column(entity.name),))
        return hooked, relation

    def _bridge(
        self,
        bridge: BridgeSettings,
        hooked: Mapping[str, list[HookedRecord]],
    ) -> tuple[Relation, Relation]:
        with stage_context(stage="bridge", peripheral=bridge.peripheral):
            primaries = hooked[bridge.primary]
            rows = TemporalJoinEngine(bridge, hooked).resolve(primaries)
            staged = bridge_relation(bridge, rows)
            validate_grain(staged, (BRIDGE_PIT_HOOK_COLUMN,))

            pairs = EventUnpivot(bridge).unpivot(rows, primaries)
            with_events = event_bridge_relation(bridge, pairs)
            validate_grain(with_events, (BRIDGE_PIT_HOOK_COLUMN,))
        return staged, with_events

    def run(self, raw: Mapping[str, Iterable[RawRecord] | pd.DataFrame]) -> PipelineResult:
        """Derive every relation from raw input.

        Args:
            raw: Raw records (or a raw DataFrame) per configured entity name

        Returns:
            PipelineResult holding every derived relation

        Raises:
            KeyError: If raw input is missing for a configured entity
            HookbridgeError: Any stage error; see hookbridge.contracts.errors
        """
        missing = [e.name for e in self._settings.entities if e.name not in raw]
        if missing:
            raise KeyError(f"no raw input for entities {missing}")

        registry = HookRegistry() if self._check_collisions else None

        hooked: dict[str, list[HookedRecord]] = {}
        entities: dict[str, Relation] = {}
        for entity in self._settings.entities:
            hooked[entity.name], entities[entity.name] = self._entity(entity, raw[entity.name], registry)

        bridges: dict[str, Relation] = {}
        event_bridges: dict[str, Relation] = {}
        builder = BridgeUnionBuilder()
        for bridge in self._settings.bridges:
            bridges[bridge.peripheral], event_bridges[bridge.peripheral] = self._bridge(bridge, hooked)
            builder.add(event_bridges[bridge.peripheral])

        unified = None
        if builder.relation_names:
            with stage_context(stage="union"):
                unified = builder.build()

        result = PipelineResult(
            entities=entities,
            bridges=bridges,
            event_bridges=event_bridges,
            unified_bridge=unified,
        )
        logger.info(
            "pipeline complete",
            entities=len(entities),
            bridges=len(bridges),
            unified_rows=len(unified) if unified is not None else 0,
        )
        return result
