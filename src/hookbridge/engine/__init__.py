"""Pipeline stages: versioning, tagging, temporal join, events, union, read modes."""

from hookbridge.engine.events import EventUnpivot, event_bridge_relation
from hookbridge.engine.modes import as_is, as_of, as_of_event, read
from hookbridge.engine.orchestrator import BridgePipeline, PipelineResult
from hookbridge.engine.tagging import EntityTagger, entity_relation
from hookbridge.engine.temporal_join import TemporalJoinEngine, VersionIndex, bridge_relation
from hookbridge.engine.union import UNIFIED_BRIDGE, BridgeUnionBuilder, union_by_name
from hookbridge.engine.validation import validate_grain, validate_single_current
from hookbridge.engine.versioning import VersioningStage, records_from_frame, version_records

__all__ = [
    "UNIFIED_BRIDGE",
    "BridgePipeline",
    "BridgeUnionBuilder",
    "EntityTagger",
    "EventUnpivot",
    "PipelineResult",
    "TemporalJoinEngine",
    "VersionIndex",
    "VersioningStage",
    "as_is",
    "as_of",
    "as_of_event",
    "bridge_relation",
    "entity_relation",
    "event_bridge_relation",
    "read",
    "records_from_frame",
    "union_by_name",
    "validate_grain",
    "validate_single_current",
    "version_records",
]
