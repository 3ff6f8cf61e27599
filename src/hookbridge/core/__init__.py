# src/hookbridge/core/__init__.py
"""Core infrastructure: Hooks, Temporal arithmetic, Canonical, Configuration, DAG, Logging."""

from hookbridge.core.canonical import (
    canonical_json,
    relation_digest,
    stable_hash,
)
from hookbridge.core.config import (
    BridgeSettings,
    CompositeHookSettings,
    EntitySettings,
    EventSettings,
    HookbridgeSettings,
    HookSettings,
    JoinSettings,
    LoggingSettings,
    load_settings,
)
from hookbridge.core.dag import JoinGraph, build_join_graph
from hookbridge.core.hooks import (
    HookRegistry,
    bridge_pit_hook,
    composite_hook,
    epoch_date,
    epoch_hook,
    event_pit_hook,
    hook,
    pit_hook,
)
from hookbridge.core.logging import configure_logging, get_logger
from hookbridge.core.temporal import MAX_SENTINEL, MIN_SENTINEL

__all__ = [
    "MAX_SENTINEL",
    "MIN_SENTINEL",
    "BridgeSettings",
    "CompositeHookSettings",
    "EntitySettings",
    "EventSettings",
    "HookRegistry",
    "HookSettings",
    "HookbridgeSettings",
    "JoinGraph",
    "JoinSettings",
    "LoggingSettings",
    "bridge_pit_hook",
    "build_join_graph",
    "canonical_json",
    "composite_hook",
    "configure_logging",
    "epoch_date",
    "epoch_hook",
    "event_pit_hook",
    "get_logger",
    "hook",
    "load_settings",
    "pit_hook",
    "relation_digest",
    "stable_hash",
]
