# src/hookbridge/core/config.py
"""
Configuration schema and loading for hookbridge runs.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.

Settings are the declarative model metadata the engine consumes: which
entities exist, how their hooks are formed, how each peripheral's bridge
resolves its references, and which date fields become events.
"""

import re
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from hookbridge.contracts.enums import JoinPolicy, OrphanPolicy
from hookbridge.contracts.errors import JoinGraphError


# Names that would collide with the bridge and epoch convention columns
_RESERVED_NAMES = frozenset({"bridge", "bridge_row", "epoch"})


def _check_identifier(value: str, what: str) -> str:
    if not value.isidentifier():
        raise ValueError(f"{what} '{value}' must be a valid identifier (letters, digits, underscore)")
    return value


def _check_unreserved(value: str, what: str) -> str:
    _check_identifier(value, what)
    if value in _RESERVED_NAMES:
        raise ValueError(f"{what} '{value}' is reserved")
    return value


def _check_concept(value: str) -> str:
    from hookbridge.core.hooks import EPOCH_NAMESPACE

    if not value:
        raise ValueError("concept must not be empty")
    if value == EPOCH_NAMESPACE or value.startswith(EPOCH_NAMESPACE + "."):
        raise ValueError(f"concept '{value}' is in the reserved '{EPOCH_NAMESPACE}' namespace")
    return value


class HookSettings(BaseModel):
    """A foreign reference carried by an entity's raw records.

    Example YAML:
        hooks:
          - name: customer
            concept: crm.customer.id
            column: customer_id
    """

    model_config = {"frozen": True}

    name: str = Field(description="Hook name, unique within the entity")
    concept: str = Field(description="Concept (keyset) the referenced key belongs to")
    column: str = Field(description="Payload column holding the referenced business key")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _check_unreserved(v, "hook name")

    @field_validator("concept")
    @classmethod
    def validate_concept(cls, v: str) -> str:
        return _check_concept(v)


class CompositeHookSettings(BaseModel):
    """An ordered combination of an entity's hooks.

    Components name hooks of the same entity; the entity's own name stands
    for its primary hook.
    """

    model_config = {"frozen": True}

    name: str = Field(description="Composite hook name, unique within the entity")
    components: list[str] = Field(min_length=2, description="Hook names in composition order")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _check_unreserved(v, "composite hook name")


class EntitySettings(BaseModel):
    """A versioned entity built from one raw relation.

    Example YAML:
        entities:
          - name: order
            concept: crm.order.id
            key_column: order_id
            loaded_at_column: _loaded_at
            sequence_column: _sequence
            hooks:
              - {name: customer, concept: crm.customer.id, column: customer_id}
    """

    model_config = {"frozen": True}

    name: str = Field(description="Entity name (unique)")
    concept: str = Field(description="Concept (keyset) of the entity's business key")
    key_column: str = Field(description="Raw column holding the business key")
    loaded_at_column: str = Field(default="_loaded_at", description="Raw column holding the load timestamp")
    sequence_column: str | None = Field(
        default=None,
        description="Raw column holding the ingestion sequence number (breaks load timestamp ties)",
    )
    updated_at_column: str | None = Field(
        default=None,
        description="Payload column holding the source update timestamp (defaults to the load timestamp)",
    )
    hooks: list[HookSettings] = Field(default_factory=list, description="Foreign references")
    composites: list[CompositeHookSettings] = Field(default_factory=list, description="Composite hooks")
    source: Path | None = Field(default=None, description="CSV file with the raw records (CLI runs only)")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _check_unreserved(v, "entity name")

    @field_validator("concept")
    @classmethod
    def validate_concept(cls, v: str) -> str:
        return _check_concept(v)

    @model_validator(mode="after")
    def validate_hook_names(self) -> "EntitySettings":
        """Hook and composite names are unique and composites reference known hooks."""
        names = [self.name] + [h.name for h in self.hooks] + [c.name for c in self.composites]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"entity '{self.name}': duplicate hook names {duplicates}")
        known = {self.name} | {h.name for h in self.hooks}
        for composite in self.composites:
            unknown = [c for c in composite.components if c not in known]
            if unknown:
                raise ValueError(f"entity '{self.name}': composite '{composite.name}' references unknown hooks {unknown}")
        return self

    def get_hook(self, name: str) -> HookSettings | None:
        for h in self.hooks:
            if h.name == name:
                return h
        return None


class JoinSettings(BaseModel):
    """Temporal resolution of one foreign reference.

    By default the foreign hook is read from the primary record. With `via`,
    it is read from the record an earlier join resolved, chaining the
    resolution (order -> customer -> region).

    Example YAML:
        joins:
          - name: customer
            entity: customer
            hook: customer
          - name: region
            entity: region
            hook: region
            via: customer
            policy: inner
            on_orphan: fail
    """

    model_config = {"frozen": True}

    name: str = Field(description="Join name, unique within the bridge (names the PIT hook column)")
    entity: str = Field(description="Related entity to resolve against")
    hook: str = Field(description="Name of the hook on the source record holding the foreign key")
    via: str | None = Field(default=None, description="Earlier join whose resolved record supplies the hook")
    policy: JoinPolicy = Field(default=JoinPolicy.OUTER, description="Unmatched handling: inner drops, outer keeps")
    on_orphan: OrphanPolicy = Field(
        default=OrphanPolicy.WARN,
        description="Inner joins only: warn and drop, or fail on an orphan reference",
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _check_unreserved(v, "join name")


class EventSettings(BaseModel):
    """A date-valued payload column unpivoted into event rows."""

    model_config = {"frozen": True}

    event_type: str = Field(description="Event type label (names the flag column)")
    column: str = Field(description="Payload column of the primary entity holding the date")

    @field_validator("event_type")
    @classmethod
    def validate_event_type(cls, v: str) -> str:
        return _check_identifier(v, "event type")


class BridgeSettings(BaseModel):
    """Bridge staging for one peripheral.

    Example YAML:
        bridges:
          - peripheral: orders
            primary: order
            joins:
              - {name: customer, entity: customer, hook: customer}
            events:
              - {event_type: due, column: due_date}
              - {event_type: paid, column: paid_date}
    """

    model_config = {"frozen": True}

    peripheral: str = Field(description="Peripheral name (unique)")
    primary: str = Field(description="Entity whose versions drive the bridge")
    joins: list[JoinSettings] = Field(default_factory=list, description="Joins in declared order")
    events: list[EventSettings] = Field(default_factory=list, description="Date columns to unpivot")

    @field_validator("peripheral")
    @classmethod
    def validate_peripheral(cls, v: str) -> str:
        return _check_identifier(v, "peripheral")

    @model_validator(mode="after")
    def validate_names_unique(self) -> "BridgeSettings":
        """Join names, event types and event columns are unique within a bridge."""
        for label, values in (
            ("join names", [j.name for j in self.joins]),
            ("event types", [e.event_type for e in self.events]),
            ("event columns", [e.column for e in self.events]),
        ):
            duplicates = sorted({v for v in values if values.count(v) > 1})
            if duplicates:
                raise ValueError(f"bridge '{self.peripheral}': duplicate {label} {duplicates}")
        if self.primary in {j.name for j in self.joins}:
            raise ValueError(f"bridge '{self.peripheral}': join name '{self.primary}' shadows the primary entity")
        return self


class LoggingSettings(BaseModel):
    """Logging output configuration."""

    model_config = {"frozen": True}

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO", description="Root log level")
    json_output: bool = Field(default=False, description="Emit JSON lines instead of console output")

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.upper()
        return v


class HookbridgeSettings(BaseModel):
    """Top-level hookbridge configuration.

    This is the single source of truth for a run. All settings are
    validated and frozen after construction.
    """

    model_config = {"frozen": True}

    entities: list[EntitySettings] = Field(min_length=1, description="Versioned entities")
    bridges: list[BridgeSettings] = Field(default_factory=list, description="Peripheral bridges")
    logging: LoggingSettings = Field(default_factory=LoggingSettings, description="Logging configuration")

    @model_validator(mode="after")
    def validate_references(self) -> "HookbridgeSettings":
        """Every name a bridge uses resolves, and every join can actually match.

        A join matches only if the foreign hook's concept equals the related
        entity's concept; anything else would silently resolve nothing.
        """
        from hookbridge.core.dag import build_join_graph

        names = [e.name for e in self.entities]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"duplicate entity names {duplicates}")
        peripherals = [b.peripheral for b in self.bridges]
        duplicates = sorted({p for p in peripherals if peripherals.count(p) > 1})
        if duplicates:
            raise ValueError(f"duplicate peripherals {duplicates}")

        entities = {e.name: e for e in self.entities}
        for bridge in self.bridges:
            if bridge.primary not in entities:
                raise ValueError(f"bridge '{bridge.peripheral}': unknown primary entity '{bridge.primary}'")
            try:
                build_join_graph(bridge.joins)
            except JoinGraphError as e:
                raise ValueError(f"bridge '{bridge.peripheral}': {e}") from e

            unknown = [j for j in bridge.joins if j.entity not in entities]
            if unknown:
                raise ValueError(
                    f"bridge '{bridge.peripheral}': join '{unknown[0].name}' targets unknown entity '{unknown[0].entity}'"
                )

            joins = {j.name: j for j in bridge.joins}
            for join in bridge.joins:
                related = entities[join.entity]
                source_entity = entities[joins[join.via].entity] if join.via is not None else entities[bridge.primary]
                foreign = source_entity.get_hook(join.hook)
                if foreign is None:
                    raise ValueError(
                        f"bridge '{bridge.peripheral}': join '{join.name}' uses hook '{join.hook}' "
                        f"which entity '{source_entity.name}' does not declare"
                    )
                if foreign.concept != related.concept:
                    raise ValueError(
                        f"bridge '{bridge.peripheral}': join '{join.name}' hook concept '{foreign.concept}' "
                        f"does not match entity '{related.name}' concept '{related.concept}'"
                    )

        self._check_pit_hook_columns()
        return self

    def _check_pit_hook_columns(self) -> None:
        """One PIT hook column refers to one entity across every bridge.

        The unified bridge unions bridges by column name, so a join named
        after one entity in one bridge and another entity in a second bridge
        would merge two entities' PIT hooks into one column.
        """
        from hookbridge.core.hooks import pit_hook_column

        targets: dict[str, tuple[str, str]] = {}
        for bridge in self.bridges:
            declared = [(bridge.primary, bridge.primary)] + [(j.name, j.entity) for j in bridge.joins]
            for name, entity in declared:
                column = pit_hook_column(name)
                seen = targets.setdefault(column, (entity, bridge.peripheral))
                if seen[0] != entity:
                    raise ValueError(
                        f"column '{column}' refers to entity '{seen[0]}' in bridge '{seen[1]}' "
                        f"but to entity '{entity}' in bridge '{bridge.peripheral}'"
                    )


# Regex pattern for ${VAR} or ${VAR:-default} syntax
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")


def _expand_env_vars(config: dict[str, Any]) -> dict[str, Any]:
    """Recursively expand ${VAR} and ${VAR:-default} patterns in config values.

    Args:
        config: Configuration dict (may contain nested structures)

    Returns:
        New dict with environment variables expanded
    """
    import os

    def _expand_string(value: str) -> str:
        def replacer(match: re.Match[str]) -> str:
            var_name = match.group(1)
            default = match.group(2)  # None if no default specified
            env_value = os.environ.get(var_name)
            if env_value is not None:
                return env_value
            if default is not None:
                return default
            # No env var and no default - keep original
            return match.group(0)

        return _ENV_VAR_PATTERN.sub(replacer, value)

    def _expand_value(value: Any) -> Any:
        if isinstance(value, str):
            return _expand_string(value)
        elif isinstance(value, dict):
            return {k: _expand_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [_expand_value(item) for item in value]
        else:
            return value

    return {k: _expand_value(v) for k, v in config.items()}


def _resolve_sources(config: dict[str, Any], base_dir: Path) -> dict[str, Any]:
    """Make relative entity source paths relative to the settings file."""
    entities = config.get("entities")
    if not isinstance(entities, list):
        return config
    resolved = []
    for entity in entities:
        if isinstance(entity, dict) and entity.get("source"):
            source = Path(entity["source"])
            if not source.is_absolute():
                entity = {**entity, "source": str(base_dir / source)}
        resolved.append(entity)
    return {**config, "entities": resolved}


def load_settings(config_path: Path) -> HookbridgeSettings:
    """Load settings from YAML file with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (HOOKBRIDGE_*) - highest priority
    2. Config file (settings.yaml)
    3. Defaults from Pydantic schema - lowest priority

    Environment variable format: HOOKBRIDGE_LOGGING__LEVEL for nested keys.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated HookbridgeSettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config file doesn't exist
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="HOOKBRIDGE",
        settings_files=[str(config_path)],
        environments=False,  # No [default]/[production] sections
        load_dotenv=False,
        merge_enabled=True,  # Deep merge nested dicts
    )

    # Dynaconf returns uppercase keys; convert to lowercase for Pydantic
    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k.lower(): v for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}

    raw_config = _expand_env_vars(raw_config)
    raw_config = _resolve_sources(raw_config, config_path.parent)

    return HookbridgeSettings(**raw_config)
