"""Exception hierarchy for structural and policy failures.

Every error carries the offending relation/key/column as attributes so the
caller can surface exactly what was rejected. Structural errors abort the
stage that raised them; nothing downstream ever sees a partial relation.
"""

from typing import Any


class HookbridgeError(Exception):
    """Base class for all hookbridge errors."""


class MalformedKeyError(HookbridgeError):
    """Raised when a raw record has a null or empty business key.

    Attributes:
        relation: Name of the entity/relation being versioned
        record: The offending raw record (surfaced verbatim)
    """

    def __init__(self, relation: str, record: Any) -> None:
        self.relation = relation
        self.record = record
        super().__init__(f"{relation}: null or empty business key in record {record!r}")


class MalformedTimestampError(HookbridgeError):
    """Raised when a captured-at value is missing or cannot be parsed."""

    def __init__(self, relation: str, value: Any, *, key: str | None = None) -> None:
        self.relation = relation
        self.value = value
        self.key = key
        where = f" (key {key!r})" if key is not None else ""
        super().__init__(f"{relation}: cannot interpret {value!r} as a timestamp{where}")


class NonMonotonicTimestampError(HookbridgeError):
    """Raised when records for one key share a captured-at with no usable tiebreak.

    This is a configuration error: the entity must declare an ingestion
    sequence column so that duplicate load timestamps order deterministically.
    """

    def __init__(self, relation: str, key: str, captured_at: Any) -> None:
        self.relation = relation
        self.key = key
        self.captured_at = captured_at
        super().__init__(
            f"{relation}: key {key!r} has several records captured at {captured_at} "
            f"without distinct ingestion sequence numbers"
        )


class OrphanReferenceError(HookbridgeError):
    """Raised for an inner join whose foreign hook matches no overlapping version."""

    def __init__(
        self,
        peripheral: str,
        join: str,
        foreign_hook: str,
        primary_pit_hook: str,
    ) -> None:
        self.peripheral = peripheral
        self.join = join
        self.foreign_hook = foreign_hook
        self.primary_pit_hook = primary_pit_hook
        super().__init__(
            f"{peripheral}: join '{join}' found no version of {foreign_hook!r} "
            f"overlapping row {primary_pit_hook!r}"
        )


class SchemaConflictError(HookbridgeError):
    """Raised when relations cannot be unioned by column name.

    Attributes:
        column: The conflicting column name
        relations: Relation names involved in the conflict
    """

    def __init__(self, column: str, message: str, *, relations: tuple[str, ...] = ()) -> None:
        self.column = column
        self.relations = relations
        super().__init__(f"column '{column}': {message}")


class HookCollisionError(HookbridgeError):
    """Raised when two distinct inputs produce the same hook token."""

    def __init__(self, token: str, first: Any, second: Any) -> None:
        self.token = token
        self.first = first
        self.second = second
        super().__init__(f"hook {token!r} produced by both {first!r} and {second!r}")


class GrainViolationError(HookbridgeError):
    """Raised when a relation's declared grain is not unique."""

    def __init__(self, relation: str, grain: tuple[str, ...], value: Any, count: int) -> None:
        self.relation = relation
        self.grain = grain
        self.value = value
        self.count = count
        super().__init__(f"{relation}: grain {grain} value {value!r} occurs {count} times")


class CurrentRecordError(HookbridgeError):
    """Raised when a business key does not have exactly one current version."""

    def __init__(self, relation: str, key: str, current_count: int) -> None:
        self.relation = relation
        self.key = key
        self.current_count = current_count
        super().__init__(f"{relation}: key {key!r} has {current_count} current versions, expected exactly 1")


class JoinGraphError(HookbridgeError):
    """Raised when a bridge's join declarations cannot be ordered."""
