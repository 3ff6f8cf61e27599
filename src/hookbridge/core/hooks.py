"""Hook construction and the column naming convention.

Hooks are opaque, deterministic identity tokens:

    hook            <concept>|<qualifier>              crm.customer.id|42
    composite_hook  <component>~<component>[~...]      crm.order.id|7~pim.product.sku|X1
    pit_hook        <hook>@<valid_from>                crm.customer.id|42@2024-02-01T00:00:00.000000+00:00
    epoch_hook      epoch.date|<YYYY-MM-DD>            epoch.date|2024-05-01

Each form reserves its own delimiter and backslash-escapes it (and the
backslash itself) inside the parts it joins, so every builder is injective:
distinct inputs can never produce the same token. Composites need at least
two components and therefore always contain an unescaped "~", which a simple
hook never does.

All hook and column name construction lives here. Nothing else in the
codebase assembles hooks or convention-named columns by concatenation.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date, datetime
from decimal import Decimal
from typing import Any

import numpy as np

from hookbridge.contracts.errors import HookCollisionError
from hookbridge.core.temporal import encode_instant, is_null

ESCAPE = "\\"
NAMESPACE_DELIMITER = "|"
COMPOSITE_DELIMITER = "~"
PIT_DELIMITER = "@"

_HOOK_RESERVED = frozenset({ESCAPE, NAMESPACE_DELIMITER, COMPOSITE_DELIMITER, PIT_DELIMITER})
_COMPOSITE_RESERVED = frozenset({ESCAPE, COMPOSITE_DELIMITER})
_PIT_RESERVED = frozenset({ESCAPE, PIT_DELIMITER})

EPOCH_NAMESPACE = "epoch"
EPOCH_CONCEPT = "epoch.date"

# Column naming convention
PERIPHERAL_COLUMN = "peripheral"
BRIDGE_PIT_HOOK_COLUMN = "_pit_hook__bridge"
BRIDGE_ROW_PIT_HOOK_COLUMN = "_pit_hook__bridge_row"
EPOCH_HOOK_COLUMN = "_hook__epoch__date"
VERSION_COLUMN = "_record__version"
VALID_FROM_COLUMN = "_record__valid_from"
VALID_TO_COLUMN = "_record__valid_to"
IS_CURRENT_COLUMN = "_record__is_current"
LOADED_AT_COLUMN = "_record__loaded_at"
UPDATED_AT_COLUMN = "_record__updated_at"

TEMPORAL_COLUMNS: tuple[str, ...] = (VALID_FROM_COLUMN, VALID_TO_COLUMN, IS_CURRENT_COLUMN)


def _escape(text: str, reserved: frozenset[str]) -> str:
    return "".join(ESCAPE + ch if ch in reserved else ch for ch in text)


def _validate_concept(concept: str) -> None:
    if not isinstance(concept, str) or not concept:
        raise ValueError(f"hook concept must be a non-empty string, got {concept!r}")
    if concept == EPOCH_NAMESPACE or concept.startswith(EPOCH_NAMESPACE + "."):
        raise ValueError(f"concept '{concept}' is in the reserved '{EPOCH_NAMESPACE}' namespace")


def render_qualifier(value: Any) -> str | None:
    """Render a business key value as hook qualifier text.

    Args:
        value: str, int (incl. numpy integers), Decimal, date or datetime

    Returns:
        Deterministic text, or None for null values

    Raises:
        TypeError: For booleans, floats and other types with no stable key form
        ValueError: For non-finite Decimals
    """
    if is_null(value):
        return None
    if isinstance(value, bool | np.bool_):
        raise TypeError(f"boolean {value!r} cannot be used as a business key")
    if isinstance(value, str):
        return value
    if isinstance(value, int | np.integer):
        return str(int(value))
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise ValueError(f"non-finite Decimal {value} cannot be used as a business key")
        return str(value)
    if isinstance(value, datetime):
        return encode_instant(value)
    if isinstance(value, date):
        return value.isoformat()
    raise TypeError(f"unsupported business key type {type(value).__name__}")


def hook(concept: str, qualifier: Any) -> str | None:
    """Build the hook of a business key within a concept.

    Returns:
        The hook token, or None when the qualifier is null (no reference)

    Raises:
        ValueError: If concept is empty or in the reserved epoch namespace
        TypeError: If the qualifier has no stable text form
    """
    _validate_concept(concept)
    text = render_qualifier(qualifier)
    if text is None:
        return None
    return _escape(concept, _HOOK_RESERVED) + NAMESPACE_DELIMITER + _escape(text, _HOOK_RESERVED)


def _join_components(components: Iterable[str]) -> str:
    return COMPOSITE_DELIMITER.join(_escape(c, _COMPOSITE_RESERVED) for c in components)


def composite_hook(components: Sequence[str | None]) -> str | None:
    """Combine an ordered list of hooks into one composite hook.

    Order matters: [a, b] and [b, a] are different composites.

    Returns:
        The composite token, or None if any component is None

    Raises:
        ValueError: If fewer than two components are given
    """
    if len(components) < 2:
        raise ValueError(f"a composite hook needs at least two components, got {len(components)}")
    if any(c is None for c in components):
        return None
    return _join_components(c for c in components if c is not None)


def pit_hook(primary_hook: str, valid_from: datetime) -> str:
    """Anchor a hook at a version's valid_from, identifying exactly one version."""
    if not primary_hook:
        raise ValueError("cannot build a PIT hook from an empty hook")
    return _escape(primary_hook, _PIT_RESERVED) + PIT_DELIMITER + encode_instant(valid_from)


def epoch_hook(day: date) -> str:
    """Hook of a calendar date in the reserved epoch namespace."""
    if isinstance(day, datetime):
        raise TypeError("epoch hooks take a calendar date; convert datetimes with to_date() first")
    return EPOCH_CONCEPT + NAMESPACE_DELIMITER + day.isoformat()


def epoch_date(token: str) -> date:
    """Recover the calendar date from an epoch hook.

    Raises:
        ValueError: If token is not an epoch hook
    """
    prefix = EPOCH_CONCEPT + NAMESPACE_DELIMITER
    if not token.startswith(prefix):
        raise ValueError(f"{token!r} is not an epoch hook")
    return date.fromisoformat(token[len(prefix) :])


def bridge_pit_hook(
    peripheral: str,
    valid_from: datetime,
    primary_pit_hook: str,
    foreign_pit_hooks: Iterable[str | None],
) -> str:
    """PIT hook of a bridge row.

    Null foreign PIT hooks (outer joins without a match) render as the empty
    component, which no real hook can equal.
    """
    components = [peripheral, encode_instant(valid_from), primary_pit_hook]
    components.extend(fp if fp is not None else "" for fp in foreign_pit_hooks)
    return _join_components(components)


def event_pit_hook(bridge_pit: str, epoch: str) -> str:
    """PIT hook of an event row: its bridge row's PIT hook plus the event date."""
    return _join_components((bridge_pit, epoch))


def _validate_name(name: str) -> None:
    if not name.isidentifier():
        raise ValueError(f"'{name}' is not a valid column name component")


def hook_column(name: str) -> str:
    """Column holding the hook of entity or reference `name`."""
    _validate_name(name)
    return f"_hook__{name}"


def pit_hook_column(name: str) -> str:
    """Column holding the PIT hook of entity or join `name`."""
    _validate_name(name)
    return f"_pit_hook__{name}"


def event_column(event_type: str) -> str:
    """Flag column for an event type."""
    _validate_name(event_type)
    return f"event__{event_type}"


class HookRegistry:
    """Records which input produced each token and rejects collisions.

    Used by the property test harness and, when enabled, by the entity
    tagger. Registering the same (token, origin) pair twice is fine.
    """

    def __init__(self) -> None:
        self._origins: dict[str, Any] = {}

    def register(self, token: str, origin: Any) -> str:
        """Record that origin produced token.

        Raises:
            HookCollisionError: If a different origin already produced token
        """
        existing = self._origins.setdefault(token, origin)
        if existing != origin:
            raise HookCollisionError(token, existing, origin)
        return token

    def __len__(self) -> int:
        return len(self._origins)

    def __contains__(self, token: object) -> bool:
        return token in self._origins
