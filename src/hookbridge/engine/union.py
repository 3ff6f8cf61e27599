"""Bridge union builder: heterogeneous peripheral bridges -> one wide relation.

Relations are unioned by column NAME, never by position:

- Result schema = every input column, in order of first appearance
- A column absent from an input is null-filled for that input's rows
- The same column name declared with two different types is a
  SchemaConflictError; nothing is coerced and nothing is returned
- Foreign PIT hook columns stay separate per join name

Every input must carry the temporal columns (valid_from, valid_to,
is_current) so the read modes in engine.modes stay pure filters.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from hookbridge.contracts import Column, Relation, SchemaConflictError
from hookbridge.core.hooks import BRIDGE_PIT_HOOK_COLUMN, TEMPORAL_COLUMNS
from hookbridge.core.logging import get_logger
from hookbridge.engine.validation import validate_grain

logger = get_logger(__name__)

UNIFIED_BRIDGE = "unified_bridge"


def union_by_name(
    relations: Sequence[Relation],
    *,
    name: str = UNIFIED_BRIDGE,
    required: Sequence[str] = TEMPORAL_COLUMNS,
) -> Relation:
    """Union relations by column name.

    Args:
        relations: Input relations, in output order
        name: Name of the resulting relation
        required: Columns every input must declare

    Returns:
        The unioned relation

    Raises:
        ValueError: If relations is empty
        SchemaConflictError: If a required column is missing from an input,
            or one column name is declared with different types
    """
    if not relations:
        raise ValueError("cannot union zero relations")

    columns: dict[str, Column] = {}
    declared_in: dict[str, str] = {}
    for relation in relations:
        for column_name in required:
            if not relation.has_column(column_name):
                raise SchemaConflictError(
                    column_name,
                    f"required column missing from '{relation.name}'",
                    relations=(relation.name,),
                )
        for column in relation.columns:
            existing = columns.get(column.name)
            if existing is None:
                columns[column.name] = column
                declared_in[column.name] = relation.name
            elif existing.python_type is not column.python_type:
                raise SchemaConflictError(
                    column.name,
                    f"declared {existing.python_type.__name__} in '{declared_in[column.name]}' "
                    f"but {column.python_type.__name__} in '{relation.name}'",
                    relations=(declared_in[column.name], relation.name),
                )

    rows: list[dict[str, Any]] = []
    for relation in relations:
        for row in relation.rows:
            rows.append({column_name: row.get(column_name) for column_name in columns})

    return Relation(name=name, columns=tuple(columns.values()), rows=tuple(rows))


class BridgeUnionBuilder:
    """Collects per-peripheral bridge relations and builds the unified bridge.

    Example:
        builder = BridgeUnionBuilder()
        builder.add(orders_bridge)
        builder.add(invoices_bridge)
        unified = builder.build()
    """

    def __init__(self, *, grain: Sequence[str] = (BRIDGE_PIT_HOOK_COLUMN,)) -> None:
        self._relations: list[Relation] = []
        self._grain = tuple(grain)

    def add(self, relation: Relation) -> BridgeUnionBuilder:
        if any(r.name == relation.name for r in self._relations):
            raise ValueError(f"relation '{relation.name}' already added")
        self._relations.append(relation)
        return self

    @property
    def relation_names(self) -> list[str]:
        return [r.name for r in self._relations]

    def build(self) -> Relation:
        """Union every added relation and check the unified grain.

        Raises:
            SchemaConflictError: See union_by_name
            GrainViolationError: If the grain is not unique across peripherals
        """
        unified = union_by_name(self._relations)
        validate_grain(unified, self._grain)
        logger.info(
            "built unified bridge",
            peripherals=self.relation_names,
            columns=len(unified.columns),
            rows=len(unified),
        )
        return unified
