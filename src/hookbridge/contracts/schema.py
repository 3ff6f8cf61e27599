"""Typed relations handed to the downstream layer.

- Column: Immutable column metadata (name, Python type)
- Relation: Named, typed, ordered collection of rows

Relations are the only shape that leaves the engine. Every row carries
exactly the declared columns; a missing value is None, never an absent key.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import pandas as pd

# Column types a relation may declare
VALID_COLUMN_TYPES: frozenset[type] = frozenset(
    {
        str,
        int,
        float,
        bool,
        datetime,
        date,
        object,  # payload fields whose type is not fixed
    }
)


@dataclass(frozen=True, slots=True)
class Column:
    """A column in a relation schema.

    Attributes:
        name: Column name, unique within the relation
        python_type: One of VALID_COLUMN_TYPES
    """

    name: str
    python_type: type

    def __post_init__(self) -> None:
        if self.python_type not in VALID_COLUMN_TYPES:
            raise TypeError(
                f"Invalid python_type '{self.python_type.__name__}' for column '{self.name}'. "
                f"Valid types: {', '.join(sorted(t.__name__ for t in VALID_COLUMN_TYPES))}."
            )

    def accepts(self, value: Any) -> bool:
        """Whether value may be stored in this column (None always may)."""
        if value is None or self.python_type is object:
            return True
        # bool is an int subclass; keep the two apart
        if self.python_type is int and isinstance(value, bool):
            return False
        # datetime is a date subclass; a date column holds calendar dates only
        if self.python_type is date and isinstance(value, datetime):
            return False
        return isinstance(value, self.python_type)


@dataclass(frozen=True, slots=True)
class Relation:
    """Immutable named relation.

    Attributes:
        name: Relation name (entity, peripheral or "unified_bridge")
        columns: Ordered column declarations
        rows: Rows as mappings from column name to value
    """

    name: str
    columns: tuple[Column, ...]
    rows: tuple[dict[str, Any], ...] = ()

    _by_name: dict[str, Column] = field(default_factory=dict, repr=False, compare=False, hash=False)

    def __post_init__(self) -> None:
        """Build the column index and check every row against the schema.

        Raises:
            ValueError: On duplicate column names or rows with the wrong keys
            TypeError: On values the declared column type does not accept
        """
        names = [c.name for c in self.columns]
        if len(names) != len(set(names)):
            duplicates = sorted({n for n in names if names.count(n) > 1})
            raise ValueError(f"{self.name}: duplicate column names {duplicates}")
        by_name = {c.name: c for c in self.columns}
        object.__setattr__(self, "_by_name", by_name)

        expected = set(names)
        for i, row in enumerate(self.rows):
            if set(row) != expected:
                missing = sorted(expected - set(row))
                extra = sorted(set(row) - expected)
                raise ValueError(f"{self.name}: row {i} does not match schema (missing={missing}, extra={extra})")
            for name, value in row.items():
                if not by_name[name].accepts(value):
                    raise TypeError(
                        f"{self.name}: row {i} column '{name}' expects "
                        f"{by_name[name].python_type.__name__}, got {type(value).__name__}"
                    )

    @property
    def column_names(self) -> tuple[str, ...]:
        return tuple(c.name for c in self.columns)

    def get_column(self, name: str) -> Column | None:
        return self._by_name.get(name)

    def has_column(self, name: str) -> bool:
        return name in self._by_name

    def __len__(self) -> int:
        return len(self.rows)

    def filter(self, predicate: Any) -> Relation:
        """Return a relation with the same schema holding rows where predicate(row) is true."""
        return Relation(name=self.name, columns=self.columns, rows=tuple(r for r in self.rows if predicate(r)))

    def to_frame(self) -> pd.DataFrame:
        """Convert to a pandas DataFrame for the downstream layer.

        Object dtype keeps values verbatim, including the 9999-12-31 sentinel
        which lies outside pandas' nanosecond timestamp range.

        Note:
            pandas is imported lazily so the contracts package stays light.
        """
        import pandas as pd

        return pd.DataFrame(
            [[row[name] for name in self.column_names] for row in self.rows],
            columns=list(self.column_names),
            dtype=object,
        )

    def digest(self) -> str:
        """SHA-256 over the RFC 8785 canonical JSON of name, schema and rows."""
        from hookbridge.core.canonical import relation_digest

        return relation_digest(self)
