# src/hookbridge/core/dag.py
"""Join dependency graph for a bridge.

Uses NetworkX for:
- Reference validation (every `via` names a declared join)
- Acyclicity validation
- Topological ordering, ties broken by declaration order

A join with `via: X` reads its foreign hook from the record join X
resolved, so X must run first. Joins without `via` depend only on the
primary record.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

import networkx as nx

from hookbridge.contracts.errors import JoinGraphError

if TYPE_CHECKING:
    from hookbridge.core.config import JoinSettings


class JoinGraph:
    """Validated dependency graph over one bridge's joins."""

    def __init__(self, joins: Sequence[JoinSettings]) -> None:
        self._joins = {j.name: j for j in joins}
        self._declared = [j.name for j in joins]
        self._graph: nx.DiGraph[str] = nx.DiGraph()
        for name in self._declared:
            self._graph.add_node(name)
        for join in joins:
            if join.via is not None:
                self._graph.add_edge(join.via, join.name)

    def validate(self) -> None:
        """Validate references and acyclicity.

        Raises:
            JoinGraphError: On duplicate names, an unknown `via`, or a cycle
        """
        if len(self._joins) != len(self._declared):
            duplicates = sorted({n for n in self._declared if self._declared.count(n) > 1})
            raise JoinGraphError(f"duplicate join names {duplicates}")
        for join in self._joins.values():
            if join.via is not None and join.via not in self._joins:
                raise JoinGraphError(f"join '{join.name}' is via unknown join '{join.via}'")
        if not nx.is_directed_acyclic_graph(self._graph):
            cycle = nx.find_cycle(self._graph)
            path = " -> ".join([u for u, _ in cycle] + [cycle[0][0]])
            raise JoinGraphError(f"join dependencies form a cycle: {path}")

    def execution_order(self) -> list[JoinSettings]:
        """Joins in the order they must be applied.

        Returns:
            Joins topologically sorted; independent joins keep declared order

        Raises:
            JoinGraphError: If the graph cannot be sorted
        """
        position = {name: i for i, name in enumerate(self._declared)}
        try:
            order = list(nx.lexicographical_topological_sort(self._graph, key=lambda n: position[n]))
        except nx.NetworkXUnfeasible as e:
            raise JoinGraphError(f"Cannot sort join graph: {e}") from e
        return [self._joins[name] for name in order]

    def declared_order(self) -> list[JoinSettings]:
        return [self._joins[name] for name in self._declared]


def build_join_graph(joins: Sequence[JoinSettings]) -> JoinGraph:
    """Build and validate a join graph.

    Raises:
        JoinGraphError: If the joins cannot be ordered
    """
    graph = JoinGraph(joins)
    graph.validate()
    return graph
