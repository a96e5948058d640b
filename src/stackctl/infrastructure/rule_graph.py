"""RuleGraph — NetworkX dependency graph over rule ids.

Nodes are rule ids carrying their evaluation priority; an edge ``A -> B``
means a write made by A can make B's trigger start holding.  The edge
analysis itself lives with the rule definitions; this module only owns
the graph algorithms (cycle detection, chain length, edge listing).
Built once per process.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import networkx as nx

type _Graph = nx.DiGraph


class RuleCycleError(Exception):
    """Raised when the rule table contains a dependency cycle."""

    def __init__(self, cycle: list[str]) -> None:
        self.cycle = cycle
        super().__init__("Rule dependency cycle: " + " -> ".join([*cycle, cycle[0]]))


class RuleGraph:
    """Directed dependency graph of a rule table."""

    def __init__(
        self,
        nodes: Iterable[tuple[str, int]],
        edges: Iterable[tuple[str, str, list[str]]],
    ) -> None:
        g: _Graph = nx.DiGraph()
        for rule_id, priority in nodes:
            g.add_node(rule_id, priority=priority)
        for source, target, fields in edges:
            # A rule re-firing on its own output converges within one pass.
            if source == target:
                continue
            g.add_edge(source, target, fields=list(fields))
        self._graph = g

    @property
    def graph(self) -> _Graph:
        return self._graph

    def _priority(self, rule_id: str) -> int:
        return self._graph.nodes[rule_id]["priority"]

    def successors(self, rule_id: str) -> list[str]:
        """Rules that *rule_id* can enable, in priority order."""
        return sorted(self._graph.successors(rule_id), key=self._priority)

    def find_cycle(self) -> list[str] | None:
        """Return the rule ids of one cycle, or None if the graph is acyclic."""
        try:
            edges = nx.find_cycle(self._graph)
        except nx.NetworkXNoCycle:
            return None
        return [edge[0] for edge in edges]

    def check_acyclic(self) -> None:
        """Raise :class:`RuleCycleError` if any true cycle exists."""
        cycle = self.find_cycle()
        if cycle is not None:
            raise RuleCycleError(cycle)

    def longest_chain(self) -> int:
        """Number of rules on the longest enabling chain."""
        self.check_acyclic()
        if self._graph.number_of_nodes() == 0:
            return 0
        return len(nx.dag_longest_path(self._graph))

    def edge_list(self) -> list[dict[str, Any]]:
        """Flatten the edges for display."""
        return [
            {"source": src, "target": dst, "fields": data.get("fields", [])}
            for src, dst, data in self._graph.edges(data=True)
        ]
