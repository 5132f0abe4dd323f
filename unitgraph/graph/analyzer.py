"""
Structural Analysis for unitgraph

This module computes structural properties of a dependency graph to surface
dead code, architectural hotspots and risky coupling.

Report Sections:
    orphans:   Units nothing depends on (dead code or entry points)
    dead_ends: Units that depend on nothing (leaves)
    hubs:      Units with many dependents; changes to them have the widest
               blast radius
    cycles:    Circular dependency chains, e.g. ["A", "B", "A"]
    bridges:   Edges whose removal splits a weakly connected component;
               single points of coupling between otherwise separate parts

Design Decisions:
    - Read-only: the analyzer never mutates the graph it is given
    - Deterministic: traversal follows registration order and edge
      insertion order, and every list is reported in a stable order
    - Cycle detection is bounded, not exhaustive: one representative cycle
      per back-edge, with rotations of the same loop reported once
    - Bridges are computed on the undirected view of registered units.
      A pair of units referencing each other is linked twice and is
      therefore never a bridge.
"""

from typing import Iterable, Optional

import networkx as nx

from unitgraph.config import (
    DEFAULT_HUB_LIMIT,
    DEFAULT_HUB_MIN_DEPENDENTS,
    DEFAULT_HUB_SAMPLE_SIZE,
    EXCLUDED_ORPHAN_TYPES,
)
from unitgraph.graph.dependency_graph import DependencyGraph
from unitgraph.models import AnalysisReport, Hub

# DFS colours
_WHITE = 0
_GRAY = 1
_BLACK = 2


class GraphAnalyzer:
    """
    Computes a structural report over a built DependencyGraph.

    Usage:
        analyzer = GraphAnalyzer(graph)
        report = analyzer.analyze()
        report.cycles        # [["A", "B", "A"], ...]
        report.stats         # {"orphan_count": 3, ...}
    """

    def __init__(
        self,
        graph: DependencyGraph,
        excluded_orphan_types: Iterable[str] = EXCLUDED_ORPHAN_TYPES,
        hub_limit: int = DEFAULT_HUB_LIMIT,
        min_dependents: int = DEFAULT_HUB_MIN_DEPENDENTS,
        sample_size: int = DEFAULT_HUB_SAMPLE_SIZE,
    ) -> None:
        """
        Initialize the analyzer.

        Args:
            graph: The graph to analyze
            excluded_orphan_types: Unit types never reported as orphans
            hub_limit: Maximum number of hubs to report
            min_dependents: Dependent count a unit needs to qualify as a hub
            sample_size: Maximum number of dependents listed per hub
        """
        if hub_limit < 0 or min_dependents < 1 or sample_size < 0:
            raise ValueError("hub_limit and sample_size must be >= 0, min_dependents >= 1")
        self._graph = graph
        self._excluded_orphan_types = frozenset(excluded_orphan_types)
        self._hub_limit = hub_limit
        self._min_dependents = min_dependents
        self._sample_size = sample_size

    def orphans(self) -> list[str]:
        """
        Units with no dependents, in registration order.

        Types listed in excluded_orphan_types are skipped.
        """
        return [
            node.identifier
            for node in self._graph.nodes()
            if node.type not in self._excluded_orphan_types
            and not self._graph.dependents_of(node.identifier)
        ]

    def dead_ends(self) -> list[str]:
        """Units with no outgoing dependencies, in registration order."""
        return [
            identifier
            for identifier in self._graph.identifiers
            if not self._graph.dependencies_of(identifier)
        ]

    def hubs(self, limit: Optional[int] = None) -> list[Hub]:
        """
        Units with at least min_dependents dependents, busiest first.

        Args:
            limit: Maximum number of hubs; defaults to the analyzer's hub_limit

        Returns:
            Hubs sorted by dependent count descending, then identifier
        """
        if limit is None:
            limit = self._hub_limit

        hubs = []
        for node in self._graph.nodes():
            dependents = self._graph.dependents_of(node.identifier)
            if len(dependents) < self._min_dependents:
                continue
            hubs.append(
                Hub(
                    identifier=node.identifier,
                    type=node.type,
                    dependent_count=len(dependents),
                    dependents=dependents[: self._sample_size],
                )
            )

        hubs.sort(key=lambda hub: (-hub.dependent_count, hub.identifier))
        return hubs[:limit]

    def cycles(self) -> list[list[str]]:
        """
        Detect circular dependency chains.

        Uses an iterative depth-first search with an explicit stack and
        white/gray/black marking. Reaching a gray node (one on the current
        path) closes a cycle, which is the path from that node to the top
        of the stack with the node repeated at the end.

        Returns:
            Cycles in discovery order, e.g. [["A", "B", "C", "A"]]
        """
        color: dict[str, int] = {}
        found: list[list[str]] = []
        seen_signatures: set[tuple[str, ...]] = set()

        for start in self._graph.identifiers:
            if color.get(start, _WHITE) != _WHITE:
                continue

            color[start] = _GRAY
            path = [start]
            stack = [iter(self._graph.dependencies_of(start))]

            while stack:
                for neighbour in stack[-1]:
                    state = color.get(neighbour, _WHITE)
                    if state == _WHITE:
                        color[neighbour] = _GRAY
                        path.append(neighbour)
                        stack.append(iter(self._graph.dependencies_of(neighbour)))
                        break
                    if state == _GRAY:
                        cycle = path[path.index(neighbour):] + [neighbour]
                        signature = _cycle_signature(cycle)
                        if signature not in seen_signatures:
                            seen_signatures.add(signature)
                            found.append(cycle)
                else:
                    color[path.pop()] = _BLACK
                    stack.pop()

        return found

    def bridges(self) -> list[tuple[str, str]]:
        """
        Edges whose removal increases the number of weakly connected components.

        Only edges between registered units are considered; self-loops never
        qualify, and neither do pairs of units that reference each other.

        Returns:
            Sorted list of ``(source, target)`` edges
        """
        registered = set(self._graph.identifiers)
        undirected = nx.Graph()
        undirected.add_nodes_from(self._graph.identifiers)
        reciprocal: set[frozenset[str]] = set()

        for source, target, _kind in self._graph.edges():
            if source == target or target not in registered:
                continue
            if undirected.has_edge(source, target):
                reciprocal.add(frozenset((source, target)))
                continue
            undirected.add_edge(source, target)

        result = []
        for u, v in nx.bridges(undirected):
            if frozenset((u, v)) in reciprocal:
                continue
            result.append((u, v) if self._graph.has_edge(u, v) else (v, u))
        return sorted(result)

    def analyze(self) -> AnalysisReport:
        """
        Build the full structural report.

        The report is cached on the graph until its next mutation. Each call
        returns its own copy.

        Returns:
            AnalysisReport with every section and aggregate stats
        """
        key = (
            "analysis",
            tuple(sorted(self._excluded_orphan_types)),
            self._hub_limit,
            self._min_dependents,
            self._sample_size,
        )
        return self._graph.cached(key, self._build_report).copy()

    def _build_report(self) -> AnalysisReport:
        return AnalysisReport(
            orphans=self.orphans(),
            dead_ends=self.dead_ends(),
            hubs=self.hubs(),
            cycles=self.cycles(),
            bridges=self.bridges(),
            node_count=self._graph.node_count,
            edge_count=self._graph.edge_count,
        )


def _cycle_signature(cycle: list[str]) -> tuple[str, ...]:
    """
    Canonical form of a cycle so rotations compare equal.

    ["B", "C", "A", "B"] and ["A", "B", "C", "A"] both become ("A", "B", "C").
    """
    loop = cycle[:-1]
    if not loop:
        return ()
    start = loop.index(min(loop))
    return tuple(loop[start:] + loop[:start])


def analyze_graph(graph: DependencyGraph, **options) -> AnalysisReport:
    """
    Convenience wrapper: analyze a graph with the given analyzer options.

    Example:
        >>> report = analyze_graph(graph, min_dependents=3)
        >>> report.stats["cycle_count"]
        0
    """
    return GraphAnalyzer(graph, **options).analyze()
