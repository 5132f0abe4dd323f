"""
Graph Store interface for unitgraph

The retrieval and ranking layer talks to dependency data through the
GraphStore protocol rather than to DependencyGraph directly, so a different
backend can be dropped in without touching consumers.

MemoryGraphStore is the in-process adapter. It wraps a DependencyGraph and
can swap in a freshly built graph atomically: readers holding the old graph
keep using it, new calls see the new one.
"""

import threading
from typing import Iterable, Optional, Protocol, Union, runtime_checkable

from unitgraph.config import DEFAULT_DAMPING, DEFAULT_ITERATIONS
from unitgraph.graph.dependency_graph import DependencyGraph
from unitgraph.models import Unit


@runtime_checkable
class GraphStore(Protocol):
    """Operations every graph store backend provides."""

    def register(self, unit: Unit) -> None: ...

    def dependencies_of(self, identifier: str) -> list[str]: ...

    def dependents_of(self, identifier: str) -> list[str]: ...

    def affected_by(
        self, changed_files: Iterable[str], max_depth: Optional[int] = None
    ) -> set[str]: ...

    def by_type(self, type: str) -> list[str]: ...

    def pagerank(
        self, damping: float = DEFAULT_DAMPING, iterations: int = DEFAULT_ITERATIONS
    ) -> dict[str, float]: ...


class MemoryGraphStore:
    """
    In-memory graph store backed by a DependencyGraph.

    Usage:
        store = MemoryGraphStore()
        store.register(user_unit)
        store.dependencies_of("User")
        store.swap(rebuilt_graph.freeze())
    """

    def __init__(self, graph: Optional[DependencyGraph] = None) -> None:
        """
        Args:
            graph: Existing graph to serve, or None to start empty
        """
        self._graph = graph if graph is not None else DependencyGraph()
        self._swap_lock = threading.Lock()

    @property
    def graph(self) -> DependencyGraph:
        """The graph currently being served."""
        return self._graph

    def swap(self, graph: DependencyGraph) -> DependencyGraph:
        """
        Replace the served graph, returning the previous one.

        Args:
            graph: The new graph, typically rebuilt and frozen

        Returns:
            The graph that was served before the swap
        """
        with self._swap_lock:
            previous, self._graph = self._graph, graph
        return previous

    def register(self, unit: Union[Unit, dict]) -> None:
        self._graph.register(unit)

    def dependencies_of(self, identifier: str) -> list[str]:
        return self._graph.dependencies_of(identifier)

    def dependents_of(self, identifier: str) -> list[str]:
        return self._graph.dependents_of(identifier)

    def affected_by(self, changed_files: Iterable[str], max_depth: Optional[int] = None) -> set[str]:
        return self._graph.affected_by(changed_files, max_depth=max_depth)

    def by_type(self, type: str) -> list[str]:
        return self._graph.units_of_type(type)

    def pagerank(
        self, damping: float = DEFAULT_DAMPING, iterations: int = DEFAULT_ITERATIONS
    ) -> dict[str, float]:
        return self._graph.pagerank(damping=damping, iterations=iterations)
