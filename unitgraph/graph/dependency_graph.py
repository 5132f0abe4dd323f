"""
Dependency Graph for unitgraph

This module holds registered units and their forward dependency edges in a
NetworkX DiGraph, and answers the questions every consumer asks of it:
what a unit depends on, what depends on it, and which units are affected
when a set of files changes.

Design Decisions:
    - Uses NetworkX DiGraph; edges point from dependent to dependency
    - Edges may reference units that are not registered yet. NetworkX keeps
      the target as a placeholder node, so the reverse index is correct as
      soon as both ends exist, whatever the registration order
    - Registered units are tracked separately from placeholders, in
      registration order, so algorithms only ever rank or report real units
    - Derived results (PageRank, structural analysis) are cached on the
      graph and dropped on every mutation

Graph Properties:
    - Directed, unweighted; at most one edge per ordered pair
    - May have cycles and self-loops
    - Node IDs are the unit identifiers handed over by extraction

Lifecycle:
    Build once with register(), freeze(), then serve any number of readers.
    Incremental runs copy() a loaded graph and replay register() on the copy.
"""

import logging
import os
import threading
from collections import deque
from typing import Any, Callable, Hashable, Iterable, Iterator, Mapping, Optional, Union

import networkx as nx

from unitgraph.config import DEFAULT_DAMPING, DEFAULT_ITERATIONS
from unitgraph.errors import GraphDataError, GraphFrozenError, InvalidUnitError
from unitgraph.models import Dependency, Node, TraversalNode, TraversalResult, Unit

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]

_DIRECTIONS = ("forward", "reverse")


class DependencyGraph:
    """
    A directed graph of code units and their dependencies.

    Wraps a NetworkX DiGraph to provide a clean interface for:
    - Registering units in any order (idempotent upsert)
    - Forward and reverse dependency lookups
    - Blast-radius queries seeded by changed file paths
    - PageRank scores and lossless serialization

    Usage:
        graph = DependencyGraph()
        graph.register(Unit("User", "model", "app/models/user.rb"))
        graph.register(Unit("UserService", "service", dependencies=(Dependency("User"),)))
        graph.affected_by(["app/models/user.rb"])   # {"User", "UserService"}
    """

    def __init__(self) -> None:
        """Initialize an empty dependency graph."""
        self._graph: nx.DiGraph = nx.DiGraph()
        self._nodes: dict[str, Node] = {}
        self._file_index: dict[str, set[str]] = {}
        self._type_index: dict[Optional[str], set[str]] = {}
        self._frozen = False
        self._version = 0
        self._cache: dict[Hashable, Any] = {}
        self._cache_lock = threading.RLock()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def graph(self) -> nx.DiGraph:
        """Access the underlying NetworkX graph (placeholders included)."""
        return self._graph

    @property
    def identifiers(self) -> list[str]:
        """Registered identifiers in registration order."""
        return list(self._nodes)

    @property
    def node_count(self) -> int:
        """Return the number of registered units."""
        return len(self._nodes)

    @property
    def edge_count(self) -> int:
        """Return the number of edges, including dangling ones."""
        return self._graph.number_of_edges()

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._nodes

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def register(self, unit: Union[Unit, Mapping[str, Any]]) -> None:
        """
        Add or replace a unit and its outgoing edges.

        Re-registering an identifier replaces its type, file path, namespace
        and edge set. Dependency targets need not be registered. When a
        target appears more than once, the first occurrence's kind is kept.

        Args:
            unit: The Unit to register, or a mapping accepted by Unit.from_dict

        Raises:
            InvalidUnitError: If the unit has no usable identifier
            GraphFrozenError: If the graph has been frozen
        """
        if self._frozen:
            raise GraphFrozenError("cannot register units on a frozen graph")
        if isinstance(unit, Mapping):
            unit = Unit.from_dict(unit)
        if not isinstance(unit, Unit):
            raise InvalidUnitError(f"expected a Unit, got {type(unit).__name__}")

        identifier = unit.identifier
        previous = self._nodes.get(identifier)
        if previous is not None:
            self._drop_out_edges(identifier)

        node = Node(
            identifier=identifier,
            type=unit.type,
            file_path=unit.file_path,
            namespace=unit.namespace,
        )
        self._nodes[identifier] = node
        self._graph.add_node(
            identifier,
            type=node.type,
            file_path=node.file_path,
            namespace=node.namespace,
        )
        self._reindex(previous, node)

        for dep in unit.dependencies:
            if self._graph.has_edge(identifier, dep.target):
                continue
            self._graph.add_edge(identifier, dep.target, kind=dep.type)

        self._invalidate()

    def _drop_out_edges(self, identifier: str) -> None:
        """Remove a node's outgoing edges and any placeholder left unreferenced."""
        targets = list(self._graph.successors(identifier))
        self._graph.remove_edges_from((identifier, target) for target in targets)
        for target in targets:
            if target not in self._nodes and self._graph.in_degree(target) == 0:
                self._graph.remove_node(target)

    def _reindex(self, previous: Optional[Node], node: Node) -> None:
        """Keep the file and type indexes in step with an upserted node."""
        if previous is not None:
            if previous.file_path is not None:
                members = self._file_index.get(previous.file_path)
                if members is not None:
                    members.discard(node.identifier)
                    if not members:
                        del self._file_index[previous.file_path]
            members = self._type_index.get(previous.type)
            if members is not None:
                members.discard(node.identifier)
                if not members:
                    del self._type_index[previous.type]

        if node.file_path is not None:
            self._file_index.setdefault(node.file_path, set()).add(node.identifier)
        self._type_index.setdefault(node.type, set()).add(node.identifier)

    def freeze(self) -> "DependencyGraph":
        """
        Mark the graph immutable.

        After freezing, register() raises GraphFrozenError and all read
        operations are safe to call from many threads.

        Returns:
            The graph itself, for chaining
        """
        if not self._frozen:
            self._frozen = True
            logger.debug(
                "Froze dependency graph with %d nodes and %d edges",
                self.node_count,
                self.edge_count,
            )
        return self

    def copy(self) -> "DependencyGraph":
        """Return an independent, unfrozen copy of this graph."""
        return DependencyGraph.from_h(self.to_h())

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def node_exists(self, identifier: str) -> bool:
        """Check whether a unit with this exact identifier is registered."""
        return identifier in self._nodes

    def get_node(self, identifier: str) -> Optional[Node]:
        """
        Retrieve a registered node by its identifier.

        Returns:
            The Node if registered, None otherwise (placeholders included)
        """
        return self._nodes.get(identifier)

    def nodes(self) -> Iterator[Node]:
        """Iterate over registered nodes in registration order."""
        yield from self._nodes.values()

    def edges(self) -> Iterator[tuple[str, str, Optional[str]]]:
        """Iterate over ``(source, target, kind)`` for every edge."""
        for source in self._nodes:
            for target, attrs in self._graph.adj[source].items():
                yield source, target, attrs.get("kind")

    def edge_kind(self, source: str, target: str) -> Optional[str]:
        """Return the kind recorded for an edge, or None if absent."""
        if not self._graph.has_edge(source, target):
            return None
        return self._graph.edges[source, target].get("kind")

    def has_edge(self, source: str, target: str) -> bool:
        return self._graph.has_edge(source, target)

    def find_node_by_suffix(self, suffix: str) -> Optional[str]:
        """
        Find a node whose identifier ends with ``"::" + suffix``.

        Bare identifiers without a namespace separator never match; use
        node_exists() for exact lookups. When several nodes match, the first
        registered one wins.

        Args:
            suffix: The trailing part of the identifier, e.g. "Update"

        Returns:
            The matching identifier, or None
        """
        target_suffix = f"::{suffix}"
        for identifier in self._nodes:
            if identifier.endswith(target_suffix):
                return identifier
        return None

    def dependencies_of(self, identifier: str) -> list[str]:
        """
        Get the direct dependencies of a unit.

        Args:
            identifier: The unit's identifier

        Returns:
            Target identifiers in insertion order, or an empty list
        """
        if identifier not in self._graph:
            return []
        return list(self._graph.successors(identifier))

    def dependents_of(self, identifier: str) -> list[str]:
        """
        Get the units that directly depend on the given one.

        Works for targets that are not registered yet, so dangling edges
        are visible from either side.

        Args:
            identifier: The depended-upon identifier

        Returns:
            Sorted identifiers of dependents, or an empty list
        """
        if identifier not in self._graph:
            return []
        return sorted(self._graph.predecessors(identifier))

    def units_of_type(self, type: Optional[str]) -> list[str]:
        """Get the sorted identifiers of all units with the given type tag."""
        return sorted(self._type_index.get(type, ()))

    def nodes_in_file(self, file_path: PathLike) -> list[str]:
        """Get the sorted identifiers of all units defined in a file."""
        return sorted(self._file_index.get(os.fspath(file_path), ()))

    def type_counts(self) -> dict[Optional[str], int]:
        """Number of registered units per type tag."""
        return {type_: len(members) for type_, members in self._type_index.items()}

    # ------------------------------------------------------------------
    # Blast radius and traversal
    # ------------------------------------------------------------------

    def affected_by(
        self,
        changed_files: Union[PathLike, Iterable[PathLike]],
        max_depth: Optional[int] = None,
    ) -> set[str]:
        """
        Find all units affected by changes to the given files.

        Seeds are the units defined in the changed files. From there the
        walk follows dependents breadth-first: if B depends on A and A
        changes, B is affected. Seeds are always part of the result.

        Args:
            changed_files: Changed file paths (a single path is accepted)
            max_depth: Maximum number of hops from any seed; None for the
                       full transitive closure

        Returns:
            Set of affected unit identifiers, seeds included

        Raises:
            ValueError: If max_depth is negative
        """
        if max_depth is not None and max_depth < 0:
            raise ValueError(f"max_depth must be >= 0, got {max_depth}")
        if isinstance(changed_files, (str, os.PathLike)):
            changed_files = [changed_files]

        seeds: list[str] = []
        for file_path in changed_files:
            seeds.extend(self.nodes_in_file(file_path))

        affected = set(seeds)
        queue = deque((seed, 0) for seed in dict.fromkeys(seeds))

        while queue:
            current, depth = queue.popleft()
            if max_depth is not None and depth >= max_depth:
                continue
            for dependent in self._graph.predecessors(current):
                if dependent not in affected:
                    affected.add(dependent)
                    queue.append((dependent, depth + 1))

        return affected

    def traverse(
        self,
        identifier: str,
        depth: int = 2,
        types: Optional[Iterable[str]] = None,
        direction: str = "forward",
    ) -> TraversalResult:
        """
        Walk breadth-first from one unit, up to a fixed depth.

        Args:
            identifier: Registered unit to start from
            depth: Maximum number of hops
            types: If given, only neighbours with one of these types are
                   reported and followed
            direction: "forward" follows dependencies, "reverse" dependents

        Returns:
            TraversalResult listing every visited node with its depth and
            its (filtered) neighbours
        """
        if direction not in _DIRECTIONS:
            raise ValueError(f"direction must be one of {_DIRECTIONS}, got {direction!r}")
        if depth < 0:
            raise ValueError(f"depth must be >= 0, got {depth}")
        if identifier not in self._nodes:
            return TraversalResult(root=identifier, found=False)

        neighbours_of = self.dependencies_of if direction == "forward" else self.dependents_of
        type_set = set(types) if types is not None else None

        visited = {identifier}
        queue = deque([(identifier, 0)])
        result = TraversalResult(root=identifier, found=True)

        while queue:
            current, current_depth = queue.popleft()
            neighbours = neighbours_of(current)
            if type_set is not None:
                neighbours = [
                    n for n in neighbours if n in self._nodes and self._nodes[n].type in type_set
                ]

            node = self._nodes.get(current)
            result.nodes[current] = TraversalNode(
                type=node.type if node else None,
                depth=current_depth,
                neighbors=neighbours,
            )

            if current_depth >= depth:
                continue
            for neighbour in neighbours:
                if neighbour not in visited:
                    visited.add(neighbour)
                    queue.append((neighbour, current_depth + 1))

        return result

    def traverse_dependencies(self, identifier: str, depth: int = 2, types=None) -> TraversalResult:
        """Walk forward along dependencies; see traverse()."""
        return self.traverse(identifier, depth=depth, types=types, direction="forward")

    def traverse_dependents(self, identifier: str, depth: int = 2, types=None) -> TraversalResult:
        """Walk backward along dependents; see traverse()."""
        return self.traverse(identifier, depth=depth, types=types, direction="reverse")

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    def cached(self, key: Hashable, compute: Callable[[], Any]) -> Any:
        """
        Return a derived value, computing it at most once per graph version.

        Concurrent first callers wait for a single computation instead of
        repeating it. A value computed while the graph was being mutated is
        returned but not stored.

        Args:
            key: Cache key, unique per kind of result and its parameters
            compute: Zero-argument callable producing the value

        Returns:
            The cached or freshly computed value
        """
        with self._cache_lock:
            if key in self._cache:
                return self._cache[key]
            version = self._version
            value = compute()
            if version == self._version:
                self._cache[key] = value
            return value

    def _invalidate(self) -> None:
        with self._cache_lock:
            self._version += 1
            self._cache.clear()

    def pagerank(
        self,
        damping: float = DEFAULT_DAMPING,
        iterations: int = DEFAULT_ITERATIONS,
        tolerance: Optional[float] = None,
    ) -> dict[str, float]:
        """
        Compute PageRank scores for all registered units.

        See unitgraph.graph.pagerank.compute_pagerank for the algorithm.
        Results are cached per parameter set until the next mutation.

        Returns:
            Mapping of every registered identifier to its score
        """
        from unitgraph.graph.pagerank import compute_pagerank, validate_parameters

        validate_parameters(damping, iterations, tolerance)
        scores = self.cached(
            ("pagerank", float(damping), int(iterations), tolerance),
            lambda: compute_pagerank(self, damping, iterations, tolerance),
        )
        return dict(scores)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_h(self, include_pagerank: bool = False) -> dict[str, Any]:
        """
        Serialize the graph to a JSON-compatible dict.

        Args:
            include_pagerank: Also store a PageRank snapshot computed with
                              the default parameters

        Returns:
            Dict with "nodes", "edges", "edge_kinds", "stats" and
            optionally "pagerank"
        """
        edges: dict[str, list[str]] = {}
        edge_kinds: dict[str, dict[str, str]] = {}
        for identifier in self._nodes:
            edges[identifier] = self.dependencies_of(identifier)
            kinds = {
                target: attrs["kind"]
                for target, attrs in self._graph.adj[identifier].items()
                if attrs.get("kind") is not None
            }
            if kinds:
                edge_kinds[identifier] = kinds

        data: dict[str, Any] = {
            "nodes": {identifier: node.to_dict() for identifier, node in self._nodes.items()},
            "edges": edges,
            "edge_kinds": edge_kinds,
            "stats": {
                "node_count": self.node_count,
                "edge_count": self.edge_count,
                "types": {str(t): n for t, n in self.type_counts().items()},
            },
        }
        if include_pagerank:
            data["pagerank"] = self.pagerank()
        return data

    @classmethod
    def from_h(cls, data: Mapping[str, Any]) -> "DependencyGraph":
        """
        Rebuild a graph from the output of to_h(), e.g. after a JSON round-trip.

        The "stats" and "pagerank" sections are informational; scores are
        recomputed on demand and come out identical for the same graph.

        Args:
            data: Previously serialized graph data

        Returns:
            A new, unfrozen DependencyGraph

        Raises:
            GraphDataError: If the data is structurally invalid
        """
        if not isinstance(data, Mapping):
            raise GraphDataError(f"graph data must be a mapping, got {type(data).__name__}")

        nodes = _require_mapping(data, "nodes")
        edges = _require_mapping(data, "edges")
        edge_kinds = _optional_mapping(data, "edge_kinds")
        _optional_mapping(data, "pagerank")

        for source in edges:
            if source not in nodes:
                raise GraphDataError(f"edge list for unknown node {source!r}")

        graph = cls()
        for identifier, meta in nodes.items():
            if not isinstance(identifier, str) or not identifier:
                raise GraphDataError(f"invalid node identifier {identifier!r}")
            if not isinstance(meta, Mapping):
                raise GraphDataError(f"node {identifier!r} must be a mapping")
            if "type" not in meta:
                raise GraphDataError(f"node {identifier!r} is missing 'type'")
            for key in ("type", "file_path", "namespace"):
                if not _optional_str(meta.get(key)):
                    raise GraphDataError(
                        f"node {identifier!r}: {key!r} must be a string or null, "
                        f"got {meta[key]!r}"
                    )

            targets = edges.get(identifier, [])
            if not isinstance(targets, list) or not all(
                isinstance(t, str) and t for t in targets
            ):
                raise GraphDataError(f"edges of {identifier!r} must be a list of identifiers")
            kinds = edge_kinds.get(identifier) or {}
            if not isinstance(kinds, Mapping):
                raise GraphDataError(f"edge kinds of {identifier!r} must be a mapping")
            if not all(_optional_str(kind) for kind in kinds.values()):
                raise GraphDataError(f"edge kinds of {identifier!r} must be strings or null")

            graph.register(
                Unit(
                    identifier=identifier,
                    type=meta["type"],
                    file_path=meta.get("file_path"),
                    namespace=meta.get("namespace"),
                    dependencies=tuple(
                        Dependency(target=target, type=kinds.get(target)) for target in targets
                    ),
                )
            )

        logger.debug(
            "Loaded dependency graph with %d nodes and %d edges",
            graph.node_count,
            graph.edge_count,
        )
        return graph


def _require_mapping(data: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    if key not in data:
        raise GraphDataError(f"graph data is missing required key {key!r}")
    value = data[key]
    if not isinstance(value, Mapping):
        raise GraphDataError(f"{key!r} must be a mapping, got {type(value).__name__}")
    return value


def _optional_str(value: Any) -> bool:
    return value is None or isinstance(value, str)


def _optional_mapping(data: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise GraphDataError(f"{key!r} must be a mapping, got {type(value).__name__}")
    return value
