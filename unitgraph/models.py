"""
Core Data Models for unitgraph

This module defines the canonical data structures used throughout the system:
- Unit: One extracted code unit (model, controller, service, ...) with its
  outgoing dependencies, as handed over by an extraction collaborator
- Dependency: A single reference from a unit to another unit
- Node: The stored view of a registered unit inside the graph
- Hub, AnalysisReport: Results of structural analysis
- TraversalNode, TraversalResult: Results of bounded neighbourhood walks

These models are designed to be:
- Immutable where possible (using frozen dataclasses)
- Serializable to plain JSON-compatible dicts
- Independent of how units were extracted
"""

from dataclasses import dataclass, field, replace
from typing import Any, Mapping, Optional

from unitgraph.errors import InvalidUnitError


@dataclass(frozen=True)
class Dependency:
    """
    A reference from one unit to another.

    Attributes:
        target: Identifier of the unit being referenced. It does not need to
                be registered yet.
        type: Free-form kind of the reference ("association", "inheritance",
              "method_call", ...). Carried for diagnostics only.
        via: Optional detail about where the reference was found
    """

    target: str
    type: Optional[str] = None
    via: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.target, str) or not self.target:
            raise InvalidUnitError(
                f"dependency target must be a non-empty string, got {self.target!r}"
            )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Dependency":
        """Build a Dependency from a ``{type, target, via}`` mapping."""
        if not isinstance(data, Mapping):
            raise InvalidUnitError(f"dependency must be a mapping, got {type(data).__name__}")
        return cls(target=data.get("target"), type=data.get("type"), via=data.get("via"))

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "target": self.target, "via": self.via}


@dataclass(frozen=True)
class Unit:
    """
    A single extracted unit of the codebase.

    Attributes:
        identifier: Globally unique key, e.g. "User" or "Admin::UsersController"
        type: Small closed tag such as "model", "controller", "service".
              Opaque to the graph; used only for filtering and grouping.
        file_path: Source file the unit was extracted from, if known.
                   Used to seed blast-radius queries.
        namespace: Enclosing namespace, if any
        dependencies: Outgoing references to other units

    Invariants:
        - identifier is a non-empty string
        - type, file_path and namespace are strings or None
    """

    identifier: str
    type: str
    file_path: Optional[str] = None
    namespace: Optional[str] = None
    dependencies: tuple[Dependency, ...] = ()

    def __post_init__(self) -> None:
        """Validate fields and normalise dependencies to a tuple."""
        if not isinstance(self.identifier, str) or not self.identifier:
            raise InvalidUnitError(
                f"unit identifier must be a non-empty string, got {self.identifier!r}"
            )
        for name in ("type", "file_path", "namespace"):
            value = getattr(self, name)
            if value is not None and not isinstance(value, str):
                raise InvalidUnitError(
                    f"{name} of {self.identifier!r} must be a string, got {value!r}"
                )
        if not isinstance(self.dependencies, tuple):
            object.__setattr__(self, "dependencies", tuple(self.dependencies))
        for dep in self.dependencies:
            if not isinstance(dep, Dependency):
                raise InvalidUnitError(
                    f"dependencies of {self.identifier!r} must be Dependency objects, got {dep!r}"
                )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Unit":
        """
        Build a Unit from a plain mapping, as found in extractor output.

        Args:
            data: Mapping with ``identifier``, ``type`` and optionally
                  ``file_path``, ``namespace`` and ``dependencies``

        Returns:
            The corresponding Unit

        Raises:
            InvalidUnitError: If the mapping is malformed
        """
        if not isinstance(data, Mapping):
            raise InvalidUnitError(f"unit must be a mapping, got {type(data).__name__}")
        raw_deps = data.get("dependencies") or []
        if not isinstance(raw_deps, (list, tuple)):
            raise InvalidUnitError(f"dependencies of {data.get('identifier')!r} must be a list")
        return cls(
            identifier=data.get("identifier"),
            type=data.get("type"),
            file_path=data.get("file_path"),
            namespace=data.get("namespace"),
            dependencies=tuple(Dependency.from_dict(dep) for dep in raw_deps),
        )


@dataclass(frozen=True)
class Node:
    """
    A registered unit as stored in the dependency graph.

    Attributes:
        identifier: Primary key of the node
        type: Unit type tag
        file_path: Source file, None when unknown
        namespace: Enclosing namespace, None when unknown
    """

    identifier: str
    type: Optional[str]
    file_path: Optional[str] = None
    namespace: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "file_path": self.file_path, "namespace": self.namespace}


@dataclass(frozen=True)
class Hub:
    """
    A heavily depended-upon node.

    Attributes:
        identifier: The hub's identifier
        type: Unit type tag
        dependent_count: Number of distinct units depending on it
        dependents: A bounded sample of those dependents
    """

    identifier: str
    type: Optional[str]
    dependent_count: int
    dependents: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "identifier": self.identifier,
            "type": self.type,
            "dependent_count": self.dependent_count,
            "dependents": list(self.dependents),
        }


@dataclass
class AnalysisReport:
    """
    Structural summary of a dependency graph.

    Attributes:
        orphans: Nodes nothing depends on (dead code or entry points)
        dead_ends: Nodes that depend on nothing
        hubs: Most depended-upon nodes, busiest first
        cycles: Circular dependency chains, each closed by its first node
        bridges: Edges whose removal splits a weakly connected component
        node_count: Registered nodes in the analyzed graph
        edge_count: Edges in the analyzed graph, dangling ones included
    """

    orphans: list[str] = field(default_factory=list)
    dead_ends: list[str] = field(default_factory=list)
    hubs: list[Hub] = field(default_factory=list)
    cycles: list[list[str]] = field(default_factory=list)
    bridges: list[tuple[str, str]] = field(default_factory=list)
    node_count: int = 0
    edge_count: int = 0

    @property
    def stats(self) -> dict[str, int]:
        """Aggregate counts for quick reporting."""
        return {
            "orphan_count": len(self.orphans),
            "dead_end_count": len(self.dead_ends),
            "hub_count": len(self.hubs),
            "cycle_count": len(self.cycles),
            "bridge_count": len(self.bridges),
            "node_count": self.node_count,
            "edge_count": self.edge_count,
        }

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-ready representation of the report."""
        return {
            "orphans": list(self.orphans),
            "dead_ends": list(self.dead_ends),
            "hubs": [hub.to_dict() for hub in self.hubs],
            "cycles": [list(cycle) for cycle in self.cycles],
            "bridges": [[source, target] for source, target in self.bridges],
            "stats": self.stats,
        }

    def copy(self) -> "AnalysisReport":
        """Return a copy whose lists can be changed without touching this report."""
        return replace(
            self,
            orphans=list(self.orphans),
            dead_ends=list(self.dead_ends),
            hubs=[replace(hub, dependents=list(hub.dependents)) for hub in self.hubs],
            cycles=[list(cycle) for cycle in self.cycles],
            bridges=list(self.bridges),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AnalysisReport":
        """Rebuild a report from the output of to_dict()."""
        stats = data.get("stats") or {}
        return cls(
            orphans=list(data.get("orphans") or []),
            dead_ends=list(data.get("dead_ends") or []),
            hubs=[
                Hub(
                    identifier=hub["identifier"],
                    type=hub.get("type"),
                    dependent_count=hub["dependent_count"],
                    dependents=list(hub.get("dependents") or []),
                )
                for hub in data.get("hubs") or []
            ],
            cycles=[list(cycle) for cycle in data.get("cycles") or []],
            bridges=[(pair[0], pair[1]) for pair in data.get("bridges") or []],
            node_count=stats.get("node_count", 0),
            edge_count=stats.get("edge_count", 0),
        )


@dataclass(frozen=True)
class TraversalNode:
    """One visited node of a bounded traversal."""

    type: Optional[str]
    depth: int
    neighbors: list[str] = field(default_factory=list)


@dataclass
class TraversalResult:
    """
    Result of walking the graph outward from a single node.

    Attributes:
        root: The identifier the walk started from
        found: False if the root is not a registered node
        nodes: Visited identifiers mapped to their depth and neighbours
    """

    root: str
    found: bool
    nodes: dict[str, TraversalNode] = field(default_factory=dict)
