"""
Incremental Graph Updates for unitgraph

Re-processes only the units a change can reach instead of rebuilding the
whole dependency graph.

Flow:
    1. Load the graph persisted by the previous run (empty if none)
    2. affected_by(changed_files) on that graph gives the units to redo
    3. Each affected unit is re-extracted through the caller's extract
       callable and re-registered into the freshly loaded graph
    4. The new graph is saved atomically over the old file and frozen

The graph served by other readers is never mutated: loading always
produces a new instance, and the file on disk is replaced in one step.

Limitation:
    There is no deletion API. A unit that can no longer be extracted keeps
    its previous node and is reported in UpdateResult.missing.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Optional

from unitgraph.graph.dependency_graph import DependencyGraph
from unitgraph.models import Unit
from unitgraph.storage.graph_file import load_graph, save_graph

logger = logging.getLogger(__name__)

ExtractFn = Callable[[str], Optional[Unit]]


@dataclass
class UpdateResult:
    """
    Outcome of one incremental update.

    Attributes:
        graph: The rebuilt, frozen graph
        affected: Identifiers selected for re-processing, sorted
        reregistered: Identifiers whose fresh unit was registered
        missing: Identifiers the extractor could not produce any more
        graph_path: Where the graph was saved, None if not saved
    """

    graph: DependencyGraph
    affected: list[str] = field(default_factory=list)
    reregistered: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    graph_path: Optional[Path] = None

    @property
    def affected_count(self) -> int:
        return len(self.affected)


class IncrementalUpdater:
    """
    Drives incremental re-extraction against a persisted graph.

    Usage:
        updater = IncrementalUpdater(".unitgraph/dependency_graph.json", extractor.extract_unit)
        result = updater.update(["app/models/user.rb"])
        print(f"{result.affected_count} units re-processed")
    """

    def __init__(self, graph_path: str | Path, extract: ExtractFn) -> None:
        """
        Initialize the updater.

        Args:
            graph_path: The persisted graph file to read and replace
            extract: Callable returning the current Unit for an identifier,
                     or None if the unit no longer exists
        """
        self._graph_path = Path(graph_path)
        self._extract = extract

    @property
    def graph_path(self) -> Path:
        return self._graph_path

    def load_previous(self) -> DependencyGraph:
        """Load the last persisted graph, or an empty graph on the first run."""
        if not self._graph_path.exists():
            logger.info("No previous graph at %s, starting empty", self._graph_path)
            return DependencyGraph()
        return load_graph(self._graph_path)

    def update(
        self,
        changed_files: Iterable[str],
        max_depth: Optional[int] = None,
        save: bool = True,
    ) -> UpdateResult:
        """
        Re-extract and re-register every unit affected by the changed files.

        Args:
            changed_files: Paths of changed files, as stored in the graph
            max_depth: Bound on the blast radius; None for the full closure
            save: Replace the persisted graph with the result

        Returns:
            UpdateResult describing the new graph and what was redone
        """
        changed_files = list(changed_files)
        graph = self.load_previous()
        affected = sorted(graph.affected_by(changed_files, max_depth=max_depth))
        logger.info(
            "%d changed file(s) affect %d unit(s)", len(changed_files), len(affected)
        )

        result = UpdateResult(graph=graph, affected=affected)
        for identifier in affected:
            unit = self._extract(identifier)
            if unit is None:
                logger.warning("Unit %s could not be re-extracted; keeping previous node", identifier)
                result.missing.append(identifier)
                continue
            graph.register(unit)
            result.reregistered.append(identifier)

        if save:
            result.graph_path = save_graph(graph, self._graph_path)
        graph.freeze()
        return result


def apply_units(graph: DependencyGraph, units: Iterable[Unit]) -> DependencyGraph:
    """
    Replay registrations onto a copy of a graph, leaving the original untouched.

    Args:
        graph: The graph to start from (may be frozen)
        units: Units to register, in order

    Returns:
        A new, unfrozen graph containing the updates
    """
    updated = graph.copy()
    for unit in units:
        updated.register(unit)
    return updated
