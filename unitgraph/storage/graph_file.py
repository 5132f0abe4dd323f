"""
JSON Persistence Layer for unitgraph

This module writes dependency graphs and analysis reports to disk and
reads them back, so a later process (incremental runs, evaluation,
retrieval serving) can start from the graph of a previous run.

Design Decisions:
    - Plain JSON, one file per artifact (dependency_graph.json,
      graph_analysis.json)
    - Writes are atomic: data goes to a temporary file in the target
      directory which then replaces the old file, so readers see either
      the previous graph or the new one, never a partial write
    - The graph is authoritative in memory; files are snapshots
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

from unitgraph.config import DEFAULT_ANALYSIS_PATH, DEFAULT_GRAPH_PATH
from unitgraph.errors import GraphDataError
from unitgraph.graph.dependency_graph import DependencyGraph
from unitgraph.models import AnalysisReport

logger = logging.getLogger(__name__)


def save_graph(
    graph: DependencyGraph,
    path: str | Path = DEFAULT_GRAPH_PATH,
    include_pagerank: bool = True,
) -> Path:
    """
    Serialize a graph to a JSON file, replacing any previous version atomically.

    Args:
        graph: The graph to persist
        path: Destination file. Parent directories are created if needed.
        include_pagerank: Store a precomputed PageRank snapshot alongside

    Returns:
        The path written to
    """
    path = Path(path)
    data = graph.to_h(include_pagerank=include_pagerank)
    _write_json_atomic(path, data)
    logger.info(
        "Saved dependency graph (%d nodes, %d edges) to %s",
        graph.node_count,
        graph.edge_count,
        path,
    )
    return path


def load_graph(path: str | Path = DEFAULT_GRAPH_PATH) -> DependencyGraph:
    """
    Load a graph previously written by save_graph().

    Args:
        path: The JSON file to read

    Returns:
        A new, unfrozen DependencyGraph

    Raises:
        FileNotFoundError: If the file does not exist
        GraphDataError: If the file is not valid graph JSON
    """
    path = Path(path)
    graph = DependencyGraph.from_h(_read_json(path))
    logger.info("Loaded dependency graph (%d nodes) from %s", graph.node_count, path)
    return graph


def save_analysis(report: AnalysisReport, path: str | Path = DEFAULT_ANALYSIS_PATH) -> Path:
    """Write a structural analysis report to a JSON file atomically."""
    path = Path(path)
    _write_json_atomic(path, report.to_dict())
    logger.info("Saved graph analysis to %s", path)
    return path


def load_analysis(path: str | Path = DEFAULT_ANALYSIS_PATH) -> AnalysisReport:
    """Read a report written by save_analysis()."""
    data = _read_json(Path(path))
    if not isinstance(data, dict):
        raise GraphDataError(f"{path}: analysis must be a JSON object")
    try:
        return AnalysisReport.from_dict(data)
    except (KeyError, TypeError, IndexError) as exc:
        raise GraphDataError(f"{path}: malformed analysis report: {exc}") from exc


def _read_json(path: Path) -> Any:
    """Parse a JSON file, converting decode failures to GraphDataError."""
    try:
        with path.open(encoding="utf-8") as handle:
            return json.load(handle)
    except json.JSONDecodeError as exc:
        raise GraphDataError(f"{path}: invalid JSON: {exc}") from exc


def _write_json_atomic(path: Path, data: Any, indent: Optional[int] = 2) -> None:
    """Write JSON to a sibling temp file, then move it over the destination."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(data, handle, indent=indent)
            handle.write("\n")
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
