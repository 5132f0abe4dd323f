"""
Storage module for unitgraph.

This module provides JSON persistence for dependency graphs and analysis
reports, and the GraphStore interface used by retrieval consumers.
"""

from unitgraph.storage.graph_file import (
    save_graph,
    load_graph,
    save_analysis,
    load_analysis,
)
from unitgraph.storage.graph_store import GraphStore, MemoryGraphStore

__all__ = [
    "save_graph",
    "load_graph",
    "save_analysis",
    "load_analysis",
    "GraphStore",
    "MemoryGraphStore",
]
