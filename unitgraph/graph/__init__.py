"""
Graph module for unitgraph.

This module provides the NetworkX-based dependency graph together with
PageRank scoring and structural analysis over it.
"""

from unitgraph.graph.dependency_graph import DependencyGraph
from unitgraph.graph.pagerank import compute_pagerank, top_ranked
from unitgraph.graph.analyzer import GraphAnalyzer, analyze_graph

__all__ = [
    "DependencyGraph",
    "compute_pagerank",
    "top_ranked",
    "GraphAnalyzer",
    "analyze_graph",
]
