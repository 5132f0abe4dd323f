"""
unitgraph Engine

Directed dependency graph over extracted code units, with blast-radius
queries, PageRank scoring and structural analysis.
"""

from unitgraph.models import Unit, Dependency, Node, AnalysisReport
from unitgraph.graph import DependencyGraph, GraphAnalyzer

__all__ = ["Unit", "Dependency", "Node", "AnalysisReport", "DependencyGraph", "GraphAnalyzer"]
__version__ = "0.1.0"
