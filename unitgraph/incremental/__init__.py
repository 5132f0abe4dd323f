"""
Incremental update module for unitgraph.

This module re-processes only the units reachable from changed files and
atomically replaces the persisted graph.
"""

from unitgraph.incremental.updater import (
    IncrementalUpdater,
    UpdateResult,
    apply_units,
)

__all__ = [
    "IncrementalUpdater",
    "UpdateResult",
    "apply_units",
]
