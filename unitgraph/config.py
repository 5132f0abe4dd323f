"""Default settings for unitgraph.

The engine itself takes every setting as an explicit argument; only the CLI
reads ``UNITGRAPH_HOME`` to locate its index directory.
"""

import os
from pathlib import Path

# Default index location, relative to the project being indexed
DEFAULT_INDEX_DIR = Path(os.environ.get("UNITGRAPH_HOME", ".unitgraph")).expanduser()
GRAPH_FILENAME = "dependency_graph.json"
ANALYSIS_FILENAME = "graph_analysis.json"
DEFAULT_GRAPH_PATH = DEFAULT_INDEX_DIR / GRAPH_FILENAME
DEFAULT_ANALYSIS_PATH = DEFAULT_INDEX_DIR / ANALYSIS_FILENAME

# PageRank
DEFAULT_DAMPING = 0.85
DEFAULT_ITERATIONS = 20

# Structural analysis
DEFAULT_HUB_LIMIT = 20
DEFAULT_HUB_MIN_DEPENDENTS = 2
DEFAULT_HUB_SAMPLE_SIZE = 5

# Framework and library sources are consumed by application code but never
# referenced back, so they are not reported as orphans.
EXCLUDED_ORPHAN_TYPES = frozenset({"framework_source", "library_source"})
