"""
CLI module for unitgraph.

The command-line interface providing build, affected, deps, rank, analyze
and stats commands.
"""

from cli.main import app

__all__ = ["app"]
