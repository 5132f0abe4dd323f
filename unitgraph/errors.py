"""
Exceptions raised by unitgraph.

All errors are precondition failures surfaced to the caller. Querying for
an unknown identifier is never an error; it yields an empty result.
"""


class GraphError(Exception):
    """Base class for all unitgraph errors."""


class InvalidUnitError(GraphError, ValueError):
    """A unit handed to register() is malformed (e.g. empty identifier)."""


class GraphDataError(GraphError, ValueError):
    """Persisted graph data is structurally invalid."""


class GraphFrozenError(GraphError, RuntimeError):
    """A mutation was attempted on a graph that has been frozen for serving."""
