"""
PageRank scoring for unitgraph

Ranks units by structural importance. An edge A -> B means A's design
references B, so rank flows from dependents to their dependencies: a unit
depended upon by many important units scores high.

Algorithm:
    score_0(v)   = 1 / N
    score_k+1(v) = (1 - d) / N + d * (sum_{u -> v} score_k(u) / outdeg(u) + D_k / N)

    where N counts registered units only and D_k is the total score held by
    dangling units (no edge to a registered unit). Spreading D_k evenly keeps
    the total mass at 1.0. Edges to units that were never registered do not
    count towards out-degree, so no mass leaks out of the graph.

Sums use math.fsum, which is exactly rounded, so scores do not depend on
the order in which neighbours happen to be stored. A graph reloaded from
its serialized form therefore scores identically.
"""

import math
from numbers import Real
from typing import TYPE_CHECKING, Optional

from unitgraph.config import DEFAULT_DAMPING, DEFAULT_ITERATIONS

if TYPE_CHECKING:
    from unitgraph.graph.dependency_graph import DependencyGraph


def validate_parameters(damping: float, iterations: int, tolerance: Optional[float] = None) -> None:
    """
    Check PageRank parameters, failing fast on anything unusable.

    Raises:
        ValueError: If damping is not a finite number in [0, 1], iterations
                    is not a non-negative integer, or tolerance is not a
                    positive finite number
    """
    if isinstance(damping, bool) or not isinstance(damping, Real):
        raise ValueError(f"damping must be a number, got {damping!r}")
    if not math.isfinite(damping) or not 0.0 <= damping <= 1.0:
        raise ValueError(f"damping must be a finite number in [0, 1], got {damping!r}")
    if isinstance(iterations, bool) or not isinstance(iterations, int) or iterations < 0:
        raise ValueError(f"iterations must be a non-negative integer, got {iterations!r}")
    if tolerance is not None:
        if isinstance(tolerance, bool) or not isinstance(tolerance, Real):
            raise ValueError(f"tolerance must be a number, got {tolerance!r}")
        if not math.isfinite(tolerance) or tolerance <= 0:
            raise ValueError(f"tolerance must be a positive finite number, got {tolerance!r}")


def compute_pagerank(
    graph: "DependencyGraph",
    damping: float = DEFAULT_DAMPING,
    iterations: int = DEFAULT_ITERATIONS,
    tolerance: Optional[float] = None,
) -> dict[str, float]:
    """
    Compute PageRank scores for every registered unit of a graph.

    Args:
        graph: The dependency graph to score
        damping: Probability of following an edge rather than jumping
        iterations: Number of power iterations to run
        tolerance: If given, stop early once the L1 change between two
                   iterations falls below it

    Returns:
        Mapping of each registered identifier to its score. Isolated units
        are included; an empty graph yields an empty dict.

    Example:
        >>> scores = compute_pagerank(graph)
        >>> round(sum(scores.values()), 6)
        1.0
    """
    validate_parameters(damping, iterations, tolerance)

    identifiers = graph.identifiers
    n = len(identifiers)
    if n == 0:
        return {}

    registered = set(identifiers)
    out_degree = {
        identifier: sum(1 for target in graph.dependencies_of(identifier) if target in registered)
        for identifier in identifiers
    }
    incoming = {identifier: graph.dependents_of(identifier) for identifier in identifiers}
    dangling = [identifier for identifier in identifiers if out_degree[identifier] == 0]

    teleport = (1.0 - damping) / n
    scores = dict.fromkeys(identifiers, 1.0 / n)

    for _ in range(iterations):
        dangling_share = math.fsum(scores[identifier] for identifier in dangling) / n
        new_scores = {
            identifier: teleport
            + damping
            * (
                math.fsum(scores[source] / out_degree[source] for source in incoming[identifier])
                + dangling_share
            )
            for identifier in identifiers
        }

        if tolerance is not None:
            delta = math.fsum(abs(new_scores[i] - scores[i]) for i in identifiers)
            scores = new_scores
            if delta < tolerance:
                break
        else:
            scores = new_scores

    return scores


def top_ranked(scores: dict[str, float], limit: int = 10) -> list[tuple[str, float]]:
    """
    Return the highest-scoring units, best first.

    Ties are broken by identifier so the result is deterministic.

    Args:
        scores: Output of compute_pagerank or DependencyGraph.pagerank
        limit: Maximum number of entries to return

    Returns:
        List of ``(identifier, score)`` tuples
    """
    ranked = sorted(scores.items(), key=lambda item: (-item[1], item[0]))
    return ranked[:limit]
