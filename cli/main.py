"""
unitgraph CLI

Command-line interface for building and inspecting dependency graphs.
Extraction happens elsewhere; the CLI consumes extractor output (a JSON list
of units) and the persisted graph.

Commands:
    ugraph build <units.json>     Register extracted units and save the graph
    ugraph affected <file>...     Show units affected by changed files
    ugraph deps <id>              Show dependencies (or dependents) of a unit
    ugraph rank                   Show the highest PageRank units
    ugraph analyze                Show the structural analysis report
    ugraph stats                  Show graph size and type breakdown

Usage:
    $ ugraph build tmp/units.json
    $ ugraph affected app/models/user.rb --depth 1
    $ ugraph deps User --reverse
"""

import json
import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.tree import Tree
from rich import box

from unitgraph import __version__
from unitgraph.config import (
    ANALYSIS_FILENAME,
    DEFAULT_DAMPING,
    DEFAULT_GRAPH_PATH,
    DEFAULT_ITERATIONS,
)
from unitgraph.errors import GraphError
from unitgraph.graph import DependencyGraph, GraphAnalyzer, top_ranked
from unitgraph.models import AnalysisReport, TraversalResult, Unit
from unitgraph.storage import load_graph, save_analysis, save_graph

# Initialize Typer app and Rich console
app = typer.Typer(
    name="ugraph",
    help="unitgraph: dependency graph analysis for indexed codebases",
    add_completion=False,
)
console = Console()

GRAPH_OPTION_HELP = f"Path to the graph file (default: {DEFAULT_GRAPH_PATH})"


@app.command()
def build(
    units_file: Path = typer.Argument(
        ...,
        help="JSON file holding a list of extracted units",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
    graph_path: Optional[Path] = typer.Option(None, "--graph", "-g", help=GRAPH_OPTION_HELP),
    skip_analysis: bool = typer.Option(
        False,
        "--skip-analysis",
        help="Do not write graph_analysis.json next to the graph",
    ),
) -> None:
    """
    Build a dependency graph from extracted units.

    This command:
    1. Registers every unit in file order
    2. Saves the graph with a PageRank snapshot
    3. Runs structural analysis and saves the report
    """
    graph_path = graph_path or DEFAULT_GRAPH_PATH

    try:
        units = _read_units(units_file)
        graph = DependencyGraph()
        for unit in units:
            graph.register(unit)
        graph.freeze()
        save_graph(graph, graph_path)
        report = None
        if not skip_analysis:
            report = GraphAnalyzer(graph).analyze()
            save_analysis(report, graph_path.parent / ANALYSIS_FILENAME)
    except (GraphError, OSError, json.JSONDecodeError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    _print_build_summary(graph, graph_path, report)


@app.command()
def affected(
    files: List[str] = typer.Argument(..., help="Changed file paths, as recorded in the graph"),
    depth: Optional[int] = typer.Option(
        None,
        "--depth",
        "-n",
        min=0,
        help="Maximum hops from the changed units (default: unlimited)",
    ),
    graph_path: Optional[Path] = typer.Option(None, "--graph", "-g", help=GRAPH_OPTION_HELP),
) -> None:
    """
    Show every unit affected by changes to the given files.
    """
    graph = _load_or_exit(graph_path)
    seeds = {identifier for f in files for identifier in graph.nodes_in_file(f)}
    result = sorted(graph.affected_by(files, max_depth=depth))

    if not result:
        console.print("[yellow]No registered units in the given files.[/yellow]")
        raise typer.Exit(0)

    table = Table(title=f"Blast radius ({len(result)} units)", box=box.ROUNDED)
    table.add_column("Unit", style="cyan")
    table.add_column("Type")
    table.add_column("File", style="dim")

    for identifier in result:
        node = graph.get_node(identifier)
        label = f"[bold]{identifier}[/bold]" if identifier in seeds else identifier
        table.add_row(label, node.type or "-", node.file_path or "-")

    console.print(table)


@app.command()
def deps(
    identifier: str = typer.Argument(..., help="Unit identifier, e.g. User or Admin::UsersController"),
    reverse: bool = typer.Option(
        False,
        "--reverse",
        "-r",
        help="Show dependents instead of dependencies",
    ),
    depth: int = typer.Option(1, "--depth", "-n", min=0, help="Traversal depth"),
    types: Optional[List[str]] = typer.Option(
        None,
        "--type",
        "-t",
        help="Only follow units of this type (repeatable)",
    ),
    graph_path: Optional[Path] = typer.Option(None, "--graph", "-g", help=GRAPH_OPTION_HELP),
) -> None:
    """
    Show what a unit depends on, or what depends on it.
    """
    graph = _load_or_exit(graph_path)

    if not graph.node_exists(identifier):
        match = graph.find_node_by_suffix(identifier)
        if match is None:
            console.print(f"[red]Unit '{identifier}' not found.[/red]")
            raise typer.Exit(1)
        console.print(f"[dim]Using {match}[/dim]")
        identifier = match

    direction = "reverse" if reverse else "forward"
    result = graph.traverse(identifier, depth=depth, types=types or None, direction=direction)
    _print_traversal(result, reverse)


@app.command()
def rank(
    limit: int = typer.Option(10, "--limit", "-n", min=1, help="Number of units to show"),
    damping: float = typer.Option(DEFAULT_DAMPING, "--damping", help="PageRank damping factor"),
    iterations: int = typer.Option(
        DEFAULT_ITERATIONS, "--iterations", min=0, help="PageRank iterations"
    ),
    graph_path: Optional[Path] = typer.Option(None, "--graph", "-g", help=GRAPH_OPTION_HELP),
) -> None:
    """
    Show the structurally most important units by PageRank.
    """
    graph = _load_or_exit(graph_path)

    try:
        scores = graph.pagerank(damping=damping, iterations=iterations)
    except ValueError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    if not scores:
        console.print("[yellow]Graph is empty.[/yellow]")
        raise typer.Exit(0)

    table = Table(title="PageRank", box=box.ROUNDED)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Unit", style="cyan")
    table.add_column("Type")
    table.add_column("Dependents", justify="right")
    table.add_column("Score", justify="right")

    for position, (identifier, score) in enumerate(top_ranked(scores, limit), start=1):
        node = graph.get_node(identifier)
        table.add_row(
            str(position),
            identifier,
            node.type or "-",
            str(len(graph.dependents_of(identifier))),
            f"{score:.5f}",
        )

    console.print(table)


@app.command()
def analyze(
    as_json: bool = typer.Option(False, "--json", help="Print the raw report as JSON"),
    show_all: bool = typer.Option(
        False,
        "--all",
        "-a",
        help="Show every orphan and dead end, not just the first 10",
    ),
    graph_path: Optional[Path] = typer.Option(None, "--graph", "-g", help=GRAPH_OPTION_HELP),
) -> None:
    """
    Display the structural analysis report.

    Shows:
    - Orphans, dead ends and hubs
    - Circular dependencies
    - Bridge edges between otherwise separate parts
    """
    graph = _load_or_exit(graph_path)
    report = GraphAnalyzer(graph).analyze()

    if as_json:
        console.print_json(json.dumps(report.to_dict()))
        return

    _print_report(report, limit=None if show_all else 10)


@app.command()
def stats(
    graph_path: Optional[Path] = typer.Option(None, "--graph", "-g", help=GRAPH_OPTION_HELP),
) -> None:
    """
    Show graph size and the number of units per type.
    """
    graph = _load_or_exit(graph_path)

    table = Table(title="Units by type", box=box.ROUNDED)
    table.add_column("Type", style="cyan")
    table.add_column("Units", justify="right")

    counts = graph.type_counts()
    for type_ in sorted(counts, key=lambda t: (-counts[t], str(t))):
        table.add_row(str(type_), str(counts[type_]))
    table.add_row("", "")
    table.add_row("[bold]Total[/bold]", f"[bold]{graph.node_count}[/bold]")

    console.print(table)
    console.print(f"[dim]{graph.edge_count} edge(s)[/dim]")


# Helper functions for loading and output formatting

def _read_units(units_file: Path) -> list[Unit]:
    """Read extractor output: a JSON list of units or {"units": [...]}."""
    with units_file.open(encoding="utf-8") as handle:
        data = json.load(handle)
    if isinstance(data, dict):
        data = data.get("units")
    if not isinstance(data, list):
        raise GraphError(f"{units_file}: expected a list of units")
    return [Unit.from_dict(item) for item in data]


def _load_or_exit(graph_path: Optional[Path]) -> DependencyGraph:
    """Load the graph, printing a hint and exiting if it is missing or invalid."""
    graph_path = graph_path or DEFAULT_GRAPH_PATH

    if not graph_path.exists():
        console.print(
            f"[yellow]No graph found at {graph_path}.[/yellow] "
            f"Run [bold]ugraph build <units.json>[/bold] first."
        )
        raise typer.Exit(1)

    try:
        return load_graph(graph_path).freeze()
    except GraphError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


def _print_build_summary(
    graph: DependencyGraph, graph_path: Path, report: Optional[AnalysisReport]
) -> None:
    """Print a summary panel after building."""
    table = Table(box=box.SIMPLE, show_header=False)
    table.add_column("Label", style="dim")
    table.add_column("Value", style="bold")

    table.add_row("Units", str(graph.node_count))
    table.add_row("Edges", str(graph.edge_count))
    if report is not None:
        table.add_row("Orphans", str(len(report.orphans)))
        table.add_row("Cycles", str(len(report.cycles)))
    table.add_row("Graph", str(graph_path))

    panel = Panel(table, title="[bold green]✓ Graph Built[/bold green]", border_style="green")
    console.print(panel)


def _print_traversal(result: TraversalResult, reverse: bool) -> None:
    """Print a traversal as a tree rooted at the requested unit."""
    label = "dependents" if reverse else "dependencies"
    tree = Tree(f"[bold cyan]{result.root}[/bold cyan] [dim]({label})[/dim]")
    branches = {result.root: tree}

    for identifier, visited in result.nodes.items():
        parent = branches.get(identifier)
        if parent is None:
            continue
        for neighbour in visited.neighbors:
            if neighbour in branches:
                continue
            child = result.nodes.get(neighbour)
            type_label = f" [dim]{child.type}[/dim]" if child and child.type else ""
            branches[neighbour] = parent.add(f"{neighbour}{type_label}")

    console.print(tree)


def _print_report(report: AnalysisReport, limit: Optional[int]) -> None:
    """Print the structural analysis report."""
    summary = Table(box=box.ROUNDED)
    summary.add_column("Metric", style="bold")
    summary.add_column("Count", justify="right")
    for key, value in report.stats.items():
        summary.add_row(key.replace("_", " "), str(value))
    console.print(summary)

    if report.hubs:
        hubs = Table(title="Hubs", box=box.SIMPLE)
        hubs.add_column("Unit", style="cyan")
        hubs.add_column("Dependents", justify="right")
        hubs.add_column("Sample", style="dim")
        for hub in report.hubs:
            hubs.add_row(hub.identifier, str(hub.dependent_count), ", ".join(hub.dependents))
        console.print(hubs)

    if report.cycles:
        console.print(f"\n[bold yellow]⚠️  Cycles ({len(report.cycles)}):[/bold yellow]")
        for cycle in report.cycles:
            console.print(f"   • {' → '.join(cycle)}")

    if report.bridges:
        console.print(f"\n[bold]Bridges ({len(report.bridges)}):[/bold]")
        for source, target in report.bridges:
            console.print(f"   • {source} → {target}")

    _print_id_list("Orphans", report.orphans, limit)
    _print_id_list("Dead ends", report.dead_ends, limit)


def _print_id_list(title: str, identifiers: list[str], limit: Optional[int]) -> None:
    if not identifiers:
        return
    console.print(f"\n[bold]{title} ({len(identifiers)}):[/bold]")
    shown = identifiers[:limit] if limit else identifiers
    for identifier in shown:
        console.print(f"   • [cyan]{identifier}[/cyan]")
    if limit and len(identifiers) > limit:
        console.print(f"   [dim]... and {len(identifiers) - limit} more[/dim]")


# Version and logging
def _version_callback(value: bool) -> None:
    if value:
        console.print(f"[bold]unitgraph[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging",
    ),
) -> None:
    """
    unitgraph: dependency graph analysis for indexed codebases.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


if __name__ == "__main__":
    app()
