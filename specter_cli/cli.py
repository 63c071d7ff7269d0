"""Typer-based CLI for Specter codebase analytics."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.panel import Panel
from rich.progress import BarColumn, Progress, TextColumn
from rich.table import Table

from . import __version__
from .builder import build_knowledge_graph, get_graph_stats
from .cli_analysis import bus_factor, complexity, coupling, hotspots, knowledge, risk
from .cli_common import JSON_OPTION, ROOT_OPTION, console, print_json, settings_for
from .cli_health import trajectory, trends, velocity
from .extraction import load_extractions
from .history import analyze_git_history, identify_hot_files
from .snapshots import SnapshotStore
from .storage import GraphNotFoundError, GraphStore, StorageError

app = typer.Typer(
    help="👻 Specter: knowledge graph and history analytics for your codebase.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Analysis commands
app.command("complexity")(complexity)
app.command("hotspots")(hotspots)
app.command("bus-factor")(bus_factor)
app.command("knowledge")(knowledge)
app.command("coupling")(coupling)
app.command("risk")(risk)

# Health history commands
app.command("trajectory")(trajectory)
app.command("velocity")(velocity)
app.command("trends")(trends)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"Specter v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
):
    """Specter: build a knowledge graph from extractor facts and mine git history for risk."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@app.command("scan")
def scan(
    facts: Path = typer.Argument(..., exists=True, dir_okay=False, help="Extractor facts JSON file."),
    root: Path = ROOT_OPTION,
    no_git: bool = typer.Option(False, "--no-git", help="Skip git history analysis."),
    as_json: bool = JSON_OPTION,
):
    """Build the knowledge graph from extractor facts and record a health snapshot."""
    root = root.resolve()
    settings = settings_for(root)
    try:
        extractions = load_extractions(facts)
    except ValueError as exc:
        raise typer.BadParameter(str(exc))

    history = None
    if not no_git:
        paths = [e.path for e in extractions if not e.error]
        with Progress(
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            TextColumn("{task.completed}/{task.total}"),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task("Analyzing git history", total=len(paths))
            history = analyze_git_history(
                root,
                paths,
                on_progress=lambda done, total: progress.update(task, completed=done),
                batch_size=settings["git"]["batchSize"],
                max_commits=settings["git"]["maxCommitsPerFile"],
            )

    result = build_knowledge_graph(root, extractions, history=history)
    hot_files = (
        identify_hot_files(history.file_histories, threshold=settings["git"]["hotFileThreshold"])
        if history is not None
        else []
    )
    store = GraphStore(root, settings=settings)
    try:
        store.save(result.graph)
    except StorageError as exc:
        typer.echo(f"❌ {exc}", err=True)
        raise typer.Exit(code=1)

    if as_json:
        print_json(
            {
                "metadata": result.graph.metadata,
                "errors": result.errors,
                "warnings": result.warnings,
                "hotFiles": hot_files,
            }
        )
        return

    meta = result.graph.metadata
    console.print(
        Panel(
            f"Files: [bold]{meta.file_count}[/bold]  Lines: [bold]{meta.total_lines:,}[/bold]\n"
            f"Nodes: [bold]{meta.node_count}[/bold]  Edges: [bold]{meta.edge_count}[/bold]\n"
            f"Scan time: {meta.scan_duration_ms} ms",
            title="👻 Scan complete",
            border_style="green",
        )
    )
    if hot_files:
        console.print(f"🔥 Hot files ({settings['git']['hotFileThreshold']}+ commits): " + ", ".join(hot_files[:5]))
    for warning in result.warnings:
        console.print(f"[yellow]⚠ {warning.get('warning', '')}[/yellow]")
    for error in result.errors:
        console.print(f"[red]✗ {error['file']}: {error['error']}[/red]")


@app.command("stats")
def stats(root: Path = ROOT_OPTION, as_json: bool = JSON_OPTION):
    """Show graph statistics."""
    store = GraphStore(root.resolve())
    graph = store.load()
    if graph is None:
        raise typer.BadParameter("No graph found. Run `specter scan` first.")

    data = get_graph_stats(graph)
    if as_json:
        print_json(data)
        return

    table = Table(title="Knowledge Graph", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="bold")
    table.add_row("Scanned at", str(data["scannedAt"]))
    table.add_row("Files", str(data["fileCount"]))
    table.add_row("Lines", f"{data['totalLines']:,}")
    table.add_row("Nodes", str(data["nodeCount"]))
    table.add_row("Edges", str(data["edgeCount"]))
    table.add_row("Avg complexity", str(data["avgComplexity"]))
    table.add_row("Max complexity", str(data["maxComplexity"]))
    for node_type, count in sorted(data["nodesByType"].items()):
        table.add_row(f"  {node_type} nodes", str(count))
    console.print(table)

    if store.is_stale():
        console.print("[yellow]Source files changed since the last scan. Run `specter scan` to refresh.[/yellow]")


@app.command("export")
def export(
    output: Path = typer.Argument(..., help="Output JSON file."),
    root: Path = ROOT_OPTION,
    fmt: str = typer.Option("full", "--format", "-f", help="Export format: full or summary."),
):
    """Export the saved graph to a JSON file."""
    fmt = fmt.lower()
    if fmt not in {"full", "summary"}:
        raise typer.BadParameter("Format must be one of: full, summary")
    try:
        path = GraphStore(root.resolve()).export(output, fmt=fmt)
    except GraphNotFoundError as exc:
        raise typer.BadParameter(str(exc))
    except StorageError as exc:
        typer.echo(f"❌ {exc}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Exported graph to {path}")


@app.command("clean")
def clean(
    root: Path = ROOT_OPTION,
    keep_history: bool = typer.Option(False, "--keep-history", help="Only delete the graph, keep snapshots."),
):
    """Delete the saved graph (and, by default, the snapshot history)."""
    root = root.resolve()
    store = GraphStore(root)
    if keep_history:
        removed = 0
        for path in (store.graph_path, store.meta_path):
            if path.exists():
                path.unlink()
                removed += 1
        typer.echo(f"Removed {removed} graph file(s); kept {SnapshotStore(root).count()} snapshot(s).")
        return
    if not store.delete():
        typer.echo("Nothing to clean.")
        raise typer.Exit(code=0)
    typer.echo(f"Deleted {store.store_dir}")


if __name__ == "__main__":
    app()
