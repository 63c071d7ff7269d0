"""Analysis commands: complexity, hotspots, ownership, coupling and change risk."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.panel import Panel
from rich.table import Table

from .bus_factor import analyze_bus_factor
from .cli_common import JSON_OPTION, ROOT_OPTION, colored, console, load_graph, print_json, settings_for
from .complexity import (
    ComplexityThresholds,
    generate_complexity_report,
    get_complexity_by_directory,
    get_complexity_emoji,
    suggest_refactoring_targets,
)
from .config_manager import ConfigError
from .coupling import analyze_change_coupling, build_import_edge_set
from .hotspots import analyze_hotspots
from .knowledge import analyze_knowledge_distribution
from .risk import calculate_risk


def complexity(
    root: Path = ROOT_OPTION,
    limit: Optional[int] = typer.Option(
        None, "--limit", "-n", min=1, help="Hotspots to list (default: limits.defaultHotspotsLimit)."
    ),
    refactor: bool = typer.Option(False, "--refactor", help="Also list refactoring targets."),
    as_json: bool = JSON_OPTION,
):
    """Complexity report: averages, distribution, hotspots and directory rollups."""
    settings = settings_for(root)
    thresholds = ComplexityThresholds.from_config(settings)
    graph = load_graph(root)
    report = generate_complexity_report(
        graph,
        thresholds=thresholds,
        max_hotspots=limit or settings["limits"]["maxReportHotspots"],
    )
    shown = report.hotspots[: limit or settings["limits"]["defaultHotspotsLimit"]]
    directories = get_complexity_by_directory(graph)
    targets = suggest_refactoring_targets(graph, thresholds) if refactor else []

    if as_json:
        print_json({"report": report, "directories": directories, "refactoringTargets": targets})
        return

    console.print(
        Panel(
            f"Average: [bold]{report.average_complexity}[/bold]  "
            f"Max: [bold]{report.max_complexity}[/bold]  Total: [bold]{report.total_complexity}[/bold]\n"
            + "  ".join(f"{name}: {count}" for name, count in report.distribution.items()),
            title="🧮 Complexity",
            border_style="blue",
        )
    )

    if shown:
        table = Table(title="Complexity Hotspots")
        table.add_column("", width=2)
        table.add_column("Symbol", style="bold")
        table.add_column("Type")
        table.add_column("Location", style="dim")
        table.add_column("Complexity", justify="right")
        for spot in shown:
            table.add_row(
                get_complexity_emoji(spot.complexity, thresholds),
                spot.name,
                spot.type,
                f"{spot.file_path}:{spot.line_start}",
                str(spot.complexity),
            )
        console.print(table)
    else:
        console.print("[green]No complexity hotspots above the medium threshold.[/green]")

    if directories:
        table = Table(title="By Directory")
        table.add_column("Directory", style="cyan")
        table.add_column("Total", justify="right")
        table.add_column("Average", justify="right")
        table.add_column("Symbols", justify="right")
        for rollup in directories:
            table.add_row(rollup.directory, str(rollup.total_complexity), str(rollup.average_complexity),
                          str(rollup.node_count))
        console.print(table)

    for target in targets:
        console.print(f"{colored(target.priority)} [bold]{target.node.name}[/bold] ({target.node.file_path})")
        for reason in target.reasons:
            console.print(f"    • {reason}")


def hotspots(
    root: Path = ROOT_OPTION,
    since: str = typer.Option("3 months ago", "--since", help="Churn window, e.g. '6 weeks ago'."),
    top: Optional[int] = typer.Option(
        None, "--top", min=1, help="Number of hotspots to show (default: limits.defaultHotspotsLimit)."
    ),
    as_json: bool = JSON_OPTION,
):
    """Files that are both complex and frequently changed."""
    root = root.resolve()
    settings = settings_for(root)
    graph = load_graph(root)
    result = analyze_hotspots(root, graph, since=since, top=top or settings["limits"]["defaultHotspotsLimit"])

    if as_json:
        print_json(result)
        return

    if not result.hotspots:
        typer.echo("No hotspots found.")
        raise typer.Exit(code=0)

    table = Table(title=f"🔥 Hotspots since {since}")
    table.add_column("File", style="bold")
    table.add_column("Score", justify="right")
    table.add_column("Priority")
    table.add_column("Complexity", justify="right")
    table.add_column("Commits", justify="right")
    table.add_column("Per week", justify="right")
    for spot in result.hotspots:
        table.add_row(
            spot.file,
            str(spot.score),
            colored(spot.priority),
            f"{spot.complexity} (p{spot.complexity_percentile})",
            f"{spot.churn} (p{spot.churn_percentile})",
            str(spot.churn_rate),
        )
    console.print(table)

    summary = result.summary
    console.print(
        f"{summary.critical_count} critical, {summary.high_count} high priority. "
        f"Estimated debt: ~{summary.total_debt_hours} hours across {summary.total_files} files."
    )


def bus_factor(
    root: Path = ROOT_OPTION,
    critical_only: bool = typer.Option(False, "--critical", help="Only show critical and high-risk areas."),
    as_json: bool = JSON_OPTION,
):
    """Bus factor per code area from git ownership."""
    root = root.resolve()
    graph = load_graph(root)
    result = analyze_bus_factor(root, graph, critical_only=critical_only)

    if as_json:
        print_json(result)
        return

    console.print(
        Panel(
            f"Overall bus factor: [bold]{result.overall_bus_factor}[/bold]  Risk: {colored(result.risk_level)}\n"
            f"{result.summary.percentage_at_risk}% of lines are owned by a single contributor.",
            title="🚌 Bus Factor",
            border_style="magenta",
        )
    )
    if result.areas:
        table = Table()
        table.add_column("Area", style="bold")
        table.add_column("Bus factor", justify="right")
        table.add_column("Criticality")
        table.add_column("Top owner")
        table.add_column("Suggestion", style="dim")
        for area in result.areas:
            owner = area.contributors[0] if area.contributors else None
            table.add_row(
                area.area,
                str(area.bus_factor),
                colored(area.criticality),
                f"{owner.name} ({owner.percentage}%)" if owner else "-",
                area.suggestion,
            )
        console.print(table)
    for recommendation in result.recommendations:
        console.print(f"💡 {recommendation}")


def knowledge(
    root: Path = ROOT_OPTION,
    as_json: bool = JSON_OPTION,
):
    """Per-file knowledge concentration and ownership distribution."""
    root = root.resolve()
    graph = load_graph(root)
    result = analyze_knowledge_distribution(root, [node.file_path for node in graph.file_nodes()])

    if as_json:
        print_json(result)
        return

    if result.critical_areas:
        table = Table(title="🧠 Knowledge Risks")
        table.add_column("File", style="bold")
        table.add_column("Risk")
        table.add_column("Owner")
        table.add_column("Ownership", justify="right")
        table.add_column("Days idle", justify="right")
        for area in result.critical_areas:
            table.add_row(
                area.path,
                colored(area.risk_level),
                area.primary_owner,
                f"{area.ownership_percentage}%",
                str(area.days_since_last_change),
            )
        console.print(table)
    for insight in result.insights:
        console.print(f"• {insight}")


def coupling(
    file: str = typer.Argument(..., help="File path relative to the project root."),
    root: Path = ROOT_OPTION,
    as_json: bool = JSON_OPTION,
):
    """Files that change together with FILE."""
    root = root.resolve()
    settings = settings_for(root)
    graph = load_graph(root)
    if file not in graph.nodes:
        raise typer.BadParameter(f"File '{file}' is not in the knowledge graph.")

    result = analyze_change_coupling(
        root,
        file,
        max_commits=settings["git"]["maxCommitsForCoupling"],
        min_strength=settings["git"]["minCouplingStrength"],
        import_edges=build_import_edge_set(graph),
        batch_size=settings["git"]["batchSize"],
    )

    if as_json:
        print_json(result)
        return

    if result.coupled_files:
        table = Table(title=f"🔗 Change coupling for {file}")
        table.add_column("File", style="bold")
        table.add_column("Strength", justify="right")
        table.add_column("Shared", justify="right")
        table.add_column("Imports")
        for item in result.coupled_files:
            table.add_row(
                item.file2,
                f"{item.coupling_strength:.0%}",
                f"{item.shared_commits}/{item.total_commits_file1}",
                "yes" if item.has_import_relationship else "[yellow]hidden[/yellow]",
            )
        console.print(table)
    for insight in result.insights:
        console.print(f"• {insight}")


def risk(
    root: Path = ROOT_OPTION,
    staged: bool = typer.Option(True, "--staged/--no-staged", help="Score staged changes."),
    branch: Optional[str] = typer.Option(None, "--branch", "-b", help="Score HEAD against this base branch."),
    commit: Optional[str] = typer.Option(None, "--commit", "-c", help="Score a single commit."),
    as_json: bool = JSON_OPTION,
):
    """Risk score for staged changes, a branch diff or a commit."""
    root = root.resolve()
    settings = settings_for(root)
    graph = load_graph(root)
    try:
        score = calculate_risk(
            root,
            graph,
            staged=staged,
            branch=branch,
            commit=commit,
            weights=settings["risk"]["weights"],
            levels=settings["risk"]["levels"],
            max_items=settings["limits"]["maxRiskFactorItems"],
        )
    except ConfigError as exc:
        raise typer.BadParameter(str(exc))

    if as_json:
        print_json(score)
        return

    console.print(
        Panel(
            f"[bold]{score.overall}/100[/bold]  {colored(score.level)}\n{score.summary}",
            title="⚖️  Change Risk",
            border_style="red" if score.level in ("high", "critical") else "green",
        )
    )
    table = Table()
    table.add_column("Factor", style="bold")
    table.add_column("Score", justify="right")
    table.add_column("Weight", justify="right")
    table.add_column("Details", style="dim")
    for factor in score.factors.values():
        table.add_row(factor.name, str(factor.score), f"{factor.weight:.0%}", factor.details)
    console.print(table)
    for recommendation in score.recommendations:
        console.print(f"💡 {recommendation}")
