"""Health history commands: trajectory, velocity and trends over snapshots."""

from __future__ import annotations

from pathlib import Path

from rich.panel import Panel
from rich.table import Table

from .cli_common import JSON_OPTION, ROOT_OPTION, console, load_graph, print_json, score_color, settings_for
from .snapshots import SnapshotStore
from .trajectory import project_trajectory
from .trends import analyze_trends, get_grade, get_time_span
from .velocity import analyze_velocity

TREND_COLORS = {
    "improving": "green",
    "stable": "cyan",
    "declining": "yellow",
    "degrading": "yellow",
    "critical": "red",
}

HORIZON_LABELS = {"oneWeek": "1 week", "oneMonth": "1 month", "threeMonths": "3 months"}


def _trend(name: str) -> str:
    color = TREND_COLORS.get(name, "white")
    return f"[{color}]{name}[/{color}]"


def _snapshots(root: Path):
    settings = settings_for(root)
    return SnapshotStore(root, max_snapshots=settings["history"]["maxSnapshots"]).load_all()


def trajectory(root: Path = ROOT_OPTION, as_json: bool = JSON_OPTION):
    """Project health forward from the snapshot history."""
    root = root.resolve()
    settings = settings_for(root)
    graph = load_graph(root)
    result = project_trajectory(
        root,
        graph,
        snapshots=_snapshots(root),
        complexity_multiplier=settings["health"]["complexityMultiplier"],
    )

    if as_json:
        print_json(result)
        return

    color = score_color(result.current_health)
    console.print(
        Panel(
            f"Health: [{color}]{result.current_health}/100[/{color}]  Trend: {_trend(result.trend)}  "
            f"({result.rate_of_change:+} pts/week)\n"
            f"{result.snapshot_count} snapshots over {result.time_span_days} days. "
            f"History: {' '.join(str(h) for h in result.health_history)}",
            title="📈 Trajectory",
            border_style=color,
        )
    )

    table = Table()
    table.add_column("Horizon", style="bold")
    table.add_column("Worst", justify="right")
    table.add_column("Likely", justify="right")
    table.add_column("Best", justify="right")
    table.add_column("Confidence", justify="right")
    for horizon, projection in result.projections.items():
        table.add_row(
            HORIZON_LABELS[horizon],
            str(projection.worst.projected_health),
            str(projection.likely.projected_health),
            str(projection.best.projected_health),
            f"{projection.likely.confidence}%",
        )
    console.print(table)

    for risk_factor in result.risk_factors:
        console.print(f"[yellow]⚠ {risk_factor}[/yellow]")
    for recommendation in result.recommendations:
        console.print(f"💡 {recommendation}")


def velocity(root: Path = ROOT_OPTION, as_json: bool = JSON_OPTION):
    """Rate of complexity growth per file between snapshots."""
    root = root.resolve()
    graph = load_graph(root)
    result = analyze_velocity(root, graph, snapshots=_snapshots(root))

    if as_json:
        print_json(result)
        return

    metrics = result.current_metrics
    console.print(
        Panel(
            f"Overall: [bold]{result.overall_velocity:+}[/bold] complexity/week  Trend: {_trend(result.trend)}\n"
            f"Files: {metrics.file_count}  Total complexity: {metrics.total_complexity}  "
            f"Projected in 30 days: {result.projected_debt_in_30_days}",
            title="🏎️  Velocity",
            border_style="blue",
        )
    )
    if result.snapshot_count < 2:
        console.print("Need at least two snapshots to measure velocity. Run `specter scan` again later.")
        return

    for title, files in (("Fastest growing", result.fastest_growing), ("Fastest improving", result.fastest_improving)):
        if not files:
            continue
        table = Table(title=title)
        table.add_column("File", style="bold")
        table.add_column("Now", justify="right")
        table.add_column("Before (est.)", justify="right")
        table.add_column("Per week", justify="right")
        table.add_column("Trend")
        for item in files:
            table.add_row(
                item.path,
                str(item.current_complexity),
                str(item.previous_complexity),
                f"{item.velocity_per_week:+}",
                _trend(item.trend),
            )
        console.print(table)
    for note in result.notes:
        console.print(f"[dim]{note}[/dim]")


def trends(root: Path = ROOT_OPTION, as_json: bool = JSON_OPTION):
    """Health trends by day, week, month and overall."""
    root = root.resolve()
    settings = settings_for(root)
    snapshots = _snapshots(root)
    analysis = analyze_trends(
        snapshots,
        change_threshold=settings["health"]["trendChangeThreshold"],
        grades=settings["health"]["grades"],
    )

    if as_json:
        print_json(analysis)
        return

    if analysis.current is not None:
        score = analysis.current.metrics.health_score
        grade = get_grade(score, settings["health"]["grades"])
        console.print(f"Current grade: [{score_color(score)}]{grade}[/{score_color(score)}] ({get_time_span(snapshots)})")
    console.print(analysis.summary)

    if analysis.trends:
        table = Table(title="📊 Health Trends")
        table.add_column("Period", style="bold")
        table.add_column("Direction")
        table.add_column("Change", justify="right")
        table.add_column("Snapshots", justify="right")
        for period, trend in analysis.trends.items():
            table.add_row(period, _trend(trend.direction), f"{trend.change_percent:+}%", str(len(trend.snapshots)))
        console.print(table)
        overall = analysis.trends.get("all")
        if overall is not None:
            for insight in overall.insights:
                console.print(f"• {insight}")
    else:
        console.print("No snapshots recorded yet.")
