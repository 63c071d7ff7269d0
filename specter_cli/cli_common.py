"""Helpers shared by the command modules: graph loading, config, JSON output."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

import typer
from rich.console import Console

from .config_manager import load_config
from .models import KnowledgeGraph, serialize
from .storage import GraphStore

console = Console()

ROOT_OPTION = typer.Option(Path("."), "--root", "-r", file_okay=False, help="Project root directory.")
JSON_OPTION = typer.Option(False, "--json", help="Print the result as JSON.")

PRIORITY_COLORS = {
    "critical": "red",
    "high": "orange3",
    "medium": "yellow",
    "low": "green",
}


def settings_for(root: Path) -> Dict[str, Any]:
    return load_config(root.resolve())


def load_graph(root: Path) -> KnowledgeGraph:
    """Load the saved graph or stop with a hint to run ``specter scan``."""
    graph = GraphStore(root.resolve()).load()
    if graph is None:
        raise typer.BadParameter("No graph found. Run `specter scan` first.")
    return graph


def print_json(result: Any) -> None:
    typer.echo(json.dumps(serialize(result), indent=2, ensure_ascii=False))


def score_color(score: float) -> str:
    if score >= 80:
        return "green"
    elif score >= 60:
        return "yellow"
    return "red"


def colored(level: str) -> str:
    color = PRIORITY_COLORS.get(level, "white")
    return f"[{color}]{level}[/{color}]"
