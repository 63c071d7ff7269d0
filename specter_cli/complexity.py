"""Cyclomatic complexity reporting over graph nodes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .models import FileNode, GraphNode, KnowledgeGraph

CATEGORIES = ("low", "medium", "high", "veryHigh")

CATEGORY_EMOJI = {
    "low": "🟢",
    "medium": "🟡",
    "high": "🟠",
    "veryHigh": "🔴",
}

LONG_FUNCTION_LINES = 50


@dataclass(frozen=True)
class ComplexityThresholds:
    low: int = 5
    medium: int = 10
    high: int = 20

    @classmethod
    def from_config(cls, config: Dict) -> "ComplexityThresholds":
        section = config.get("complexity", {})
        return cls(
            low=section.get("low", cls.low),
            medium=section.get("medium", cls.medium),
            high=section.get("high", cls.high),
        )


DEFAULT_THRESHOLDS = ComplexityThresholds()


@dataclass
class ComplexityHotspot:
    file_path: str
    name: str
    type: str
    complexity: int
    line_start: int
    line_end: int


@dataclass
class ComplexityReport:
    average_complexity: float
    max_complexity: int
    total_complexity: int
    hotspots: List[ComplexityHotspot]
    distribution: Dict[str, int]


@dataclass
class ComplexityComparison:
    before: int
    after: int
    change: int
    improved: bool
    category_before: str
    category_after: str


@dataclass
class DirectoryComplexity:
    directory: str
    total_complexity: int
    average_complexity: float
    node_count: int


@dataclass
class RefactoringTarget:
    node: ComplexityHotspot
    reasons: List[str] = field(default_factory=list)
    priority: str = "medium"


def get_complexity_category(complexity: int, thresholds: ComplexityThresholds = DEFAULT_THRESHOLDS) -> str:
    """Map a complexity value to low/medium/high/veryHigh. Bounds are inclusive."""
    if complexity <= thresholds.low:
        return "low"
    if complexity <= thresholds.medium:
        return "medium"
    if complexity <= thresholds.high:
        return "high"
    return "veryHigh"


def get_complexity_emoji(complexity: int, thresholds: ComplexityThresholds = DEFAULT_THRESHOLDS) -> str:
    return CATEGORY_EMOJI[get_complexity_category(complexity, thresholds)]


def _hotspot(node: GraphNode) -> ComplexityHotspot:
    return ComplexityHotspot(
        file_path=node.file_path,
        name=node.name,
        type=node.type,
        complexity=node.complexity or 0,
        line_start=node.line_start,
        line_end=node.line_end,
    )


def _measured_symbols(graph: KnowledgeGraph) -> List[GraphNode]:
    return [n for n in graph.nodes.values() if not isinstance(n, FileNode) and n.complexity is not None]


def find_complexity_hotspots(
    graph: KnowledgeGraph,
    limit: int = 10,
    threshold: Optional[int] = None,
    include_files: bool = False,
    thresholds: ComplexityThresholds = DEFAULT_THRESHOLDS,
) -> List[ComplexityHotspot]:
    """Nodes whose complexity is at least ``threshold`` (default: the medium bound), highest first."""
    minimum = thresholds.medium if threshold is None else threshold
    candidates = [
        node
        for node in graph.nodes.values()
        if node.complexity is not None
        and node.complexity >= minimum
        and (include_files or not isinstance(node, FileNode))
    ]
    candidates.sort(key=lambda n: n.complexity or 0, reverse=True)
    return [_hotspot(node) for node in candidates[:limit]]


def get_complexity_distribution(
    graph: KnowledgeGraph,
    thresholds: ComplexityThresholds = DEFAULT_THRESHOLDS,
) -> Dict[str, int]:
    distribution = {category: 0 for category in CATEGORIES}
    for node in _measured_symbols(graph):
        distribution[get_complexity_category(node.complexity or 0, thresholds)] += 1
    return distribution


def generate_complexity_report(
    graph: KnowledgeGraph,
    thresholds: ComplexityThresholds = DEFAULT_THRESHOLDS,
    max_hotspots: int = 20,
) -> ComplexityReport:
    symbols = _measured_symbols(graph)
    values = [n.complexity or 0 for n in symbols]
    total = sum(values)
    return ComplexityReport(
        average_complexity=round(total / len(values), 2) if values else 0,
        max_complexity=max(values) if values else 0,
        total_complexity=total,
        hotspots=find_complexity_hotspots(graph, limit=max_hotspots, thresholds=thresholds),
        distribution=get_complexity_distribution(graph, thresholds),
    )


def compare_complexity(
    before: int,
    after: int,
    thresholds: ComplexityThresholds = DEFAULT_THRESHOLDS,
) -> ComplexityComparison:
    return ComplexityComparison(
        before=before,
        after=after,
        change=after - before,
        improved=after < before,
        category_before=get_complexity_category(before, thresholds),
        category_after=get_complexity_category(after, thresholds),
    )


def get_complexity_by_directory(graph: KnowledgeGraph) -> List[DirectoryComplexity]:
    """Roll symbol complexity up to the leading path segment ("." for root files)."""
    totals: Dict[str, List[int]] = {}
    for node in _measured_symbols(graph):
        parts = node.file_path.split("/")
        directory = parts[0] if len(parts) > 1 else "."
        totals.setdefault(directory, []).append(node.complexity or 0)

    rollups = [
        DirectoryComplexity(
            directory=directory,
            total_complexity=sum(values),
            average_complexity=round(sum(values) / len(values), 2),
            node_count=len(values),
        )
        for directory, values in totals.items()
    ]
    rollups.sort(key=lambda d: d.total_complexity, reverse=True)
    return rollups


def suggest_refactoring_targets(
    graph: KnowledgeGraph,
    thresholds: ComplexityThresholds = DEFAULT_THRESHOLDS,
) -> List[RefactoringTarget]:
    """Flag complex nodes and long functions; a node may carry both reasons."""
    priority_order = {"high": 0, "medium": 1, "low": 2}
    targets: List[RefactoringTarget] = []

    for node in _measured_symbols(graph):
        complexity = node.complexity or 0
        reasons: List[str] = []
        priority = "low"

        if complexity > thresholds.high:
            reasons.append(
                f"Cyclomatic complexity of {complexity} is very high. Consider breaking into smaller functions."
            )
            priority = "high"
        elif complexity > thresholds.medium:
            reasons.append(f"Cyclomatic complexity of {complexity} is high. Consider simplifying the logic.")
            priority = "medium"

        span = node.line_end - node.line_start
        if span > LONG_FUNCTION_LINES:
            reasons.append(f"Function spans {span} lines. Consider extracting helper functions.")
            if priority == "low":
                priority = "medium"

        if reasons:
            targets.append(RefactoringTarget(node=_hotspot(node), reasons=reasons, priority=priority))

    targets.sort(key=lambda t: (priority_order[t.priority], -t.node.complexity))
    return targets
