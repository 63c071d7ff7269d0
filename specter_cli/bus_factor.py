"""Bus factor per code area from git ownership history."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from .git_runner import GitRunner
from .history import CommitRecord, ContributorShare, read_numstat_log
from .models import KnowledgeGraph, round_half_up

logger = logging.getLogger(__name__)

SIGNIFICANT_SHARE = 20
CORE_AREA_PREFIXES = ("src/core", "src/graph", "src/analyzers", "core", "lib")
CRITICALITY_ORDER = {"critical": 0, "high": 1, "medium": 2, "low": 3}


@dataclass
class AreaContributor:
    name: str
    percentage: int
    commits: int
    lines_changed: int
    last_commit: Optional[str] = None


@dataclass
class AreaBusFactor:
    area: str
    bus_factor: int
    criticality: str
    sole_owner: Optional[str]
    owner_percentage: int
    contributors: List[AreaContributor]
    total_commits: int
    lines_of_code: int
    file_count: int
    suggestion: str


@dataclass
class BusFactorSummary:
    solo_owned_files: int = 0
    solo_owned_lines: int = 0
    total_files: int = 0
    total_lines: int = 0
    percentage_at_risk: int = 0


@dataclass
class BusFactorResult:
    overall_bus_factor: float
    risk_level: str
    areas: List[AreaBusFactor] = field(default_factory=list)
    critical_count: int = 0
    summary: BusFactorSummary = field(default_factory=BusFactorSummary)
    recommendations: List[str] = field(default_factory=list)


@dataclass
class _AreaStats:
    files: List[str] = field(default_factory=list)
    lines: int = 0
    total_commits: int = 0
    contributors: Dict[str, ContributorShare] = field(default_factory=dict)


def area_for(file_path: str) -> str:
    """Group a path into an area: top-level dir, ``src/<subdir>``, or "root"."""
    parts = file_path.split("/")
    if len(parts) == 1:
        return "root"
    if parts[0] == "src" and len(parts) > 2:
        return f"src/{parts[1]}"
    return parts[0]


def bus_factor_from_shares(percentages: List[int]) -> int:
    """Contributors holding at least a 20% share; never below 1."""
    return max(1, sum(1 for pct in percentages if pct >= SIGNIFICANT_SHARE))


def classify_criticality(bus_factor: int, top_percentage: int, area: str, lines: int, files: int) -> str:
    is_core = any(area.startswith(prefix) for prefix in CORE_AREA_PREFIXES)
    is_large = lines > 1000 or files > 10
    if bus_factor == 1 and (top_percentage >= 80 or is_core or is_large):
        return "critical"
    if bus_factor == 1 or (top_percentage >= 70 and (is_core or is_large)):
        return "high"
    if bus_factor <= 2 or top_percentage >= 60:
        return "medium"
    return "low"


def area_suggestion(criticality: str, bus_factor: int, owner: Optional[str], top_percentage: int) -> str:
    if criticality == "critical" and owner:
        if top_percentage >= 90:
            return f"Pair {owner} with another developer on all changes"
        return f"Schedule knowledge transfer sessions with {owner}"
    if criticality in ("critical", "high"):
        if owner:
            return f"Have {owner} document key decisions and mentor others"
        return "Cross-train team members on this area"
    if criticality == "medium":
        if bus_factor <= 2:
            return "Add a third contributor through code reviews"
        return "Consider rotating ownership periodically"
    return "Knowledge is well-distributed"


def _collect_areas(graph: KnowledgeGraph, commits: List[CommitRecord]) -> Dict[str, _AreaStats]:
    areas: Dict[str, _AreaStats] = {}
    file_area: Dict[str, str] = {}
    for node in graph.file_nodes():
        area = area_for(node.file_path)
        stats = areas.setdefault(area, _AreaStats())
        stats.files.append(node.file_path)
        stats.lines += node.line_count
        file_area[node.file_path] = area

    for commit in commits:
        touched: Dict[str, List[int]] = {}
        for change in commit.files:
            area = file_area.get(change.path)
            if area is None:
                continue
            added_removed = touched.setdefault(area, [0, 0])
            added_removed[0] += change.added
            added_removed[1] += change.removed
        for area, (added, removed) in touched.items():
            stats = areas[area]
            stats.total_commits += 1
            share = stats.contributors.setdefault(commit.author, ContributorShare())
            share.record(commit.date, added, removed)
    return areas


def _analyze_area(area: str, stats: _AreaStats) -> AreaBusFactor:
    total_score = sum(share.weighted for share in stats.contributors.values())
    ranked = sorted(stats.contributors.items(), key=lambda item: item[1].weighted, reverse=True)
    contributors = [
        AreaContributor(
            name=name,
            percentage=round_half_up(share.weighted / total_score * 100) if total_score else 0,
            commits=share.commits,
            lines_changed=share.lines_added + share.lines_removed,
            last_commit=share.last_commit,
        )
        for name, share in ranked
    ]

    bus_factor = bus_factor_from_shares([c.percentage for c in contributors])
    top_percentage = contributors[0].percentage if contributors else 0
    sole_owner = contributors[0].name if bus_factor == 1 and contributors else None
    criticality = classify_criticality(bus_factor, top_percentage, area, stats.lines, len(stats.files))
    return AreaBusFactor(
        area=area,
        bus_factor=bus_factor,
        criticality=criticality,
        sole_owner=sole_owner,
        owner_percentage=top_percentage,
        contributors=contributors[:5],
        total_commits=stats.total_commits,
        lines_of_code=stats.lines,
        file_count=len(stats.files),
        suggestion=area_suggestion(criticality, bus_factor, sole_owner, top_percentage),
    )


def overall_bus_factor(areas: List[AreaBusFactor]) -> float:
    """Line-weighted average of per-area bus factors, one decimal."""
    if not areas:
        return 0
    total_lines = sum(a.lines_of_code for a in areas)
    if total_lines == 0:
        return round(sum(a.bus_factor for a in areas) / len(areas), 1)
    return round(sum(a.bus_factor * a.lines_of_code for a in areas) / total_lines, 1)


def risk_level_for(overall: float, percentage_at_risk: int) -> str:
    if overall >= 3 and percentage_at_risk < 10:
        return "healthy"
    if overall >= 2 and percentage_at_risk < 25:
        return "concerning"
    if overall >= 1.5 or percentage_at_risk < 50:
        return "dangerous"
    return "critical"


def _recommendations(areas: List[AreaBusFactor], summary: BusFactorSummary, risk_level: str) -> List[str]:
    recommendations: List[str] = []
    critical = [a for a in areas if a.criticality == "critical"]
    high = [a for a in areas if a.criticality == "high"]

    owned: Dict[str, int] = {}
    for area in critical:
        if area.sole_owner:
            owned[area.sole_owner] = owned.get(area.sole_owner, 0) + 1
    if owned:
        owner, count = max(owned.items(), key=lambda item: item[1])
        if count >= 2:
            recommendations.append(
                f"Priority: Schedule knowledge transfer sessions with {owner} (owns {count} critical areas)"
            )

    if critical:
        recommendations.append(f"Implement mandatory code reviews by non-owners for {len(critical)} critical area(s)")
    if high:
        recommendations.append(f"Start pair programming rotations on {len(high)} high-risk area(s)")
    if summary.percentage_at_risk > 30:
        recommendations.append(
            f"{summary.percentage_at_risk}% of codebase at risk - consider hiring or cross-training"
        )

    if risk_level == "healthy":
        recommendations.append("Knowledge is well-distributed! Keep up code reviews and pairing.")
    elif not recommendations:
        recommendations.append("Consider documenting complex areas and rotating ownership periodically")
    return recommendations


def analyze_bus_factor(
    root: Path,
    graph: KnowledgeGraph,
    critical_only: bool = False,
    max_commits: int = 500,
    runner: Optional[GitRunner] = None,
) -> BusFactorResult:
    """Per-area bus factor, criticality and remediation for the scanned files."""
    runner = runner or GitRunner(root)
    if not runner.is_repo():
        return BusFactorResult(
            overall_bus_factor=0,
            risk_level="critical",
            recommendations=["This is not a git repository."],
        )
    if not graph.file_nodes():
        return BusFactorResult(
            overall_bus_factor=0,
            risk_level="critical",
            recommendations=["No source files found in the knowledge graph."],
        )

    commits = read_numstat_log(root, max_commits=max_commits, runner=runner)
    areas = [_analyze_area(name, stats) for name, stats in _collect_areas(graph, commits).items()]
    areas.sort(key=lambda a: (CRITICALITY_ORDER[a.criticality], a.bus_factor))

    summary = BusFactorSummary(
        total_files=sum(a.file_count for a in areas),
        total_lines=sum(a.lines_of_code for a in areas),
    )
    for area in areas:
        if area.bus_factor == 1:
            summary.solo_owned_files += area.file_count
            summary.solo_owned_lines += area.lines_of_code
    if summary.total_lines:
        summary.percentage_at_risk = round_half_up(summary.solo_owned_lines / summary.total_lines * 100)

    overall = overall_bus_factor(areas)
    risk_level = risk_level_for(overall, summary.percentage_at_risk)
    critical_count = sum(1 for a in areas if a.criticality == "critical")
    recommendations = _recommendations(areas, summary, risk_level)

    if critical_only:
        areas = [a for a in areas if a.criticality in ("critical", "high")]

    return BusFactorResult(
        overall_bus_factor=overall,
        risk_level=risk_level,
        areas=areas,
        critical_count=critical_count,
        summary=summary,
        recommendations=recommendations,
    )
