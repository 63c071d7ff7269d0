"""Weighted multi-factor risk scoring for a set of changed files."""

from __future__ import annotations

import logging
import re
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Set

from .config import is_source_file
from .config_manager import DEFAULT_CONFIG, RISK_FACTORS, validate_weights
from .diff_source import DiffFile, DiffSummary, get_branch_diff, get_commit_diff, get_staged_diff
from .git_runner import GitRunner
from .models import FileNode, KnowledgeGraph, round_half_up

logger = logging.getLogger(__name__)

DEFAULT_WEIGHTS: Dict[str, float] = dict(DEFAULT_CONFIG["risk"]["weights"])
DEFAULT_LEVELS: Dict[str, int] = dict(DEFAULT_CONFIG["risk"]["levels"])

FACTOR_NAMES = {
    "filesChanged": "Files Changed",
    "linesChanged": "Lines Changed",
    "complexityTouched": "Complexity Touched",
    "dependentImpact": "Dependent Impact",
    "busFactorRisk": "Bus Factor Risk",
    "testCoverage": "Test Coverage",
}

_TEST_MARKERS = (".test.", ".spec.", "__tests__")
_TEST_DIRS = ("test/", "tests/")
_SOURCE_SUFFIX = re.compile(r"\.(ts|tsx|js|jsx)$")
_TEST_SUFFIX = re.compile(r"\.(test|spec)\.(ts|tsx|js|jsx)$")
_TEST_PREFIX = re.compile(r"^(test|tests|__tests__)/")


@dataclass
class RiskFactor:
    name: str
    score: int
    weight: float
    details: str
    items: List[str] = field(default_factory=list)


@dataclass
class RiskScore:
    overall: int
    level: str
    factors: Dict[str, RiskFactor]
    summary: str
    recommendations: List[str] = field(default_factory=list)


def risk_level(overall: int, levels: Optional[Dict[str, int]] = None) -> str:
    levels = levels or DEFAULT_LEVELS
    if overall <= levels["low"]:
        return "low"
    if overall <= levels["medium"]:
        return "medium"
    if overall <= levels["high"]:
        return "high"
    return "critical"


def _factor(key: str, weights: Dict[str, float], score: int, details: str, items: Optional[List[str]] = None) -> RiskFactor:
    return RiskFactor(name=FACTOR_NAMES[key], score=score, weight=weights[key], details=details, items=items or [])


def score_files_changed(count: int) -> int:
    if count == 0:
        return 0
    if count <= 3:
        return 10
    if count <= 10:
        return 40
    if count <= 20:
        return 70
    return 100


def score_lines_changed(lines: int) -> int:
    if lines == 0:
        return 0
    if lines <= 50:
        return 10
    if lines <= 200:
        return 30
    if lines <= 500:
        return 50
    if lines <= 1000:
        return 75
    return 100


def score_complexity(max_complexity: int) -> int:
    if max_complexity == 0:
        return 0
    if max_complexity <= 5:
        return 10
    if max_complexity <= 10:
        return 30
    if max_complexity <= 20:
        return 60
    return 90


def score_dependents(count: int) -> int:
    if count == 0:
        return 0
    if count <= 3:
        return 15
    if count <= 10:
        return 40
    if count <= 25:
        return 70
    return 100


def find_dependents(graph: KnowledgeGraph, changed: Set[str]) -> Set[str]:
    """Files that import a changed file directly or transitively."""
    importers: Dict[str, Set[str]] = {}
    for edge in graph.edges_of_type("imports"):
        importers.setdefault(edge.target, set()).add(edge.source)

    visited: Set[str] = set(changed)
    queue = deque(changed)
    while queue:
        current = queue.popleft()
        for importer in importers.get(current, ()):
            if importer not in visited:
                visited.add(importer)
                queue.append(importer)
    return visited - changed


def _files_factor(files: List[DiffFile], weights: Dict[str, float]) -> RiskFactor:
    count = len(files)
    return _factor("filesChanged", weights, score_files_changed(count), f"{count} file{'s' if count != 1 else ''} changed")


def _lines_factor(files: List[DiffFile], weights: Dict[str, float]) -> RiskFactor:
    added = sum(f.additions for f in files)
    removed = sum(f.deletions for f in files)
    return _factor("linesChanged", weights, score_lines_changed(added + removed),
                   f"+{added} -{removed} ({added + removed} lines)")


def _complexity_factor(files: List[DiffFile], graph: KnowledgeGraph, weights: Dict[str, float],
                       max_items: int) -> RiskFactor:
    paths = {f.path for f in files}
    touched = [
        node for node in graph.nodes.values()
        if not isinstance(node, FileNode) and node.file_path in paths and node.complexity is not None
    ]
    touched.sort(key=lambda n: n.complexity or 0, reverse=True)
    highest = touched[0].complexity if touched else 0
    if not touched:
        details = "No complexity data for changed files"
    else:
        details = f"Max complexity {highest} across {len(touched)} symbols"
    items = [f"{n.name} ({n.file_path}): {n.complexity}" for n in touched[:max_items]]
    return _factor("complexityTouched", weights, score_complexity(highest or 0), details, items)


def _dependents_factor(files: List[DiffFile], graph: KnowledgeGraph, weights: Dict[str, float],
                       max_items: int) -> RiskFactor:
    dependents = find_dependents(graph, {f.path for f in files})
    details = f"{len(dependents)} file{'s' if len(dependents) != 1 else ''} depend on these changes"
    return _factor("dependentImpact", weights, score_dependents(len(dependents)), details,
                   sorted(dependents)[:max_items])


def _bus_factor_factor(files: List[DiffFile], graph: KnowledgeGraph, weights: Dict[str, float]) -> RiskFactor:
    single: List[str] = []
    low: List[str] = []
    for f in files:
        node = graph.nodes.get(f.path)
        if not isinstance(node, FileNode):
            continue
        contributors = len(node.contributors or [])
        if contributors == 1:
            single.append(f.path)
        elif contributors == 2:
            low.append(f.path)

    risky = len(single) + len(low)
    if not files or risky == 0:
        score, details = 0, "No knowledge concentration risk"
    else:
        ratio = risky / len(files)
        if ratio <= 0.2:
            score, details = 15, "Some files have limited contributors"
        elif ratio <= 0.5:
            score, details = 40, "Moderate knowledge concentration"
        else:
            score, details = 70, "High knowledge concentration - consider pair review"
        if single:
            score += 15
    return _factor(
        "busFactorRisk",
        weights,
        min(score, 100),
        f"{len(single)} single-owner, {len(low)} low-contributor files. {details}",
        single[:3] + low[:2],
    )


def is_test_file(path: str) -> bool:
    lowered = path.lower()
    return any(marker in lowered for marker in _TEST_MARKERS) or lowered.startswith(_TEST_DIRS)


def _test_factor(files: List[DiffFile], weights: Dict[str, float], max_items: int) -> RiskFactor:
    tests = [f.path for f in files if is_test_file(f.path)]
    sources = [f.path for f in files if not is_test_file(f.path) and is_source_file(f.path)]
    test_bases = [_TEST_PREFIX.sub("", _TEST_SUFFIX.sub("", t.lower())) for t in tests]

    untested = []
    for source in sources:
        base = _SOURCE_SUFFIX.sub("", source)
        base = re.sub(r"^src/", "", base).lower()
        if not any(base in tb or tb in base for tb in test_bases):
            untested.append(source)

    if not sources:
        score, details = 0, "No source files modified"
    elif not untested:
        score, details = 0, "All source changes have test changes"
    else:
        ratio = len(untested) / len(sources)
        if ratio <= 0.25:
            score, details = 20, "Mostly covered by test changes"
        elif ratio <= 0.5:
            score, details = 40, "Partial test coverage in changes"
        elif ratio <= 0.75:
            score, details = 60, "Limited test coverage in changes"
        else:
            score, details = 80, "No test changes for modified source files"
    return _factor(
        "testCoverage",
        weights,
        score,
        f"{len(tests)} test files, {len(untested)}/{len(sources)} source files without test changes. {details}",
        untested[:max_items],
    )


def _recommendations(factors: Dict[str, RiskFactor]) -> List[str]:
    recs: List[str] = []
    if factors["filesChanged"].score >= 60:
        recs.append("Consider splitting this into smaller, focused commits")
    if factors["linesChanged"].score >= 60:
        recs.append("Large change set - consider incremental commits for easier review")
    if factors["complexityTouched"].score >= 50:
        recs.append("You are touching complex code - extra review recommended")
    if factors["dependentImpact"].score >= 50:
        recs.append("Many files depend on your changes - test downstream functionality")
    if factors["busFactorRisk"].score >= 40:
        recs.append("Some files have limited contributors - consider pair review")
    if factors["testCoverage"].score >= 50:
        recs.append("Consider adding or updating tests for changed files")
    if not recs:
        recs.append("This looks like a safe, focused change. Nice work!")
    return recs


def _summary(overall: int, level: str, factors: Dict[str, RiskFactor]) -> str:
    templates = {
        "low": "Low risk change ({score}/100). Looks safe.",
        "medium": "Moderate risk change ({score}/100). A careful review is recommended.",
        "high": "High-risk change ({score}/100). Review carefully before committing.",
        "critical": "Critical risk change ({score}/100). Split it up or get multiple reviewers.",
    }
    parts = [templates[level].format(score=overall)]
    top = max(factors.values(), key=lambda f: f.score)
    if top.score >= 50:
        parts.append(f"Main concern: {top.name.lower()} - {top.details.lower()}")
    return " ".join(parts)


def empty_risk_score(weights: Optional[Dict[str, float]] = None) -> RiskScore:
    weights = weights or DEFAULT_WEIGHTS
    factors = {key: _factor(key, weights, 0, "No changes to analyze") for key in RISK_FACTORS}
    return RiskScore(
        overall=0,
        level="low",
        factors=factors,
        summary="Nothing to analyze - no staged changes or specified changes found.",
        recommendations=[],
    )


def calculate_risk_score(
    graph: KnowledgeGraph,
    diff: DiffSummary,
    weights: Optional[Dict[str, float]] = None,
    levels: Optional[Dict[str, int]] = None,
    max_items: int = 5,
) -> RiskScore:
    """Score a diff against the current graph.

    ``overall`` is the weighted sum of six 0-100 factor scores, rounded to
    the nearest integer. An empty diff scores zero.

    Raises:
        ConfigError: if ``weights`` do not sum to 1.0.
    """
    weights = dict(weights or DEFAULT_WEIGHTS)
    validate_weights(weights)
    if diff.is_empty:
        return empty_risk_score(weights)

    files = diff.files
    factors = {
        "filesChanged": _files_factor(files, weights),
        "linesChanged": _lines_factor(files, weights),
        "complexityTouched": _complexity_factor(files, graph, weights, max_items),
        "dependentImpact": _dependents_factor(files, graph, weights, max_items),
        "busFactorRisk": _bus_factor_factor(files, graph, weights),
        "testCoverage": _test_factor(files, weights, max_items),
    }
    overall = max(0, min(100, round_half_up(sum(f.score * f.weight for f in factors.values()))))
    level = risk_level(overall, levels)
    return RiskScore(
        overall=overall,
        level=level,
        factors=factors,
        summary=_summary(overall, level, factors),
        recommendations=_recommendations(factors),
    )


def calculate_risk(
    root: Path,
    graph: KnowledgeGraph,
    staged: bool = True,
    branch: Optional[str] = None,
    commit: Optional[str] = None,
    weights: Optional[Dict[str, float]] = None,
    levels: Optional[Dict[str, int]] = None,
    runner: Optional[GitRunner] = None,
    max_items: int = 5,
) -> RiskScore:
    """Score staged changes, a branch diff or a single commit."""
    runner = runner or GitRunner(root)
    if commit:
        diff = get_commit_diff(root, commit, runner)
    elif branch:
        diff = get_branch_diff(root, branch, runner)
    elif staged:
        diff = get_staged_diff(root, runner)
    else:
        diff = DiffSummary()
    logger.debug("Scoring %d changed files", len(diff.files))
    return calculate_risk_score(graph, diff, weights, levels, max_items=max_items)
