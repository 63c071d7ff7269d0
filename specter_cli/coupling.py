"""Change coupling: files that keep changing in the same commits as a target file."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Set

from .config import is_source_file
from .git_runner import FIELD_SEP, GitRunner
from .models import KnowledgeGraph

logger = logging.getLogger(__name__)


@dataclass
class CouplingExample:
    hash: str
    message: str
    date: str


@dataclass
class ChangeCoupling:
    file1: str
    file2: str
    coupling_strength: float
    shared_commits: int
    total_commits_file1: int
    total_commits_file2: int
    has_import_relationship: bool
    recent_examples: List[CouplingExample] = field(default_factory=list)

    @property
    def is_hidden(self) -> bool:
        return not self.has_import_relationship


@dataclass
class ChangeCouplingResult:
    target_file: str
    coupled_files: List[ChangeCoupling] = field(default_factory=list)
    insights: List[str] = field(default_factory=list)


def build_import_edge_set(graph: KnowledgeGraph) -> Set[str]:
    """``"source->target"`` strings for every import edge."""
    return {f"{edge.source}->{edge.target}" for edge in graph.edges_of_type("imports")}


def _diff_tree_args(sha: str) -> List[str]:
    return ["diff-tree", "--no-commit-id", "--name-only", "-r", "--root", sha]


def coupling_insights(couplings: List[ChangeCoupling]) -> List[str]:
    if not couplings:
        return ["This file changes independently - no strong coupling detected."]

    insights: List[str] = []
    hidden = [c for c in couplings if not c.has_import_relationship and c.coupling_strength >= 0.5]
    if hidden:
        noun = "dependency" if len(hidden) == 1 else "dependencies"
        insights.append(
            f"Found {len(hidden)} hidden {noun}: {', '.join(c.file2 for c in hidden)} "
            "changes with this file but has no import relationship."
        )

    strong = [c for c in couplings if c.coupling_strength >= 0.7]
    for c in strong[:2]:
        pct = round(c.coupling_strength * 100)
        tail = (
            "They have a direct dependency."
            if c.has_import_relationship
            else "Consider if these should be merged or if there's a missing abstraction."
        )
        insights.append(f"{c.file2} changes together {pct}% of the time ({c.shared_commits} shared commits). {tail}")

    if len(couplings) >= 5:
        insights.append(
            f"This file is part of a change cluster with {len(couplings)} files. "
            "Changes here tend to ripple. Consider refactoring to reduce coupling."
        )
    return insights


def analyze_change_coupling(
    root: Path,
    target_file: str,
    max_commits: int = 200,
    min_strength: float = 0.3,
    import_edges: Optional[Set[str]] = None,
    batch_size: int = 10,
    runner: Optional[GitRunner] = None,
) -> ChangeCouplingResult:
    """Find source files that change together with ``target_file``.

    Walks the last ``max_commits`` commits touching the target, fetches each
    commit's changed files (one git call per commit, in concurrent batches)
    and keeps files whose co-change ratio reaches ``min_strength``. A commit
    whose file list cannot be read is skipped.
    """
    runner = runner or GitRunner(root)
    import_edges = import_edges or set()

    if not runner.is_repo():
        return ChangeCouplingResult(target_file=target_file, insights=["Not a git repository"])

    fmt = FIELD_SEP.join(["%H", "%aI", "%s"])
    log = runner.run(["log", f"-n{max_commits}", f"--format={fmt}", "--", target_file])
    commits = [line.split(FIELD_SEP) for line in log.lines if line.count(FIELD_SEP) >= 2]
    if not commits:
        return ChangeCouplingResult(target_file=target_file, insights=["No git history for this file"])

    results = runner.run_many([_diff_tree_args(sha) for sha, _, _ in commits], batch_size=batch_size)

    counts: Dict[str, int] = {}
    examples: Dict[str, List[CouplingExample]] = {}
    for (sha, date, subject), result in zip(commits, results):
        if not result.ok:
            logger.debug("Skipping commit %s in coupling analysis", sha[:7])
            continue
        for path in set(result.lines):
            if path == target_file or not is_source_file(path):
                continue
            counts[path] = counts.get(path, 0) + 1
            bucket = examples.setdefault(path, [])
            if len(bucket) < 3:
                bucket.append(CouplingExample(hash=sha[:7], message=subject[:60], date=date))

    total_target = len(commits)
    candidates = sorted(
        (path for path, count in counts.items() if count / total_target >= min_strength),
        key=lambda p: (-counts[p], p),
    )
    totals = runner.run_many([["rev-list", "--count", "HEAD", "--", path] for path in candidates], batch_size=batch_size)

    coupled: List[ChangeCoupling] = []
    for path, total in zip(candidates, totals):
        shared = counts[path]
        try:
            total_other = int(total.stdout.strip()) if total.ok else shared
        except ValueError:
            total_other = shared
        coupled.append(
            ChangeCoupling(
                file1=target_file,
                file2=path,
                coupling_strength=round(shared / total_target, 2),
                shared_commits=shared,
                total_commits_file1=total_target,
                total_commits_file2=total_other,
                has_import_relationship=(
                    f"{target_file}->{path}" in import_edges or f"{path}->{target_file}" in import_edges
                ),
                recent_examples=examples.get(path, []),
            )
        )

    coupled.sort(key=lambda c: c.coupling_strength, reverse=True)
    return ChangeCouplingResult(target_file=target_file, coupled_files=coupled, insights=coupling_insights(coupled))
