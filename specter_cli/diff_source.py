"""Diff file lists from git: staged changes, branch comparisons, single commits."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .git_runner import GitRunner

STATUS_NAMES = {"A": "added", "D": "deleted", "R": "renamed", "M": "modified"}

_BRACE_RENAME = re.compile(r"\{([^{}]*) => ([^{}]*)\}")


@dataclass
class DiffFile:
    path: str
    status: str = "modified"
    additions: int = 0
    deletions: int = 0


@dataclass
class DiffSummary:
    files: List[DiffFile] = field(default_factory=list)

    @property
    def total_additions(self) -> int:
        return sum(f.additions for f in self.files)

    @property
    def total_deletions(self) -> int:
        return sum(f.deletions for f in self.files)

    @property
    def is_empty(self) -> bool:
        return not self.files


def _renamed_target(path: str) -> str:
    if "{" in path and " => " in path:
        return _BRACE_RENAME.sub(lambda m: m.group(2), path).replace("//", "/")
    if " => " in path:
        return path.split(" => ", 1)[1]
    return path


def _count(value: str) -> int:
    return int(value) if value.isdigit() else 0


def parse_numstat(output: str) -> Dict[str, Tuple[int, int]]:
    """Map path -> (additions, deletions). Binary files count as zero."""
    stats: Dict[str, Tuple[int, int]] = {}
    for line in output.splitlines():
        parts = line.split("\t")
        if len(parts) < 3:
            continue
        path = _renamed_target("\t".join(parts[2:]).strip())
        stats[path] = (_count(parts[0]), _count(parts[1]))
    return stats


def parse_name_status(output: str) -> Dict[str, str]:
    """Map path -> status name. Renames are keyed by their new path."""
    statuses: Dict[str, str] = {}
    for line in output.splitlines():
        parts = line.split("\t")
        if len(parts) < 2 or not parts[0]:
            continue
        code = parts[0][0]
        path = parts[-1] if code in ("R", "C") else parts[1]
        statuses[path] = STATUS_NAMES.get(code, "modified")
    return statuses


def _combine(numstat: str, name_status: str) -> DiffSummary:
    stats = parse_numstat(numstat)
    statuses = parse_name_status(name_status)
    files = [
        DiffFile(
            path=path,
            status=statuses.get(path, "modified"),
            additions=stats.get(path, (0, 0))[0],
            deletions=stats.get(path, (0, 0))[1],
        )
        for path in sorted(set(stats) | set(statuses))
    ]
    return DiffSummary(files=files)


def _diff(runner: GitRunner, revision_args: List[str]) -> Optional[DiffSummary]:
    numstat, name_status = runner.run_many([
        ["diff", "--numstat", *revision_args],
        ["diff", "--name-status", *revision_args],
    ])
    if not numstat.ok or not name_status.ok:
        return None
    return _combine(numstat.stdout, name_status.stdout)


def get_staged_diff(root: Path, runner: Optional[GitRunner] = None) -> DiffSummary:
    return _diff(runner or GitRunner(root), ["--staged"]) or DiffSummary()


def get_branch_diff(root: Path, base: str = "main", runner: Optional[GitRunner] = None) -> DiffSummary:
    return _diff(runner or GitRunner(root), [f"{base}...HEAD"]) or DiffSummary()


def get_commit_diff(root: Path, commit: str, runner: Optional[GitRunner] = None) -> DiffSummary:
    """Changes introduced by one commit; root commits fall back to ``diff-tree --root``."""
    runner = runner or GitRunner(root)
    summary = _diff(runner, [f"{commit}^", commit])
    if summary is not None:
        return summary
    numstat, name_status = runner.run_many([
        ["diff-tree", "--numstat", "--root", "-r", "--no-commit-id", commit],
        ["diff-tree", "--name-status", "--root", "-r", "--no-commit-id", commit],
    ])
    if not numstat.ok:
        return DiffSummary()
    return _combine(numstat.stdout, name_status.stdout if name_status.ok else "")
