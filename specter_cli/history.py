"""Version-control history mining: per-file history, repo stats, ownership."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

from .git_runner import FIELD_SEP, RECORD_SEP, GitRunner

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


@dataclass
class ContributorStats:
    name: str
    email: str
    commits: int
    last_commit: str


@dataclass
class CommitSummary:
    hash: str
    message: str
    author: str
    date: str


@dataclass
class GitFileHistory:
    file_path: str
    last_modified: str
    commit_count: int
    contributor_count: int
    contributors: List[ContributorStats] = field(default_factory=list)
    recent_commits: List[CommitSummary] = field(default_factory=list)


@dataclass
class RepoStats:
    total_commits: int = 0
    total_contributors: int = 0
    oldest_commit: Optional[str] = None
    newest_commit: Optional[str] = None


@dataclass
class GitAnalysisResult:
    is_git_repo: bool
    file_histories: Dict[str, GitFileHistory] = field(default_factory=dict)
    repo_stats: RepoStats = field(default_factory=RepoStats)


@dataclass
class FileChange:
    path: str
    added: int = 0
    removed: int = 0


@dataclass
class CommitRecord:
    hash: str
    author: str
    date: str
    files: List[FileChange] = field(default_factory=list)


@dataclass
class ContributorShare:
    commits: int = 0
    lines_added: int = 0
    lines_removed: int = 0
    last_commit: Optional[str] = None

    @property
    def weighted(self) -> float:
        """Commits plus one point per ten changed lines."""
        return self.commits + (self.lines_added + self.lines_removed) / 10

    def record(self, date: str, added: int, removed: int) -> None:
        self.commits += 1
        self.lines_added += added
        self.lines_removed += removed
        if self.last_commit is None or parse_date(date) > parse_date(self.last_commit):
            self.last_commit = date


@dataclass
class FileOwnership:
    file_path: str
    contributors: Dict[str, ContributorShare] = field(default_factory=dict)
    total_commits: int = 0
    last_modified: Optional[str] = None


def parse_date(value: Optional[str]) -> datetime:
    """Parse an ISO-8601 git date; unknown values sort as the epoch."""
    if not value or not isinstance(value, str):
        return datetime.fromtimestamp(0, tz=timezone.utc)
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return datetime.fromtimestamp(0, tz=timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _to_int(value: str) -> int:
    # Binary files report "-" in numstat output.
    try:
        return int(value)
    except ValueError:
        return 0


def is_git_repo(root: Path, runner: Optional[GitRunner] = None) -> bool:
    return (runner or GitRunner(root)).is_repo()


def _file_log_args(file_path: str, max_commits: int) -> List[str]:
    fmt = FIELD_SEP.join(["%H", "%an", "%ae", "%aI", "%s"])
    return ["log", f"-n{max_commits}", f"--format={fmt}", "--", file_path]


def _parse_file_log(file_path: str, output: str) -> Optional[GitFileHistory]:
    commits = []
    for line in output.splitlines():
        parts = line.split(FIELD_SEP)
        if len(parts) < 5:
            continue
        commits.append(parts)
    if not commits:
        return None

    by_email: Dict[str, ContributorStats] = {}
    for sha, name, email, date, _subject in commits:
        existing = by_email.get(email)
        if existing is None:
            by_email[email] = ContributorStats(name=name, email=email, commits=1, last_commit=date)
            continue
        existing.commits += 1
        if parse_date(date) > parse_date(existing.last_commit):
            existing.last_commit = date

    contributors = sorted(by_email.values(), key=lambda c: c.commits, reverse=True)
    recent = [
        CommitSummary(hash=sha[:7], message=subject[:80], author=name, date=date)
        for sha, name, _email, date, subject in commits[:10]
    ]
    return GitFileHistory(
        file_path=file_path,
        last_modified=commits[0][3],
        commit_count=len(commits),
        contributor_count=len(contributors),
        contributors=contributors,
        recent_commits=recent,
    )


def analyze_file_history(
    root: Path,
    file_path: str,
    max_commits: int = 50,
    runner: Optional[GitRunner] = None,
) -> Optional[GitFileHistory]:
    """Summarize the most recent ``max_commits`` commits touching one file.

    Returns None for untracked files or when git is unavailable.
    """
    result = (runner or GitRunner(root)).run(_file_log_args(file_path, max_commits))
    if not result.ok:
        return None
    return _parse_file_log(file_path, result.stdout)


def get_repo_stats(root: Path, runner: Optional[GitRunner] = None) -> RepoStats:
    runner = runner or GitRunner(root)
    count, shortlog, oldest, newest = runner.run_many([
        ["rev-list", "--count", "HEAD"],
        ["shortlog", "-sn", "--all"],
        ["log", "--max-parents=0", "--format=%aI", "HEAD"],
        ["log", "-1", "--format=%aI"],
    ])
    if not count.ok:
        return RepoStats()

    try:
        total_commits = int(count.stdout.strip())
    except ValueError:
        total_commits = 0

    root_dates = oldest.lines
    oldest_commit = min(root_dates, key=parse_date) if root_dates else None
    return RepoStats(
        total_commits=total_commits,
        total_contributors=len(shortlog.lines),
        oldest_commit=oldest_commit,
        newest_commit=newest.stdout.strip() or None,
    )


def analyze_git_history(
    root: Path,
    file_paths: List[str],
    on_progress: Optional[ProgressCallback] = None,
    batch_size: int = 10,
    max_commits: int = 50,
    runner: Optional[GitRunner] = None,
) -> GitAnalysisResult:
    """Collect per-file histories in fixed-size concurrent batches."""
    runner = runner or GitRunner(root)
    if not runner.is_repo():
        return GitAnalysisResult(is_git_repo=False)

    repo_stats = get_repo_stats(root, runner)
    histories: Dict[str, GitFileHistory] = {}
    total = len(file_paths)
    for start in range(0, total, batch_size):
        batch = file_paths[start:start + batch_size]
        results = runner.run_many([_file_log_args(path, max_commits) for path in batch])
        for path, result in zip(batch, results):
            if not result.ok:
                continue
            history = _parse_file_log(path, result.stdout)
            if history is not None:
                histories[path] = history
        if on_progress is not None:
            on_progress(min(start + batch_size, total), total)

    return GitAnalysisResult(is_git_repo=True, file_histories=histories, repo_stats=repo_stats)


def identify_hot_files(file_histories: Dict[str, GitFileHistory], threshold: int = 10) -> List[str]:
    """Files with at least ``threshold`` commits, busiest first."""
    hot = [(path, h) for path, h in file_histories.items() if h.commit_count >= threshold]
    hot.sort(key=lambda item: item[1].commit_count, reverse=True)
    return [path for path, _ in hot]


def calculate_churn_score(history: GitFileHistory, now: Optional[datetime] = None) -> float:
    """Blend commit volume, contributor count and recency into a 0-1 score."""
    now = now or datetime.now(timezone.utc)
    commit_factor = min(history.commit_count / 50, 1) * 0.4
    contributor_factor = min(history.contributor_count / 5, 1) * 0.3
    days_since = (now - parse_date(history.last_modified)).total_seconds() / 86400
    recency_factor = max(0.0, 1 - days_since / 180) * 0.3
    return commit_factor + contributor_factor + recency_factor


def read_numstat_log(
    root: Path,
    max_commits: int = 500,
    since: Optional[str] = None,
    runner: Optional[GitRunner] = None,
) -> List[CommitRecord]:
    """Parse ``git log --numstat`` into commit records, newest first."""
    fmt = RECORD_SEP + FIELD_SEP.join(["%H", "%an", "%aI"])
    args = ["log", "--numstat", "--no-renames", f"--format={fmt}", f"-n{max_commits}"]
    if since:
        args.append(f"--since={since}")
    result = (runner or GitRunner(root)).run(args)
    if not result.ok:
        return []
    return parse_numstat_log(result.stdout)


def parse_numstat_log(output: str) -> List[CommitRecord]:
    records: List[CommitRecord] = []
    for chunk in output.split(RECORD_SEP):
        lines = [line for line in chunk.splitlines() if line.strip()]
        if not lines:
            continue
        header = lines[0].split(FIELD_SEP)
        if len(header) < 3:
            continue
        record = CommitRecord(hash=header[0], author=header[1], date=header[2])
        for line in lines[1:]:
            parts = line.split("\t")
            if len(parts) < 3:
                continue
            record.files.append(FileChange(path=parts[2], added=_to_int(parts[0]), removed=_to_int(parts[1])))
        records.append(record)
    return records


def collect_file_ownership(
    commits: Iterable[CommitRecord],
    file_paths: Optional[Iterable[str]] = None,
) -> Dict[str, FileOwnership]:
    """Aggregate contributor shares per file from commit records."""
    wanted = set(file_paths) if file_paths is not None else None
    ownership: Dict[str, FileOwnership] = {}
    for commit in commits:
        for change in commit.files:
            if wanted is not None and change.path not in wanted:
                continue
            entry = ownership.setdefault(change.path, FileOwnership(file_path=change.path))
            entry.total_commits += 1
            if entry.last_modified is None or parse_date(commit.date) > parse_date(entry.last_modified):
                entry.last_modified = commit.date
            share = entry.contributors.setdefault(commit.author, ContributorShare())
            share.record(commit.date, change.added, change.removed)
    return ownership
