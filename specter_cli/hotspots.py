"""Hotspot detection: files that are both complex and frequently changed."""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Optional

from .config import is_source_file
from .git_runner import FIELD_SEP, RECORD_SEP, GitRunner
from .history import parse_date
from .models import KnowledgeGraph, round_half_up

logger = logging.getLogger(__name__)

QUADRANT_SPLIT = 50
DEBT_MULTIPLIER = {"critical": 2.0, "high": 1.5, "medium": 1.0, "low": 0.5}

_SINCE_PATTERN = re.compile(r"(\d+)\s*(month|week|day|year)s?\s+ago", re.IGNORECASE)
_UNIT_DAYS = {"day": 1, "week": 7, "month": 30, "year": 365}


@dataclass
class FileChurn:
    commit_count: int = 0
    last_modified: Optional[str] = None
    contributors: List[str] = field(default_factory=list)


@dataclass
class Hotspot:
    file: str
    score: int
    complexity_percentile: int
    churn_percentile: int
    complexity: int
    churn: int
    churn_rate: float
    priority: str
    last_modified: Optional[str]
    top_contributors: List[str] = field(default_factory=list)


@dataclass
class HotspotQuadrants:
    hotspots: List[str] = field(default_factory=list)
    simple_churning: List[str] = field(default_factory=list)
    complex_stable: List[str] = field(default_factory=list)
    healthy: List[str] = field(default_factory=list)


@dataclass
class HotspotSummary:
    total_files: int = 0
    critical_count: int = 0
    high_count: int = 0
    total_debt_hours: int = 0


@dataclass
class TimeRange:
    since: str
    until: str
    weeks: int


@dataclass
class HotspotsResult:
    hotspots: List[Hotspot]
    summary: HotspotSummary
    quadrants: HotspotQuadrants
    time_range: TimeRange


def parse_since(since: str, now: Optional[datetime] = None) -> datetime:
    """Turn "3 months ago" style windows into an absolute date; unknown text means 3 months."""
    now = now or datetime.now(timezone.utc)
    match = _SINCE_PATTERN.search(since)
    if match is None:
        return now - timedelta(days=90)
    amount = int(match.group(1))
    return now - timedelta(days=amount * _UNIT_DAYS[match.group(2).lower()])


def percentile_rank(value: float, values: List[float]) -> int:
    """Share of ``values`` at or below ``value``, as a 0-100 integer."""
    if not values:
        return 0
    below = sum(1 for v in values if v <= value)
    return round_half_up(below / len(values) * 100)


def hotspot_priority(score: int) -> str:
    if score >= 75:
        return "critical"
    if score >= 50:
        return "high"
    if score >= 25:
        return "medium"
    return "low"


def read_churn(
    root: Path,
    since: datetime,
    runner: Optional[GitRunner] = None,
) -> Dict[str, FileChurn]:
    """Commit counts per source file since ``since`` from a single ``git log`` call."""
    fmt = RECORD_SEP + FIELD_SEP.join(["%H", "%an", "%aI"])
    result = (runner or GitRunner(root)).run(
        ["log", f"--since={since.replace(microsecond=0).isoformat()}", "--name-only", f"--format={fmt}"]
    )
    if not result.ok:
        logger.debug("Churn log failed: %s", result.stderr.strip())
        return {}
    return parse_churn_log(result.stdout)


def parse_churn_log(output: str) -> Dict[str, FileChurn]:
    churn: Dict[str, FileChurn] = {}
    for chunk in output.split(RECORD_SEP):
        lines = [line.strip() for line in chunk.splitlines() if line.strip()]
        if not lines:
            continue
        header = lines[0].split(FIELD_SEP)
        if len(header) < 3:
            continue
        _sha, author, date = header[:3]
        for path in set(lines[1:]):
            if not is_source_file(path):
                continue
            entry = churn.setdefault(path, FileChurn())
            entry.commit_count += 1
            if entry.last_modified is None or parse_date(date) > parse_date(entry.last_modified):
                entry.last_modified = date
            if author not in entry.contributors:
                entry.contributors.append(author)
    return churn


def _quadrants(hotspots: List[Hotspot]) -> HotspotQuadrants:
    quadrants = HotspotQuadrants()
    for h in hotspots:
        complex_ = h.complexity_percentile >= QUADRANT_SPLIT
        churning = h.churn_percentile >= QUADRANT_SPLIT
        if complex_ and churning:
            quadrants.hotspots.append(h.file)
        elif churning:
            quadrants.simple_churning.append(h.file)
        elif complex_:
            quadrants.complex_stable.append(h.file)
        else:
            quadrants.healthy.append(h.file)
    return quadrants


def analyze_hotspots(
    root: Path,
    graph: KnowledgeGraph,
    since: str = "3 months ago",
    top: int = 20,
    runner: Optional[GitRunner] = None,
    now: Optional[datetime] = None,
) -> HotspotsResult:
    """Rank files by the geometric mean of their complexity and churn percentiles.

    Both axes are percentile-ranked over the current file population, so the
    score is relative to this codebase. Churned paths missing from the graph
    (deleted or unscanned files) are ignored. Files with neither churn nor
    complexity are left out. Quadrants are computed over every ranked file, the list and
    summary over the top ``top`` only.
    """
    now = now or datetime.now(timezone.utc)
    since_date = parse_since(since, now)
    weeks = max(1, math.ceil((now - since_date).days / 7))

    churn = read_churn(root, since_date, runner)
    complexity = {node.file_path: node.complexity or 0 for node in graph.file_nodes()}
    files = sorted(complexity)

    complexity_values = [complexity.get(f, 0) for f in files]
    churn_values = [churn[f].commit_count if f in churn else 0 for f in files]
    logger.debug("Ignoring %d churned paths outside the graph", len(set(churn) - set(complexity)))

    hotspots: List[Hotspot] = []
    for path, file_complexity, file_churn in zip(files, complexity_values, churn_values):
        if file_churn == 0 and file_complexity == 0:
            continue
        pc = percentile_rank(file_complexity, complexity_values)
        pch = percentile_rank(file_churn, churn_values)
        score = round_half_up(math.sqrt(pc * pch))
        entry = churn.get(path, FileChurn())
        hotspots.append(
            Hotspot(
                file=path,
                score=score,
                complexity_percentile=pc,
                churn_percentile=pch,
                complexity=file_complexity,
                churn=file_churn,
                churn_rate=round(file_churn / weeks, 1),
                priority=hotspot_priority(score),
                last_modified=entry.last_modified,
                top_contributors=entry.contributors[:3],
            )
        )

    hotspots.sort(key=lambda h: h.score, reverse=True)
    quadrants = _quadrants(hotspots)
    ranked = hotspots[:top]

    summary = HotspotSummary(
        total_files=len(files),
        critical_count=sum(1 for h in ranked if h.priority == "critical"),
        high_count=sum(1 for h in ranked if h.priority == "high"),
        total_debt_hours=sum(
            round_half_up(h.complexity_percentile / 10 * DEBT_MULTIPLIER[h.priority]) for h in ranked
        ),
    )
    return HotspotsResult(
        hotspots=ranked,
        summary=summary,
        quadrants=quadrants,
        time_range=TimeRange(since=since_date.isoformat(), until=now.isoformat(), weeks=weeks),
    )
