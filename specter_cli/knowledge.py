"""Per-file knowledge distribution: who holds the history of each file."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from .config import is_source_file
from .git_runner import GitRunner
from .history import FileOwnership, collect_file_ownership, parse_date, read_numstat_log
from .models import round_half_up

RISK_ORDER = {"critical": 0, "high": 1, "medium": 2, "low": 3}
RISK_WEIGHT = {"critical": 2.0, "high": 1.5}


@dataclass
class KnowledgeRisk:
    path: str
    type: str
    bus_factor: int
    primary_owner: str
    ownership_percentage: int
    total_contributors: int
    last_touched_by: str
    days_since_last_change: int
    risk_level: str


@dataclass
class OwnerShare:
    contributor: str
    files_owned: int
    percentage: int


@dataclass
class KnowledgeDistribution:
    overall_bus_factor: float
    critical_areas: List[KnowledgeRisk] = field(default_factory=list)
    ownership_distribution: List[OwnerShare] = field(default_factory=list)
    insights: List[str] = field(default_factory=list)


def calculate_risk_level(bus_factor: int, ownership_percentage: int, days_since_change: int) -> str:
    if bus_factor <= 1 and ownership_percentage >= 80:
        return "critical"
    if bus_factor <= 1 or ownership_percentage >= 70:
        return "high"
    if bus_factor <= 2 or days_since_change > 180:
        return "medium"
    return "low"


def _file_risk(ownership: FileOwnership, now: datetime) -> Optional[KnowledgeRisk]:
    ranked = sorted(ownership.contributors.items(), key=lambda item: item[1].commits, reverse=True)
    if not ranked or ownership.total_commits == 0:
        return None
    owner, stats = ranked[0]
    percentage = round_half_up(stats.commits / ownership.total_commits * 100)
    threshold = ownership.total_commits * 0.2
    bus_factor = sum(1 for _, s in ranked if s.commits >= threshold)
    days = int((now - parse_date(ownership.last_modified)).total_seconds() // 86400)
    latest = max(ranked, key=lambda item: parse_date(item[1].last_commit))[0]
    return KnowledgeRisk(
        path=ownership.file_path,
        type="file",
        bus_factor=max(1, bus_factor),
        primary_owner=owner,
        ownership_percentage=percentage,
        total_contributors=len(ranked),
        last_touched_by=latest,
        days_since_last_change=days,
        risk_level=calculate_risk_level(bus_factor, percentage, days),
    )


def _overall(risks: List[KnowledgeRisk]) -> float:
    if not risks:
        return 0
    weights = [RISK_WEIGHT.get(r.risk_level, 1.0) for r in risks]
    weighted = sum(r.bus_factor * w for r, w in zip(risks, weights))
    return round(weighted / sum(weights), 1)


def _distribution(ownership: Dict[str, FileOwnership]) -> List[OwnerShare]:
    counts: Dict[str, int] = {}
    for entry in ownership.values():
        if not entry.contributors:
            continue
        owner = max(entry.contributors.items(), key=lambda item: item[1].commits)[0]
        counts[owner] = counts.get(owner, 0) + 1
    total = len(ownership)
    shares = [
        OwnerShare(contributor=name, files_owned=count, percentage=round_half_up(count / total * 100))
        for name, count in counts.items()
    ]
    shares.sort(key=lambda s: s.files_owned, reverse=True)
    return shares


def _insights(risks: List[KnowledgeRisk], distribution: List[OwnerShare], critical: List[KnowledgeRisk]) -> List[str]:
    insights: List[str] = []
    single_owner = [r for r in risks if r.bus_factor == 1 and r.ownership_percentage >= 80]
    if single_owner:
        insights.append(
            f"{len(single_owner)} files have a single owner with 80%+ ownership. "
            "If they leave, this knowledge could be lost."
        )
    if distribution and distribution[0].percentage > 50:
        top = distribution[0]
        insights.append(
            f"{top.contributor} owns {top.percentage}% of the codebase. Consider knowledge sharing to reduce risk."
        )
    stale = [r for r in critical if r.days_since_last_change > 180]
    if stale:
        insights.append(
            f"{len(stale)} critical areas haven't been touched in 6+ months. "
            "The original authors may have forgotten the details."
        )
    if not critical:
        insights.append("No critical knowledge concentration detected. Knowledge is well-distributed.")
    return insights


def analyze_knowledge_distribution(
    root: Path,
    file_paths: List[str],
    max_commits: int = 500,
    runner: Optional[GitRunner] = None,
    now: Optional[datetime] = None,
) -> KnowledgeDistribution:
    """Rank files by how concentrated their commit history is."""
    runner = runner or GitRunner(root)
    if not runner.is_repo():
        return KnowledgeDistribution(overall_bus_factor=0, insights=["Not a git repository"])

    now = now or datetime.now(timezone.utc)
    wanted = [path for path in file_paths if is_source_file(path)]
    commits = read_numstat_log(root, max_commits=max_commits, runner=runner)
    ownership = collect_file_ownership(commits, wanted)

    risks = [risk for risk in (_file_risk(entry, now) for entry in ownership.values()) if risk is not None]
    risks.sort(key=lambda r: RISK_ORDER[r.risk_level])
    critical = [r for r in risks if r.risk_level in ("critical", "high")]
    distribution = _distribution(ownership)

    return KnowledgeDistribution(
        overall_bus_factor=_overall(risks),
        critical_areas=critical[:20],
        ownership_distribution=distribution[:10],
        insights=_insights(risks, distribution, critical),
    )
