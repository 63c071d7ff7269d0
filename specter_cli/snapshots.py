"""Health snapshots: immutable, timestamped aggregate metrics stored as JSON files."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from . import config
from .complexity import CATEGORIES, DEFAULT_THRESHOLDS, ComplexityThresholds, get_complexity_category
from .git_runner import GitRunner
from .history import parse_date
from .models import FileNode, KnowledgeGraph, round_half_up

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SnapshotMetrics:
    file_count: int
    total_lines: int
    avg_complexity: float
    max_complexity: int
    hotspot_count: int
    health_score: int


@dataclass(frozen=True)
class HealthSnapshot:
    id: str
    timestamp: str
    metrics: SnapshotMetrics
    distribution: Dict[str, int] = field(default_factory=dict)
    commit_hash: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "timestamp": self.timestamp,
            "metrics": {
                "fileCount": self.metrics.file_count,
                "totalLines": self.metrics.total_lines,
                "avgComplexity": self.metrics.avg_complexity,
                "maxComplexity": self.metrics.max_complexity,
                "hotspotCount": self.metrics.hotspot_count,
                "healthScore": self.metrics.health_score,
            },
            "distribution": dict(self.distribution),
        }
        if self.commit_hash:
            payload["commitHash"] = self.commit_hash
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HealthSnapshot":
        metrics = data["metrics"]
        return cls(
            id=data["id"],
            timestamp=data["timestamp"],
            commit_hash=data.get("commitHash"),
            metrics=SnapshotMetrics(
                file_count=int(metrics["fileCount"]),
                total_lines=int(metrics["totalLines"]),
                avg_complexity=float(metrics["avgComplexity"]),
                max_complexity=int(metrics["maxComplexity"]),
                hotspot_count=int(metrics["hotspotCount"]),
                health_score=int(metrics["healthScore"]),
            ),
            distribution={key: int(data["distribution"].get(key, 0)) for key in CATEGORIES},
        )

    @property
    def taken_at(self) -> datetime:
        return parse_date(self.timestamp)


def health_score(avg_complexity: float, multiplier: float = 5) -> int:
    """100 minus ``multiplier`` points per unit of average complexity, clamped to 0..100."""
    return max(0, min(100, round_half_up(100 - avg_complexity * multiplier)))


def symbol_complexities(graph: KnowledgeGraph) -> List[int]:
    return [
        node.complexity
        for node in graph.nodes.values()
        if not isinstance(node, FileNode) and node.complexity is not None
    ]


def graph_health_score(graph: KnowledgeGraph, multiplier: float = 5) -> int:
    """Health of a graph computed the same way a snapshot would record it."""
    complexities = symbol_complexities(graph)
    return health_score(sum(complexities) / len(complexities) if complexities else 0, multiplier)


def create_snapshot(
    graph: KnowledgeGraph,
    complexity_multiplier: float = 5,
    thresholds: ComplexityThresholds = DEFAULT_THRESHOLDS,
    commit_hash: Optional[str] = None,
    now: Optional[datetime] = None,
) -> HealthSnapshot:
    """Aggregate symbol complexity into a snapshot.

    The commit hash is looked up with ``git rev-parse HEAD`` unless given.
    """
    if commit_hash is None and graph.metadata.root_dir:
        commit_hash = GitRunner(Path(graph.metadata.root_dir)).head_commit()

    complexities = symbol_complexities(graph)
    avg = sum(complexities) / len(complexities) if complexities else 0
    distribution = {category: 0 for category in CATEGORIES}
    for value in complexities:
        distribution[get_complexity_category(value, thresholds)] += 1

    timestamp = (now or datetime.now(timezone.utc)).isoformat()
    return HealthSnapshot(
        id=timestamp,
        timestamp=timestamp,
        commit_hash=commit_hash,
        metrics=SnapshotMetrics(
            file_count=graph.metadata.file_count,
            total_lines=graph.metadata.total_lines,
            avg_complexity=round(avg, 2),
            max_complexity=max(complexities) if complexities else 0,
            hotspot_count=sum(1 for c in complexities if c > config.HOTSPOT_COMPLEXITY),
            health_score=health_score(avg, complexity_multiplier),
        ),
        distribution=distribution,
    )


@dataclass
class MetricChange:
    before: float
    after: float
    change: float


@dataclass
class SnapshotDiff:
    metric_changes: Dict[str, MetricChange]
    distribution_changes: Dict[str, MetricChange]
    is_improving: bool


def diff_snapshots(older: HealthSnapshot, newer: HealthSnapshot) -> SnapshotDiff:
    old_metrics = older.to_dict()["metrics"]
    new_metrics = newer.to_dict()["metrics"]
    metric_changes = {
        key: MetricChange(before=old_metrics[key], after=new_metrics[key], change=new_metrics[key] - old_metrics[key])
        for key in old_metrics
    }
    distribution_changes = {
        key: MetricChange(
            before=older.distribution.get(key, 0),
            after=newer.distribution.get(key, 0),
            change=newer.distribution.get(key, 0) - older.distribution.get(key, 0),
        )
        for key in CATEGORIES
    }
    return SnapshotDiff(
        metric_changes=metric_changes,
        distribution_changes=distribution_changes,
        is_improving=metric_changes["healthScore"].change > 0,
    )


def percent_change(before: float, after: float) -> int:
    """Percentage change rounded half-up to the nearest integer; 100 when growing from zero."""
    if before == 0:
        return 0 if after == 0 else 100
    return round_half_up((after - before) / before * 100)


class SnapshotStore:
    """Append-only snapshot files under ``.specter/snapshots``, capped at ``max_snapshots``."""

    def __init__(self, root: Path, max_snapshots: int = 100) -> None:
        self.root = Path(root)
        self.directory = config.store_dir(self.root) / config.SNAPSHOTS_DIR
        self.max_snapshots = max_snapshots

    @staticmethod
    def filename_for(snapshot: HealthSnapshot) -> str:
        return snapshot.timestamp.replace(":", "-") + ".json"

    def save(self, snapshot: HealthSnapshot) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / self.filename_for(snapshot)
        path.write_text(json.dumps(snapshot.to_dict(), indent=2), encoding="utf-8")
        self.prune()
        return path

    def _files(self) -> List[Path]:
        if not self.directory.exists():
            return []
        return sorted(self.directory.glob("*.json"))

    def prune(self) -> int:
        """Delete the oldest snapshots beyond the cap. Returns how many were removed."""
        snapshots = self.load_all()
        removed = 0
        for snapshot in snapshots[self.max_snapshots:]:
            try:
                (self.directory / self.filename_for(snapshot)).unlink()
                removed += 1
            except OSError as exc:
                logger.debug("Could not prune snapshot %s: %s", snapshot.id, exc)
        return removed

    def load_all(self) -> List[HealthSnapshot]:
        """All readable snapshots, newest first. Unreadable files are skipped."""
        snapshots: List[HealthSnapshot] = []
        for path in self._files():
            try:
                snapshots.append(HealthSnapshot.from_dict(json.loads(path.read_text(encoding="utf-8"))))
            except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as exc:
                logger.debug("Skipping invalid snapshot %s: %s", path.name, exc)
        snapshots.sort(key=lambda s: s.taken_at, reverse=True)
        return snapshots

    def latest(self) -> Optional[HealthSnapshot]:
        snapshots = self.load_all()
        return snapshots[0] if snapshots else None

    def get(self, snapshot_id: str) -> Optional[HealthSnapshot]:
        return next((s for s in self.load_all() if s.id == snapshot_id), None)

    def in_range(self, start: datetime, end: datetime) -> List[HealthSnapshot]:
        return [s for s in self.load_all() if start <= s.taken_at <= end]

    def count(self) -> int:
        return len(self._files())

    def clear(self) -> int:
        removed = 0
        for path in self._files():
            path.unlink()
            removed += 1
        return removed
