"""Complexity velocity: how fast file complexity is growing between snapshots."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from . import config
from .models import KnowledgeGraph, round_half_up
from .snapshots import HealthSnapshot, SnapshotStore

ESTIMATE_NOTE = (
    "Previous per-file complexity is estimated by scaling current values by the ratio of "
    "snapshot average complexities; snapshots do not record per-file history."
)


@dataclass
class FileVelocity:
    path: str
    current_complexity: int
    previous_complexity: float
    delta: float
    velocity_per_week: float
    trend: str


@dataclass
class VelocityMetrics:
    avg_complexity: float
    total_complexity: int
    hotspot_count: int
    file_count: int


@dataclass
class VelocityResult:
    files: List[FileVelocity]
    overall_velocity: float
    trend: str
    fastest_growing: List[FileVelocity]
    fastest_improving: List[FileVelocity]
    projected_debt_in_30_days: int
    snapshot_count: int
    time_span_days: int
    current_metrics: VelocityMetrics
    estimated: bool = False
    notes: List[str] = field(default_factory=list)


def get_velocity_trend(velocity: float) -> str:
    if velocity <= -5:
        return "improving"
    if velocity <= 2:
        return "stable"
    if velocity <= 10:
        return "degrading"
    return "critical"


def file_complexities(graph: KnowledgeGraph) -> Dict[str, int]:
    return {node.file_path: node.complexity for node in graph.file_nodes() if node.complexity is not None}


def estimate_previous_complexities(
    current: Dict[str, int],
    newest: HealthSnapshot,
    oldest: HealthSnapshot,
) -> Dict[str, float]:
    """Scale current file complexity by the ratio of the two snapshot averages."""
    current_avg = newest.metrics.avg_complexity
    if current_avg == 0:
        return dict(current)
    ratio = oldest.metrics.avg_complexity / current_avg
    return {path: round(value * ratio, 2) for path, value in current.items()}


def analyze_velocity(
    root: Path,
    graph: KnowledgeGraph,
    snapshots: Optional[List[HealthSnapshot]] = None,
) -> VelocityResult:
    """Compare current per-file complexity with estimates for the oldest retained snapshot.

    With fewer than two snapshots there is nothing to compare and every
    velocity is zero. Otherwise the result is flagged ``estimated``.
    """
    if snapshots is None:
        snapshots = SnapshotStore(root).load_all()
    current = file_complexities(graph)

    total = sum(current.values())
    avg = total / len(current) if current else 0
    metrics = VelocityMetrics(
        avg_complexity=round(avg, 2),
        total_complexity=round_half_up(total),
        hotspot_count=sum(1 for value in current.values() if value > config.HOTSPOT_COMPLEXITY),
        file_count=len(current),
    )

    if len(snapshots) < 2:
        return VelocityResult(
            files=[],
            overall_velocity=0,
            trend="stable",
            fastest_growing=[],
            fastest_improving=[],
            projected_debt_in_30_days=total,
            snapshot_count=len(snapshots),
            time_span_days=0,
            current_metrics=metrics,
        )

    ordered = sorted(snapshots, key=lambda s: s.taken_at, reverse=True)
    newest, oldest = ordered[0], ordered[-1]
    days = max(1.0, (newest.taken_at - oldest.taken_at).total_seconds() / 86400)
    weeks = days / 7

    previous = estimate_previous_complexities(current, newest, oldest)
    velocities: List[FileVelocity] = []
    for path, value in current.items():
        before = previous.get(path, value)
        delta = value - before
        per_week = round(delta / weeks, 2)
        velocities.append(
            FileVelocity(
                path=path,
                current_complexity=value,
                previous_complexity=round(before, 2),
                delta=round(delta, 2),
                velocity_per_week=per_week,
                trend=get_velocity_trend(per_week),
            )
        )

    velocities.sort(key=lambda f: f.velocity_per_week, reverse=True)
    growing = [f for f in velocities if f.velocity_per_week > 0][:5]
    improving = sorted((f for f in velocities if f.velocity_per_week < 0), key=lambda f: f.velocity_per_week)[:5]

    overall = round(sum(f.delta for f in velocities) / weeks, 2)
    return VelocityResult(
        files=velocities,
        overall_velocity=overall,
        trend=get_velocity_trend(overall),
        fastest_growing=growing,
        fastest_improving=improving,
        projected_debt_in_30_days=round_half_up(total + overall * 30 / 7),
        snapshot_count=len(snapshots),
        time_span_days=round_half_up(days),
        current_metrics=metrics,
        estimated=True,
        notes=[ESTIMATE_NOTE],
    )
