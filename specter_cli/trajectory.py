"""Health trajectory: least-squares trend over snapshots, projected forward."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from .models import KnowledgeGraph, round_half_up
from .snapshots import HealthSnapshot, SnapshotStore, graph_health_score

MAX_RATE = 50
HORIZONS: Dict[str, int] = {"oneWeek": 1, "oneMonth": 4, "threeMonths": 12}
SCENARIOS = ("best", "likely", "worst")

# Projections used when there is no snapshot history at all.
_NO_HISTORY_HORIZONS = {"oneWeek": (7, 20), "oneMonth": (30, 10), "threeMonths": (90, 10)}


@dataclass
class Regression:
    slope: float
    intercept: float
    r2: float


@dataclass
class ProjectedState:
    date: str
    projected_health: int
    confidence: int
    scenario: str


@dataclass
class Projection:
    likely: ProjectedState
    best: ProjectedState
    worst: ProjectedState


@dataclass
class TrajectoryResult:
    current_health: int
    trend: str
    rate_of_change: float
    projections: Dict[str, Projection]
    risk_factors: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    snapshot_count: int = 0
    time_span_days: int = 0
    health_history: List[int] = field(default_factory=list)


def linear_regression(points: Sequence[Tuple[float, float]]) -> Regression:
    """Ordinary least squares fit of ``y = slope * x + intercept``."""
    n = len(points)
    if n == 0:
        return Regression(slope=0, intercept=0, r2=0)
    if n == 1:
        return Regression(slope=0, intercept=points[0][1], r2=1)

    mean_x = sum(x for x, _ in points) / n
    mean_y = sum(y for _, y in points) / n
    numerator = sum((x - mean_x) * (y - mean_y) for x, y in points)
    denominator = sum((x - mean_x) ** 2 for x, _ in points)
    slope = numerator / denominator if denominator else 0
    intercept = mean_y - slope * mean_x

    ss_res = sum((y - (slope * x + intercept)) ** 2 for x, y in points)
    ss_tot = sum((y - mean_y) ** 2 for _, y in points)
    r2 = 1 - ss_res / ss_tot if ss_tot else 1
    return Regression(slope=slope, intercept=intercept, r2=r2)


def get_trend(rate_of_change: float) -> str:
    if rate_of_change >= 2:
        return "improving"
    if rate_of_change >= -1:
        return "stable"
    if rate_of_change >= -5:
        return "declining"
    return "critical"


def clamp_health(score: float) -> int:
    return max(0, min(100, round_half_up(score)))


def calculate_confidence(weeks_ahead: int, snapshot_count: int, r2: float, time_span_days: int) -> int:
    """Start at 90 and lose points for thin data, short spans, poor fit and distance."""
    confidence = 90.0
    if snapshot_count < 5:
        confidence -= (5 - snapshot_count) * 10
    if time_span_days < 14:
        confidence -= (14 - time_span_days) * 2
    if r2 < 0.7:
        confidence -= (0.7 - r2) * 30
    confidence -= weeks_ahead * 5
    return max(10, min(100, round_half_up(confidence)))


def project_health(
    current_health: float,
    rate_of_change: float,
    weeks_ahead: int,
    confidence: int,
    scenario: str,
    now: datetime,
) -> ProjectedState:
    projected = current_health + rate_of_change * weeks_ahead
    variance = abs(rate_of_change) * 0.5 * weeks_ahead
    if scenario == "best":
        projected += variance
    elif scenario == "worst":
        projected -= variance
    return ProjectedState(
        date=(now + timedelta(weeks=weeks_ahead)).isoformat(),
        projected_health=clamp_health(projected),
        confidence=confidence,
        scenario=scenario,
    )


def identify_risk_factors(current_health: int, rate_of_change: float, snapshots: List[HealthSnapshot]) -> List[str]:
    """Risk factors from the current state. ``snapshots`` must be sorted newest first."""
    risks: List[str] = []
    if current_health < 50:
        risks.append("Health score below 50 indicates significant technical debt")
    elif current_health < 70:
        risks.append("Health score below 70 suggests accumulating issues")

    if rate_of_change < -5:
        risks.append("Rapid decline in health score (-5+ points/week)")
    elif rate_of_change < -2:
        risks.append("Health score declining steadily")

    if len(snapshots) >= 2:
        newest, oldest = snapshots[0].metrics, snapshots[-1].metrics
        if newest.hotspot_count > oldest.hotspot_count:
            risks.append(f"Complexity hotspots increased by {newest.hotspot_count - oldest.hotspot_count}")
        if newest.total_lines > oldest.total_lines and newest.avg_complexity > oldest.avg_complexity:
            risks.append("Code growth accompanied by complexity increase")

    if snapshots:
        newest = snapshots[0].metrics
        if newest.avg_complexity > 10:
            risks.append("Average complexity above sustainable threshold")
        if newest.hotspot_count > 5:
            risks.append(f"{newest.hotspot_count} active complexity hotspots")

    if len(snapshots) < 3:
        risks.append("Limited historical data for accurate projections")
    return risks


_TREND_RECOMMENDATIONS = {
    "critical": ["Schedule immediate refactoring sprint", "Pause new features to address tech debt"],
    "declining": ["Allocate 20% of sprint time to tech debt", "Review and address largest complexity hotspots"],
    "stable": ["Maintain current practices", "Consider proactive refactoring of hotspots"],
    "improving": ["Keep up the good work!", "Document successful patterns for team"],
}


def generate_recommendations(
    trend: str,
    current_health: int,
    risk_factors: List[str],
    snapshots: List[HealthSnapshot],
) -> List[str]:
    """At most five distinct recommendations, trend-based ones first."""
    recommendations = list(_TREND_RECOMMENDATIONS[trend])
    if current_health < 50:
        recommendations.append("Run `specter hotspots` to identify critical areas")
        recommendations.append("Consider automated complexity checks in CI")
    if any("hotspots increased" in risk for risk in risk_factors):
        recommendations.append("Run `specter hotspots` to find the files driving the increase")
    if any("Limited historical data" in risk for risk in risk_factors):
        recommendations.append("Run `specter scan` regularly to build trend data")
    if snapshots and snapshots[0].metrics.hotspot_count > 0:
        count = snapshots[0].metrics.hotspot_count
        recommendations.append(f"Address {count} hotspot{'s' if count != 1 else ''} with complexity > 15")

    unique = list(dict.fromkeys(recommendations))
    return unique[:5]


def _no_history(current_health: int, now: datetime) -> TrajectoryResult:
    projections = {}
    for horizon, (days, confidence) in _NO_HISTORY_HORIZONS.items():
        state = ProjectedState(
            date=(now + timedelta(days=days)).isoformat(),
            projected_health=current_health,
            confidence=confidence,
            scenario="likely",
        )
        projections[horizon] = Projection(likely=state, best=state, worst=state)
    return TrajectoryResult(
        current_health=current_health,
        trend="stable",
        rate_of_change=0,
        projections=projections,
        risk_factors=["No historical data available"],
        recommendations=[
            "Run `specter scan` periodically to build trend data",
            "Schedule weekly scans to track health trajectory",
        ],
        snapshot_count=0,
        time_span_days=0,
        health_history=[current_health],
    )


def project_trajectory(
    root: Path,
    graph: KnowledgeGraph,
    snapshots: Optional[List[HealthSnapshot]] = None,
    complexity_multiplier: float = 5,
    now: Optional[datetime] = None,
) -> TrajectoryResult:
    """Fit health score against weeks since the first snapshot and project it forward.

    The slope is clamped to +/-50 points per week. Each horizon gets a likely
    projection plus best and worst variants that add or subtract
    ``|slope| * 0.5 * weeks``.
    """
    now = now or datetime.now(timezone.utc)
    if snapshots is None:
        snapshots = SnapshotStore(root).load_all()
    if not snapshots:
        return _no_history(graph_health_score(graph, complexity_multiplier), now)

    newest_first = sorted(snapshots, key=lambda s: s.taken_at, reverse=True)
    ordered = list(reversed(newest_first))
    current_health = newest_first[0].metrics.health_score

    start = ordered[0].taken_at
    span_days = (ordered[-1].taken_at - start).total_seconds() / 86400
    time_span_days = max(1, int(span_days))

    points = [((s.taken_at - start).total_seconds() / (7 * 86400), s.metrics.health_score) for s in ordered]
    fit = linear_regression(points)
    rate = max(-MAX_RATE, min(MAX_RATE, fit.slope))
    trend = get_trend(rate)

    history = [s.metrics.health_score for s in ordered[-10:]]
    if abs(current_health - history[-1]) > 1:
        history.append(current_health)

    projections: Dict[str, Projection] = {}
    for horizon, weeks in HORIZONS.items():
        confidence = calculate_confidence(weeks, len(snapshots), fit.r2, time_span_days)
        states = {
            scenario: project_health(current_health, rate, weeks, confidence, scenario, now)
            for scenario in SCENARIOS
        }
        projections[horizon] = Projection(**states)

    risk_factors = identify_risk_factors(current_health, rate, newest_first)
    return TrajectoryResult(
        current_health=current_health,
        trend=trend,
        rate_of_change=round(rate, 2),
        projections=projections,
        risk_factors=risk_factors,
        recommendations=generate_recommendations(trend, current_health, risk_factors, newest_first),
        snapshot_count=len(snapshots),
        time_span_days=time_span_days,
        health_history=history,
    )
