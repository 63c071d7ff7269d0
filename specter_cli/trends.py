"""Health trends over snapshot history."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from .snapshots import HealthSnapshot, diff_snapshots, percent_change

PERIODS: Dict[str, timedelta] = {
    "day": timedelta(days=1),
    "week": timedelta(days=7),
    "month": timedelta(days=30),
}

DEFAULT_GRADES = {"A": 90, "B": 80, "C": 70, "D": 60}


@dataclass
class HealthTrend:
    period: str
    direction: str
    change_percent: int
    insights: List[str] = field(default_factory=list)
    snapshots: List[HealthSnapshot] = field(default_factory=list)


@dataclass
class TrendAnalysis:
    current: Optional[HealthSnapshot]
    previous: Optional[HealthSnapshot]
    trends: Dict[str, HealthTrend]
    summary: str


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


def get_grade(score: float, grades: Optional[Dict[str, int]] = None) -> str:
    grades = grades or DEFAULT_GRADES
    for grade in ("A", "B", "C", "D"):
        if score >= grades[grade]:
            return grade
    return "F"


def filter_by_period(
    snapshots: List[HealthSnapshot],
    period: str,
    now: Optional[datetime] = None,
) -> List[HealthSnapshot]:
    cutoff = (now or datetime.now(timezone.utc)) - PERIODS[period]
    return [s for s in snapshots if s.taken_at >= cutoff]


def _insights(older: HealthSnapshot, newer: HealthSnapshot) -> List[str]:
    insights: List[str] = []
    diff = diff_snapshots(older, newer)
    metrics = diff.metric_changes

    health = metrics["healthScore"]
    if health.change != 0:
        direction = "improved" if health.change > 0 else "declined"
        insights.append(
            f"Health score {direction} by {abs(health.change)} points ({health.before} -> {health.after})."
        )

    complexity = metrics["avgComplexity"]
    if abs(complexity.change) >= 0.5:
        direction = "down" if complexity.change < 0 else "up"
        pct = abs(percent_change(complexity.before, complexity.after))
        insights.append(
            f"Average complexity is {direction} {pct}% ({complexity.before:.1f} -> {complexity.after:.1f})."
        )

    files = metrics["fileCount"]
    if files.change != 0:
        verb = "Gained" if files.change > 0 else "Lost"
        insights.append(f"{verb} {_plural(abs(int(files.change)), 'file')}.")

    lines = metrics["totalLines"]
    if abs(lines.change) >= 100:
        verb = "Grew" if lines.change > 0 else "Shrank"
        insights.append(f"{verb} by {abs(int(lines.change)):,} lines of code.")

    hotspots = metrics["hotspotCount"]
    if hotspots.change < 0:
        insights.append(f"Cleaned up {_plural(abs(int(hotspots.change)), 'complexity hotspot')}.")
    elif hotspots.change > 0:
        insights.append(f"Developed {_plural(int(hotspots.change), 'new complexity hotspot')}.")

    very_high = diff.distribution_changes["veryHigh"]
    if very_high.change < 0:
        count = abs(int(very_high.change))
        verb = "were" if count != 1 else "was"
        insights.append(f"{_plural(count, 'very-high-complexity function')} {verb} refactored.")
    elif very_high.change > 0:
        insights.append(f"{_plural(int(very_high.change), 'function')} crossed into very-high complexity territory.")

    return insights


def calculate_trend(
    snapshots: List[HealthSnapshot],
    period: str,
    change_threshold: float = 2,
    now: Optional[datetime] = None,
) -> HealthTrend:
    """Direction of the health score between the oldest and newest snapshot in ``period`` ("all" for everything)."""
    selected = snapshots if period == "all" else filter_by_period(snapshots, period, now)
    ordered = sorted(selected, key=lambda s: s.taken_at)

    if not ordered:
        return HealthTrend(period=period, direction="stable", change_percent=0,
                           insights=["No data available for this period."])
    if len(ordered) == 1:
        return HealthTrend(
            period=period,
            direction="stable",
            change_percent=0,
            insights=["Only one snapshot available - need more data to identify trends."],
            snapshots=ordered,
        )

    oldest, newest = ordered[0], ordered[-1]
    change = newest.metrics.health_score - oldest.metrics.health_score
    if change > change_threshold:
        direction = "improving"
    elif change < -change_threshold:
        direction = "declining"
    else:
        direction = "stable"

    return HealthTrend(
        period=period,
        direction=direction,
        change_percent=percent_change(oldest.metrics.health_score, newest.metrics.health_score),
        insights=_insights(oldest, newest),
        snapshots=ordered,
    )


def _summary(
    current: Optional[HealthSnapshot],
    previous: Optional[HealthSnapshot],
    trends: Dict[str, HealthTrend],
    grades: Optional[Dict[str, int]],
) -> str:
    if current is None:
        return "No health history yet. Run `specter scan` to record the first snapshot."

    score = current.metrics.health_score
    parts = [f"Health is {score}/100 (Grade {get_grade(score, grades)})."]

    if previous is not None:
        diff = score - previous.metrics.health_score
        if diff > 0:
            parts.append(f"Up {diff} points since the last scan.")
        elif diff < 0:
            parts.append(f"Down {abs(diff)} points since the last scan.")
        else:
            parts.append("Unchanged since the last scan.")

    week = trends.get("week")
    if week is not None:
        if week.direction == "improving":
            parts.append(f"Improving this week (+{week.change_percent}%).")
        elif week.direction == "declining":
            parts.append(f"Declining this week ({-abs(week.change_percent)}%).")
        elif len(week.snapshots) >= 2:
            parts.append("Stable this week.")

    overall = trends.get("all")
    if overall is not None and len(overall.snapshots) >= 3:
        if overall.direction == "improving":
            parts.append("Overall trajectory is upward.")
        elif overall.direction == "declining":
            parts.append("Technical debt has been accumulating overall.")

    hotspots = current.metrics.hotspot_count
    if hotspots > 0:
        parts.append(f"{_plural(hotspots, 'complexity hotspot')} could use attention.")
    else:
        parts.append("No major complexity hotspots.")
    return " ".join(parts)


def analyze_trends(
    snapshots: List[HealthSnapshot],
    change_threshold: float = 2,
    grades: Optional[Dict[str, int]] = None,
    now: Optional[datetime] = None,
) -> TrendAnalysis:
    ordered = sorted(snapshots, key=lambda s: s.taken_at, reverse=True)
    current = ordered[0] if ordered else None
    previous = ordered[1] if len(ordered) > 1 else None

    trends: Dict[str, HealthTrend] = {}
    if ordered:
        for period in PERIODS:
            if filter_by_period(ordered, period, now):
                trends[period] = calculate_trend(ordered, period, change_threshold, now)
        trends["all"] = calculate_trend(ordered, "all", change_threshold, now)

    return TrendAnalysis(
        current=current,
        previous=previous,
        trends=trends,
        summary=_summary(current, previous, trends, grades),
    )


def get_time_span(snapshots: List[HealthSnapshot]) -> str:
    """Human-readable span covered by the snapshots."""
    if not snapshots:
        return "no history"
    if len(snapshots) == 1:
        return "1 snapshot"
    ordered = sorted(s.taken_at for s in snapshots)
    days = (ordered[-1] - ordered[0]).days
    if days == 0:
        return f"{len(snapshots)} snapshots today"
    if days == 1:
        return f"{len(snapshots)} snapshots over 1 day"
    if days < 7:
        return f"{len(snapshots)} snapshots over {days} days"
    if days < 30:
        weeks = days // 7
        return f"{len(snapshots)} snapshots over {_plural(weeks, 'week')}"
    months = days // 30
    return f"{len(snapshots)} snapshots over {_plural(months, 'month')}"
