"""Tests for health trajectory projection and complexity velocity."""

from datetime import datetime, timezone
from pathlib import Path

import pytest

from specter_cli.trajectory import (
    calculate_confidence,
    get_trend,
    linear_regression,
    project_trajectory,
)
from specter_cli.velocity import ESTIMATE_NOTE, analyze_velocity, get_velocity_trend

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestRegression:
    """Tests for linear_regression."""

    def test_empty_and_single(self):
        """Degenerate inputs give a flat line."""
        empty = linear_regression([])
        assert (empty.slope, empty.intercept, empty.r2) == (0, 0, 0)
        single = linear_regression([(0, 5)])
        assert (single.slope, single.intercept, single.r2) == (0, 5, 1)

    def test_perfect_fit(self):
        """Collinear points fit exactly."""
        fit = linear_regression([(0, 1), (1, 3), (2, 5)])
        assert fit.slope == pytest.approx(2)
        assert fit.intercept == pytest.approx(1)
        assert fit.r2 == pytest.approx(1)

    def test_vertical_points(self):
        """Identical x values give a zero slope through the mean."""
        fit = linear_regression([(1, 2), (1, 4)])
        assert fit.slope == 0
        assert fit.intercept == 3


class TestProjectionHelpers:
    """Tests for trend bands and confidence."""

    @pytest.mark.parametrize(
        "rate,trend",
        [(2, "improving"), (1.9, "stable"), (-1, "stable"), (-1.1, "declining"), (-5, "declining"), (-5.1, "critical")],
    )
    def test_get_trend(self, rate, trend):
        assert get_trend(rate) == trend

    def test_confidence(self):
        """Confidence drops with thin data and distance, floored at 10."""
        assert calculate_confidence(1, 10, 0.9, 30) == 85
        assert calculate_confidence(1, 3, 1.0, 14) == 65
        assert calculate_confidence(12, 1, 0, 0) == 10


class TestProjectTrajectory:
    """Tests for project_trajectory."""

    def test_improving(self, sample_graph, snapshot_factory):
        """A steady climb projects upward and clamps at 100."""
        snapshots = [snapshot_factory(d, h, now=NOW) for d, h in ((14, 60), (7, 70), (0, 80))]
        result = project_trajectory(Path("."), sample_graph, snapshots=snapshots, now=NOW)

        assert result.current_health == 80
        assert result.trend == "improving"
        assert result.rate_of_change == 10
        assert result.time_span_days == 14
        assert result.health_history == [60, 70, 80]

        week = result.projections["oneWeek"]
        assert (week.worst.projected_health, week.likely.projected_health, week.best.projected_health) == (85, 90, 95)
        assert week.likely.confidence == 65
        assert result.projections["oneMonth"].likely.projected_health == 100
        assert result.projections["threeMonths"].likely.confidence == 10

        assert result.risk_factors == []
        assert result.recommendations == ["Keep up the good work!", "Document successful patterns for team"]

    def test_critical_decline(self, sample_graph, snapshot_factory):
        """A steep fall is critical and flags the low score."""
        snapshots = [snapshot_factory(d, h, now=NOW) for d, h in ((14, 100), (7, 70), (0, 40))]
        result = project_trajectory(Path("."), sample_graph, snapshots=snapshots, now=NOW)

        assert result.trend == "critical"
        assert result.projections["oneWeek"].likely.projected_health == 10
        assert "Health score below 50 indicates significant technical debt" in result.risk_factors
        assert "Rapid decline in health score (-5+ points/week)" in result.risk_factors
        assert result.recommendations[:2] == ["Schedule immediate refactoring sprint", "Pause new features to address tech debt"]
        assert len(result.recommendations) <= 5

    def test_rate_is_clamped(self, sample_graph, snapshot_factory):
        """The weekly rate never exceeds 50 points."""
        snapshots = [snapshot_factory(1, 0, now=NOW), snapshot_factory(0, 100, now=NOW)]
        result = project_trajectory(Path("."), sample_graph, snapshots=snapshots, now=NOW)
        assert result.rate_of_change == 50

    def test_hotspot_growth_compares_newest_to_oldest(self, sample_graph, snapshot_factory):
        """Risk factors read the newest snapshot regardless of input order."""
        snapshots = [
            snapshot_factory(0, 75, hotspots=5, now=NOW),
            snapshot_factory(14, 75, hotspots=2, now=NOW),
            snapshot_factory(7, 75, hotspots=3, now=NOW),
        ]
        result = project_trajectory(Path("."), sample_graph, snapshots=snapshots, now=NOW)
        assert "Complexity hotspots increased by 3" in result.risk_factors
        assert "Run `specter hotspots` to find the files driving the increase" in result.recommendations

    def test_single_snapshot(self, sample_graph, snapshot_factory):
        """One snapshot is flat and flags limited data."""
        result = project_trajectory(Path("."), sample_graph, snapshots=[snapshot_factory(0, 70, now=NOW)], now=NOW)
        assert result.trend == "stable"
        assert result.time_span_days == 1
        assert "Limited historical data for accurate projections" in result.risk_factors
        assert "Run `specter scan` regularly to build trend data" in result.recommendations

    def test_no_history_uses_graph_health(self, temp_dir: Path, sample_graph):
        """Without snapshots the current graph supplies the health score."""
        result = project_trajectory(temp_dir, sample_graph, now=NOW)
        assert result.current_health == 59
        assert result.snapshot_count == 0
        assert result.risk_factors == ["No historical data available"]
        assert result.projections["oneWeek"].likely.confidence == 20
        assert result.projections["threeMonths"].worst.projected_health == 59


class TestVelocity:
    """Tests for analyze_velocity."""

    @pytest.mark.parametrize(
        "velocity,trend",
        [(-5, "improving"), (-4.9, "stable"), (2, "stable"), (10, "degrading"), (10.1, "critical")],
    )
    def test_velocity_trend(self, velocity, trend):
        assert get_velocity_trend(velocity) == trend

    def test_not_enough_snapshots(self, temp_dir: Path, sample_graph, snapshot_factory):
        """With fewer than two snapshots velocity is zero."""
        result = analyze_velocity(temp_dir, sample_graph, snapshots=[snapshot_factory(0, 70, now=NOW)])
        assert result.overall_velocity == 0
        assert result.trend == "stable"
        assert result.projected_debt_in_30_days == 49
        assert result.estimated is False
        assert result.current_metrics.total_complexity == 49
        assert result.current_metrics.hotspot_count == 1

    def test_growing_complexity(self, temp_dir: Path, sample_graph, snapshot_factory):
        """Doubling average complexity in a week is critical growth."""
        snapshots = [snapshot_factory(7, 80, avg=4.0, now=NOW), snapshot_factory(0, 60, avg=8.0, now=NOW)]
        result = analyze_velocity(temp_dir, sample_graph, snapshots=snapshots)

        assert result.estimated is True
        assert result.notes == [ESTIMATE_NOTE]
        assert result.time_span_days == 7
        assert [f.path for f in result.fastest_growing] == ["src/services/api.ts", "src/utils.ts", "src/index.ts"]
        assert result.fastest_growing[0].velocity_per_week == 19
        assert result.fastest_growing[0].trend == "critical"
        assert result.overall_velocity == 24.5
        assert result.trend == "critical"
        assert result.projected_debt_in_30_days == 154
        assert result.fastest_improving == []

    def test_improving_complexity(self, temp_dir: Path, sample_graph, snapshot_factory):
        """Falling averages list the biggest drops first."""
        snapshots = [snapshot_factory(7, 60, avg=16.0, now=NOW), snapshot_factory(0, 80, avg=8.0, now=NOW)]
        result = analyze_velocity(temp_dir, sample_graph, snapshots=snapshots)
        assert [f.path for f in result.fastest_improving][0] == "src/services/api.ts"
        assert result.fastest_improving[0].velocity_per_week == -38
        assert result.trend == "improving"
