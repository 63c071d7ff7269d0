"""Tests for health snapshots, snapshot storage and trends."""

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from specter_cli.snapshots import (
    SnapshotStore,
    create_snapshot,
    diff_snapshots,
    graph_health_score,
    health_score,
    percent_change,
)
from specter_cli.trends import analyze_trends, calculate_trend, get_grade, get_time_span

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestHealthScore:
    """Tests for the health formula."""

    def test_bounds(self):
        """Average 0 scores 100 and average 30 scores 0."""
        assert health_score(0) == 100
        assert health_score(30) == 0
        assert health_score(50) == 0

    def test_multiplier(self):
        """The multiplier scales the penalty."""
        assert health_score(4, multiplier=5) == 80
        assert health_score(4, multiplier=2) == 92

    def test_graph_health(self, sample_graph):
        """Graph health uses the average of symbol complexities."""
        assert graph_health_score(sample_graph) == 59


class TestCreateSnapshot:
    """Tests for create_snapshot."""

    def test_metrics(self, sample_graph):
        """Snapshot metrics aggregate symbol complexity."""
        snapshot = create_snapshot(sample_graph, commit_hash="abc12345", now=NOW)

        assert snapshot.id == snapshot.timestamp == NOW.isoformat()
        assert snapshot.commit_hash == "abc12345"
        assert snapshot.metrics.file_count == 3
        assert snapshot.metrics.total_lines == 190
        assert snapshot.metrics.avg_complexity == 8.17
        assert snapshot.metrics.max_complexity == 25
        assert snapshot.metrics.hotspot_count == 1
        assert snapshot.metrics.health_score == 59
        assert snapshot.distribution == {"low": 3, "medium": 1, "high": 1, "veryHigh": 1}

    def test_snapshot_is_immutable(self, sample_graph):
        """Snapshots cannot be modified after creation."""
        snapshot = create_snapshot(sample_graph, commit_hash="abc", now=NOW)
        with pytest.raises(AttributeError):
            snapshot.metrics.health_score = 100

    def test_dict_round_trip(self, sample_graph):
        """to_dict/from_dict preserve the snapshot."""
        snapshot = create_snapshot(sample_graph, commit_hash="abc", now=NOW)
        data = snapshot.to_dict()
        assert data["metrics"]["healthScore"] == 59
        assert data["commitHash"] == "abc"
        assert type(snapshot).from_dict(data) == snapshot


class TestPercentChange:
    """Tests for percent_change."""

    def test_values(self):
        """Growth from zero is 100; no change is 0; values round half up."""
        assert percent_change(0, 100) == 100
        assert percent_change(0, 0) == 0
        assert percent_change(7, 7) == 0
        assert percent_change(3, 4) == 33
        assert percent_change(8, 9) == 13
        assert percent_change(200, 100) == -50


class TestSnapshotStore:
    """Tests for SnapshotStore."""

    def test_save_and_load_newest_first(self, temp_dir: Path, snapshot_factory):
        """Snapshots load newest first."""
        store = SnapshotStore(temp_dir)
        for days, health in ((3, 70), (1, 80), (2, 75)):
            store.save(snapshot_factory(days, health, now=NOW))

        assert [s.metrics.health_score for s in store.load_all()] == [80, 75, 70]
        assert store.latest().metrics.health_score == 80
        assert store.count() == 3

    def test_filenames_have_no_colons(self, temp_dir: Path, snapshot_factory):
        """Colons in timestamps are replaced in file names."""
        path = SnapshotStore(temp_dir).save(snapshot_factory(0, 90, now=NOW))
        assert ":" not in path.name

    def test_prune_keeps_newest(self, temp_dir: Path, snapshot_factory):
        """Only the newest max_snapshots are retained."""
        store = SnapshotStore(temp_dir, max_snapshots=3)
        for days in range(6):
            store.save(snapshot_factory(days, 50 + days, now=NOW))

        kept = store.load_all()
        assert len(kept) == 3
        assert [s.metrics.health_score for s in kept] == [50, 51, 52]

    def test_invalid_files_are_skipped(self, temp_dir: Path, snapshot_factory):
        """Unreadable snapshot files do not break loading."""
        store = SnapshotStore(temp_dir)
        store.save(snapshot_factory(1, 80, now=NOW))
        (store.directory / "broken.json").write_text("{", encoding="utf-8")
        (store.directory / "partial.json").write_text(json.dumps({"id": "x"}), encoding="utf-8")

        assert len(store.load_all()) == 1

    def test_get_and_range(self, temp_dir: Path, snapshot_factory):
        """Snapshots can be fetched by id and by time range."""
        store = SnapshotStore(temp_dir)
        first = snapshot_factory(10, 60, now=NOW)
        store.save(first)
        store.save(snapshot_factory(2, 70, now=NOW))

        assert store.get(first.id) == first
        assert store.get("missing") is None
        recent = store.in_range(NOW - timedelta(days=5), NOW)
        assert [s.metrics.health_score for s in recent] == [70]

    def test_clear(self, temp_dir: Path, snapshot_factory):
        """clear removes every snapshot."""
        store = SnapshotStore(temp_dir)
        store.save(snapshot_factory(1, 80, now=NOW))
        assert store.clear() == 1
        assert store.load_all() == []


class TestDiffAndTrends:
    """Tests for snapshot comparison and trend analysis."""

    def test_diff_snapshots(self, snapshot_factory):
        """Metric changes are newer minus older."""
        older = snapshot_factory(7, 60, avg=8, hotspots=4, now=NOW)
        newer = snapshot_factory(0, 72, avg=5.6, hotspots=2, now=NOW)
        diff = diff_snapshots(older, newer)

        assert diff.metric_changes["healthScore"].change == 12
        assert diff.metric_changes["hotspotCount"].change == -2
        assert diff.is_improving is True

    def test_trend_directions(self, snapshot_factory):
        """Changes beyond the threshold set the direction."""
        improving = [snapshot_factory(5, 60, now=NOW), snapshot_factory(0, 70, now=NOW)]
        declining = [snapshot_factory(5, 70, now=NOW), snapshot_factory(0, 60, now=NOW)]
        stable = [snapshot_factory(5, 70, now=NOW), snapshot_factory(0, 71, now=NOW)]

        assert calculate_trend(improving, "week", now=NOW).direction == "improving"
        assert calculate_trend(declining, "week", now=NOW).direction == "declining"
        assert calculate_trend(stable, "week", now=NOW).direction == "stable"

    def test_trend_with_too_little_data(self, snapshot_factory):
        """Zero or one snapshot in the period is reported."""
        assert calculate_trend([], "day", now=NOW).insights == ["No data available for this period."]
        single = calculate_trend([snapshot_factory(0, 70, now=NOW)], "day", now=NOW)
        assert single.insights == ["Only one snapshot available - need more data to identify trends."]

    def test_analyze_trends(self, snapshot_factory):
        """The analysis picks current and previous snapshots."""
        snapshots = [snapshot_factory(20, 60, now=NOW), snapshot_factory(3, 65, now=NOW),
                     snapshot_factory(0, 80, now=NOW)]
        analysis = analyze_trends(snapshots, now=NOW)

        assert analysis.current.metrics.health_score == 80
        assert analysis.previous.metrics.health_score == 65
        assert set(analysis.trends) == {"day", "week", "month", "all"}
        assert analysis.trends["all"].direction == "improving"
        assert analysis.summary.startswith("Health is 80/100 (Grade B).")

    def test_no_history_summary(self):
        """Without snapshots the summary asks for a scan."""
        assert "specter scan" in analyze_trends([], now=NOW).summary

    def test_grades_and_time_span(self, snapshot_factory):
        """Grades use configured bounds; spans read naturally."""
        assert get_grade(95) == "A"
        assert get_grade(59) == "F"
        assert get_grade(85, {"A": 85, "B": 80, "C": 70, "D": 60}) == "A"
        snapshots = [snapshot_factory(14, 70, now=NOW), snapshot_factory(0, 70, now=NOW)]
        assert get_time_span(snapshots) == "2 snapshots over 2 weeks"
