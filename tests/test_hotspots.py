"""Tests for churn x complexity hotspot detection."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from specter_cli.builder import build_knowledge_graph
from specter_cli.extraction import parse_file_extraction
from specter_cli.git_runner import FIELD_SEP, RECORD_SEP
from specter_cli.hotspots import (
    analyze_hotspots,
    hotspot_priority,
    parse_churn_log,
    parse_since,
    percentile_rank,
)

NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)


class TestHelpers:
    """Tests for window parsing, ranking and priorities."""

    def test_parse_since(self):
        """Relative windows become absolute dates."""
        assert parse_since("2 weeks ago", NOW) == NOW - timedelta(days=14)
        assert parse_since("6 months ago", NOW) == NOW - timedelta(days=180)
        assert parse_since("1 year ago", NOW) == NOW - timedelta(days=365)
        assert parse_since("whenever", NOW) == NOW - timedelta(days=90)

    def test_percentile_rank(self):
        """Percentile counts values at or below the given one."""
        assert percentile_rank(5, [1, 5, 10]) == 67
        assert percentile_rank(10, [1, 5, 10]) == 100
        assert percentile_rank(3, []) == 0

    @pytest.mark.parametrize("score,priority", [(75, "critical"), (74, "high"), (50, "high"), (25, "medium"), (24, "low")])
    def test_priority(self, score, priority):
        assert hotspot_priority(score) == priority

    def test_parse_churn_log(self):
        """Each commit counts once per source file."""
        output = (
            f"{RECORD_SEP}a{FIELD_SEP}Alice{FIELD_SEP}2026-02-01T00:00:00+00:00\n\nsrc/a.ts\nREADME.md\n"
            f"{RECORD_SEP}b{FIELD_SEP}Bob{FIELD_SEP}2026-01-01T00:00:00+00:00\n\nsrc/a.ts\nsrc/b.ts\n"
        )
        churn = parse_churn_log(output)
        assert set(churn) == {"src/a.ts", "src/b.ts"}
        assert churn["src/a.ts"].commit_count == 2
        assert churn["src/a.ts"].contributors == ["Alice", "Bob"]
        assert churn["src/a.ts"].last_modified == "2026-02-01T00:00:00+00:00"


class TestAnalyzeHotspots:
    """Hotspot ranking against a real repository."""

    def _graph(self, git_repo, sample_facts):
        extractions = [parse_file_extraction(r) for r in sample_facts["files"]]
        return build_knowledge_graph(git_repo.path, extractions).graph

    def test_ranking(self, git_repo, sample_facts):
        """Complex, busy files rank first and fall into the hotspot quadrant."""
        git_repo.commit({"src/index.ts": "1", "src/utils.ts": "1", "src/services/api.ts": "1"}, author="Alice")
        git_repo.commit({"src/services/api.ts": "2"}, author="Bob")
        git_repo.commit({"src/services/api.ts": "3"}, author="Bob")

        result = analyze_hotspots(git_repo.path, self._graph(git_repo, sample_facts))

        assert [h.file for h in result.hotspots] == ["src/services/api.ts", "src/utils.ts", "src/index.ts"]
        api, utils, index = result.hotspots
        assert (api.score, api.priority) == (100, "critical")
        assert (utils.score, utils.priority) == (67, "high")
        assert (index.score, index.priority) == (47, "medium")
        assert api.churn == 3
        assert api.churn_rate == 0.2
        assert api.top_contributors == ["Bob", "Alice"]

        assert result.quadrants.hotspots == ["src/services/api.ts", "src/utils.ts"]
        assert result.quadrants.simple_churning == ["src/index.ts"]
        assert result.summary.total_files == 3
        assert result.summary.critical_count == 1
        assert result.summary.high_count == 1
        assert result.summary.total_debt_hours == 33
        assert result.time_range.weeks == 13

    def test_files_outside_graph_are_ignored(self, git_repo, sample_facts):
        """Churned paths the graph does not contain do not skew the ranking."""
        git_repo.commit({"src/index.ts": "1", "src/utils.ts": "1", "src/services/api.ts": "1"}, author="Alice")
        git_repo.commit({"src/services/api.ts": "2"}, author="Bob")
        git_repo.commit({"src/services/api.ts": "3"}, author="Bob")
        for content in ("a", "b", "c"):
            git_repo.commit({"src/old.ts": content}, author="Carol")

        result = analyze_hotspots(git_repo.path, self._graph(git_repo, sample_facts))

        assert [h.file for h in result.hotspots] == ["src/services/api.ts", "src/utils.ts", "src/index.ts"]
        assert result.hotspots[0].churn_percentile == 100
        assert result.hotspots[0].score == 100
        assert result.summary.total_files == 3
        quadrants = result.quadrants
        everything = quadrants.hotspots + quadrants.simple_churning + quadrants.complex_stable + quadrants.healthy
        assert "src/old.ts" not in everything

    def test_top_limits_list_not_quadrants(self, git_repo, sample_facts):
        """Only the top N are listed but quadrants cover every file."""
        git_repo.commit({"src/index.ts": "1", "src/utils.ts": "1", "src/services/api.ts": "1"})
        result = analyze_hotspots(git_repo.path, self._graph(git_repo, sample_facts), top=1)
        assert len(result.hotspots) == 1
        quadrants = result.quadrants
        total = len(quadrants.hotspots) + len(quadrants.simple_churning) + len(quadrants.complex_stable) + len(
            quadrants.healthy
        )
        assert total == 3

    def test_no_history(self, temp_dir: Path, sample_graph):
        """Without git every file has zero churn."""
        result = analyze_hotspots(temp_dir, sample_graph)
        assert all(h.churn == 0 for h in result.hotspots)
        assert {h.file for h in result.hotspots} == {"src/index.ts", "src/utils.ts", "src/services/api.ts"}
