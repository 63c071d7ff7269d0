"""Tests for change coupling analysis."""

from pathlib import Path

from specter_cli.coupling import (
    ChangeCoupling,
    analyze_change_coupling,
    build_import_edge_set,
    coupling_insights,
)


def _coupling(file2: str, strength: float, imports: bool = False, shared: int = 4) -> ChangeCoupling:
    return ChangeCoupling(
        file1="a.ts",
        file2=file2,
        coupling_strength=strength,
        shared_commits=shared,
        total_commits_file1=5,
        total_commits_file2=5,
        has_import_relationship=imports,
    )


class TestInsights:
    """Tests for coupling_insights."""

    def test_independent_file(self):
        """No couplings means an independence message."""
        assert coupling_insights([]) == ["This file changes independently - no strong coupling detected."]

    def test_hidden_and_strong(self):
        """Hidden dependencies and strong pairs are called out."""
        insights = coupling_insights([_coupling("b.ts", 0.8), _coupling("c.ts", 0.4, imports=True)])
        assert insights[0] == (
            "Found 1 hidden dependency: b.ts changes with this file but has no import relationship."
        )
        assert insights[1].startswith("b.ts changes together 80% of the time (4 shared commits).")
        assert len(insights) == 2

    def test_change_cluster(self):
        """Five or more coupled files form a cluster."""
        couplings = [_coupling(f"f{i}.ts", 0.4, imports=True) for i in range(5)]
        assert coupling_insights(couplings)[-1].startswith("This file is part of a change cluster with 5 files.")


class TestImportEdges:
    """Tests for build_import_edge_set."""

    def test_edge_strings(self, sample_graph):
        """Import edges are keyed as source->target."""
        edges = build_import_edge_set(sample_graph)
        assert "src/index.ts->src/utils.ts" in edges
        assert len(edges) == 3


class TestCouplingWithGit:
    """Coupling against a real repository."""

    def test_always_co_changed_is_full_strength(self, git_repo):
        """Files changed in every commit of the target couple at 1.0."""
        git_repo.commit({"a.ts": "1", "b.ts": "1", "README.md": "1"}, message="first")
        git_repo.commit({"a.ts": "2", "b.ts": "2"}, message="second")
        git_repo.commit({"c.ts": "1"}, message="unrelated")
        git_repo.commit({"b.ts": "3"}, message="b alone")

        result = analyze_change_coupling(git_repo.path, "a.ts", import_edges={"a.ts->b.ts"})

        assert [c.file2 for c in result.coupled_files] == ["b.ts"]
        coupling = result.coupled_files[0]
        assert coupling.coupling_strength == 1.0
        assert coupling.shared_commits == 2
        assert coupling.total_commits_file1 == 2
        assert coupling.total_commits_file2 == 3
        assert coupling.has_import_relationship is True
        assert [e.message for e in coupling.recent_examples] == ["second", "first"]
        assert result.insights == ["b.ts changes together 100% of the time (2 shared commits). They have a direct dependency."]

    def test_hidden_dependency(self, git_repo):
        """Co-change without an import edge is reported as hidden."""
        git_repo.commit({"a.ts": "1", "b.ts": "1"})
        git_repo.commit({"a.ts": "2", "b.ts": "2"})

        result = analyze_change_coupling(git_repo.path, "a.ts")
        assert result.coupled_files[0].is_hidden is True
        assert result.insights[0].startswith("Found 1 hidden dependency: b.ts")

    def test_min_strength_filters(self, git_repo):
        """Files below the minimum strength are dropped."""
        git_repo.commit({"a.ts": "1", "d.ts": "1"})
        git_repo.commit({"a.ts": "2"})
        git_repo.commit({"a.ts": "3"})

        loose = analyze_change_coupling(git_repo.path, "a.ts", min_strength=0.3)
        strict = analyze_change_coupling(git_repo.path, "a.ts", min_strength=0.5)
        assert [c.file2 for c in loose.coupled_files] == ["d.ts"]
        assert loose.coupled_files[0].coupling_strength == 0.33
        assert strict.coupled_files == []

    def test_file_without_history(self, git_repo):
        """An uncommitted file has no history to analyze."""
        git_repo.commit({"a.ts": "1"})
        result = analyze_change_coupling(git_repo.path, "missing.ts")
        assert result.insights == ["No git history for this file"]

    def test_not_a_repo(self, temp_dir: Path):
        """Outside a repository coupling is skipped."""
        result = analyze_change_coupling(temp_dir, "a.ts")
        assert result.coupled_files == []
        assert result.insights == ["Not a git repository"]
