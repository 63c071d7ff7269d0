"""Pytest configuration and fixtures for Specter tests."""

import json
import os
import shutil
import subprocess
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Generator, List, Optional

import pytest

from specter_cli.builder import build_knowledge_graph
from specter_cli.extraction import parse_file_extraction
from specter_cli.models import FileNode, FunctionNode, GraphEdge, GraphMetadata, GraphNode, KnowledgeGraph
from specter_cli.snapshots import HealthSnapshot, SnapshotMetrics


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


def _symbol(kind, name, start, end, complexity, **extra):
    raw = {"kind": kind, "name": name, "lineStart": start, "lineEnd": end, "complexity": complexity, "exported": True}
    raw.update(extra)
    return raw


@pytest.fixture
def sample_facts() -> Dict:
    """Extractor output for a three-file TypeScript project.

    Symbol complexities: main 3, helper 2, formatDate 6, ApiClient 12,
    BaseClient 1, fetchData 25.
    """
    return {
        "files": [
            {
                "path": "src/index.ts",
                "lineCount": 20,
                "symbols": [_symbol("function", "main", 1, 10, 3)],
                "imports": [
                    {"specifier": "./utils", "symbols": ["helper"]},
                    {"specifier": "./services/api", "symbols": ["fetchData"]},
                    {"specifier": "react", "symbols": ["useState"]},
                ],
                "exports": [{"name": "main"}],
            },
            {
                "path": "src/utils.ts",
                "lineCount": 30,
                "symbols": [
                    _symbol("function", "helper", 1, 5, 2),
                    _symbol("function", "formatDate", 7, 20, 6),
                ],
                "imports": [],
                "exports": [{"name": "helper"}, {"name": "formatDate"}],
            },
            {
                "path": "src/services/api.ts",
                "lineCount": 140,
                "symbols": [
                    _symbol("class", "ApiClient", 1, 70, 12, extends="BaseClient", memberCount=4),
                    _symbol("class", "BaseClient", 72, 80, 1),
                    _symbol("function", "fetchData", 82, 140, 25, isAsync=True),
                ],
                "imports": [{"specifier": "../utils", "symbols": ["formatDate"]}],
                "exports": [{"name": "ApiClient"}, {"name": "fetchData"}],
            },
        ]
    }


@pytest.fixture
def facts_file(temp_dir: Path, sample_facts: Dict) -> Path:
    path = temp_dir / "facts.json"
    path.write_text(json.dumps(sample_facts), encoding="utf-8")
    return path


@pytest.fixture
def sample_graph(temp_dir: Path, sample_facts: Dict) -> KnowledgeGraph:
    """Graph built from ``sample_facts`` without git history."""
    extractions = [parse_file_extraction(raw) for raw in sample_facts["files"]]
    return build_knowledge_graph(temp_dir, extractions).graph


def make_large_graph(node_count: int = 1000, edge_count: int = 2000) -> KnowledgeGraph:
    nodes: Dict[str, GraphNode] = {}
    for i in range(node_count):
        path = f"src/módulo_{i % 50}/файл_{i}.ts"
        if i % 4 == 0:
            node: GraphNode = FileNode(id=path, name=f"файл_{i}.ts", file_path=path, line_start=1,
                                       line_end=100, line_count=100, complexity=i % 30,
                                       contributors=["Zoë", "Jürgen"])
        else:
            node = FunctionNode(id=f"{path}:function:ƒ{i}:{i}", name=f"ƒ{i}", file_path=path,
                                line_start=i, line_end=i + 5, complexity=i % 25,
                                documentation="Résumé ✓ 日本語")
        nodes[node.id] = node
    ids: List[str] = list(nodes)
    edges = [
        GraphEdge(id=f"import-{i}", source=ids[i % node_count], target=ids[(i * 7 + 1) % node_count],
                  type="imports", metadata={"symbols": ["π", "λ"]})
        for i in range(edge_count)
    ]
    metadata = GraphMetadata(scanned_at="2026-01-01T00:00:00+00:00", scan_duration_ms=12, root_dir="/tmp/p",
                             file_count=250, total_lines=25000, languages={"typescript": 250},
                             node_count=node_count, edge_count=edge_count)
    return KnowledgeGraph(version="1.0.0", metadata=metadata, nodes=nodes, edges=edges)


@pytest.fixture
def large_graph() -> KnowledgeGraph:
    """1,000 nodes and 2,000 edges with non-ASCII paths, names and metadata."""
    return make_large_graph()


def make_snapshot(
    days_ago: float,
    health: int,
    avg: float = 5.0,
    hotspots: int = 0,
    lines: int = 1000,
    files: int = 10,
    now: Optional[datetime] = None,
) -> HealthSnapshot:
    """Snapshot taken ``days_ago`` days before ``now``."""
    taken = (now or datetime.now(timezone.utc)) - timedelta(days=days_ago)
    stamp = taken.isoformat()
    return HealthSnapshot(
        id=stamp,
        timestamp=stamp,
        metrics=SnapshotMetrics(
            file_count=files,
            total_lines=lines,
            avg_complexity=avg,
            max_complexity=20,
            hotspot_count=hotspots,
            health_score=health,
        ),
        distribution={"low": 5, "medium": 3, "high": 1, "veryHigh": 1},
    )


class GitRepo:
    """A throwaway git repository driven through the git binary."""

    def __init__(self, path: Path):
        self.path = path
        self.git("init", "-q")
        self.git("config", "user.name", "Test User")
        self.git("config", "user.email", "test@example.com")
        self.git("config", "commit.gpgsign", "false")

    def git(self, *args: str, env: Optional[Dict[str, str]] = None) -> str:
        proc = subprocess.run(
            ["git", *args],
            cwd=self.path,
            check=True,
            capture_output=True,
            text=True,
            env=env,
        )
        return proc.stdout

    def commit(
        self,
        files: Dict[str, str],
        message: str = "change",
        author: str = "Alice",
        date: Optional[datetime] = None,
    ) -> str:
        for rel, content in files.items():
            target = self.path / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
        self.git("add", "-A")

        env = os.environ.copy()
        email = f"{author.lower()}@example.com"
        env.update(
            GIT_AUTHOR_NAME=author,
            GIT_AUTHOR_EMAIL=email,
            GIT_COMMITTER_NAME=author,
            GIT_COMMITTER_EMAIL=email,
        )
        if date is not None:
            stamp = date.replace(microsecond=0).isoformat()
            env["GIT_AUTHOR_DATE"] = stamp
            env["GIT_COMMITTER_DATE"] = stamp
        self.git("commit", "-q", "-m", message, env=env)
        return self.git("rev-parse", "HEAD").strip()


@pytest.fixture
def git_repo(temp_dir: Path) -> GitRepo:
    """An empty git repository; skipped when git is not installed."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    repo_dir = temp_dir / "repo"
    repo_dir.mkdir()
    return GitRepo(repo_dir)


@pytest.fixture
def snapshot_factory():
    """Return the ``make_snapshot`` helper."""
    return make_snapshot
