"""Tests for the graph store."""

import json
import os
import time
from pathlib import Path

import pytest

from specter_cli.config_manager import default_config
from specter_cli.snapshots import SnapshotStore
from specter_cli.storage import GraphNotFoundError, GraphStore


@pytest.fixture
def store(temp_dir: Path) -> GraphStore:
    return GraphStore(temp_dir)


class TestGraphStore:
    """Tests for GraphStore."""

    def test_save_and_load(self, store: GraphStore, sample_graph):
        """A saved graph loads back identically."""
        store.save(sample_graph, snapshot=False)

        loaded = store.load()
        assert loaded is not None
        assert loaded.to_dict() == sample_graph.to_dict()
        assert store.exists()

    def test_saved_bytes_are_stable(self, store: GraphStore, sample_graph, temp_dir: Path):
        """Saving a loaded graph again writes identical bytes."""
        store.save(sample_graph, snapshot=False)
        first = store.graph_path.read_bytes()

        other = GraphStore(temp_dir / "copy")
        other.save(store.load(), snapshot=False)
        assert other.graph_path.read_bytes() == first

    def test_load_missing_returns_none(self, store: GraphStore):
        """No graph yields None."""
        assert store.load() is None
        assert store.load_metadata() is None
        assert not store.exists()

    def test_corrupt_graph_is_treated_as_missing(self, store: GraphStore):
        """Corrupt JSON is treated as missing."""
        store.store_dir.mkdir(parents=True)
        store.graph_path.write_text("{truncated", encoding="utf-8")
        assert store.load() is None

    @pytest.mark.parametrize(
        "corrupt",
        [
            lambda data: data.update(nodes=[]),
            lambda data: data.update(edges={}),
            lambda data: data.update(metadata="broken"),
            lambda data: data["nodes"].update({"src/index.ts": "not a node"}),
            lambda data: data["edges"].append(42),
        ],
        ids=["nodes-list", "edges-dict", "metadata-str", "node-str", "edge-int"],
    )
    def test_wrong_shapes_are_treated_as_missing(self, store: GraphStore, sample_graph, corrupt):
        """Valid JSON with the wrong structure loads as None instead of raising."""
        data = sample_graph.to_dict()
        corrupt(data)
        store.store_dir.mkdir(parents=True)
        store.graph_path.write_text(json.dumps(data), encoding="utf-8")
        assert store.load() is None

    def test_large_unicode_graph_survives_disk(self, store: GraphStore, large_graph):
        """1,000 nodes and 2,000 edges with non-ASCII text round-trip through save and load."""
        store.save(large_graph, snapshot=False)
        assert "日本語" in store.graph_path.read_text(encoding="utf-8")

        loaded = store.load()
        assert loaded is not None
        assert len(loaded.nodes) == 1000
        assert len(loaded.edges) == 2000
        assert loaded.to_dict() == large_graph.to_dict()

    def test_metadata_sidecar(self, store: GraphStore, sample_graph):
        """Metadata is readable without loading the graph."""
        store.save(sample_graph, snapshot=False)
        meta = store.load_metadata()
        assert meta.file_count == 3
        assert meta.node_count == 9

    def test_gitignore_block_added_once(self, store: GraphStore, sample_graph, temp_dir: Path):
        """The store directory is added to .gitignore exactly once."""
        (temp_dir / ".gitignore").write_text("node_modules/", encoding="utf-8")
        store.save(sample_graph, snapshot=False)
        store.save(sample_graph, snapshot=False)

        content = (temp_dir / ".gitignore").read_text(encoding="utf-8")
        assert content.count(".specter/") == 1
        assert content.startswith("node_modules/\n")

    def test_save_records_snapshot(self, temp_dir: Path, sample_graph):
        """Saving records a health snapshot using the configured limits."""
        settings = default_config()
        settings["history"]["maxSnapshots"] = 5
        GraphStore(temp_dir, settings=settings).save(sample_graph)

        snapshots = SnapshotStore(temp_dir).load_all()
        assert len(snapshots) == 1
        assert snapshots[0].metrics.file_count == 3

    def test_delete(self, store: GraphStore, sample_graph):
        """delete removes the storage directory."""
        store.save(sample_graph, snapshot=False)
        assert store.delete() is True
        assert not store.store_dir.exists()
        assert store.delete() is False

    def test_is_stale(self, store: GraphStore, sample_graph, temp_dir: Path):
        """A source file newer than the scan makes the graph stale."""
        assert store.is_stale() is True

        source = temp_dir / "src" / "a.ts"
        source.parent.mkdir(parents=True)
        source.write_text("export const a = 1;", encoding="utf-8")
        old = time.time() - 3600
        os.utime(source, (old, old))

        store.save(sample_graph, snapshot=False)
        assert store.is_stale() is False

        future = time.time() + 3600
        os.utime(source, (future, future))
        assert store.is_stale() is True

    @pytest.mark.parametrize("scanned_at", [12345, None, ["2026-01-01"]])
    def test_metadata_without_usable_date_is_stale(self, store: GraphStore, sample_graph, scanned_at):
        """A sidecar whose scan date is not a string counts as missing."""
        store.save(sample_graph, snapshot=False)
        meta = json.loads(store.meta_path.read_text(encoding="utf-8"))
        meta["scannedAt"] = scanned_at
        store.meta_path.write_text(json.dumps(meta), encoding="utf-8")

        assert store.load_metadata() is None
        assert store.is_stale() is True

    def test_metadata_of_wrong_shape(self, store: GraphStore):
        store.store_dir.mkdir(parents=True)
        store.meta_path.write_text(json.dumps({"languages": 5, "scannedAt": "x"}), encoding="utf-8")
        assert store.load_metadata() is None


class TestExport:
    """Tests for GraphStore.export."""

    def test_export_full(self, store: GraphStore, sample_graph, temp_dir: Path):
        """Full export writes the whole graph."""
        store.save(sample_graph, snapshot=False)
        out = store.export(temp_dir / "out" / "graph.json")
        data = json.loads(out.read_text(encoding="utf-8"))
        assert len(data["nodes"]) == 9
        assert len(data["edges"]) == 10

    def test_export_summary(self, store: GraphStore, sample_graph, temp_dir: Path):
        """Summary export holds counts only."""
        store.save(sample_graph, snapshot=False)
        out = store.export(temp_dir / "summary.json", fmt="summary")
        data = json.loads(out.read_text(encoding="utf-8"))
        assert set(data) == {"scannedAt", "files", "lines", "nodes", "edges", "languages"}
        assert data["files"] == 3
        assert data["lines"] == 190

    def test_export_without_graph(self, store: GraphStore, temp_dir: Path):
        """Exporting before a scan raises GraphNotFoundError."""
        with pytest.raises(GraphNotFoundError, match="specter scan"):
            store.export(temp_dir / "graph.json")

    def test_export_unknown_format(self, store: GraphStore, temp_dir: Path):
        """Unknown formats are rejected."""
        with pytest.raises(ValueError):
            store.export(temp_dir / "graph.dot", fmt="dot")
