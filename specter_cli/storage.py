"""Persistence layer for the project knowledge graph.

Layout under ``<root>/.specter``:

- ``graph.json``    full :class:`~specter_cli.models.KnowledgeGraph`
- ``metadata.json`` metadata only, for cheap existence/staleness checks
- ``snapshots/``    health snapshots (see :mod:`specter_cli.snapshots`)
"""

from __future__ import annotations

import json
import logging
import os
import shutil
from pathlib import Path
from typing import Any, Dict, Optional

from . import config
from .history import parse_date
from .models import GraphMetadata, KnowledgeGraph

logger = logging.getLogger(__name__)

GITIGNORE_BLOCK = "# Specter knowledge graph cache\n.specter/\n"


class StorageError(OSError):
    """Raised when the graph cannot be written to disk."""


class GraphNotFoundError(FileNotFoundError):
    """Raised by explicit export when no graph has been saved."""


def _read_json(path: Path) -> Optional[Any]:
    if not path.exists():
        return None
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        logger.warning("Could not read %s: %s", path, exc)
        return None
    if not text.strip():
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        logger.warning("Ignoring corrupt file %s", path)
        return None


def _write_json(path: Path, payload: Any) -> None:
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")


class GraphStore:
    """Save and load the knowledge graph of one project root."""

    def __init__(self, root: Path, settings: Optional[Dict[str, Any]] = None) -> None:
        self.root = Path(root)
        self.settings = settings
        self.store_dir = config.store_dir(self.root)
        self.graph_path = self.store_dir / config.GRAPH_FILE
        self.meta_path = self.store_dir / config.METADATA_FILE

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def save(self, graph: KnowledgeGraph, snapshot: bool = True) -> None:
        """Persist the graph and its metadata sidecar.

        Node/edge counts in the metadata are refreshed from the collections
        before writing. Unless ``snapshot`` is False a health snapshot is
        recorded as well; snapshot failures are logged, not raised.

        Raises:
            StorageError: if the files cannot be written.
        """
        graph.metadata.node_count = len(graph.nodes)
        graph.metadata.edge_count = len(graph.edges)
        try:
            self.store_dir.mkdir(parents=True, exist_ok=True)
            _write_json(self.graph_path, graph.to_dict())
            _write_json(self.meta_path, graph.metadata.to_dict())
        except OSError as exc:
            raise StorageError(f"Failed to save graph to {self.store_dir}: {exc}") from exc

        self.ensure_gitignore()

        if snapshot:
            self._record_snapshot(graph)

    def _record_snapshot(self, graph: KnowledgeGraph) -> None:
        from .complexity import ComplexityThresholds
        from .config_manager import default_config
        from .snapshots import SnapshotStore, create_snapshot

        settings = self.settings or default_config()
        try:
            record = create_snapshot(
                graph,
                complexity_multiplier=settings["health"]["complexityMultiplier"],
                thresholds=ComplexityThresholds.from_config(settings),
            )
            SnapshotStore(self.root, max_snapshots=settings["history"]["maxSnapshots"]).save(record)
        except (OSError, ValueError) as exc:
            logger.warning("Could not record health snapshot: %s", exc)

    def ensure_gitignore(self) -> None:
        """Add the storage directory to ``.gitignore`` once."""
        gitignore = self.root / ".gitignore"
        try:
            content = gitignore.read_text(encoding="utf-8") if gitignore.exists() else ""
            if config.STORE_DIR_NAME in content:
                return
            separator = "\n" if content and not content.endswith("\n") else ""
            gitignore.write_text(content + separator + GITIGNORE_BLOCK, encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not update %s: %s", gitignore, exc)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def load(self) -> Optional[KnowledgeGraph]:
        """Return the saved graph, or None when missing or corrupt."""
        payload = _read_json(self.graph_path)
        if not isinstance(payload, dict):
            return None
        try:
            return KnowledgeGraph.from_dict(payload)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            logger.warning("Ignoring malformed graph %s: %s", self.graph_path, exc)
            return None

    def load_metadata(self) -> Optional[GraphMetadata]:
        payload = _read_json(self.meta_path)
        if not isinstance(payload, dict):
            return None
        try:
            metadata = GraphMetadata.from_dict(payload)
        except (TypeError, ValueError) as exc:
            logger.warning("Ignoring malformed metadata %s: %s", self.meta_path, exc)
            return None
        if not isinstance(metadata.scanned_at, str):
            logger.warning("Ignoring metadata %s without a scan date", self.meta_path)
            return None
        return metadata

    def exists(self) -> bool:
        return self.graph_path.exists()

    def delete(self) -> bool:
        """Remove the whole storage directory. Returns False if there was none."""
        if not self.store_dir.exists():
            return False
        shutil.rmtree(self.store_dir)
        return True

    def is_stale(self) -> bool:
        """True when no graph exists or a source file changed after the last scan."""
        metadata = self.load_metadata()
        if metadata is None:
            return True
        scanned_at = parse_date(metadata.scanned_at).timestamp()
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames[:] = [d for d in dirnames if d not in config.IGNORED_DIRS]
            for name in filenames:
                if not config.is_source_file(name):
                    continue
                try:
                    if os.path.getmtime(os.path.join(dirpath, name)) > scanned_at:
                        return True
                except OSError:
                    continue
        return False

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export(self, output_path: Path, fmt: str = "full") -> Path:
        """Write the graph (``full``) or a counts-only summary to a file.

        Raises:
            GraphNotFoundError: if no graph has been saved.
            ValueError: for an unknown format.
        """
        if fmt not in ("full", "summary"):
            raise ValueError(f"Unknown export format: {fmt}")
        graph = self.load()
        if graph is None:
            raise GraphNotFoundError("No graph found. Run `specter scan` first.")

        if fmt == "summary":
            payload: Dict[str, Any] = {
                "scannedAt": graph.metadata.scanned_at,
                "files": graph.metadata.file_count,
                "lines": graph.metadata.total_lines,
                "nodes": graph.metadata.node_count,
                "edges": graph.metadata.edge_count,
                "languages": dict(graph.metadata.languages),
            }
        else:
            payload = graph.to_dict()

        output_path = Path(output_path)
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            _write_json(output_path, payload)
        except OSError as exc:
            raise StorageError(f"Failed to export graph to {output_path}: {exc}") from exc
        return output_path
