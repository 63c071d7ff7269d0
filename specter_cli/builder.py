"""Build a :class:`KnowledgeGraph` from extractor facts.

Each scan rebuilds the whole graph. Construction is deterministic: the same
facts (in the same order) always produce the same node ids and edge ids.
"""

from __future__ import annotations

import logging
import posixpath
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from .config import GRAPH_VERSION, IMPORT_CANDIDATE_SUFFIXES
from .extraction import ExtractedSymbol, FileExtraction
from .history import GitAnalysisResult
from .models import (
    ClassNode,
    EnumNode,
    FileNode,
    FunctionNode,
    GraphEdge,
    GraphMetadata,
    GraphNode,
    InterfaceNode,
    KnowledgeGraph,
    TypeAliasNode,
    VariableNode,
)

logger = logging.getLogger(__name__)

BuildProgress = Callable[[str, int, int], None]

LANGUAGE_BY_EXTENSION = {
    ".ts": "typescript",
    ".tsx": "tsx",
    ".jsx": "jsx",
}

# A ".js" specifier in TypeScript sources usually points at the ".ts" file.
_JS_TO_TS = {".js": (".ts", ".tsx"), ".jsx": (".tsx",), ".mjs": (".mts",), ".cjs": (".cts",)}


@dataclass
class BuildResult:
    graph: KnowledgeGraph
    errors: List[Dict[str, str]] = field(default_factory=list)
    warnings: List[Dict[str, str]] = field(default_factory=list)


def detect_language(file_path: str) -> str:
    return LANGUAGE_BY_EXTENSION.get(posixpath.splitext(file_path)[1], "javascript")


def normalize_path(path: str) -> str:
    path = path.replace("\\", "/")
    normalized = posixpath.normpath(path)
    return "" if normalized == "." else normalized


def symbol_id(file_path: str, kind: str, name: str, line_start: int) -> str:
    return f"{file_path}:{kind}:{name}:{line_start}"


def _import_candidates(base: str) -> Iterable[str]:
    yield base
    stem, ext = posixpath.splitext(base)
    for alt in _JS_TO_TS.get(ext, ()):
        yield stem + alt
    for suffix in IMPORT_CANDIDATE_SUFFIXES:
        yield base + suffix


def resolve_import(
    from_file: str,
    specifier: str,
    known_files: Set[str],
    resolved_path: Optional[str] = None,
) -> Optional[str]:
    """Resolve an import to the id of a file node, or None.

    Bare specifiers (external packages) and paths that match no scanned file
    resolve to None. ``resolved_path`` from the extractor takes precedence
    over ``specifier``.
    """
    if resolved_path:
        base = normalize_path(resolved_path.lstrip("/"))
    elif specifier.startswith("/"):
        base = normalize_path(specifier.lstrip("/"))
    elif specifier.startswith("."):
        base = normalize_path(posixpath.join(posixpath.dirname(from_file), specifier))
    else:
        return None

    if not base or base.startswith("../"):
        return None
    for candidate in _import_candidates(base):
        if candidate in known_files:
            return candidate
    return None


def _make_symbol_node(file_path: str, symbol: ExtractedSymbol) -> GraphNode:
    common = dict(
        id=symbol_id(file_path, symbol.kind, symbol.name, symbol.line_start),
        name=symbol.name,
        file_path=file_path,
        line_start=symbol.line_start,
        line_end=symbol.line_end,
        exported=symbol.exported,
        complexity=symbol.complexity,
        documentation=symbol.documentation,
    )
    if symbol.kind == "function":
        return FunctionNode(
            **common,
            parameters=list(symbol.parameters),
            return_type=symbol.return_type,
            is_async=symbol.is_async,
            is_generator=symbol.is_generator,
        )
    if symbol.kind == "class":
        return ClassNode(
            **common,
            is_abstract=symbol.is_abstract,
            extends=symbol.extends[0] if symbol.extends else None,
            implements=list(symbol.implements),
            member_count=symbol.member_count,
        )
    if symbol.kind == "interface":
        return InterfaceNode(**common, extends=list(symbol.extends), member_count=symbol.member_count)
    if symbol.kind == "enum":
        return EnumNode(**common, member_count=symbol.member_count)
    if symbol.kind == "variable":
        return VariableNode(**common, is_const=symbol.is_const)
    return TypeAliasNode(**common)


def _empty_metadata(root: Path, started: float) -> GraphMetadata:
    return GraphMetadata(
        scanned_at=datetime.now(timezone.utc).isoformat(),
        scan_duration_ms=int((time.monotonic() - started) * 1000),
        root_dir=str(Path(root).resolve()),
    )


def _pick_target(candidates: List[GraphNode], file_path: str) -> Optional[GraphNode]:
    same_file = [c for c in candidates if c.file_path == file_path]
    if len(same_file) == 1:
        return same_file[0]
    if len(candidates) == 1:
        return candidates[0]
    return None


def _heritage_edges(nodes: Dict[str, GraphNode], edges: List[GraphEdge]) -> None:
    by_name: Dict[Tuple[str, str], List[GraphNode]] = {}
    for node in nodes.values():
        if isinstance(node, (ClassNode, InterfaceNode)):
            by_name.setdefault((node.type, node.name), []).append(node)

    def link(source: GraphNode, kind: str, name: str, edge_type: str) -> None:
        target = _pick_target(by_name.get((kind, name), []), source.file_path)
        if target is None or target.id == source.id:
            return
        edges.append(GraphEdge(id=f"{edge_type}-{len(edges)}", source=source.id, target=target.id, type=edge_type))

    for node in list(nodes.values()):
        if isinstance(node, ClassNode):
            if node.extends:
                link(node, "class", node.extends, "extends")
            for name in node.implements:
                link(node, "interface", name, "implements")
        elif isinstance(node, InterfaceNode):
            for name in node.extends:
                link(node, "interface", name, "extends")


def build_knowledge_graph(
    root: Path,
    extractions: List[FileExtraction],
    history: Optional[GitAnalysisResult] = None,
    on_progress: Optional[BuildProgress] = None,
) -> BuildResult:
    """Convert extractor facts into a graph.

    Args:
        root: Project root the fact paths are relative to.
        extractions: One record per source file.
        history: Optional git analysis used to enrich file nodes.
        on_progress: Called as ``(phase, completed, total)``.

    Returns:
        The graph plus per-file errors and scan warnings. A bad file record is
        reported in ``errors`` and skipped.
    """
    started = time.monotonic()
    errors: List[Dict[str, str]] = []
    warnings: List[Dict[str, str]] = []

    if not extractions:
        graph = KnowledgeGraph(version=GRAPH_VERSION, metadata=_empty_metadata(root, started))
        return BuildResult(graph=graph, errors=[{"file": str(root), "error": "No source files found"}])

    nodes: Dict[str, GraphNode] = {}
    edges: List[GraphEdge] = []
    file_nodes: List[Tuple[FileNode, FileExtraction]] = []
    total = len(extractions)

    for index, extraction in enumerate(extractions, start=1):
        file_path = normalize_path(extraction.path)
        if extraction.error:
            errors.append({"file": file_path, "error": extraction.error})
        elif not file_path or file_path in nodes:
            errors.append({"file": file_path or extraction.path, "error": "Duplicate or empty file path"})
        else:
            file_node = FileNode(
                id=file_path,
                name=posixpath.basename(file_path),
                file_path=file_path,
                line_start=1,
                line_end=extraction.line_count,
                language=detect_language(file_path),
                line_count=extraction.line_count,
                export_count=len(extraction.exports),
                exported=bool(extraction.exports),
            )
            nodes[file_node.id] = file_node
            complexity = 0
            for symbol in extraction.symbols:
                node = _make_symbol_node(file_path, symbol)
                if node.id in nodes:
                    warnings.append({"file": file_path, "warning": f"Duplicate symbol {node.id} skipped"})
                    continue
                nodes[node.id] = node
                complexity += node.complexity or 0
                edges.append(GraphEdge(id=f"contains-{len(edges)}", source=file_node.id, target=node.id, type="contains"))
            file_node.complexity = complexity
            file_nodes.append((file_node, extraction))
        if on_progress is not None:
            on_progress("Building nodes", index, total)

    known_files = {node.id for node, _ in file_nodes}
    for file_node, extraction in file_nodes:
        targets: Dict[str, GraphEdge] = {}
        for imp in extraction.imports:
            target = resolve_import(file_node.file_path, imp.specifier, known_files, imp.resolved_path)
            if target is None:
                continue
            existing = targets.get(target)
            if existing is not None:
                merged = existing.metadata.setdefault("symbols", [])
                merged.extend(s for s in imp.symbols if s not in merged)
                continue
            edge = GraphEdge(
                id=f"import-{len(edges)}",
                source=file_node.id,
                target=target,
                type="imports",
                metadata={"specifier": imp.specifier, "symbols": list(imp.symbols), "isDefault": imp.is_default},
            )
            targets[target] = edge
            edges.append(edge)
        file_node.import_count = len(targets)

    _heritage_edges(nodes, edges)

    if history is not None:
        if not history.is_git_repo:
            warnings.append({"file": str(root), "warning": "Not a git repository. Git history analysis skipped."})
        for path, file_history in history.file_histories.items():
            node = nodes.get(path)
            if isinstance(node, FileNode):
                node.last_modified = file_history.last_modified
                node.modification_count = file_history.commit_count
                node.contributors = [c.name for c in file_history.contributors]

    languages: Dict[str, int] = {}
    total_lines = 0
    for file_node, _ in file_nodes:
        languages[file_node.language] = languages.get(file_node.language, 0) + 1
        total_lines += file_node.line_count

    metadata = _empty_metadata(root, started)
    metadata.file_count = len(file_nodes)
    metadata.total_lines = total_lines
    metadata.languages = languages
    metadata.node_count = len(nodes)
    metadata.edge_count = len(edges)

    logger.info("Built graph: %d nodes, %d edges, %d errors", len(nodes), len(edges), len(errors))
    return BuildResult(
        graph=KnowledgeGraph(version=GRAPH_VERSION, metadata=metadata, nodes=nodes, edges=edges),
        errors=errors,
        warnings=warnings,
    )


def get_graph_stats(graph: KnowledgeGraph) -> Dict[str, object]:
    """Metadata plus node/edge histograms and complexity aggregates."""
    nodes_by_type: Dict[str, int] = {}
    edges_by_type: Dict[str, int] = {}
    for node in graph.nodes.values():
        nodes_by_type[node.type] = nodes_by_type.get(node.type, 0) + 1
    for edge in graph.edges:
        edges_by_type[edge.type] = edges_by_type.get(edge.type, 0) + 1

    complexities = [n.complexity for n in graph.nodes.values() if n.complexity is not None]
    avg = sum(complexities) / len(complexities) if complexities else 0
    return {
        **graph.metadata.to_dict(),
        "nodesByType": nodes_by_type,
        "edgesByType": edges_by_type,
        "avgComplexity": round(avg, 2),
        "maxComplexity": max(complexities) if complexities else 0,
    }
