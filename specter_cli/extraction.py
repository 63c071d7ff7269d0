"""Static-analysis facts consumed by the graph builder.

Specter does not parse source code itself. An external extractor emits one
record per file (symbols, imports, exports) as a JSON document::

    {"files": [{"path": "src/a.ts", "lineCount": 40,
                "symbols": [...], "imports": [...], "exports": [...]}]}

This module turns that document into typed records.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

SYMBOL_KINDS = ("function", "class", "interface", "type", "enum", "variable")


@dataclass
class ExtractedSymbol:
    kind: str
    name: str
    line_start: int
    line_end: int
    exported: bool = False
    complexity: Optional[int] = None
    documentation: Optional[str] = None
    parameters: List[str] = field(default_factory=list)
    return_type: Optional[str] = None
    is_async: bool = False
    is_generator: bool = False
    is_abstract: bool = False
    is_const: bool = False
    extends: List[str] = field(default_factory=list)
    implements: List[str] = field(default_factory=list)
    member_count: int = 0


@dataclass
class ExtractedImport:
    """An import statement. ``resolved_path`` is None for external packages."""

    specifier: str
    resolved_path: Optional[str] = None
    symbols: List[str] = field(default_factory=list)
    is_default: bool = False


@dataclass
class ExtractedExport:
    name: str
    is_default: bool = False
    is_re_export: bool = False


@dataclass
class FileExtraction:
    path: str
    line_count: int = 0
    symbols: List[ExtractedSymbol] = field(default_factory=list)
    imports: List[ExtractedImport] = field(default_factory=list)
    exports: List[ExtractedExport] = field(default_factory=list)
    error: Optional[str] = None


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _parse_symbol(raw: Dict[str, Any]) -> ExtractedSymbol:
    kind = raw.get("kind") or raw.get("type")
    if kind not in SYMBOL_KINDS:
        raise ValueError(f"unknown symbol kind {kind!r}")
    complexity = raw.get("complexity")
    return ExtractedSymbol(
        kind=kind,
        name=str(raw["name"]),
        line_start=int(raw["lineStart"]),
        line_end=int(raw.get("lineEnd", raw["lineStart"])),
        exported=bool(raw.get("exported", False)),
        complexity=int(complexity) if complexity is not None else None,
        documentation=raw.get("documentation"),
        parameters=[str(p) for p in _as_list(raw.get("parameters"))],
        return_type=raw.get("returnType"),
        is_async=bool(raw.get("isAsync", False)),
        is_generator=bool(raw.get("isGenerator", False)),
        is_abstract=bool(raw.get("isAbstract", False)),
        is_const=bool(raw.get("isConst", False)),
        extends=[str(e) for e in _as_list(raw.get("extends"))],
        implements=[str(i) for i in _as_list(raw.get("implements"))],
        member_count=int(raw.get("memberCount", 0)),
    )


def parse_file_extraction(raw: Dict[str, Any]) -> FileExtraction:
    """Parse one file record.

    A record that cannot be parsed is returned with ``error`` set so the
    builder can report it and carry on with the remaining files.
    """
    path = str(raw.get("path", "")) if isinstance(raw, dict) else ""
    try:
        if not path:
            raise ValueError("missing path")
        return FileExtraction(
            path=path,
            line_count=int(raw.get("lineCount", 0)),
            symbols=[_parse_symbol(s) for s in raw.get("symbols", [])],
            imports=[
                ExtractedImport(
                    specifier=str(i["specifier"]),
                    resolved_path=i.get("resolvedPath"),
                    symbols=[str(s) for s in _as_list(i.get("symbols"))],
                    is_default=bool(i.get("isDefault", False)),
                )
                for i in raw.get("imports", [])
            ],
            exports=[
                ExtractedExport(
                    name=str(e["name"]),
                    is_default=bool(e.get("isDefault", False)),
                    is_re_export=bool(e.get("isReExport", False)),
                )
                for e in raw.get("exports", [])
            ],
            error=raw.get("error"),
        )
    except (KeyError, TypeError, ValueError) as exc:
        logger.debug("Bad extractor record for %s: %s", path or "<unknown>", exc)
        return FileExtraction(path=path or "<unknown>", error=f"Invalid extractor record: {exc}")


def load_extractions(path: Path) -> List[FileExtraction]:
    """Read an extractor facts document from disk.

    Raises:
        ValueError: if the document is not valid JSON or has no ``files`` list.
    """
    try:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Facts file is not valid JSON: {exc}") from exc

    files = payload.get("files") if isinstance(payload, dict) else payload
    if not isinstance(files, list):
        raise ValueError("Facts file must contain a 'files' list")
    return [parse_file_extraction(raw) for raw in files]
