"""Core graph data models shared by the builder, the store and every analyzer."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields, is_dataclass
from datetime import datetime
from typing import Any, ClassVar, Dict, Iterator, List, Optional, Type

NODE_TYPES = ("file", "function", "class", "interface", "type", "enum", "variable")
EDGE_TYPES = ("imports", "exports", "calls", "extends", "implements", "contains")


def camel_case(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def serialize(value: Any) -> Any:
    """Convert dataclass results into JSON-ready structures with camelCase field names.

    Only dataclass field names are renamed; keys of plain dicts (file paths,
    contributor names) are kept verbatim.
    """
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if is_dataclass(value) and not isinstance(value, type):
        return {camel_case(f.name): serialize(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, dict):
        return {key: serialize(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize(item) for item in value]
    if isinstance(value, set):
        return sorted(serialize(item) for item in value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _require_mapping(data: Any, what: str) -> None:
    if not isinstance(data, dict):
        raise TypeError(f"Expected a JSON object for {what}, got {type(data).__name__}")


@dataclass
class GraphNode:
    """Fields shared by every node kind. Subclasses pin ``node_type``."""

    node_type: ClassVar[str] = ""

    id: str
    name: str
    file_path: str
    line_start: int
    line_end: int
    exported: bool = False
    complexity: Optional[int] = None
    last_modified: Optional[str] = None
    modification_count: Optional[int] = None
    contributors: Optional[List[str]] = None
    documentation: Optional[str] = None

    @property
    def type(self) -> str:
        return self.node_type

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"id": self.id, "type": self.node_type}
        for f in fields(self):
            if f.name == "id":
                continue
            value = getattr(self, f.name)
            if value is None:
                continue
            payload[camel_case(f.name)] = list(value) if isinstance(value, list) else value
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GraphNode":
        _require_mapping(data, "node")
        node_cls = NODE_CLASSES.get(data.get("type", ""))
        if node_cls is None:
            raise ValueError(f"Unknown node type: {data.get('type')!r}")
        kwargs = {}
        for f in fields(node_cls):
            key = camel_case(f.name)
            if key in data:
                kwargs[f.name] = data[key]
        return node_cls(**kwargs)


@dataclass
class FileNode(GraphNode):
    node_type: ClassVar[str] = "file"

    language: str = "javascript"
    line_count: int = 0
    import_count: int = 0
    export_count: int = 0


@dataclass
class FunctionNode(GraphNode):
    node_type: ClassVar[str] = "function"

    parameters: List[str] = field(default_factory=list)
    return_type: Optional[str] = None
    is_async: bool = False
    is_generator: bool = False


@dataclass
class ClassNode(GraphNode):
    node_type: ClassVar[str] = "class"

    is_abstract: bool = False
    extends: Optional[str] = None
    implements: List[str] = field(default_factory=list)
    member_count: int = 0


@dataclass
class InterfaceNode(GraphNode):
    node_type: ClassVar[str] = "interface"

    extends: List[str] = field(default_factory=list)
    member_count: int = 0


@dataclass
class TypeAliasNode(GraphNode):
    node_type: ClassVar[str] = "type"


@dataclass
class EnumNode(GraphNode):
    node_type: ClassVar[str] = "enum"

    member_count: int = 0


@dataclass
class VariableNode(GraphNode):
    node_type: ClassVar[str] = "variable"

    is_const: bool = False


NODE_CLASSES: Dict[str, Type[GraphNode]] = {
    cls.node_type: cls
    for cls in (FileNode, FunctionNode, ClassNode, InterfaceNode, TypeAliasNode, EnumNode, VariableNode)
}


@dataclass
class GraphEdge:
    id: str
    source: str
    target: str
    type: str
    weight: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "type": self.type,
        }
        if self.weight is not None:
            payload["weight"] = self.weight
        if self.metadata:
            payload["metadata"] = dict(self.metadata)
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GraphEdge":
        _require_mapping(data, "edge")
        return cls(
            id=data["id"],
            source=data["source"],
            target=data["target"],
            type=data["type"],
            weight=data.get("weight"),
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass
class GraphMetadata:
    scanned_at: str
    scan_duration_ms: int
    root_dir: str
    file_count: int = 0
    total_lines: int = 0
    languages: Dict[str, int] = field(default_factory=dict)
    node_count: int = 0
    edge_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {camel_case(f.name): getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GraphMetadata":
        _require_mapping(data, "metadata")
        kwargs = {f.name: data[camel_case(f.name)] for f in fields(cls) if camel_case(f.name) in data}
        kwargs["languages"] = dict(kwargs.get("languages") or {})
        return cls(**kwargs)


@dataclass
class KnowledgeGraph:
    """Whole-project graph: nodes keyed by id plus a flat edge list."""

    version: str
    metadata: GraphMetadata
    nodes: Dict[str, GraphNode] = field(default_factory=dict)
    edges: List[GraphEdge] = field(default_factory=list)

    def file_nodes(self) -> List[FileNode]:
        return [n for n in self.nodes.values() if isinstance(n, FileNode)]

    def symbol_nodes(self) -> List[GraphNode]:
        return [n for n in self.nodes.values() if not isinstance(n, FileNode)]

    def edges_of_type(self, edge_type: str) -> Iterator[GraphEdge]:
        return (e for e in self.edges if e.type == edge_type)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "metadata": self.metadata.to_dict(),
            "nodes": {node_id: node.to_dict() for node_id, node in self.nodes.items()},
            "edges": [edge.to_dict() for edge in self.edges],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KnowledgeGraph":
        """Rebuild a graph from its JSON form.

        Raises:
            KeyError, TypeError, ValueError: if the payload is missing fields
                or has the wrong shape.
        """
        _require_mapping(data, "graph")
        nodes = data.get("nodes", {})
        edges = data.get("edges", [])
        if not isinstance(nodes, dict):
            raise TypeError(f"Graph nodes must be an object, got {type(nodes).__name__}")
        if not isinstance(edges, list):
            raise TypeError(f"Graph edges must be a list, got {type(edges).__name__}")
        return cls(
            version=data["version"],
            metadata=GraphMetadata.from_dict(data["metadata"]),
            nodes={node_id: GraphNode.from_dict(raw) for node_id, raw in nodes.items()},
            edges=[GraphEdge.from_dict(raw) for raw in edges],
        )


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (2.5 -> 3, -2.5 -> -2)."""
    return int(math.floor(value + 0.5))
