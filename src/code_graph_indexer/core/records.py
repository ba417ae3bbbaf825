"""Internal record contracts shared by scanners, plugins, resolvers and writers."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from code_graph_indexer.core.stable_ids import edge_hash


EntityKind = str  # "file" | "directory" | "function" | "class" | ...
EdgeKind = str  # "contains" | "calls" | "imports" | ...

ENTITY_KINDS: frozenset[str] = frozenset(
    {
        "file",
        "directory",
        "function",
        "class",
        "interface",
        "method",
        "variable",
        "type",
        "enum",
        "module",
        "namespace",
        "struct",
        "decorator",
    }
)

EDGE_KINDS: frozenset[str] = frozenset(
    {"contains", "calls", "imports", "implements", "extends", "references", "member_of"}
)

CALLABLE_KINDS: frozenset[str] = frozenset({"function", "method"})


@dataclass(frozen=True)
class Entity:
    id: str
    repo_id: str
    kind: EntityKind
    name: str
    file_path: str
    start_line: int
    end_line: int
    language: str
    signature: Optional[str] = None
    exported: bool = False
    doc: Optional[str] = None
    parent: Optional[str] = None
    body: Optional[str] = None
    complexity: Optional[int] = None
    is_async: bool = False
    parameter_count: Optional[int] = None
    return_type: Optional[str] = None
    index_version: Optional[str] = None


@dataclass(frozen=True)
class Edge:
    from_id: str
    to_id: str
    kind: EdgeKind
    repo_id: str = ""
    imported_symbols: tuple[str, ...] = ()
    is_external: bool = False
    package_name: Optional[str] = None
    boundary_category: Optional[str] = None
    confidence: float = 1.0
    metadata: dict = field(default_factory=dict, hash=False, compare=False)
    index_version: Optional[str] = None

    @property
    def id(self) -> str:
        return edge_hash(self.from_id, self.to_id, self.kind)


@dataclass(frozen=True)
class ScannedFile:
    relative_path: str
    absolute_path: Path
    extension: str


@dataclass(frozen=True)
class LanguageDetection:
    language: str
    extensions: tuple[str, ...]
    file_count: int


@dataclass(frozen=True)
class WorkspaceInfo:
    roots: tuple[str, ...]
    type: str  # "single" | "pnpm" | "nx" | "lerna" | "yarn" | "npm"


@dataclass(frozen=True)
class ParseResult:
    entities: list[Entity] = field(default_factory=list)
    edges: list[Edge] = field(default_factory=list)


@dataclass(frozen=True)
class PreciseResult:
    entities: list[Entity] = field(default_factory=list)
    edges: list[Edge] = field(default_factory=list)
    covered_files: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class IndexedFile:
    path: str  # workspace-relative, posix separators
    language: str
    line_count: int
