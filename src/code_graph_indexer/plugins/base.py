"""Plugin contract types."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from code_graph_indexer.core.records import ParseResult, PreciseResult
from code_graph_indexer.plugins.imports import KnownFiles


DEFAULT_MAX_BODY_LINES = 3000


@dataclass(frozen=True)
class PreciseContext:
    repo_id: str
    workspace_path: Path
    root: str  # workspace-relative package root, "." for the repository root
    timeout_s: float


@dataclass(frozen=True)
class FileParseContext:
    repo_id: str
    file_path: str  # workspace-relative, posix separators
    content: str
    language: str
    known_files: KnownFiles = field(default_factory=KnownFiles.empty)
    max_body_lines: int = DEFAULT_MAX_BODY_LINES


class LanguagePlugin(Protocol):
    name: str
    extensions: tuple[str, ...]

    def run_precise(self, ctx: PreciseContext) -> PreciseResult:
        """Decode a compiler-grade index for one workspace root; empty when unavailable."""

    def parse_file(self, ctx: FileParseContext) -> ParseResult:
        """Heuristic structural parse of one file (deterministic, file-local state only)."""
