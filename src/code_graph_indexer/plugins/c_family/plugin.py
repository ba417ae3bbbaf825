"""C/C++ plugin (fallback parsing only; no compiler-grade indexer is wired up)."""

from __future__ import annotations

from dataclasses import dataclass

from code_graph_indexer.core.records import ParseResult, PreciseResult
from code_graph_indexer.plugins.base import FileParseContext, PreciseContext
from code_graph_indexer.plugins.c_family.parser import parse_c_file


@dataclass(frozen=True)
class CFamilyPlugin:
    name: str = "c_family"
    extensions: tuple[str, ...] = (".c", ".h", ".cc", ".cpp", ".cxx", ".hpp", ".hh")

    def run_precise(self, ctx: PreciseContext) -> PreciseResult:
        return PreciseResult()

    def parse_file(self, ctx: FileParseContext) -> ParseResult:
        return parse_c_file(ctx)
