"""C# plugin (fallback parsing only)."""

from __future__ import annotations

from dataclasses import dataclass

from code_graph_indexer.core.records import ParseResult, PreciseResult
from code_graph_indexer.plugins.base import FileParseContext, PreciseContext
from code_graph_indexer.plugins.csharp.parser import parse_csharp_file


@dataclass(frozen=True)
class CSharpPlugin:
    name: str = "csharp"
    extensions: tuple[str, ...] = (".cs",)

    def run_precise(self, ctx: PreciseContext) -> PreciseResult:
        return PreciseResult()

    def parse_file(self, ctx: FileParseContext) -> ParseResult:
        return parse_csharp_file(ctx)
