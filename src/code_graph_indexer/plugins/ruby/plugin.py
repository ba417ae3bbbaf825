"""Ruby plugin (fallback parsing only)."""

from __future__ import annotations

from dataclasses import dataclass

from code_graph_indexer.core.records import ParseResult, PreciseResult
from code_graph_indexer.plugins.base import FileParseContext, PreciseContext
from code_graph_indexer.plugins.ruby.parser import parse_ruby_file


@dataclass(frozen=True)
class RubyPlugin:
    name: str = "ruby"
    extensions: tuple[str, ...] = (".rb", ".rake")

    def run_precise(self, ctx: PreciseContext) -> PreciseResult:
        return PreciseResult()

    def parse_file(self, ctx: FileParseContext) -> ParseResult:
        return parse_ruby_file(ctx)
