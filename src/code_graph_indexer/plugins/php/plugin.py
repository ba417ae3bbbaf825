"""PHP plugin (fallback parsing only)."""

from __future__ import annotations

from dataclasses import dataclass

from code_graph_indexer.core.records import ParseResult, PreciseResult
from code_graph_indexer.plugins.base import FileParseContext, PreciseContext
from code_graph_indexer.plugins.php.parser import parse_php_file


@dataclass(frozen=True)
class PhpPlugin:
    name: str = "php"
    extensions: tuple[str, ...] = (".php",)

    def run_precise(self, ctx: PreciseContext) -> PreciseResult:
        return PreciseResult()

    def parse_file(self, ctx: FileParseContext) -> ParseResult:
        return parse_php_file(ctx)
