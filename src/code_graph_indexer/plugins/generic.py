"""File-only plugin for extensions no language plugin claims.

The writer still materializes a `file` entity for every scanned path, so
these files take part in containment without contributing declarations.
"""

from __future__ import annotations

from dataclasses import dataclass

from code_graph_indexer.core.records import ParseResult, PreciseResult
from code_graph_indexer.plugins.base import FileParseContext, PreciseContext


@dataclass(frozen=True)
class GenericFilePlugin:
    name: str = "generic"
    extensions: tuple[str, ...] = ()

    def run_precise(self, ctx: PreciseContext) -> PreciseResult:
        return PreciseResult()

    def parse_file(self, ctx: FileParseContext) -> ParseResult:
        return ParseResult()
