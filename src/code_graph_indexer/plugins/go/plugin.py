"""Go plugin: `scip-go` for module roots, regex fallback otherwise."""

from __future__ import annotations

from dataclasses import dataclass

from code_graph_indexer.core.records import ParseResult, PreciseResult
from code_graph_indexer.plugins.base import FileParseContext, PreciseContext
from code_graph_indexer.plugins.go.parser import parse_go_file
from code_graph_indexer.precise.runner import SCIP_GO, run_precise_indexer


@dataclass(frozen=True)
class GoPlugin:
    name: str = "go"
    extensions: tuple[str, ...] = (".go",)

    def run_precise(self, ctx: PreciseContext) -> PreciseResult:
        return run_precise_indexer(
            SCIP_GO,
            workspace_path=ctx.workspace_path,
            root=ctx.root,
            repo_id=ctx.repo_id,
            timeout_s=ctx.timeout_s,
        )

    def parse_file(self, ctx: FileParseContext) -> ParseResult:
        return parse_go_file(ctx)
