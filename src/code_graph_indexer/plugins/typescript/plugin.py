"""TypeScript/JavaScript plugin: `scip-typescript` when the root has a tsconfig, regex fallback otherwise."""

from __future__ import annotations

from dataclasses import dataclass

from code_graph_indexer.core.records import ParseResult, PreciseResult
from code_graph_indexer.plugins.base import FileParseContext, PreciseContext
from code_graph_indexer.plugins.typescript.parser import parse_typescript_file
from code_graph_indexer.precise.runner import SCIP_TYPESCRIPT, run_precise_indexer


@dataclass(frozen=True)
class TypeScriptPlugin:
    name: str = "typescript"
    extensions: tuple[str, ...] = (".ts", ".tsx", ".mts", ".cts", ".js", ".jsx", ".mjs", ".cjs")

    def run_precise(self, ctx: PreciseContext) -> PreciseResult:
        return run_precise_indexer(
            SCIP_TYPESCRIPT,
            workspace_path=ctx.workspace_path,
            root=ctx.root,
            repo_id=ctx.repo_id,
            timeout_s=ctx.timeout_s,
        )

    def parse_file(self, ctx: FileParseContext) -> ParseResult:
        return parse_typescript_file(ctx)
