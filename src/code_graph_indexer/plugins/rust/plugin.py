"""Rust plugin: `rust-analyzer scip` for Cargo roots, regex fallback otherwise."""

from __future__ import annotations

from dataclasses import dataclass

from code_graph_indexer.core.records import ParseResult, PreciseResult
from code_graph_indexer.plugins.base import FileParseContext, PreciseContext
from code_graph_indexer.plugins.rust.parser import parse_rust_file
from code_graph_indexer.precise.runner import SCIP_RUST, run_precise_indexer


@dataclass(frozen=True)
class RustPlugin:
    name: str = "rust"
    extensions: tuple[str, ...] = (".rs",)

    def run_precise(self, ctx: PreciseContext) -> PreciseResult:
        return run_precise_indexer(
            SCIP_RUST,
            workspace_path=ctx.workspace_path,
            root=ctx.root,
            repo_id=ctx.repo_id,
            timeout_s=ctx.timeout_s,
        )

    def parse_file(self, ctx: FileParseContext) -> ParseResult:
        return parse_rust_file(ctx)
