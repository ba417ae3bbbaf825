"""Python plugin: `scip-python` for roots with a project manifest, indentation-scoped fallback otherwise."""

from __future__ import annotations

from dataclasses import dataclass

from code_graph_indexer.core.records import ParseResult, PreciseResult
from code_graph_indexer.plugins.base import FileParseContext, PreciseContext
from code_graph_indexer.plugins.python.parser import parse_python_file
from code_graph_indexer.precise.runner import SCIP_PYTHON, run_precise_indexer


@dataclass(frozen=True)
class PythonPlugin:
    name: str = "python"
    extensions: tuple[str, ...] = (".py", ".pyi")

    def run_precise(self, ctx: PreciseContext) -> PreciseResult:
        return run_precise_indexer(
            SCIP_PYTHON,
            workspace_path=ctx.workspace_path,
            root=ctx.root,
            repo_id=ctx.repo_id,
            timeout_s=ctx.timeout_s,
        )

    def parse_file(self, ctx: FileParseContext) -> ParseResult:
        return parse_python_file(ctx)
