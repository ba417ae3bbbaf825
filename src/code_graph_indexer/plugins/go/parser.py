"""Heuristic Go parser.

Packages are directories in Go, so internal imports point at a directory
entity; every import brings the whole package into scope.
"""

from __future__ import annotations

import re
from typing import Optional

from code_graph_indexer.core.boundaries import is_stdlib
from code_graph_indexer.core.records import ParseResult
from code_graph_indexer.plugins.base import FileParseContext
from code_graph_indexer.plugins.doc_comments import extract_preceding_doc
from code_graph_indexer.plugins.imports import ImportStatement, ImportTarget, build_import_edges
from code_graph_indexer.plugins.structural import (
    BLOCK_BRACE,
    BLOCK_LINE,
    FileScan,
    count_params,
    join_header,
)


COMPLEXITY = re.compile(r"\b(?:if|else\s+if|for|case|select)\b|&&|\|\|")

_SINGLE_IMPORT = re.compile(r"^import\s+(?:([\w.]+)\s+)?\"([^\"]+)\"")
_BLOCK_IMPORT_LINE = re.compile(r"^\s*(?:([\w.]+)\s+)?\"([^\"]+)\"")
_FUNC = re.compile(r"^func\s+(?:\(\s*(?:\w+\s+)?\*?\s*([A-Za-z_]\w*)(?:\[[^\]]*\])?\s*\)\s*)?([A-Za-z_]\w*)\s*(?:\[[^\]]*\])?\s*\(")
_TYPE = re.compile(r"^type\s+([A-Za-z_]\w*)(?:\[[^\]]*\])?\s+(=\s*)?(struct|interface)?\b")
_RECEIVER = re.compile(r"^func\s*(\([^)]*\))")


def import_statements(lines: list[str]) -> list[ImportStatement]:
    out: list[ImportStatement] = []
    in_block = False
    for i, line in enumerate(lines):
        trimmed = line.strip()
        if in_block:
            if trimmed.startswith(")"):
                in_block = False
                continue
            m = _BLOCK_IMPORT_LINE.match(trimmed)
            if m and m.group(1) != "_":
                out.append(ImportStatement(specifier=m.group(2), line=i + 1, import_all=True))
            continue
        if trimmed.startswith("import ("):
            in_block = True
            continue
        m = _SINGLE_IMPORT.match(trimmed)
        if m and m.group(1) != "_":
            out.append(ImportStatement(specifier=m.group(2), line=i + 1, import_all=True))
    return out


def resolve_specifier(ctx: FileParseContext, specifier: str) -> Optional[ImportTarget]:
    """Match the import path's trailing segments against workspace directories."""

    if is_stdlib(specifier, "go"):
        return None
    parts = specifier.split("/")
    # Two segments minimum so `github.com/x/util` never lands on an unrelated local `util/`.
    for start in range(len(parts) - 1):
        suffix = "/".join(parts[start:])
        hit = ctx.known_files.lookup_dir(suffix)
        if hit is not None:
            return ImportTarget(path=hit, resolved=True, is_directory=True)
    return None


def _params_and_return(header: str) -> tuple[str, Optional[str]]:
    body_start = header.rfind("{")
    sig = header[:body_start] if body_start != -1 else header
    recv = _RECEIVER.match(sig)
    rest = sig[recv.end():] if recv else sig
    open_idx = rest.find("(")
    if open_idx == -1:
        return "", None
    depth = 0
    for i in range(open_idx, len(rest)):
        if rest[i] == "(":
            depth += 1
        elif rest[i] == ")":
            depth -= 1
            if depth == 0:
                ret = rest[i + 1 :].strip()
                return rest[open_idx + 1 : i], ret or None
    return rest[open_idx + 1 :], None


def parse_go_file(ctx: FileParseContext) -> ParseResult:
    scan = FileScan(ctx)
    lines = scan.lines
    import_edges = build_import_edges(
        repo_id=ctx.repo_id,
        file_path=ctx.file_path,
        language=ctx.language,
        statements=import_statements(lines),
        resolve=lambda spec: resolve_specifier(ctx, spec),
    )

    for i, line in enumerate(lines):
        line_no = i + 1
        m = _FUNC.match(line)
        if m:
            receiver, name = m.group(1), m.group(2)
            params, ret = _params_and_return(join_header(lines, i, scan.noise))
            fields = dict(
                exported=name[0].isupper(),
                parameter_count=count_params(params),
                return_type=ret if ret and len(ret) <= 100 else None,
            )
            if receiver:
                decl = scan.declare("method", name, line_no, signature=f"func ({receiver}) {name}({params.strip()})", **fields)
                decl.parent = receiver
                scan.link(decl.id, scan.local_id("struct", receiver), "member_of")
            else:
                scan.declare("function", name, line_no, signature=f"func {name}({params.strip()})", **fields)
            continue

        m = _TYPE.match(line)
        if m:
            name, shape = m.group(1), m.group(3)
            if shape == "struct":
                kind = "struct"
            elif shape == "interface":
                kind = "interface"
            else:
                kind = "type"
            block = BLOCK_LINE if kind == "type" and "{" not in line else BLOCK_BRACE
            scan.declare(kind, name, line_no, block=block, exported=name[0].isupper())

    return scan.finish(complexity=COMPLEXITY, doc=extract_preceding_doc, import_edges=import_edges)
