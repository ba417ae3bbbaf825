"""Heuristic Ruby parser: classes, modules and methods scoped by `end` keywords."""

from __future__ import annotations

import re
from typing import Optional

from code_graph_indexer.core.boundaries import is_stdlib
from code_graph_indexer.core.records import ParseResult
from code_graph_indexer.plugins.base import FileParseContext
from code_graph_indexer.plugins.doc_comments import extract_preceding_doc
from code_graph_indexer.plugins.imports import (
    ImportStatement,
    ImportTarget,
    build_import_edges,
    normalize_relative,
    resolve_with_candidates,
)
from code_graph_indexer.plugins.structural import (
    BLOCK_END_KEYWORD,
    Declaration,
    FileScan,
    count_params,
    end_keyword_delta,
    strip_hash_noise,
)


COMPLEXITY = re.compile(r"\b(?:if|elsif|unless|for|while|until|when|rescue)\b|&&|\|\|")

LOAD_PATH_ROOTS = ("lib/", "app/", "")

_REQUIRE = re.compile(r"^\s*(require|require_relative|load)\s*\(?\s*['\"]([^'\"]+)['\"]")
_CLASS = re.compile(r"^\s*class\s+((?:[A-Z]\w*::)*[A-Z]\w*)(?:\s*<\s*((?:::)?[A-Z][\w:]*))?")
_MODULE = re.compile(r"^\s*module\s+((?:[A-Z]\w*::)*[A-Z]\w*)")
_DEF = re.compile(r"^\s*(?:(private|protected|public)\s+)?def\s+(self\.)?([A-Za-z_]\w*[?!=]?|\[\]=?|[+\-*/<=>!~%&|^]+)\s*(\(([^)]*)\)|[^=\n;]*)?")
_VISIBILITY = re.compile(r"^\s*(private|protected|public)\s*$")


def import_statements(lines: list[str]) -> list[ImportStatement]:
    out: list[ImportStatement] = []
    for i, line in enumerate(lines):
        m = _REQUIRE.match(line)
        if not m:
            continue
        spec = m.group(2)
        if m.group(1) == "require_relative" and not spec.startswith("."):
            spec = f"./{spec}"
        out.append(ImportStatement(specifier=spec, line=i + 1, import_all=True))
    return out


def resolve_specifier(ctx: FileParseContext, specifier: str) -> Optional[ImportTarget]:
    known = ctx.known_files
    if specifier.startswith("."):
        base = normalize_relative(ctx.file_path, specifier)
        if base is None:
            return ImportTarget(path=specifier, resolved=False)
        return resolve_with_candidates(known, base, (".rb",))
    if is_stdlib(specifier, "ruby"):
        return None
    stem = specifier[:-3] if specifier.endswith(".rb") else specifier
    hit = known.first_existing(f"{root}{stem}.rb" for root in LOAD_PATH_ROOTS)
    if hit is not None:
        return ImportTarget(path=hit, resolved=True)
    if "/" in stem:
        hit = known.lookup(stem, (".rb",))
        if hit is not None:
            return ImportTarget(path=hit, resolved=True)
    return None


def _ruby_doc(lines, idx):
    return extract_preceding_doc(lines, idx, line_prefixes=("#",), allow_block=False)


class _Scope:
    def __init__(self, decl: Optional[Declaration], depth: int) -> None:
        self.decl = decl
        self.depth = depth
        self.visibility = "public"


def parse_ruby_file(ctx: FileParseContext) -> ParseResult:
    scan = FileScan(ctx, noise=strip_hash_noise)
    lines = scan.lines
    import_edges = build_import_edges(
        repo_id=ctx.repo_id,
        file_path=ctx.file_path,
        language=ctx.language,
        statements=import_statements(lines),
        resolve=lambda spec: resolve_specifier(ctx, spec),
    )

    # Open class/module bodies, each with the `end` depth it closes at.
    scopes: list[_Scope] = []
    depth = 0
    for i, line in enumerate(lines):
        line_no = i + 1
        trimmed = line.strip()
        if trimmed and not trimmed.startswith("#"):
            owner = scopes[-1] if scopes else None
            _match_line(scan, line, line_no, owner, scopes, depth)
        depth += end_keyword_delta(line)
        while scopes and depth <= scopes[-1].depth:
            scopes.pop()

    return scan.finish(complexity=COMPLEXITY, doc=_ruby_doc, import_edges=import_edges)


def _match_line(scan: FileScan, line: str, line_no: int, owner: Optional[_Scope], scopes: list[_Scope], depth: int) -> None:
    vm = _VISIBILITY.match(line)
    if vm:
        if owner is not None:
            owner.visibility = vm.group(1)
        return

    m = _CLASS.match(line)
    if m:
        name = m.group(1).rpartition("::")[2]
        decl = scan.declare("class", name, line_no, block=BLOCK_END_KEYWORD, exported=True)
        if owner is not None and owner.decl is not None:
            scan.member_of(decl, owner.decl)
        if m.group(2):
            base = m.group(2).rpartition("::")[2]
            scan.link(decl.id, scan.local_id("class", base), "extends")
        scopes.append(_Scope(decl, depth))
        return

    m = _MODULE.match(line)
    if m:
        name = m.group(1).rpartition("::")[2]
        decl = scan.declare("module", name, line_no, block=BLOCK_END_KEYWORD, exported=True)
        scopes.append(_Scope(decl, depth))
        return

    if line.strip().startswith("class << self"):
        # Singleton-class body: methods inside belong to the enclosing class.
        scopes.append(_Scope(owner.decl if owner is not None else None, depth))
        return

    m = _DEF.match(line)
    if not m:
        return
    inline_visibility, singleton, name = m.group(1), bool(m.group(2)), m.group(3)
    params = m.group(5) if m.group(5) is not None else (m.group(4) or "")
    params = strip_hash_noise(params).strip()
    visibility = inline_visibility or (owner.visibility if owner is not None else "public")
    owner_decl = owner.decl if owner is not None else None
    if owner_decl is not None:
        sep = "." if singleton else "#"
        decl = scan.declare(
            "method",
            name,
            line_no,
            signature=f"{owner_decl.name}{sep}{name}({params})",
            block=BLOCK_END_KEYWORD,
            exported=visibility == "public",
            parameter_count=count_params(params),
        )
        scan.member_of(decl, owner_decl)
    else:
        scan.declare(
            "function",
            name,
            line_no,
            signature=f"def {name}({params})",
            block=BLOCK_END_KEYWORD,
            exported=visibility == "public",
            parameter_count=count_params(params),
        )
