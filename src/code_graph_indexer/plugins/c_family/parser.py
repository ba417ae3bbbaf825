"""Heuristic C and C++ parser.

Only definitions become functions at file or namespace scope (prototypes
are skipped there); inside a class body both inline definitions and member
declarations are recorded as methods. Out-of-line `Class::method`
definitions are attached to `Class` when it is declared in the same file.
"""

from __future__ import annotations

import posixpath
import re
from typing import Optional

from code_graph_indexer.core.records import ParseResult
from code_graph_indexer.plugins.base import FileParseContext
from code_graph_indexer.plugins.doc_comments import extract_preceding_doc
from code_graph_indexer.plugins.imports import ImportStatement, ImportTarget, build_import_edges
from code_graph_indexer.plugins.structural import (
    BLOCK_BRACE,
    BLOCK_LINE,
    CONTROL_KEYWORDS,
    Declaration,
    FileScan,
    ScopeStack,
    count_params,
    header_end,
    is_comment_line,
    join_header,
)


C_COMPLEXITY = re.compile(r"\b(?:if|else\s+if|for|while|do|case|switch)\b|&&|\|\||\?")
CPP_COMPLEXITY = re.compile(r"\b(?:if|else\s+if|for|while|do|case|catch|switch)\b|&&|\|\||\?")

INCLUDE_ROOTS = ("include/", "src/", "")

_INCLUDE = re.compile(r"^\s*#\s*include\s*[<\"]([^>\"]+)[>\"]")
_SPECIFIERS = r"((?:(?:static|inline|extern|virtual|constexpr|consteval|explicit|friend|unsigned|signed|const|volatile|__inline|template\s*<[^>]*>)\s+)*)"
_FUNCTION = re.compile(
    r"^" + _SPECIFIERS + r"((?:[\w:<>,]+[\s*&]+)+?)?([*&]*\s*~?[A-Za-z_][\w]*(?:::~?[A-Za-z_]\w*)*|operator\s*\S+?)\s*\(([^;{]*?)\)"
    r"\s*((?:const|noexcept|override|final|volatile|&|&&)\s*)*(?:->\s*[^{;]+)?(?::[^;{]*)?\s*(\{|;|$)"
)
_TYPE_DECL = re.compile(
    r"^(typedef\s+)?(?:template\s*<[^>]*>\s*)?(struct|class|union|enum(?:\s+(?:class|struct))?)\s+(?:\w+\s+)*?([A-Za-z_]\w*)\s*(?:final\s*)?(:[^{;]*)?\s*(\{|$)"
)
_NAMESPACE = re.compile(r"^(?:inline\s+)?namespace\s+([A-Za-z_][\w:]*)\s*\{?")
_EXTERN_C = re.compile(r"^extern\s+\"C(?:\+\+)?\"\s*\{")
_TYPEDEF = re.compile(r"^typedef\s+[^;{]+?\b([A-Za-z_]\w*)\s*;")
_ACCESS_LABEL = re.compile(r"^(public|private|protected)\s*:")
# `.h` files are routed as C; these constructs mark a C++ header.
_CPP_HINT = re.compile(r"^\s*(?:namespace\s+\w+|class\s+\w+|template\s*<)", re.M)
_BASE = re.compile(r"(?:public|protected|private|virtual|\s)*([A-Za-z_][\w:]*)")


def import_statements(lines: list[str]) -> list[ImportStatement]:
    out: list[ImportStatement] = []
    for i, line in enumerate(lines):
        m = _INCLUDE.match(line)
        if m:
            out.append(ImportStatement(specifier=m.group(1), line=i + 1, import_all=True))
    return out


def resolve_specifier(ctx: FileParseContext, specifier: str) -> Optional[ImportTarget]:
    known = ctx.known_files
    here = posixpath.dirname(ctx.file_path)
    candidates = [posixpath.normpath(posixpath.join(here, specifier))] if here else [specifier]
    candidates += [f"{root}{specifier}" for root in INCLUDE_ROOTS]
    hit = known.first_existing(candidates)
    if hit is not None:
        return ImportTarget(path=hit, resolved=True)
    if "/" in specifier:
        hit = known.lookup(specifier, ("",))
        if hit is not None:
            return ImportTarget(path=hit, resolved=True)
    return None


def _base_names(raw: Optional[str]) -> list[str]:
    if not raw:
        return []
    out: list[str] = []
    for part in re.sub(r"<[^<>]*>", "", raw.lstrip(":")).split(","):
        m = _BASE.fullmatch(part.strip()) if part.strip() else None
        if m:
            out.append(m.group(1).rpartition("::")[2])
    return out


def _next_code_starts_brace(lines: list[str], idx: int) -> bool:
    for j in range(idx + 1, min(len(lines), idx + 3)):
        s = lines[j].strip()
        if s:
            return s.startswith("{")
    return False


class _CWalker:
    def __init__(self, scan: FileScan, cpp: bool):
        self.scan = scan
        self.cpp = cpp
        self.scopes = ScopeStack()
        self.access: dict[str, str] = {}
        # (method, owning class name) for out-of-line definitions
        self.qualified: list[tuple[Declaration, str]] = []

    def walk(self) -> None:
        lines = self.scan.lines
        for i, line in enumerate(lines):
            trimmed = line.strip()
            code = self.scan.noise(line)
            if trimmed and not is_comment_line(trimmed) and not trimmed.startswith("#"):
                header = join_header(lines, i, self.scan.noise) if "(" in code else trimmed
                self.line(header, i, lines)
            self.scopes.advance(code)
        by_name = {d.name: d for d in self.scan.declarations if d.kind in ("class", "struct")}
        for method, owner_name in self.qualified:
            owner = by_name.get(owner_name)
            if owner is not None:
                self.scan.link(method.id, owner.id, "member_of")

    def line(self, header: str, idx: int, lines: list[str]) -> None:
        scan = self.scan
        line_no = idx + 1
        owner = self.scopes.owner()
        in_class = owner is not None and owner.kind in ("class", "struct")
        at_file_scope = self.scopes.depth == 0 or (owner is not None and owner.kind == "namespace")

        if in_class:
            label = _ACCESS_LABEL.match(header)
            if label:
                self.access[owner.id] = label.group(1)
                header = header[label.end():].strip()
                if not header:
                    return

        if at_file_scope and _EXTERN_C.match(header):
            # Linkage block: its contents stay at file scope.
            self.scopes.push(Declaration(id="", kind="namespace", name="", start_line=line_no, exported=True))
            return

        m = _NAMESPACE.match(header) if self.cpp and at_file_scope else None
        if m:
            decl = scan.declare("namespace", m.group(1), line_no, exported=True)
            self.scopes.push(decl)
            return

        m = _TYPE_DECL.match(header)
        if m and (at_file_scope or in_class):
            keyword, name = m.group(2), m.group(3)
            kind = "enum" if keyword.startswith("enum") else ("class" if keyword == "class" else "struct")
            decl = scan.declare(kind, name, line_no, exported=not in_class or self._public(owner))
            if in_class:
                scan.member_of(decl, owner)
            for base in _base_names(m.group(4)):
                scan.link(decl.id, scan.local_id("class", base), "extends")
            if kind != "enum":
                self.access[decl.id] = "private" if keyword == "class" else "public"
                self.scopes.push(decl)
            return

        m = _TYPEDEF.match(header)
        if m and at_file_scope:
            scan.declare("type", m.group(1), line_no, block=BLOCK_LINE, exported=True)
            return

        m = _FUNCTION.match(header) if "(" in header else None
        if not m or not (at_file_scope or in_class):
            return
        specifiers, ret, name, params, terminator = m.group(1), m.group(2), m.group(3), m.group(4), m.group(6)
        name = name.lstrip("*& ").strip()
        leaf = name.rpartition("::")[2]
        if leaf in CONTROL_KEYWORDS or (ret or "").strip() in ("return", "else", "new", "delete"):
            return
        is_definition = terminator == "{" or (
            terminator == "" and _next_code_starts_brace(lines, header_end(lines, idx, scan.noise))
        )
        if not is_definition and not in_class:
            return
        fields = dict(
            parameter_count=0 if params.strip() in ("", "void") else count_params(params),
            return_type=" ".join(ret.split()) if ret else None,
            block=BLOCK_BRACE if is_definition else BLOCK_LINE,
        )
        params_sig = " ".join(params.split())
        if in_class:
            decl = scan.declare("method", leaf, line_no, signature=f"{owner.name}::{leaf}({params_sig})",
                                exported=self._public(owner), **fields)
            scan.member_of(decl, owner)
        elif "::" in name and self.cpp:
            owner_name = name.rpartition("::")[0].rpartition("::")[2]
            decl = scan.declare("method", leaf, line_no, signature=f"{owner_name}::{leaf}({params_sig})",
                                exported=True, **fields)
            if is_definition and decl.block == BLOCK_LINE and decl.start_line != line_no:
                # Member declared in the class body; the definition carries the body.
                decl.start_line = line_no
                decl.block = BLOCK_BRACE
            decl.parent = owner_name
            self.qualified.append((decl, owner_name))
        else:
            scan.declare("function", leaf, line_no, signature=f"{leaf}({params_sig})",
                         exported="static" not in specifiers.split(), **fields)

    def _public(self, owner: Declaration) -> bool:
        return owner.exported and self.access.get(owner.id, "public") == "public"


def parse_c_file(ctx: FileParseContext) -> ParseResult:
    cpp = ctx.language == "cpp" or (ctx.file_path.endswith(".h") and _CPP_HINT.search(ctx.content) is not None)
    scan = FileScan(ctx)
    import_edges = build_import_edges(
        repo_id=ctx.repo_id,
        file_path=ctx.file_path,
        language=ctx.language,
        statements=import_statements(scan.lines),
        resolve=lambda spec: resolve_specifier(ctx, spec),
    )
    _CWalker(scan, cpp).walk()
    return scan.finish(
        complexity=CPP_COMPLEXITY if cpp else C_COMPLEXITY,
        doc=extract_preceding_doc,
        import_edges=import_edges,
    )
