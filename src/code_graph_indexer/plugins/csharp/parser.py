"""Heuristic C# parser.

`using` directives name namespaces, not files. A namespace resolves to a
workspace directory when one mirrors it; a namespace sharing its root with
the file's own namespace is internal on a best-effort basis.
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
    CONTROL_KEYWORDS,
    FileScan,
    ScopeStack,
    count_params,
    is_comment_line,
    join_header,
)


COMPLEXITY = re.compile(r"\b(?:if|else\s+if|for|foreach|while|do|case|catch|switch)\b|&&|\|\||\?\?|\?")

_MODIFIERS = r"((?:(?:public|private|protected|internal|static|sealed|abstract|partial|virtual|override|async|readonly|unsafe|extern|new|file|required)\s+)*)"
_USING = re.compile(r"^\s*(?:global\s+)?using\s+(static\s+)?(?:(\w+)\s*=\s*)?([\w.]+)\s*;")
_NAMESPACE = re.compile(r"^namespace\s+([\w.]+)\s*(;|\{|$)")
_TYPE_DECL = re.compile(
    r"^" + _MODIFIERS + r"(class|interface|struct|enum|record(?:\s+(?:class|struct))?)\s+([A-Za-z_]\w*)"
    r"(?:\s*<[^>]*>)?(?:\s*\([^)]*\))?(?:\s*:\s*([^{]+?))?\s*(?:where\b[^{]*)?(?:\{|;|$)"
)
_METHOD = re.compile(
    r"^" + _MODIFIERS + r"([\w.]+(?:\s*<[^()]*>)?(?:\[\])*\??)\s+([A-Za-z_]\w*)\s*(?:<[^>(]*>)?\s*\(([^)]*)\)?"
)
_CONSTRUCTOR = re.compile(r"^" + _MODIFIERS + r"([A-Za-z_]\w*)\s*\(([^)]*)\)?")
_LEADING_ATTRIBUTES = re.compile(r"^(?:\[[^\]]*\]\s*)+")
_INTERFACE_NAME = re.compile(r"^I[A-Z]")
_NOT_RETURN_TYPES = frozenset(
    {"return", "new", "await", "throw", "else", "public", "private", "protected", "internal", "static", "async",
     "override", "virtual", "abstract", "sealed"}
)


def import_statements(lines: list[str]) -> list[ImportStatement]:
    out: list[ImportStatement] = []
    for i, line in enumerate(lines):
        m = _USING.match(line)
        if not m:
            continue
        target = m.group(3)
        if m.group(1):
            # `using static A.B.Helpers;` brings the members of type `Helpers` into scope.
            owner, _, type_name = target.rpartition(".")
            out.append(ImportStatement(specifier=owner or target, line=i + 1, symbols=(type_name,), import_all=True))
        else:
            out.append(ImportStatement(specifier=target, line=i + 1, import_all=True))
    return out


def _file_namespace(lines: list[str]) -> Optional[str]:
    for line in lines:
        m = _NAMESPACE.match(line.strip())
        if m:
            return m.group(1)
    return None


def resolve_specifier(ctx: FileParseContext, specifier: str, own_namespace: Optional[str]) -> Optional[ImportTarget]:
    if is_stdlib(specifier, "csharp"):
        return None
    segments = specifier.split(".")
    known = ctx.known_files
    # `Acme.Core.Services` may live in `Acme.Core/Services/` or `src/Core/Services/`.
    for split in range(len(segments), 0, -1):
        head = ".".join(segments[:split])
        rel = "/".join([head] + segments[split:]) if split < len(segments) else head
        for candidate in (rel, "/".join(segments)):
            hit = known.lookup_dir(candidate)
            if hit is not None:
                return ImportTarget(path=hit, resolved=True, is_directory=True)
    if own_namespace and own_namespace.split(".")[0] == segments[0]:
        return ImportTarget(path="/".join(segments), resolved=False, is_directory=True)
    return None


def _type_names(raw: Optional[str]) -> list[str]:
    if not raw:
        return []
    cleaned = re.sub(r"<[^<>]*>", "", raw)
    out = []
    for part in cleaned.split(","):
        name = part.strip().rpartition(".")[2]
        if re.fullmatch(r"[A-Za-z_]\w*", name):
            out.append(name)
    return out


def _csharp_doc(lines, idx):
    return extract_preceding_doc(lines, idx, line_prefixes=("///", "//"))


class _CSharpWalker:
    def __init__(self, scan: FileScan):
        self.scan = scan
        self.scopes = ScopeStack()

    def walk(self) -> None:
        lines = self.scan.lines
        for i, line in enumerate(lines):
            trimmed = line.strip()
            code = self.scan.noise(line)
            if trimmed and not is_comment_line(trimmed) and not trimmed.startswith("#"):
                header = join_header(lines, i, self.scan.noise) if "(" in code else trimmed
                header = _LEADING_ATTRIBUTES.sub("", header)
                if header:
                    self.line(header, i + 1)
            self.scopes.advance(code)

    def line(self, header: str, line_no: int) -> None:
        scan = self.scan
        owner = self.scopes.owner()

        m = _NAMESPACE.match(header)
        if m and (owner is None or owner.kind == "namespace"):
            decl = scan.declare("namespace", m.group(1), line_no, exported=True)
            if m.group(2) == ";":
                decl.end_line = len(scan.lines)
            else:
                self.scopes.push(decl)
            return

        m = _TYPE_DECL.match(header)
        if m:
            modifiers, keyword, name = m.group(1).split(), m.group(2), m.group(3)
            kind = {"interface": "interface", "enum": "enum", "struct": "struct"}.get(keyword, "class")
            nested_in_type = owner is not None and owner.kind != "namespace"
            exported = "public" in modifiers and (not nested_in_type or owner.exported)
            decl = scan.declare(kind, name, line_no, exported=exported)
            if nested_in_type:
                scan.member_of(decl, owner)
            for position, base in enumerate(_type_names(m.group(4))):
                if kind == "class" and position == 0 and not _INTERFACE_NAME.match(base):
                    scan.link(decl.id, scan.local_id("class", base), "extends")
                elif kind == "interface":
                    scan.link(decl.id, scan.local_id("interface", base), "extends")
                elif kind != "enum":
                    scan.link(decl.id, scan.local_id("interface", base), "implements")
            if kind != "enum":
                self.scopes.push(decl)
            return

        if owner is None or owner.kind == "namespace":
            return
        m = _CONSTRUCTOR.match(header)
        if m and m.group(2) == owner.name:
            modifiers, return_type, name, params = m.group(1).split(), None, m.group(2), m.group(3) or ""
        else:
            m = _METHOD.match(header)
            if not m or m.group(3) in CONTROL_KEYWORDS or m.group(2) in _NOT_RETURN_TYPES:
                return
            modifiers, return_type, name, params = m.group(1).split(), m.group(2), m.group(3), m.group(4) or ""
        public = "public" in modifiers or (owner.kind == "interface" and "private" not in modifiers)
        decl = scan.declare(
            "method",
            name,
            line_no,
            signature=f"{owner.name}.{name}({' '.join(params.split())})",
            exported=owner.exported and public,
            is_async="async" in modifiers,
            parameter_count=count_params(params),
            return_type=return_type,
        )
        scan.member_of(decl, owner)


def parse_csharp_file(ctx: FileParseContext) -> ParseResult:
    scan = FileScan(ctx)
    own_namespace = _file_namespace(scan.lines)
    import_edges = build_import_edges(
        repo_id=ctx.repo_id,
        file_path=ctx.file_path,
        language=ctx.language,
        statements=import_statements(scan.lines),
        resolve=lambda spec: resolve_specifier(ctx, spec, own_namespace),
    )
    _CSharpWalker(scan).walk()
    return scan.finish(complexity=COMPLEXITY, doc=_csharp_doc, import_edges=import_edges)
