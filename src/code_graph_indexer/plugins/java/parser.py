"""Heuristic Java parser: types, methods and constructors, import edges by package path."""

from __future__ import annotations

import posixpath
import re
from typing import Optional

from code_graph_indexer.core.records import ParseResult
from code_graph_indexer.core.stable_ids import entity_hash
from code_graph_indexer.plugins.base import FileParseContext
from code_graph_indexer.plugins.doc_comments import extract_preceding_doc
from code_graph_indexer.plugins.imports import (
    ImportStatement,
    ImportTarget,
    build_import_edges,
    imported_symbol_paths,
)
from code_graph_indexer.plugins.structural import (
    CONTROL_KEYWORDS,
    Declaration,
    FileScan,
    ScopeStack,
    count_params,
    is_comment_line,
    join_header,
)


COMPLEXITY = re.compile(r"\b(?:if|else\s+if|for|while|do|case|catch|switch)\b|&&|\|\||\?")

_MODIFIERS = r"((?:(?:public|protected|private|static|final|abstract|sealed|non-sealed|strictfp|default|synchronized|native|transient|volatile)\s+)*)"
_IMPORT = re.compile(r"^\s*import\s+(static\s+)?([\w.]+?)(\.\*)?\s*;")
_TYPE_DECL = re.compile(
    r"^" + _MODIFIERS + r"(class|interface|enum|record|@interface)\s+([A-Za-z_]\w*)"
    r"(?:\s*<[^{]*?>)?(?:\s*\([^)]*\))?(?:\s+extends\s+([^{]+?))?(?:\s+implements\s+([^{]+?))?(?:\s+permits\s+[^{]+?)?\s*(?:\{|$)"
)
_METHOD = re.compile(
    r"^" + _MODIFIERS + r"(?:<[^>]+>\s+)?([\w.$]+(?:\s*<[^()]*>)?(?:\s*\[\s*\])*)\s+([A-Za-z_]\w*)\s*\(([^)]*)\)?"
)
_CONSTRUCTOR = re.compile(r"^" + _MODIFIERS + r"([A-Za-z_]\w*)\s*\(([^)]*)\)?")
_TYPE_NAME = re.compile(r"[A-Za-z_][\w.]*")
_LEADING_ANNOTATIONS = re.compile(r"^(?:@[\w.]+(?:\([^)]*\))?\s*)+")

_NOT_RETURN_TYPES = frozenset(
    {"new", "return", "throw", "else", "public", "protected", "private", "static", "final", "abstract", "synchronized"}
)

_TYPE_KINDS = {"class": "class", "record": "class", "interface": "interface", "@interface": "interface", "enum": "enum"}


def import_statements(lines: list[str]) -> list[ImportStatement]:
    out: list[ImportStatement] = []
    for i, line in enumerate(lines):
        m = _IMPORT.match(line)
        if not m:
            continue
        path, wildcard = m.group(2), bool(m.group(3))
        if wildcard:
            out.append(ImportStatement(specifier=path, line=i + 1, import_all=True))
        elif m.group(1):
            # `import static a.b.Util.method;` imports a member of class `a.b.Util`.
            owner, _, member = path.rpartition(".")
            out.append(ImportStatement(specifier=owner, line=i + 1, symbols=(member,)))
        else:
            out.append(ImportStatement(specifier=path, line=i + 1, symbols=(path.rsplit(".", 1)[-1],)))
    return out


def resolve_specifier(ctx: FileParseContext, specifier: str) -> Optional[ImportTarget]:
    """Package paths mirror directories (`com.acme.Util` -> `.../com/acme/Util.java`)."""

    rel = specifier.replace(".", "/")
    hit = ctx.known_files.lookup(rel, (".java",))
    if hit is not None:
        return ImportTarget(path=hit, resolved=True)
    directory = ctx.known_files.lookup_dir(rel) if "/" in rel else None
    if directory is not None:
        return ImportTarget(path=directory, resolved=True, is_directory=True)
    return None


def _type_names(raw: Optional[str]) -> list[str]:
    if not raw:
        return []
    depth = 0
    out: list[str] = []
    current = ""
    for ch in raw:
        if ch == "<":
            depth += 1
        elif ch == ">":
            depth -= 1
        elif ch == "," and depth == 0:
            out.append(current)
            current = ""
        elif depth == 0:
            current += ch
    out.append(current)
    return [n.strip().rsplit(".", 1)[-1] for n in out if _TYPE_NAME.fullmatch(n.strip())]


class _JavaWalker:
    def __init__(self, ctx: FileParseContext, scan: FileScan, imported: dict[str, str]):
        self.ctx = ctx
        self.scan = scan
        self.imported = imported
        self.scopes = ScopeStack()

    def type_ref(self, name: str, kind: str) -> str:
        path = self.imported.get(name)
        if path is None:
            # Same-package types need no import.
            sibling = posixpath.join(posixpath.dirname(self.ctx.file_path), f"{name}.java")
            if sibling in self.ctx.known_files and sibling != self.ctx.file_path:
                path = sibling
        if path is not None:
            return entity_hash(self.ctx.repo_id, path, kind, name, None)
        return self.scan.local_id(kind, name)

    def walk(self) -> None:
        lines = self.scan.lines
        for i, line in enumerate(lines):
            trimmed = line.strip()
            code = self.scan.noise(line)
            if trimmed and not is_comment_line(trimmed):
                header = join_header(lines, i, self.scan.noise) if "(" in code else trimmed
                header = _LEADING_ANNOTATIONS.sub("", header)
                owner = self.scopes.owner()
                if not self.type_decl(header, i + 1, owner) and owner is not None:
                    self.member(header, i + 1, owner)
            self.scopes.advance(code)

    def type_decl(self, header: str, line_no: int, owner: Optional[Declaration]) -> bool:
        m = _TYPE_DECL.match(header)
        if not m:
            return False
        modifiers, keyword, name = m.group(1).split(), m.group(2), m.group(3)
        kind = _TYPE_KINDS[keyword]
        exported = "public" in modifiers or (owner is not None and owner.kind == "interface" and owner.exported)
        decl = self.scan.declare(kind, name, line_no, exported=exported)
        if owner is not None:
            self.scan.member_of(decl, owner)
        # Interfaces extend interfaces; classes extend classes and implement interfaces.
        extends_kind = "interface" if kind == "interface" else "class"
        for base in _type_names(m.group(4)):
            self.scan.link(decl.id, self.type_ref(base, extends_kind), "extends")
        for iface in _type_names(m.group(5)):
            self.scan.link(decl.id, self.type_ref(iface, "interface"), "implements")
        self.scopes.push(decl)
        return True

    def member(self, header: str, line_no: int, owner: Declaration) -> None:
        # Constructors first: `public Foo(` also reads as a method `Foo` returning `public`.
        m = _CONSTRUCTOR.match(header)
        if m and m.group(2) == owner.name:
            modifiers, return_type, name, params = m.group(1).split(), None, m.group(2), m.group(3) or ""
        else:
            m = _METHOD.match(header)
            if not m or m.group(3) in CONTROL_KEYWORDS or m.group(2) in _NOT_RETURN_TYPES:
                return
            modifiers, return_type, name, params = m.group(1).split(), m.group(2), m.group(3), m.group(4) or ""
        in_interface = owner.kind == "interface"
        exported = owner.exported and ("public" in modifiers or (in_interface and "private" not in modifiers))
        decl = self.scan.declare(
            "method",
            name,
            line_no,
            signature=f"{owner.name}.{name}({' '.join(params.split())})",
            exported=exported,
            parameter_count=count_params(params),
            return_type=return_type,
        )
        self.scan.member_of(decl, owner)


def parse_java_file(ctx: FileParseContext) -> ParseResult:
    scan = FileScan(ctx)
    import_edges = build_import_edges(
        repo_id=ctx.repo_id,
        file_path=ctx.file_path,
        language=ctx.language,
        statements=import_statements(scan.lines),
        resolve=lambda spec: resolve_specifier(ctx, spec),
    )
    _JavaWalker(ctx, scan, imported_symbol_paths(import_edges)).walk()
    return scan.finish(complexity=COMPLEXITY, doc=extract_preceding_doc, import_edges=import_edges)
