"""Heuristic Rust parser.

`use` paths are resolved through the module tree: `crate::` starts at the
directory holding `lib.rs`/`main.rs`, `self::`/`super::` at the current
module's directory. The longest path prefix that names a file wins, since
trailing segments usually name items inside it.
"""

from __future__ import annotations

import posixpath
import re
from typing import Optional

from code_graph_indexer.core.records import ParseResult
from code_graph_indexer.plugins.base import FileParseContext
from code_graph_indexer.plugins.doc_comments import extract_preceding_doc
from code_graph_indexer.plugins.imports import (
    ImportStatement,
    ImportTarget,
    KnownFiles,
    build_import_edges,
)
from code_graph_indexer.plugins.structural import (
    BLOCK_LINE,
    BLOCK_STATEMENT,
    Declaration,
    FileScan,
    ScopeStack,
    count_params,
    is_comment_line,
    join_header,
    strip_rust_noise,
)


COMPLEXITY = re.compile(r"\b(?:if|else\s+if|for|while|loop|match)\b|&&|\|\||\?")

CRATE_ROOT_FILES = ("lib.rs", "main.rs")
MODULE_FILES = ("mod.rs", "lib.rs", "main.rs")

_VIS = r"(pub(?:\s*\([^)]*\))?\s+)?"
_USE = re.compile(r"^\s*" + _VIS + r"use\s+([^;]+);", re.S)
_MOD_DECL = re.compile(r"^\s*" + _VIS + r"mod\s+([A-Za-z_]\w*)\s*;")
_FN = re.compile(
    r"^" + _VIS + r"((?:(?:default|const|async|unsafe|extern\s+\"[^\"]*\"|extern)\s+)*)fn\s+([A-Za-z_]\w*)\s*(?:<[^(]*>)?\s*\("
)
_STRUCT = re.compile(r"^" + _VIS + r"(struct|enum|union)\s+([A-Za-z_]\w*)")
_TRAIT = re.compile(r"^" + _VIS + r"(?:unsafe\s+)?trait\s+([A-Za-z_]\w*)")
_TYPE_ALIAS = re.compile(r"^" + _VIS + r"type\s+([A-Za-z_]\w*)")
_INLINE_MOD = re.compile(r"^" + _VIS + r"mod\s+([A-Za-z_]\w*)\s*\{")
_IMPL = re.compile(r"^(?:unsafe\s+)?impl\s*(?:<.*?>)?\s*(?:(!?[\w:]+)(?:<.*?>)?\s+for\s+)?&?([\w:]+)")
_RETURN_TYPE = re.compile(r"\)\s*->\s*([^{;]+?)\s*(?:where\b|\{|;|$)")

_SELF_PARAMS = ("self", "&self", "&mut self", "mut self", "&'a self", "&'a mut self")


def _use_items(path: str) -> tuple[str, tuple[str, ...], bool]:
    """`a::b::{C, d::E}` -> ("a::b", ("C", "E"), False); `a::*` -> ("a", (), True)."""

    path = " ".join(path.split())
    brace = path.find("{")
    if brace == -1:
        prefix, _, last = path.rpartition("::")
        last = last.split(" as ")[0].strip()
        if last == "*":
            return prefix, (), True
        if last == "self":
            return prefix, (), False
        return prefix, (last,), False
    prefix = path[:brace].rstrip(":").strip()
    inner = path[brace + 1 : path.rfind("}")].replace("{", ",").replace("}", ",")
    symbols: list[str] = []
    glob = False
    for item in inner.split(","):
        item = item.split(" as ")[0].strip()
        name = item.rpartition("::")[2].strip()
        if name == "*":
            glob = True
        elif name and name != "self" and name not in symbols:
            symbols.append(name)
    return prefix, tuple(symbols), glob


def import_statements(content: str) -> list[ImportStatement]:
    out: list[ImportStatement] = []
    for m in re.finditer(r"^[ \t]*(?:pub(?:\s*\([^)]*\))?\s+)?use\s+[^;]+;", content, re.M):
        um = _USE.match(m.group(0))
        if not um:
            continue
        prefix, symbols, glob = _use_items(um.group(2))
        if prefix:
            line = content.count("\n", 0, m.start()) + 1
            out.append(ImportStatement(specifier=prefix, line=line, symbols=symbols, import_all=glob))
    for m in re.finditer(r"^[ \t]*(?:pub(?:\s*\([^)]*\))?\s+)?mod\s+[A-Za-z_]\w*\s*;", content, re.M):
        mm = _MOD_DECL.match(m.group(0))
        if mm:
            line = content.count("\n", 0, m.start()) + 1
            out.append(ImportStatement(specifier=f"self::{mm.group(2)}", line=line, import_all=True))
    out.sort(key=lambda s: s.line)
    return out


def _module_dir(file_path: str) -> str:
    """Directory holding the child modules of the module defined by `file_path`."""

    base = posixpath.basename(file_path)
    parent = posixpath.dirname(file_path)
    if base in MODULE_FILES:
        return parent
    stem = base[: -len(".rs")] if base.endswith(".rs") else base
    return posixpath.join(parent, stem) if parent else stem


def _crate_root(known: KnownFiles, file_path: str) -> Optional[str]:
    d = posixpath.dirname(file_path)
    while True:
        for name in CRATE_ROOT_FILES:
            if posixpath.join(d, name) in known:
                return d
        if not d:
            return None
        d = posixpath.dirname(d)


def _module_file(known: KnownFiles, base_dir: str, segments: list[str]) -> Optional[str]:
    for n in range(len(segments), 0, -1):
        rel = posixpath.join(base_dir, *segments[:n]) if base_dir else posixpath.join(*segments[:n])
        hit = known.first_existing([f"{rel}.rs", f"{rel}/mod.rs"])
        if hit is not None:
            return hit
    return None


def resolve_specifier(ctx: FileParseContext, specifier: str) -> Optional[ImportTarget]:
    segments = specifier.split("::")
    head = segments[0]
    known = ctx.known_files
    if head == "crate":
        base = _crate_root(known, ctx.file_path)
        if base is None:
            return ImportTarget(path=posixpath.join("src", *segments[1:]) + ".rs", resolved=False)
        rest = segments[1:]
    elif head in ("self", "super"):
        base = _module_dir(ctx.file_path)
        rest = segments
        while rest and rest[0] in ("self", "super"):
            if rest[0] == "super":
                base = posixpath.dirname(base)
            rest = rest[1:]
    else:
        return None
    if not rest:
        return None
    hit = _module_file(known, base, rest)
    if hit is not None:
        return ImportTarget(path=hit, resolved=True)
    fallback = posixpath.join(base, *rest) if base else posixpath.join(*rest)
    return ImportTarget(path=f"{fallback}.rs", resolved=False)


def _params(header: str) -> str:
    start = header.find("(")
    depth = 0
    for i in range(start, len(header)):
        if header[i] == "(":
            depth += 1
        elif header[i] == ")":
            depth -= 1
            if depth == 0:
                return header[start + 1 : i]
    return header[start + 1 :]


def _rust_doc(lines, idx):
    return extract_preceding_doc(lines, idx, line_prefixes=("///", "//"))


class _RustWalker:
    def __init__(self, scan: FileScan):
        self.scan = scan
        self.scopes = ScopeStack()
        # (method, implementing type name)
        self.impl_members: list[tuple[Declaration, str]] = []
        # (type name, trait name) from `impl Trait for Type`
        self.trait_impls: list[tuple[str, str]] = []

    def walk(self) -> None:
        lines = self.scan.lines
        for i, line in enumerate(lines):
            trimmed = line.strip()
            code = self.scan.noise(line)
            if trimmed and not is_comment_line(trimmed) and not trimmed.startswith("#"):
                header = join_header(lines, i, self.scan.noise) if "(" in code else trimmed
                self.line(header, i + 1)
            self.scopes.advance(code)
        self.link_impl_members()

    def line(self, header: str, line_no: int) -> None:
        scan = self.scan
        owner = self.scopes.owner()

        m = _FN.match(header)
        if m:
            name, params = m.group(3), _params(header)
            rt = _RETURN_TYPE.search(header)
            fields = dict(
                exported=bool(m.group(1)),
                is_async="async" in m.group(2).split(),
                parameter_count=count_params(params, skip=_SELF_PARAMS),
                return_type=rt.group(1).strip() if rt else None,
            )
            if owner is not None and owner.kind in ("impl", "interface"):
                decl = scan.declare("method", name, line_no, signature=f"{owner.name}::{name}({' '.join(params.split())})", **fields)
                if owner.kind == "impl":
                    decl.parent = owner.name
                    # Trait methods are part of the trait's public surface.
                    decl.exported = decl.exported or owner.exported
                    self.impl_members.append((decl, owner.name))
                else:
                    decl.exported = owner.exported
                    scan.member_of(decl, owner)
            else:
                scan.declare("function", name, line_no, signature=f"fn {name}({' '.join(params.split())})", **fields)
            return

        m = _STRUCT.match(header)
        if m:
            kind = "enum" if m.group(2) == "enum" else "struct"
            scan.declare(kind, m.group(3), line_no, exported=bool(m.group(1)))
            return

        m = _TRAIT.match(header)
        if m:
            decl = scan.declare("interface", m.group(2), line_no, exported=bool(m.group(1)))
            self.scopes.push(decl)
            return

        m = _IMPL.match(header)
        if m:
            trait, type_name = m.group(1), m.group(2).rpartition("::")[2]
            impl = Declaration(
                id=scan.local_id("impl", type_name), kind="impl", name=type_name, start_line=line_no, exported=bool(trait)
            )
            if trait and not trait.startswith("!"):
                self.trait_impls.append((type_name, trait.rpartition("::")[2]))
            self.scopes.push(impl)
            return

        m = _INLINE_MOD.match(header)
        if m:
            decl = scan.declare("module", m.group(2), line_no, exported=bool(m.group(1)))
            self.scopes.push(decl)
            return

        m = _TYPE_ALIAS.match(header)
        if m and owner is None:
            scan.declare("type", m.group(2), line_no, block=BLOCK_STATEMENT if "=" in header else BLOCK_LINE, exported=bool(m.group(1)))

    def link_impl_members(self) -> None:
        by_name: dict[str, Declaration] = {}
        for d in self.scan.declarations:
            if d.kind in ("struct", "enum", "interface", "type"):
                by_name.setdefault(d.name, d)
        for member, type_name in self.impl_members:
            target = by_name.get(type_name)
            if target is not None:
                self.scan.link(member.id, target.id, "member_of")
        for type_name, trait_name in self.trait_impls:
            implementor, trait = by_name.get(type_name), by_name.get(trait_name)
            if implementor is not None and trait is not None:
                self.scan.link(implementor.id, trait.id, "implements")


def parse_rust_file(ctx: FileParseContext) -> ParseResult:
    scan = FileScan(ctx, noise=strip_rust_noise)
    import_edges = build_import_edges(
        repo_id=ctx.repo_id,
        file_path=ctx.file_path,
        language=ctx.language,
        statements=import_statements(ctx.content),
        resolve=lambda spec: resolve_specifier(ctx, spec),
    )
    _RustWalker(scan).walk()
    return scan.finish(complexity=COMPLEXITY, doc=_rust_doc, import_edges=import_edges)
