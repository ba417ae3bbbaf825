"""Heuristic PHP parser: namespaces, `use` imports (PSR-4 paths), classes, traits and functions."""

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
    normalize_relative,
    resolve_with_candidates,
)
from code_graph_indexer.plugins.structural import (
    FileScan,
    ScopeStack,
    count_params,
    is_comment_line,
    join_header,
    strip_php_noise,
)


COMPLEXITY = re.compile(r"\b(?:if|elseif|for|foreach|while|do|case|catch|switch|match)\b|&&|\|\||\?\?|\?")

_USE = re.compile(r"^\s*use\s+(function\s+|const\s+)?([\\\w]+)(?:\s+as\s+\w+)?\s*;")
_NAMESPACE = re.compile(r"^\s*namespace\s+([\\\w]+)\s*[;{]", re.M)
_GROUP_USE = re.compile(r"^\s*use\s+(function\s+|const\s+)?([\\\w]+)\\\{([^}]*)\}\s*;")
_INCLUDE = re.compile(r"\b(?:require|include)(?:_once)?\s*\(?\s*(__DIR__\s*\.\s*)?['\"]([^'\"]+\.php)['\"]")
_TYPE_DECL = re.compile(
    r"^((?:(?:abstract|final|readonly)\s+)*)(class|interface|trait|enum)\s+([A-Za-z_]\w*)"
    r"(?:\s*:\s*\w+)?(?:\s+extends\s+([\\\w,\s]+?))?(?:\s+implements\s+([\\\w,\s]+?))?\s*(?:\{|$)"
)
_FUNCTION = re.compile(r"^function\s+&?\s*([A-Za-z_]\w*)\s*\(([^)]*)\)?")
_METHOD = re.compile(
    r"^((?:(?:public|protected|private|static|abstract|final|readonly)\s+)*)function\s+&?\s*([A-Za-z_]\w*)\s*\(([^)]*)\)?"
)
_RETURN_TYPE = re.compile(r"\)\s*:\s*(\??[\\\w|]+)")
_LEADING_ATTRIBUTES = re.compile(r"^(?:#\[[^\]]*\]\s*)+")

_TYPE_KINDS = {"class": "class", "trait": "class", "interface": "interface", "enum": "enum"}


def import_statements(lines: list[str]) -> list[ImportStatement]:
    out: list[ImportStatement] = []
    for i, line in enumerate(lines):
        m = _GROUP_USE.match(line)
        if m:
            prefix = m.group(2).strip("\\")
            for item in m.group(3).split(","):
                name = item.split(" as ")[0].strip()
                if name:
                    full = f"{prefix}\\{name}"
                    out.append(ImportStatement(specifier=full, line=i + 1, symbols=(full.rsplit("\\", 1)[-1],)))
            continue
        m = _USE.match(line)
        if m and not line.startswith((" ", "\t")):
            full = m.group(2).strip("\\")
            if m.group(1) and m.group(1).strip() == "function":
                namespace, _, func = full.rpartition("\\")
                out.append(ImportStatement(specifier=namespace or full, line=i + 1, symbols=(func,)))
            else:
                out.append(ImportStatement(specifier=full, line=i + 1, symbols=(full.rsplit("\\", 1)[-1],)))
            continue
        for m in _INCLUDE.finditer(line):
            path = m.group(2)
            if path.startswith("/"):
                if not m.group(1):
                    continue
                path = f".{path}"
            elif not path.startswith("."):
                path = f"./{path}"
            out.append(ImportStatement(specifier=path, line=i + 1, import_all=True))
    return out


def resolve_specifier(
    ctx: FileParseContext, specifier: str, own_namespace: Optional[str] = None
) -> Optional[ImportTarget]:
    known = ctx.known_files
    if specifier.startswith("."):
        base = normalize_relative(ctx.file_path, specifier)
        if base is None:
            return ImportTarget(path=specifier, resolved=False)
        return resolve_with_candidates(known, base, (".php",))
    if specifier.startswith("/"):
        return None
    segments = specifier.split("\\")
    # PSR-4: the vendor prefix (`App\`) maps to a source directory (`app/`, `src/`).
    for start in range(len(segments) - 1):
        rel = "/".join(segments[start:])
        hit = known.lookup(rel, (".php",))
        if hit is not None:
            return ImportTarget(path=hit, resolved=True)
    namespace_dir = "/".join(segments[1:-1])
    # Directory fallback only under the file's own vendor prefix: `Illuminate\Http` is not `app/Http/`.
    if namespace_dir and own_namespace and own_namespace.split("\\")[0] == segments[0]:
        hit = known.lookup_dir(namespace_dir)
        if hit is not None:
            return ImportTarget(path=hit, resolved=True, is_directory=True)
    return None


class _PhpWalker:
    def __init__(self, ctx: FileParseContext, scan: FileScan, imported: dict[str, str]):
        self.ctx = ctx
        self.scan = scan
        self.imported = imported
        self.scopes = ScopeStack()

    def type_ref(self, raw: str, kind: str) -> Optional[str]:
        name = raw.strip().strip("\\").rpartition("\\")[2]
        if not re.fullmatch(r"[A-Za-z_]\w*", name):
            return None
        path = self.imported.get(name)
        if path is None:
            sibling = posixpath.join(posixpath.dirname(self.ctx.file_path), f"{name}.php")
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
            if trimmed and not is_comment_line(trimmed) and not trimmed.startswith("#"):
                header = join_header(lines, i, self.scan.noise) if "(" in code else trimmed
                header = _LEADING_ATTRIBUTES.sub("", header)
                if header:
                    self.line(header, i + 1)
            self.scopes.advance(code)

    def line(self, header: str, line_no: int) -> None:
        scan = self.scan
        owner = self.scopes.owner()

        if owner is None:
            m = _TYPE_DECL.match(header)
            if m:
                kind = _TYPE_KINDS[m.group(2)]
                decl = scan.declare(kind, m.group(3), line_no, exported=True)
                extends_kind = "interface" if kind == "interface" else "class"
                for base in (m.group(4) or "").split(","):
                    target = self.type_ref(base, extends_kind) if base.strip() else None
                    if target:
                        scan.link(decl.id, target, "extends")
                for iface in (m.group(5) or "").split(","):
                    target = self.type_ref(iface, "interface") if iface.strip() else None
                    if target:
                        scan.link(decl.id, target, "implements")
                self.scopes.push(decl)
                return
            m = _FUNCTION.match(header)
            if m and self.scopes.depth == 0:
                name, params = m.group(1), m.group(2) or ""
                scan.declare(
                    "function",
                    name,
                    line_no,
                    signature=f"function {name}({' '.join(params.split())})",
                    exported=True,
                    parameter_count=count_params(params),
                    return_type=_return_type(header),
                )
            return

        m = _METHOD.match(header)
        if not m:
            if owner.kind == "class" and header.startswith("use "):
                # Trait inclusion inside a class body.
                for trait in header[4:].split("{")[0].rstrip(";").split(","):
                    target = self.type_ref(trait, "class")
                    if target:
                        scan.link(owner.id, target, "extends")
            return
        modifiers, name, params = m.group(1).split(), m.group(2), m.group(3) or ""
        decl = scan.declare(
            "method",
            name,
            line_no,
            signature=f"{owner.name}::{name}({' '.join(params.split())})",
            exported=owner.exported and "private" not in modifiers and "protected" not in modifiers,
            parameter_count=count_params(params),
            return_type=_return_type(header),
        )
        scan.member_of(decl, owner)


def _return_type(header: str) -> Optional[str]:
    m = _RETURN_TYPE.search(header)
    return m.group(1) if m else None


def parse_php_file(ctx: FileParseContext) -> ParseResult:
    scan = FileScan(ctx, noise=strip_php_noise)
    ns = _NAMESPACE.search(ctx.content)
    own_namespace = ns.group(1).strip("\\") if ns else None
    import_edges = build_import_edges(
        repo_id=ctx.repo_id,
        file_path=ctx.file_path,
        language=ctx.language,
        statements=import_statements(scan.lines),
        resolve=lambda spec: resolve_specifier(ctx, spec, own_namespace),
    )
    _PhpWalker(ctx, scan, imported_symbol_paths(import_edges)).walk()
    return scan.finish(complexity=COMPLEXITY, doc=extract_preceding_doc, import_edges=import_edges)
