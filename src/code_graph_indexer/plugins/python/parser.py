"""Heuristic Python parser (indentation-scoped)."""

from __future__ import annotations

import posixpath
import re
from typing import Optional

from code_graph_indexer.core.boundaries import is_stdlib
from code_graph_indexer.core.records import ParseResult
from code_graph_indexer.core.stable_ids import entity_hash
from code_graph_indexer.plugins.base import FileParseContext
from code_graph_indexer.plugins.doc_comments import extract_python_docstring
from code_graph_indexer.plugins.imports import (
    ImportStatement,
    ImportTarget,
    build_import_edges,
    imported_symbol_paths,
    split_symbol_list,
)
from code_graph_indexer.plugins.structural import (
    BLOCK_INDENT,
    BLOCK_LINE,
    Declaration,
    FileScan,
    count_params,
    indent_of,
    join_header,
    strip_hash_noise,
)


PY_EXTENSIONS = (".py", ".pyi")
SOURCE_ROOTS = ("", "src/", "lib/")

COMPLEXITY = re.compile(r"\b(?:if|elif|for|while|except|and|or)\b")

_IMPORT = re.compile(r"^\s*import\s+(.+)$")
_FROM_IMPORT = re.compile(r"^\s*from\s+(\.*[\w.]*)\s+import\s+(.+)$")
_DEF = re.compile(r"^(\s*)(async\s+)?def\s+([A-Za-z_]\w*)\s*(?:\[[^\]]*\])?\s*\(")
_CLASS = re.compile(r"^(\s*)class\s+([A-Za-z_]\w*)\s*(?:\[[^\]]*\])?\s*(?:\((.*)\))?\s*:")
_DECORATOR = re.compile(r"^\s*@([A-Za-z_][\w.]*)")
_RETURN_TYPE = re.compile(r"\)\s*->\s*(.+?)\s*:\s*(?:#.*)?$")
_DUNDER_ALL = re.compile(r"^__all__\s*(?::[^=]*)?=\s*[\[(]([^\])]*)[\])]", re.M | re.S)
_QUOTED = re.compile(r"['\"]([A-Za-z_]\w*)['\"]")

_SKIP_PARAMS = ("self", "cls", "*", "/")


def _logical_line(lines: list[str], idx: int) -> tuple[str, int]:
    """Line at `idx` joined with its parenthesized or backslash continuations."""

    text = strip_hash_noise(lines[idx]).rstrip()
    depth = text.count("(") - text.count(")")
    j = idx
    while (depth > 0 or text.endswith("\\")) and j + 1 < len(lines):
        j += 1
        nxt = strip_hash_noise(lines[j]).strip()
        text = text.rstrip("\\") + " " + nxt
        depth += nxt.count("(") - nxt.count(")")
    return text, j


def import_statements(lines: list[str]) -> list[ImportStatement]:
    out: list[ImportStatement] = []
    i = 0
    while i < len(lines):
        stripped = lines[i].lstrip()
        if not stripped.startswith(("import ", "from ")):
            i += 1
            continue
        text, last = _logical_line(lines, i)
        m = _FROM_IMPORT.match(text)
        if m:
            names = m.group(2).strip().strip("()")
            if names.strip() == "*":
                out.append(ImportStatement(specifier=m.group(1), line=i + 1, import_all=True))
            else:
                out.append(ImportStatement(specifier=m.group(1), line=i + 1, symbols=split_symbol_list(names)))
        else:
            m = _IMPORT.match(text)
            if m:
                for part in m.group(1).split(","):
                    module = part.split(" as ")[0].strip()
                    if module:
                        out.append(ImportStatement(specifier=module, line=i + 1, import_all=True))
        i = last + 1
    return out


def _module_target(ctx: FileParseContext, module_path: str) -> Optional[ImportTarget]:
    known = ctx.known_files
    for root in SOURCE_ROOTS:
        base = f"{root}{module_path}" if module_path else root.rstrip("/")
        if not base:
            continue
        hit = known.first_existing([f"{base}.py", f"{base}.pyi", f"{base}/__init__.py"])
        if hit:
            return ImportTarget(path=hit, resolved=True)
        if base in known.dirs:
            return ImportTarget(path=base, resolved=True, is_directory=True)
    return None


def resolve_specifier(ctx: FileParseContext, specifier: str) -> Optional[ImportTarget]:
    if specifier.startswith("."):
        dots = len(specifier) - len(specifier.lstrip("."))
        base_dir = posixpath.dirname(ctx.file_path)
        for _ in range(dots - 1):
            base_dir = posixpath.dirname(base_dir)
        rest = specifier[dots:].replace(".", "/")
        base = posixpath.join(base_dir, rest) if rest else base_dir
        known = ctx.known_files
        if base:
            hit = known.first_existing([f"{base}.py", f"{base}.pyi", f"{base}/__init__.py"])
            if hit:
                return ImportTarget(path=hit, resolved=True)
            if base in known.dirs:
                return ImportTarget(path=base, resolved=True, is_directory=True)
        return ImportTarget(path=f"{base}.py" if rest else f"{base}/__init__.py".lstrip("/"), resolved=False)

    if is_stdlib(specifier, "python"):
        return None
    module_path = specifier.replace(".", "/")
    target = _module_target(ctx, module_path)
    if target is not None:
        return target
    # Nested source roots (`services/api/app/x.py` imported as `app.x`).
    if "/" in module_path and ctx.known_files.lookup_dir(module_path.split("/")[0]):
        hit = ctx.known_files.lookup(module_path, (".py", ".pyi", "/__init__.py"))
        if hit:
            return ImportTarget(path=hit, resolved=True)
    return None


def _paren_params(header: str) -> str:
    start = header.find("(")
    if start == -1:
        return ""
    depth = 0
    for i in range(start, len(header)):
        if header[i] == "(":
            depth += 1
        elif header[i] == ")":
            depth -= 1
            if depth == 0:
                return header[start + 1 : i]
    return header[start + 1 :]


def _dunder_all(content: str) -> Optional[set[str]]:
    m = _DUNDER_ALL.search(content)
    if not m:
        return None
    return set(_QUOTED.findall(m.group(1)))


def parse_python_file(ctx: FileParseContext) -> ParseResult:
    scan = FileScan(ctx, noise=strip_hash_noise)
    lines = scan.lines
    import_edges = build_import_edges(
        repo_id=ctx.repo_id,
        file_path=ctx.file_path,
        language=ctx.language,
        statements=import_statements(lines),
        resolve=lambda spec: resolve_specifier(ctx, spec),
    )
    imported = imported_symbol_paths(import_edges)
    public = _dunder_all(ctx.content)

    def is_public(name: str) -> bool:
        return name in public if public is not None else not name.startswith("_")

    # (indent, declaration) of enclosing classes and functions.
    scopes: list[tuple[int, Declaration]] = []
    for i, line in enumerate(lines):
        trimmed = line.strip()
        if not trimmed or trimmed.startswith("#"):
            continue
        indent = indent_of(line)
        while scopes and indent <= scopes[-1][0]:
            scopes.pop()
        line_no = i + 1

        m = _DECORATOR.match(line)
        if m:
            scan.declare("decorator", m.group(1), line_no, block=BLOCK_LINE)
            continue

        m = _DEF.match(line)
        if m:
            header = join_header(lines, i, strip_hash_noise)
            name = m.group(3)
            params = _paren_params(header)
            rt = _RETURN_TYPE.search(header)
            owner = scopes[-1][1] if scopes else None
            fields = dict(
                block=BLOCK_INDENT,
                is_async=bool(m.group(2)),
                parameter_count=count_params(params, skip=_SKIP_PARAMS),
                return_type=rt.group(1).strip() if rt else None,
            )
            if owner is not None and owner.kind == "class":
                # `__all__` names module-level symbols only; methods follow their class.
                decl = scan.declare(
                    "method",
                    name,
                    line_no,
                    signature=f"{owner.name}.{name}({' '.join(params.split())})",
                    exported=owner.exported and not name.startswith("_"),
                    **fields,
                )
                scan.member_of(decl, owner)
            else:
                decl = scan.declare(
                    "function",
                    name,
                    line_no,
                    signature=f"def {name}({' '.join(params.split())})",
                    exported=owner is None and is_public(name),
                    **fields,
                )
            scopes.append((indent, decl))
            continue

        m = _CLASS.match(join_header(lines, i, strip_hash_noise) if "(" in line else line)
        if m:
            name = m.group(2)
            nested = bool(scopes)
            decl = scan.declare("class", name, line_no, block=BLOCK_INDENT, exported=not nested and is_public(name))
            for base in base_class_names(m.group(3) or ""):
                path = imported.get(base)
                target = entity_hash(ctx.repo_id, path, "class", base, None) if path else scan.local_id("class", base)
                scan.link(decl.id, target, "extends")
            scopes.append((indent, decl))

    return scan.finish(complexity=COMPLEXITY, doc=extract_python_docstring, import_edges=import_edges)


def base_class_names(raw: str) -> list[str]:
    """Plain base-class names from a class header; keyword arguments and subscripts are dropped."""

    out: list[str] = []
    for part in raw.split(","):
        part = part.strip()
        if not part or "=" in part or part.startswith("*"):
            continue
        part = part.split("[")[0].strip()
        if re.fullmatch(r"[A-Za-z_]\w*", part) and part != "object":
            out.append(part)
    return out
