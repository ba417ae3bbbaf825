"""Heuristic TypeScript/JavaScript parser.

Recognizes ES module and CommonJS imports, functions, arrow-function
constants, classes (with `extends`/`implements`), interfaces, type aliases,
enums and class members. Declarations are matched line by line against
the header (multi-line parameter lists folded in); brace depth decides
whether a line sits directly inside a class body.
"""

from __future__ import annotations

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
    split_symbol_list,
)
from code_graph_indexer.plugins.structural import (
    BLOCK_STATEMENT,
    CONTROL_KEYWORDS,
    Declaration,
    FileScan,
    ScopeStack,
    count_params,
    is_comment_line,
    join_header,
)


TS_EXTENSIONS = (".ts", ".tsx", ".d.ts", ".js", ".jsx", ".mjs", ".cjs")
INDEX_NAMES = ("index",)
ALIAS_PREFIXES = ("@/", "~/")

COMPLEXITY = re.compile(r"\b(?:if|else\s+if|for|while|case|catch)\b|\?\s*[^:?.\s]|&&|\|\|")

_IMPORT_FROM = re.compile(
    r"^[ \t]*(import|export)\s+(type\s+)?([\w$*{}\s,]*?)\s*from\s*['\"]([^'\"]+)['\"]",
    re.M,
)
_SIDE_EFFECT_IMPORT = re.compile(r"^[ \t]*import\s+['\"]([^'\"]+)['\"]", re.M)
_REQUIRE = re.compile(r"(?:(?:const|let|var)\s+(\{[^}]*\}|[\w$]+)\s*=\s*)?\brequire\(\s*['\"]([^'\"]+)['\"]\s*\)")
_DYNAMIC_IMPORT = re.compile(r"\bimport\(\s*['\"]([^'\"]+)['\"]\s*\)")

_FUNCTION = re.compile(
    r"^(export\s+)?(default\s+)?(declare\s+)?(async\s+)?function\s*(\*)?\s*([A-Za-z_$][\w$]*)\s*(?:<[^>]*>)?\s*\(([^)]*)\)"
)
_ARROW_CONST = re.compile(
    r"^(export\s+)?(?:const|let|var)\s+([A-Za-z_$][\w$]*)\s*(?::[^=]+)?=\s*(async\s+)?"
    r"(?:function\b[^(]*\(([^)]*)\)|\(([^)]*)\)\s*(?::[^=]+)?=>|([A-Za-z_$][\w$]*)\s*=>)"
)
_CLASS = re.compile(
    r"^(export\s+)?(default\s+)?(declare\s+)?(abstract\s+)?class\s+([A-Za-z_$][\w$]*)"
    r"(?:\s*<[^{]*?>)?(?:\s+extends\s+([\w$.]+)(?:\s*<[^{]*?>)?)?(?:\s+implements\s+([^{]+))?"
)
_INTERFACE = re.compile(r"^(export\s+)?(declare\s+)?interface\s+([A-Za-z_$][\w$]*)(?:\s*<[^{]*?>)?(?:\s+extends\s+([^{]+))?")
_TYPE_ALIAS = re.compile(r"^(export\s+)?(declare\s+)?type\s+([A-Za-z_$][\w$]*)\s*(?:<[^=]*>)?\s*=")
_ENUM = re.compile(r"^(export\s+)?(declare\s+)?(const\s+)?enum\s+([A-Za-z_$][\w$]*)")
_MEMBER_MODIFIERS = r"((?:(?:public|private|protected|static|readonly|override|abstract|async|declare|get|set)\s+)*)"
_METHOD = re.compile(r"^" + _MEMBER_MODIFIERS + r"(\*\s*)?(#?[A-Za-z_$][\w$]*)\s*\??\s*(?:<[^>(]*>)?\s*\(([^)]*)\)")
_PROPERTY_ARROW = re.compile(
    r"^" + _MEMBER_MODIFIERS + r"(#?[A-Za-z_$][\w$]*)\s*(?::[^=]+)?=\s*(async\s+)?\(([^)]*)\)\s*(?::[^=]+)?=>"
)
_RETURN_TYPE = re.compile(r"\)\s*:\s*([^{=;]+?)\s*(?:\{|=>|;|$)")
_EXPORT_LIST = re.compile(r"^[ \t]*export\s*\{([^}]*)\}\s*;?\s*$", re.M)
_EXPORT_DEFAULT_NAME = re.compile(r"^[ \t]*export\s+default\s+([A-Za-z_$][\w$]*)\s*;?\s*$", re.M)
_MODULE_EXPORTS_OBJECT = re.compile(r"\bmodule\.exports\s*=\s*\{([^}]*)\}")
_MODULE_EXPORTS_NAME = re.compile(r"\bmodule\.exports\s*=\s*([A-Za-z_$][\w$]*)\s*;?\s*$", re.M)
_EXPORTS_MEMBER = re.compile(r"\b(?:module\.)?exports\.([A-Za-z_$][\w$]*)\s*=")


def _line_of(content: str, offset: int) -> int:
    return content.count("\n", 0, offset) + 1


def _import_clause_symbols(clause: str) -> tuple[tuple[str, ...], bool]:
    """Exported names bound by an import/export clause, and whether it is a namespace import."""

    clause = clause.strip()
    if not clause:
        return (), False
    symbols: list[str] = []
    namespace = False
    brace = clause.find("{")
    head = clause[:brace] if brace != -1 else clause
    if brace != -1:
        symbols.extend(split_symbol_list(clause[brace + 1 : clause.rfind("}")]))
    for part in head.split(","):
        part = part.strip()
        if not part:
            continue
        if part.startswith("*"):
            namespace = True
        elif part != "type":
            symbols.append(part)
    return tuple(dict.fromkeys(symbols)), namespace


def import_statements(content: str) -> list[ImportStatement]:
    found: list[tuple[int, ImportStatement]] = []
    for m in _IMPORT_FROM.finditer(content):
        symbols, namespace = _import_clause_symbols(m.group(3))
        found.append(
            (
                m.start(),
                ImportStatement(
                    specifier=m.group(4),
                    line=_line_of(content, m.start()),
                    symbols=symbols,
                    type_only=bool(m.group(2)),
                    import_all=namespace,
                ),
            )
        )
    for m in _SIDE_EFFECT_IMPORT.finditer(content):
        found.append((m.start(), ImportStatement(specifier=m.group(1), line=_line_of(content, m.start()))))
    for m in _REQUIRE.finditer(content):
        binding = (m.group(1) or "").strip()
        if binding.startswith("{"):
            stmt = ImportStatement(
                specifier=m.group(2),
                line=_line_of(content, m.start()),
                symbols=split_symbol_list(binding.strip("{}").replace(":", " as ")),
            )
        elif binding:
            stmt = ImportStatement(specifier=m.group(2), line=_line_of(content, m.start()), import_all=True)
        else:
            stmt = ImportStatement(specifier=m.group(2), line=_line_of(content, m.start()))
        found.append((m.start(), stmt))
    for m in _DYNAMIC_IMPORT.finditer(content):
        found.append((m.start(), ImportStatement(specifier=m.group(1), line=_line_of(content, m.start()), import_all=True)))
    found.sort(key=lambda x: x[0])
    return [s for _, s in found]


def resolve_specifier(ctx: FileParseContext, specifier: str) -> Optional[ImportTarget]:
    known = ctx.known_files
    if specifier.startswith("."):
        base = normalize_relative(ctx.file_path, specifier)
        if base is None:
            return ImportTarget(path=specifier, resolved=False)
        target = resolve_with_candidates(known, base, TS_EXTENSIONS, INDEX_NAMES)
        # ESM specifiers name the emitted `.js` file; the source is `.ts`/`.tsx`.
        if not target.resolved and base.endswith((".js", ".jsx", ".mjs", ".cjs")):
            stem = base.rsplit(".", 1)[0]
            alt = resolve_with_candidates(known, stem, TS_EXTENSIONS, INDEX_NAMES)
            if alt.resolved:
                return alt
        return target
    for prefix in ALIAS_PREFIXES:
        if specifier.startswith(prefix):
            rest = specifier[len(prefix):]
            target = resolve_with_candidates(known, rest, TS_EXTENSIONS, INDEX_NAMES)
            if target.resolved:
                return target
            under_src = resolve_with_candidates(known, f"src/{rest}", TS_EXTENSIONS, INDEX_NAMES)
            return under_src if under_src.resolved else target
    return None


def _exported_names(content: str) -> set[str]:
    names: set[str] = set()
    for m in _EXPORT_LIST.finditer(content):
        names.update(split_symbol_list(m.group(1)))
    for m in _MODULE_EXPORTS_OBJECT.finditer(content):
        for part in m.group(1).split(","):
            key = part.split(":")[-1].strip()
            if re.fullmatch(r"[A-Za-z_$][\w$]*", key):
                names.add(key)
    for rx in (_EXPORT_DEFAULT_NAME, _MODULE_EXPORTS_NAME, _EXPORTS_MEMBER):
        names.update(m.group(1) for m in rx.finditer(content))
    return names


def _return_type(header: str) -> Optional[str]:
    m = _RETURN_TYPE.search(header)
    if not m:
        return None
    value = m.group(1).strip()
    return value if value and len(value) <= 100 else None


class _TypeScriptWalker:
    def __init__(self, ctx: FileParseContext, scan: FileScan, imported: dict[str, str], exported_names: set[str]):
        self.ctx = ctx
        self.scan = scan
        self.imported = imported
        self.exported_names = exported_names
        self.scopes = ScopeStack()

    def type_ref(self, name: str, kind: str) -> Optional[str]:
        name = re.sub(r"<.*", "", name).strip()
        if not name or "." in name:
            return None
        path = self.imported.get(name)
        if path:
            return entity_hash(self.ctx.repo_id, path, kind, name, None)
        return self.scan.local_id(kind, name)

    def is_exported(self, m: re.Match, name: str) -> bool:
        return bool(m.group(1)) or name in self.exported_names

    def walk(self) -> None:
        lines = self.scan.lines
        for i, line in enumerate(lines):
            trimmed = line.strip()
            code = self.scan.noise(line)
            if trimmed and not is_comment_line(trimmed):
                header = join_header(lines, i, self.scan.noise) if "(" in code else trimmed
                owner = self.scopes.owner()
                if owner is not None:
                    self.member(header, i + 1, owner)
                else:
                    self.top_level(header, i + 1)
            self.scopes.advance(code)

    def top_level(self, header: str, line_no: int) -> None:
        scan = self.scan
        at_module_level = self.scopes.depth == 0

        m = _FUNCTION.match(header)
        if m:
            name, params = m.group(6), m.group(7)
            scan.declare(
                "function",
                name,
                line_no,
                signature=f"function {name}({params.strip()})",
                exported=self.is_exported(m, name),
                is_async=bool(m.group(4)),
                parameter_count=count_params(params),
                return_type=_return_type(header),
            )
            return

        m = _CLASS.match(header)
        if m:
            name = m.group(5)
            decl = scan.declare("class", name, line_no, exported=self.is_exported(m, name))
            if m.group(6):
                target = self.type_ref(m.group(6), "class")
                if target:
                    scan.link(decl.id, target, "extends")
            for iface in (m.group(7) or "").split(","):
                target = self.type_ref(iface, "interface")
                if target:
                    scan.link(decl.id, target, "implements")
            self.scopes.push(decl)
            return

        m = _INTERFACE.match(header)
        if m:
            name = m.group(3)
            decl = scan.declare("interface", name, line_no, exported=self.is_exported(m, name))
            for base in (m.group(4) or "").split(","):
                target = self.type_ref(base, "interface")
                if target:
                    scan.link(decl.id, target, "extends")
            self.scopes.push(decl)
            return

        m = _TYPE_ALIAS.match(header) if at_module_level else None
        if m:
            name = m.group(3)
            scan.declare("type", name, line_no, block=BLOCK_STATEMENT, exported=self.is_exported(m, name))
            return

        m = _ENUM.match(header)
        if m:
            name = m.group(4)
            scan.declare("enum", name, line_no, exported=self.is_exported(m, name))
            return

        m = _ARROW_CONST.match(header) if at_module_level else None
        if m:
            name = m.group(2)
            params = next((g for g in (m.group(4), m.group(5), m.group(6)) if g is not None), "")
            scan.declare(
                "function",
                name,
                line_no,
                signature=f"const {name}",
                block=BLOCK_STATEMENT,
                exported=self.is_exported(m, name),
                is_async=bool(m.group(3)),
                parameter_count=count_params(params),
                return_type=_return_type(header),
            )

    def member(self, header: str, line_no: int, owner: Declaration) -> None:
        m = _PROPERTY_ARROW.match(header)
        if m:
            modifiers, name, is_async, params = m.group(1), m.group(2), bool(m.group(3)), m.group(4)
        else:
            m = _METHOD.match(header)
            if not m:
                return
            modifiers, name, params = m.group(1), m.group(3), m.group(4)
            is_async = "async" in modifiers.split()
        if name in CONTROL_KEYWORDS:
            return
        decl = self.scan.declare(
            "method",
            name,
            line_no,
            signature=f"{owner.name}.{name}({params.strip()})",
            exported=owner.exported and "private" not in modifiers.split() and not name.startswith("#"),
            is_async=is_async,
            parameter_count=count_params(params),
            return_type=_return_type(header),
        )
        self.scan.member_of(decl, owner)


def parse_typescript_file(ctx: FileParseContext) -> ParseResult:
    scan = FileScan(ctx)
    import_edges = build_import_edges(
        repo_id=ctx.repo_id,
        file_path=ctx.file_path,
        language=ctx.language,
        statements=import_statements(ctx.content),
        resolve=lambda spec: resolve_specifier(ctx, spec),
    )
    _TypeScriptWalker(ctx, scan, imported_symbol_paths(import_edges), _exported_names(ctx.content)).walk()
    return scan.finish(complexity=COMPLEXITY, doc=extract_preceding_doc, import_edges=import_edges)
