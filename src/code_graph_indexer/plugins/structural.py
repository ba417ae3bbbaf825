"""Shared machinery for the heuristic (fallback) structural parsers.

A language parser walks its file once, recording `Declaration`s and
structural edges on a `FileScan`. `FileScan.finish` then runs the second pass:
it locates each declaration's last line (brace matching, statement end,
indentation reset or `end` keyword), slices the body, estimates complexity,
picks up doc comments and detects calls between callables of the same file.

All mutable state lives on the per-file `FileScan`, so files can be parsed in
parallel without coordination.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence

from code_graph_indexer.core.records import CALLABLE_KINDS, Edge, Entity, ParseResult
from code_graph_indexer.core.stable_ids import entity_hash, file_entity_id
from code_graph_indexer.plugins.base import FileParseContext


BLOCK_BRACE = "brace"
BLOCK_STATEMENT = "statement"
BLOCK_INDENT = "indent"
BLOCK_END_KEYWORD = "end"
BLOCK_LINE = "line"

CONTROL_KEYWORDS: frozenset[str] = frozenset(
    {"if", "for", "while", "switch", "catch", "return", "else", "do", "foreach", "elif", "elsif",
     "unless", "until", "case", "when", "match", "new", "throw", "delete", "typeof", "sizeof",
     "await", "yield", "loop", "select", "function", "using", "lock", "fixed", "synchronized"}
)

_C_STRINGS = re.compile(r'"(?:\\.|[^"\\])*"|\'(?:\\.|[^\'\\])*\'|`(?:\\.|[^`\\])*`')
_RUST_STRINGS = re.compile(r'"(?:\\.|[^"\\])*"|\'(?:\\.|[^\'\\])\'')
_INLINE_BLOCK_COMMENT = re.compile(r"/\*.*?\*/")

_RUBY_OPENER = re.compile(r"^\s*(?:(?:private|protected|public)\s+)?(?:class|module|def|if|unless|while|until|case|begin|for)\b")
_RUBY_ASSIGN_OPENER = re.compile(r"=\s*(?:if|unless|case|begin)\b")
_RUBY_DO = re.compile(r"\bdo\b(?:\s*\|[^|]*\|)?\s*$")
_RUBY_END = re.compile(r"(?<![.\w])end\b")
_RUBY_ENDLESS_DEF = re.compile(r"^\s*def\s+[\w.?!]+\s*(?:\([^)]*\))?\s*=[^=~]")


def split_lines(content: str) -> list[str]:
    text = content.replace("\r\n", "\n").replace("\r", "\n")
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines = lines[:-1]
    return lines


def strip_c_like_noise(line: str) -> str:
    """Drop string literals and comments so delimiter counting sees only code."""

    code = _C_STRINGS.sub('""', line)
    code = _INLINE_BLOCK_COMMENT.sub(" ", code)
    cut = code.find("//")
    return code[:cut] if cut != -1 else code


def strip_rust_noise(line: str) -> str:
    code = _RUST_STRINGS.sub('""', line)
    code = _INLINE_BLOCK_COMMENT.sub(" ", code)
    cut = code.find("//")
    return code[:cut] if cut != -1 else code


def strip_hash_noise(line: str) -> str:
    code = _C_STRINGS.sub('""', line)
    cut = code.find("#")
    return code[:cut] if cut != -1 else code


def strip_php_noise(line: str) -> str:
    code = strip_c_like_noise(line)
    cut = code.find("#")
    # `#[Attribute]` is code in PHP 8, a comment otherwise.
    if cut != -1 and not code[cut:].startswith("#["):
        return code[:cut]
    return code


def is_comment_line(trimmed: str) -> bool:
    return trimmed.startswith(("//", "/*", "*", "*/"))


def indent_of(line: str) -> int:
    return len(line) - len(line.lstrip())


def count_params(params: str, *, skip: Iterable[str] = ()) -> int:
    skipped = set(skip)
    depth = 0
    parts: list[str] = []
    current = ""
    # Split on top-level commas only: `Map<K, V> m` is one parameter.
    for ch in params:
        if ch in "<([{":
            depth += 1
        elif ch in ">)]}":
            depth -= 1
        if ch == "," and depth <= 0:
            parts.append(current)
            current = ""
        else:
            current += ch
    parts.append(current)
    return sum(1 for p in (x.strip() for x in parts) if p and p not in skipped)


def estimate_complexity(body: str, pattern: re.Pattern) -> int:
    return 1 + sum(1 for _ in pattern.finditer(body))


def find_brace_end(lines: Sequence[str], start_idx: int, noise: Callable[[str], str]) -> int:
    """Index of the line closing the first `{` at or after `start_idx`.

    A `;` before any `{` ends a body-less declaration on that line.
    """

    depth = 0
    opened = False
    for i in range(start_idx, len(lines)):
        for ch in noise(lines[i]):
            if ch == "{":
                depth += 1
                opened = True
            elif ch == "}":
                depth -= 1
                if opened and depth <= 0:
                    return i
            elif ch == ";" and not opened:
                return i
    return len(lines) - 1 if opened else start_idx


def find_statement_end(lines: Sequence[str], start_idx: int, noise: Callable[[str], str]) -> int:
    depth = 0
    n = len(lines)
    for i in range(start_idx, n):
        code = noise(lines[i]).strip()
        depth += sum(code.count(c) for c in "([{") - sum(code.count(c) for c in ")]}")
        if depth > 0:
            continue
        if ";" in code:
            return i
        if code.endswith(("=", "|", "&", ",", "=>", "(", "+", "?", ":")):
            continue
        j = i + 1
        while j < n and not lines[j].strip():
            j += 1
        if j < n and lines[j].strip().startswith(("|", "&", ".", "?", ":", "=>")):
            continue
        return i
    return n - 1


def header_end(lines: Sequence[str], start_idx: int, noise: Callable[[str], str]) -> int:
    """Last line of a (possibly multi-line) parenthesized header."""

    depth = 0
    i = start_idx
    while i < len(lines):
        code = noise(lines[i])
        depth += code.count("(") + code.count("[") - code.count(")") - code.count("]")
        if depth <= 0:
            return i
        i += 1
    return len(lines) - 1


def join_header(lines: Sequence[str], start_idx: int, noise: Callable[[str], str], *, max_lines: int = 30) -> str:
    """Declaration header with continuation lines folded in until parentheses balance."""

    depth = 0
    parts: list[str] = []
    for i in range(start_idx, min(len(lines), start_idx + max_lines)):
        parts.append(lines[i].strip())
        code = noise(lines[i])
        depth += code.count("(") - code.count(")")
        if depth <= 0:
            break
    return " ".join(parts)


def find_indent_end(lines: Sequence[str], start_idx: int, noise: Callable[[str], str] = strip_hash_noise) -> int:
    """Last code line indented deeper than the header at `start_idx`."""

    base = indent_of(lines[start_idx])
    end = header_end(lines, start_idx, noise)
    for i in range(end + 1, len(lines)):
        trimmed = lines[i].strip()
        if not trimmed or trimmed.startswith("#"):
            continue
        if indent_of(lines[i]) <= base:
            break
        end = i
    return end


def end_keyword_delta(line: str) -> int:
    """Net blocks opened by one line of Ruby (openers minus `end`s)."""

    if _RUBY_ENDLESS_DEF.match(line):
        return 0
    delta = 0
    # `def x; end` and friends stay on one line.
    for stmt in strip_hash_noise(line).split(";"):
        if _RUBY_OPENER.match(stmt) or _RUBY_ASSIGN_OPENER.search(stmt) or _RUBY_DO.search(stmt):
            delta += 1
        delta -= len(_RUBY_END.findall(stmt))
    return delta


def find_end_keyword(lines: Sequence[str], start_idx: int) -> int:
    """Line of the `end` matching the block opened at `start_idx` (Ruby)."""

    if _RUBY_ENDLESS_DEF.match(lines[start_idx]):
        return start_idx
    depth = 0
    for i in range(start_idx, len(lines)):
        depth += end_keyword_delta(lines[i])
        if depth <= 0:
            return i
    return len(lines) - 1


@dataclass
class Declaration:
    id: str
    kind: str
    name: str
    start_line: int
    signature: Optional[str] = None
    exported: bool = False
    parent: Optional[str] = None
    doc: Optional[str] = None
    is_async: bool = False
    parameter_count: Optional[int] = None
    return_type: Optional[str] = None
    block: str = BLOCK_BRACE
    end_line: Optional[int] = None


class ScopeStack:
    """Brace-delimited type bodies (class, interface, impl, namespace) tracked line by line.

    Call `owner()` and `push()` while looking at a line, then `advance()` with
    that line's code to update the brace depth.
    """

    def __init__(self) -> None:
        self.depth = 0
        # [declaration, depth before its header, body opened]
        self._stack: list[list] = []

    def owner(self) -> Optional[Declaration]:
        """Type whose body directly contains the current line, if any."""

        if self._stack and self.depth == self._stack[-1][1] + 1:
            return self._stack[-1][0]
        return None

    def enclosing(self) -> list[Declaration]:
        return [entry[0] for entry in self._stack]

    def push(self, decl: Declaration) -> None:
        self._stack.append([decl, self.depth, False])

    def advance(self, code: str) -> None:
        self.depth += code.count("{") - code.count("}")
        while self._stack:
            top = self._stack[-1]
            if self.depth > top[1]:
                top[2] = True
                return
            if top[2] or ";" in code:
                self._stack.pop()
                continue
            return


DocExtractor = Callable[[Sequence[str], int], Optional[str]]


class FileScan:
    """Per-file accumulator for one fallback parse."""

    def __init__(self, ctx: FileParseContext, *, noise: Callable[[str], str] = strip_c_like_noise):
        self.ctx = ctx
        self.lines = split_lines(ctx.content)
        self.noise = noise
        self.file_id = file_entity_id(ctx.repo_id, ctx.file_path)
        self.edges: list[Edge] = []
        self._decls: dict[str, Declaration] = {}

    @property
    def declarations(self) -> list[Declaration]:
        return list(self._decls.values())

    def local_id(self, kind: str, name: str, signature: Optional[str] = None) -> str:
        return entity_hash(self.ctx.repo_id, self.ctx.file_path, kind, name, signature)

    def declare(
        self,
        kind: str,
        name: str,
        line: int,
        *,
        signature: Optional[str] = None,
        block: str = BLOCK_BRACE,
        **fields,
    ) -> Declaration:
        """Record a declaration; a repeat of the same identity keeps the first."""

        eid = self.local_id(kind, name, signature)
        existing = self._decls.get(eid)
        if existing is not None:
            return existing
        decl = Declaration(id=eid, kind=kind, name=name, start_line=line, signature=signature, block=block, **fields)
        self._decls[eid] = decl
        return decl

    def link(self, from_id: str, to_id: str, kind: str) -> None:
        if from_id != to_id:
            self.edges.append(Edge(from_id=from_id, to_id=to_id, kind=kind, repo_id=self.ctx.repo_id))

    def member_of(self, member: Declaration, owner: Declaration) -> None:
        member.parent = owner.name
        self.link(member.id, owner.id, "member_of")

    def _end_index(self, decl: Declaration) -> int:
        start_idx = decl.start_line - 1
        if decl.end_line is not None:
            return decl.end_line - 1
        if decl.block == BLOCK_BRACE:
            return find_brace_end(self.lines, start_idx, self.noise)
        if decl.block == BLOCK_STATEMENT:
            return find_statement_end(self.lines, start_idx, self.noise)
        if decl.block == BLOCK_INDENT:
            return find_indent_end(self.lines, start_idx, self.noise)
        if decl.block == BLOCK_END_KEYWORD:
            return find_end_keyword(self.lines, start_idx)
        return start_idx

    def finish(
        self,
        *,
        complexity: re.Pattern,
        doc: Optional[DocExtractor] = None,
        import_edges: Iterable[Edge] = (),
        call_target_kinds: Iterable[str] = CALLABLE_KINDS,
    ) -> ParseResult:
        ctx = self.ctx
        entities: list[Entity] = []
        for d in sorted(self._decls.values(), key=lambda x: x.start_line):
            start_idx = d.start_line - 1
            end_idx = max(self._end_index(d), start_idx)
            body_lines = self.lines[start_idx : min(end_idx + 1, start_idx + ctx.max_body_lines)]
            body = "\n".join(body_lines) if body_lines else None
            doc_text = d.doc
            if doc_text is None and doc is not None:
                doc_text = doc(self.lines, start_idx)
            entities.append(
                Entity(
                    id=d.id,
                    repo_id=ctx.repo_id,
                    kind=d.kind,
                    name=d.name,
                    file_path=ctx.file_path,
                    start_line=d.start_line,
                    end_line=end_idx + 1,
                    language=ctx.language,
                    signature=d.signature,
                    exported=d.exported,
                    doc=doc_text,
                    parent=d.parent,
                    body=body,
                    complexity=estimate_complexity(body, complexity) if body and d.kind in CALLABLE_KINDS else None,
                    is_async=d.is_async,
                    parameter_count=d.parameter_count,
                    return_type=d.return_type,
                )
            )

        edges = list(import_edges) + self.edges + detect_intra_file_calls(entities, target_kinds=call_target_kinds)
        return ParseResult(entities=entities, edges=dedupe_edges(edges))


def dedupe_edges(edges: Iterable[Edge]) -> list[Edge]:
    seen: set[tuple[str, str, str]] = set()
    out: list[Edge] = []
    for e in edges:
        key = (e.from_id, e.to_id, e.kind)
        if key in seen:
            continue
        seen.add(key)
        out.append(e)
    return out


def detect_intra_file_calls(
    entities: Sequence[Entity], *, target_kinds: Iterable[str] = CALLABLE_KINDS
) -> list[Edge]:
    """`calls` edges between callables of one file, matched as `name(` in caller bodies."""

    kinds = frozenset(target_kinds)
    targets: dict[str, str] = {}
    for e in entities:
        if e.kind in kinds and len(e.name) > 1:
            targets.setdefault(e.name, e.id)
    if not targets:
        return []

    names = sorted(targets, key=lambda n: (-len(n), n))
    pattern = re.compile(r"\b(" + "|".join(re.escape(n) for n in names) + r")\s*\(")

    edges: list[Edge] = []
    seen: set[tuple[str, str]] = set()
    for caller in entities:
        if caller.kind not in CALLABLE_KINDS or not caller.body:
            continue
        for m in pattern.finditer(caller.body):
            name = m.group(1)
            callee = targets[name]
            # The caller's own header matches its name; recursion is not an edge.
            if callee == caller.id or name == caller.name:
                continue
            pair = (caller.id, callee)
            if pair in seen:
                continue
            seen.add(pair)
            edges.append(Edge(from_id=caller.id, to_id=callee, kind="calls", repo_id=caller.repo_id))
    return edges
