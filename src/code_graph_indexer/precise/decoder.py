"""SCIP index decoding and two-pass symbol resolution.

Message layout read here (field numbers from the SCIP schema):

    Index      { documents: repeated Document = 2 }
    Document   { occurrences: repeated Occurrence = 2; relative_path: string = 4 }
    Occurrence { range: packed int32 = 1; symbol: string = 2;
                 symbol_roles: int32 = 4; enclosing_range: packed int32 = 7 }

Pass 1 materializes one entity per distinct definition and indexes each file's
entities by start line; pass 2 attributes every reference occurrence to the
entity that textually contains it (binary search over that index) and emits a
`calls` or `references` edge to the referenced definition.
"""

from __future__ import annotations

import bisect
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

import structlog

from code_graph_indexer.core.records import CALLABLE_KINDS, Edge, Entity, PreciseResult
from code_graph_indexer.core.scanner import language_for_extension
from code_graph_indexer.core.stable_ids import entity_hash
from code_graph_indexer.precise.wire import (
    WIRE_LEN,
    WIRE_VARINT,
    WireFormatError,
    iter_fields,
    read_packed_varints,
    read_string,
)


logger = structlog.get_logger(__name__)

INDEX_DOCUMENTS = 2
DOCUMENT_OCCURRENCES = 2
DOCUMENT_RELATIVE_PATH = 4
OCCURRENCE_RANGE = 1
OCCURRENCE_SYMBOL = 2
OCCURRENCE_ROLES = 4
OCCURRENCE_ENCLOSING_RANGE = 7

ROLE_DEFINITION = 0x1

LOCAL_SYMBOL_PREFIX = "local "

# `name(disambiguator)` optionally followed by "." (SCIP method descriptor).
_CALLABLE_SUFFIX = re.compile(r"^(?P<qualified>.*?)\((?P<disambiguator>[^()]*)\)(?P<method>\.)?$")
# A descriptor component is either a backtick-escaped name or a run without separators.
_COMPONENT = re.compile(r"`(?:[^`]|``)*`|[^/#.`]+")


@dataclass(frozen=True)
class ScipOccurrence:
    range: tuple[int, ...]
    symbol: str
    roles: int = 0
    enclosing_range: tuple[int, ...] = ()

    @property
    def is_definition(self) -> bool:
        return bool(self.roles & ROLE_DEFINITION)

    @property
    def start_line(self) -> int:
        return self.range[0] + 1

    @property
    def end_line(self) -> int:
        # Ranges are [startLine, startChar, endLine, endChar] or, for
        # single-line spans, [startLine, startChar, endChar].
        span = self.enclosing_range if len(self.enclosing_range) >= 3 else self.range
        end = span[2] if len(span) >= 4 else span[0]
        return max(end + 1, self.start_line)


@dataclass(frozen=True)
class ScipDocument:
    relative_path: str
    occurrences: tuple[ScipOccurrence, ...]


@dataclass(frozen=True)
class ParsedSymbol:
    kind: str
    name: str
    signature: Optional[str] = None


def _decode_occurrence(buf: bytes, start: int, end: int) -> Optional[ScipOccurrence]:
    rng: tuple[int, ...] = ()
    enclosing: tuple[int, ...] = ()
    symbol = ""
    roles = 0
    for f in iter_fields(buf, start, end):
        if f.number == OCCURRENCE_RANGE and f.wire_type == WIRE_LEN:
            rng = read_packed_varints(buf, f.start, f.end)
        elif f.number == OCCURRENCE_SYMBOL and f.wire_type == WIRE_LEN:
            symbol = read_string(buf, f.start, f.end)
        elif f.number == OCCURRENCE_ROLES and f.wire_type == WIRE_VARINT:
            roles = f.value
        elif f.number == OCCURRENCE_ENCLOSING_RANGE and f.wire_type == WIRE_LEN:
            enclosing = read_packed_varints(buf, f.start, f.end)
    if not symbol or len(rng) < 3:
        return None
    return ScipOccurrence(range=rng, symbol=symbol, roles=roles, enclosing_range=enclosing)


def _decode_document(buf: bytes, start: int, end: int) -> ScipDocument:
    path = ""
    occurrences: list[ScipOccurrence] = []
    for f in iter_fields(buf, start, end):
        if f.wire_type != WIRE_LEN:
            continue
        if f.number == DOCUMENT_RELATIVE_PATH:
            path = read_string(buf, f.start, f.end)
        elif f.number == DOCUMENT_OCCURRENCES:
            occ = _decode_occurrence(buf, f.start, f.end)
            if occ is not None:
                occurrences.append(occ)
    return ScipDocument(relative_path=path, occurrences=tuple(occurrences))


def decode_documents(data: bytes) -> list[ScipDocument]:
    """Decode every well-formed document in a SCIP index.

    A document whose body is malformed is skipped; a break in the top-level
    framing (truncation) ends decoding with the documents read so far.
    """

    documents: list[ScipDocument] = []
    fields = iter_fields(data)
    while True:
        try:
            f = next(fields)
        except StopIteration:
            break
        except WireFormatError as e:
            logger.debug("precise.index_truncated", error=str(e), documents=len(documents))
            break
        if f.number != INDEX_DOCUMENTS or f.wire_type != WIRE_LEN:
            continue
        try:
            doc = _decode_document(data, f.start, f.end)
        except WireFormatError as e:
            logger.debug("precise.document_skipped", offset=f.start, error=str(e))
            continue
        if doc.relative_path:
            documents.append(doc)
    return documents


def parse_symbol(symbol: str) -> Optional[ParsedSymbol]:
    """Classify a SCIP symbol by its last descriptor's suffix.

    `scheme manager package ... descriptor`: `().`/`(+n).` method, `()`
    function, `#` class, `.` variable, `/` module. Anything else is None.
    """

    parts = symbol.strip().split(" ")
    if len(parts) < 2:
        return None
    descriptor = parts[-1]
    if not descriptor:
        return None

    m = _CALLABLE_SUFFIX.match(descriptor)
    if m:
        kind = "method" if m.group("method") else "function"
        qualified = m.group("qualified")
        if "(" in qualified or ")" in qualified:
            # Parameter descriptor nested under a method, e.g. `Foo#bar().(x)`.
            return None
        name = _last_component(qualified)
        if not name:
            return None
        return ParsedSymbol(kind=kind, name=name, signature=f"{qualified}({m.group('disambiguator')})")

    suffix_kinds = {"#": "class", ".": "variable", "/": "module"}
    kind = suffix_kinds.get(descriptor[-1])
    if kind is None:
        return None
    qualified = descriptor[:-1]
    name = _last_component(qualified)
    if not name:
        return None
    return ParsedSymbol(kind=kind, name=name, signature=qualified if qualified != name else None)


def _last_component(qualified: str) -> str:
    components = _COMPONENT.findall(qualified)
    if not components:
        return ""
    last = components[-1]
    if last.startswith("`") and last.endswith("`") and len(last) >= 2:
        last = last[1:-1].replace("``", "`")
    return last


def _join_path(prefix: str, relative_path: str) -> str:
    if not prefix or prefix == ".":
        return relative_path
    return f"{prefix.rstrip('/')}/{relative_path}"


def resolve_documents(
    documents: Iterable[ScipDocument],
    *,
    repo_id: str,
    language: str,
    path_prefix: str = "",
) -> PreciseResult:
    """Turn decoded documents into entities and reference/call edges."""

    docs = list(documents)
    entities: list[Entity] = []
    seen_ids: set[str] = set()
    symbol_to_id: dict[str, str] = {}
    symbol_kind: dict[str, str] = {}
    file_index: dict[str, list[tuple[int, str]]] = {}
    covered: list[str] = []

    # Pass 1: definitions.
    for doc in docs:
        path = _join_path(path_prefix, doc.relative_path)
        covered.append(path)
        file_language = language_for_extension(Path(path).suffix) or language
        for occ in doc.occurrences:
            if not occ.is_definition or occ.symbol.startswith(LOCAL_SYMBOL_PREFIX):
                continue
            parsed = parse_symbol(occ.symbol)
            if parsed is None:
                continue
            eid = entity_hash(repo_id, path, parsed.kind, parsed.name, parsed.signature)
            symbol_to_id.setdefault(occ.symbol, eid)
            symbol_kind.setdefault(occ.symbol, parsed.kind)
            if eid in seen_ids:
                continue
            seen_ids.add(eid)
            entities.append(
                Entity(
                    id=eid,
                    repo_id=repo_id,
                    kind=parsed.kind,
                    name=parsed.name,
                    file_path=path,
                    start_line=occ.start_line,
                    end_line=occ.end_line,
                    language=file_language,
                    signature=parsed.signature,
                )
            )
            file_index.setdefault(path, []).append((occ.start_line, eid))

    # Sorted once; pass 2 only bisects.
    starts_by_file: dict[str, list[int]] = {}
    for path, rows in file_index.items():
        rows.sort()
        starts_by_file[path] = [line for line, _ in rows]

    # Pass 2: references.
    edges: list[Edge] = []
    seen_pairs: set[tuple[str, str]] = set()
    for doc in docs:
        path = _join_path(path_prefix, doc.relative_path)
        rows = file_index.get(path)
        if not rows:
            continue
        starts = starts_by_file[path]
        for occ in doc.occurrences:
            if occ.is_definition or occ.symbol.startswith(LOCAL_SYMBOL_PREFIX):
                continue
            target = symbol_to_id.get(occ.symbol)
            if target is None:
                continue
            container = container_for_line(rows, starts, occ.start_line)
            if container is None or container == target:
                continue
            if container not in seen_ids or target not in seen_ids:
                continue
            pair = (container, target)
            if pair in seen_pairs:
                continue
            seen_pairs.add(pair)
            kind = "calls" if symbol_kind[occ.symbol] in CALLABLE_KINDS else "references"
            edges.append(Edge(from_id=container, to_id=target, kind=kind, repo_id=repo_id))

    return PreciseResult(entities=entities, edges=edges, covered_files=covered)


def container_for_line(rows: list[tuple[int, str]], starts: list[int], line: int) -> Optional[str]:
    """Id of the entity with the largest start line <= `line`, if any."""

    idx = bisect.bisect_right(starts, line) - 1
    if idx < 0:
        return None
    return rows[idx][1]


def decode_index_bytes(
    data: bytes,
    *,
    repo_id: str,
    language: str,
    path_prefix: str = "",
) -> PreciseResult:
    return resolve_documents(
        decode_documents(data), repo_id=repo_id, language=language, path_prefix=path_prefix
    )


def decode_index_file(
    path: str | Path,
    *,
    repo_id: str,
    language: str,
    path_prefix: str = "",
) -> PreciseResult:
    """Decode an index artifact from disk; an unreadable file yields an empty result."""

    try:
        data = Path(path).read_bytes()
    except OSError as e:
        logger.warning("precise.artifact_unreadable", path=str(path), error=str(e))
        return PreciseResult()
    return decode_index_bytes(data, repo_id=repo_id, language=language, path_prefix=path_prefix)
