from pathlib import Path

import pytest

from code_graph_indexer.core.stable_ids import entity_hash
from code_graph_indexer.precise.decoder import (
    container_for_line,
    decode_documents,
    decode_index_bytes,
    decode_index_file,
    parse_symbol,
)
from code_graph_indexer.precise.wire import WireFormatError, iter_fields, read_varint


# Minimal protobuf encoder for building SCIP fixtures in-test.


def _varint(n: int) -> bytes:
    out = bytearray()
    while True:
        b = n & 0x7F
        n >>= 7
        if n:
            out.append(b | 0x80)
        else:
            out.append(b)
            return bytes(out)


def _len_field(number: int, payload: bytes) -> bytes:
    return _varint(number << 3 | 2) + _varint(len(payload)) + payload


def _varint_field(number: int, value: int) -> bytes:
    return _varint(number << 3) + _varint(value)


def _packed(values) -> bytes:
    return b"".join(_varint(v) for v in values)


def _occ(rng, symbol: str, *, definition: bool = False, enclosing=None) -> bytes:
    out = _len_field(1, _packed(rng)) + _len_field(2, symbol.encode("utf-8"))
    if definition:
        out += _varint_field(4, 1)
    if enclosing:
        out += _len_field(7, _packed(enclosing))
    return out


def _doc(path: str, occurrences) -> bytes:
    return _len_field(4, path.encode("utf-8")) + b"".join(_len_field(2, o) for o in occurrences)


def _index(documents) -> bytes:
    # Field 1 (metadata) precedes documents in real indexes and must be ignored.
    return _len_field(1, _len_field(1, b"ignored")) + b"".join(_len_field(2, d) for d in documents)


WIDGET = "scip-typescript npm pkg 1.0.0 src/`a.ts`/Widget#"
RENDER = "scip-typescript npm pkg 1.0.0 src/`a.ts`/Widget#render()."
MAIN = "scip-typescript npm pkg 1.0.0 src/`b.ts`/main()."


def _two_file_index() -> bytes:
    a = _doc(
        "src/a.ts",
        [
            _occ([0, 13, 19], WIDGET, definition=True, enclosing=[0, 0, 8, 1]),
            _occ([2, 2, 8], RENDER, definition=True, enclosing=[2, 2, 4, 3]),
        ],
    )
    b = _doc(
        "src/b.ts",
        [
            _occ([0, 16, 20], MAIN, definition=True, enclosing=[0, 0, 5, 1]),
            _occ([1, 12, 18], WIDGET),
            _occ([2, 4, 10], RENDER),
            _occ([3, 4, 10], RENDER),
            _occ([4, 4, 9], "local 3"),
        ],
    )
    return _index([a, b])


def test_two_pass_resolution_produces_entities_and_typed_edges() -> None:
    result = decode_index_bytes(_two_file_index(), repo_id="r", language="typescript")

    by_name = {e.name: e for e in result.entities}
    assert set(by_name) == {"Widget", "render", "main"}
    assert by_name["Widget"].kind == "class"
    assert by_name["render"].kind == "method"
    assert by_name["render"].signature == "src/`a.ts`/Widget#render()"
    assert by_name["Widget"].id == entity_hash("r", "src/a.ts", "class", "Widget", "src/`a.ts`/Widget")
    assert result.covered_files == ["src/a.ts", "src/b.ts"]

    edges = {(e.from_id, e.to_id, e.kind) for e in result.edges}
    main_id = by_name["main"].id
    # Repeated references from one container collapse into one edge.
    assert edges == {
        (main_id, by_name["Widget"].id, "references"),
        (main_id, by_name["render"].id, "calls"),
    }


def test_enclosing_range_defines_end_line() -> None:
    result = decode_index_bytes(_two_file_index(), repo_id="r", language="typescript")
    by_name = {e.name: e for e in result.entities}
    assert (by_name["Widget"].start_line, by_name["Widget"].end_line) == (1, 9)
    assert (by_name["render"].start_line, by_name["render"].end_line) == (3, 5)


def test_single_line_range_without_enclosing_range() -> None:
    data = _index([_doc("m.py", [_occ([4, 0, 10], "scip-python python m 1 m/helper().", definition=True)])])
    (entity,) = decode_index_bytes(data, repo_id="r", language="python").entities
    assert entity.start_line == entity.end_line == 5
    assert entity.language == "python"


def test_path_prefix_makes_paths_workspace_relative() -> None:
    result = decode_index_bytes(_two_file_index(), repo_id="r", language="typescript", path_prefix="packages/web")
    assert {e.file_path for e in result.entities} == {"packages/web/src/a.ts", "packages/web/src/b.ts"}


def test_containment_uses_largest_start_at_or_before_line() -> None:
    rows = [(2, "a"), (10, "b"), (25, "c")]
    starts = [2, 10, 25]
    assert container_for_line(rows, starts, 12) == "b"
    assert container_for_line(rows, starts, 25) == "c"
    assert container_for_line(rows, starts, 1) is None


def test_reference_attributed_to_containing_definition() -> None:
    sym = "scip-go gomod m v1 `m/pkg`/{}()."
    doc = _doc(
        "pkg/x.go",
        [
            _occ([1, 5, 6], sym.format("A"), definition=True),
            _occ([9, 5, 6], sym.format("B"), definition=True),
            _occ([24, 5, 6], sym.format("C"), definition=True),
            _occ([11, 1, 2], sym.format("C")),
        ],
    )
    result = decode_index_bytes(_index([doc]), repo_id="r", language="go")
    names = {e.id: e.name for e in result.entities}
    assert [(names[e.from_id], names[e.to_id]) for e in result.edges] == [("B", "C")]


def test_truncation_at_every_offset_never_raises() -> None:
    data = _two_file_index()
    full = decode_index_bytes(data, repo_id="r", language="typescript")
    for cut in range(len(data)):
        partial = decode_index_bytes(data[:cut], repo_id="r", language="typescript")
        assert {e.id for e in partial.entities} <= {e.id for e in full.entities}


def test_malformed_document_is_skipped_and_decoding_continues() -> None:
    bad = _len_field(4, b"bad.ts") + _varint(2 << 3 | 2) + _varint(50) + b"xx"
    good = _doc("good.ts", [_occ([0, 0, 3], "scip-typescript npm p 1 `good.ts`/ok().", definition=True)])
    docs = decode_documents(_index([bad, good]))
    assert [d.relative_path for d in docs] == ["good.ts"]


def test_unreadable_artifact_yields_empty_result(tmp_path: Path) -> None:
    result = decode_index_file(tmp_path / "missing.scip", repo_id="r", language="go")
    assert result.entities == [] and result.edges == [] and result.covered_files == []


@pytest.mark.parametrize(
    "symbol, expected",
    [
        ("scip-go gomod m v1 `m/pkg`/Server#Start().", ("method", "Start")),
        ("scip-python python p 1 pkg/helper()", ("function", "helper")),
        ("scip-python python p 1 pkg/helper(+1)", ("function", "helper")),
        ("scip-java maven g 1 com/acme/Server#", ("class", "Server")),
        ("scip-java maven g 1 com/acme/Server#port.", ("variable", "port")),
        ("scip-typescript npm p 1 `pkg`/", ("module", "pkg")),
        ("scip-java maven g 1 `we``ird`#", ("class", "we`ird")),
    ],
)
def test_parse_symbol_classifies_by_suffix(symbol: str, expected: tuple[str, str]) -> None:
    parsed = parse_symbol(symbol)
    assert parsed is not None
    assert (parsed.kind, parsed.name) == expected


@pytest.mark.parametrize(
    "symbol",
    ["single", "scip-java maven g 1 com/acme/Server#bar().(x)", "a b Foo!", "a b "],
)
def test_parse_symbol_rejects_unparseable_descriptors(symbol: str) -> None:
    assert parse_symbol(symbol) is None


def test_wire_reader_bounds_checks() -> None:
    assert read_varint(_varint(300), 0, 2) == (300, 2)
    with pytest.raises(WireFormatError):
        read_varint(b"\x80\x80", 0, 2)
    with pytest.raises(WireFormatError):
        list(iter_fields(_len_field(1, b"abc")[:-1]))
    with pytest.raises(WireFormatError):
        list(iter_fields(b"\x00", 0, 5))
