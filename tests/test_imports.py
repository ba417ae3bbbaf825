from code_graph_indexer.core.stable_ids import external_module_id, file_entity_id
from code_graph_indexer.plugins.imports import (
    ImportStatement,
    ImportTarget,
    KnownFiles,
    build_import_edges,
    normalize_relative,
    split_symbol_list,
)


def _resolve(spec: str):
    if spec.startswith("./self"):
        return ImportTarget(path="src/app.ts", resolved=True)
    if spec.startswith("."):
        return ImportTarget(path="src/a.ts", resolved=True)
    return None


def test_statements_to_one_target_are_merged() -> None:
    statements = [
        ImportStatement(specifier="./a", line=1, symbols=("x",), type_only=True),
        ImportStatement(specifier="./a", line=2, symbols=("y", "x")),
        ImportStatement(specifier="./self", line=3, symbols=("z",)),
        ImportStatement(specifier="lodash", line=4, symbols=("map",)),
    ]
    internal, external = build_import_edges(
        repo_id="r", file_path="src/app.ts", language="typescript", statements=statements, resolve=_resolve
    )

    assert internal.from_id == file_entity_id("r", "src/app.ts")
    assert internal.to_id == file_entity_id("r", "src/a.ts")
    assert internal.imported_symbols == ("x", "y")
    assert internal.confidence == 1.0
    assert internal.metadata == {
        "specifier": "./a",
        "target_path": "src/a.ts",
        "target_is_directory": False,
        "line": 1,
    }

    assert external.is_external
    assert external.package_name == "lodash"
    assert external.to_id == external_module_id("r", "lodash")
    assert external.metadata["stdlib"] is False


def test_known_files_prefers_the_shortest_suffix_match() -> None:
    known = KnownFiles.from_paths(["vendor/x/util/strings.go", "src/util/strings.go", "a.py"])

    assert known.lookup("util/strings", (".go",)) == "src/util/strings.go"
    assert known.lookup("util/missing", (".go",)) is None
    assert known.lookup_dir("util") == "src/util"
    assert known.files_in_dir("src/util") == ["src/util/strings.go"]
    assert known.files_in_dir("") == ["a.py"]
    assert "vendor/x" in known.dirs
    assert "a.py" in known


def test_normalize_relative() -> None:
    assert normalize_relative("src/a.ts", "../b") == "b"
    assert normalize_relative("a.ts", "./b") == "b"
    assert normalize_relative("src/a.ts", "../../b") is None


def test_split_symbol_list_keeps_exported_names() -> None:
    assert split_symbol_list("a, b as c, type D, *") == ("a", "b", "D")
