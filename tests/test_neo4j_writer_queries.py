import json

import pytest

from code_graph_indexer.core.records import Edge, Entity
from code_graph_indexer.persistence.neo4j_writer import (
    build_delete_edges_by_version_query,
    build_delete_entities_by_version_query,
    build_get_active_version_query,
    build_merge_edges_query,
    build_merge_entities_query,
    build_set_active_version_query,
    edge_rows_by_kind,
    entity_rows,
    relationship_type,
)


def test_entity_query_merges_on_id() -> None:
    q = build_merge_entities_query()
    assert "MERGE (n:__Entity__ {id: row.id})" in q
    assert "SET n += row.props" in q
    assert "n.index_version = row.index_version" in q


def test_edge_query_interpolates_relationship_type() -> None:
    q = build_merge_edges_query("calls")
    assert "MATCH (src:__Entity__ {id: row.from_id})" in q
    assert "MERGE (src)-[r:CALLS {id: row.id}]->(dst)" in q
    assert "r.index_version = row.index_version" in q


def test_unknown_edge_kind_is_never_interpolated() -> None:
    with pytest.raises(ValueError):
        relationship_type("calls]->() DETACH DELETE (n")
    with pytest.raises(ValueError):
        build_merge_edges_query("includes")


def test_version_queries_are_repo_scoped() -> None:
    assert "DETACH DELETE n" in build_delete_entities_by_version_query()
    assert "r.index_version = $index_version" in build_delete_edges_by_version_query()
    assert "__RepoIndex__ {repo_id: $repo_id}" in build_get_active_version_query()
    assert "SET v.active_version = $index_version" in build_set_active_version_query()


def test_rows_flatten_records() -> None:
    entity = Entity(
        id="e1", repo_id="r", kind="function", name="f", file_path="a.py", start_line=1, end_line=4,
        language="python", complexity=2, index_version="v1",
    )
    [row] = entity_rows([entity])
    assert row["id"] == "e1"
    assert row["index_version"] == "v1"
    assert row["props"]["complexity"] == 2
    assert row["props"]["file_path"] == "a.py"

    edges = [
        Edge(from_id="a", to_id="b", kind="imports", repo_id="r", imported_symbols=("x", "y"),
             metadata={"specifier": "./b", "line": 3}),
        Edge(from_id="a", to_id="c", kind="calls", repo_id="r", confidence=0.5),
    ]
    rows = edge_rows_by_kind(edges)
    assert sorted(rows) == ["calls", "imports"]
    imports = rows["imports"][0]
    assert imports["id"] == edges[0].id
    assert imports["props"]["imported_symbols"] == ["x", "y"]
    assert json.loads(imports["props"]["metadata"]) == {"line": 3, "specifier": "./b"}
    assert rows["calls"][0]["props"]["metadata"] == "{}"
