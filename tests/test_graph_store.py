import json
import time
from unittest.mock import MagicMock

import httpx
import pytest
from neo4j.exceptions import ServiceUnavailable

from code_graph_indexer.configuration.neo4j_config import Neo4jSettings
from code_graph_indexer.core.records import Edge, Entity
from code_graph_indexer.persistence.graph_store import (
    GraphStoreError,
    InMemoryGraphStore,
    Neo4jGraphStore,
    RepositoryServiceGraphStore,
    get_graph_store,
)


def _entity(eid: str, version: str, repo_id: str = "r") -> Entity:
    return Entity(
        id=eid, repo_id=repo_id, kind="function", name=eid, file_path="a.py", start_line=1, end_line=1,
        language="python", index_version=version,
    )


@pytest.fixture
def no_sleep(monkeypatch):
    monkeypatch.setattr(time, "sleep", lambda _seconds: None)


def test_in_memory_delete_by_version_takes_touching_edges() -> None:
    store = InMemoryGraphStore()
    store.bulk_upsert_entities([_entity("a", "v1"), _entity("b", "v2"), _entity("c", "v1", repo_id="other")])
    store.bulk_upsert_edges(
        [
            Edge(from_id="b", to_id="a", kind="calls", repo_id="r", index_version="v2"),
            Edge(from_id="b", to_id="b2", kind="calls", repo_id="r", index_version="v1"),
        ]
    )

    assert store.delete_by_version("r", "v1") == 3
    assert [e.id for e in store.entities_for("r")] == ["b"]
    assert store.edges_for("r") == []
    assert [e.id for e in store.entities_for("other")] == ["c"]


def test_in_memory_upsert_replaces_by_id_and_counts_versions() -> None:
    store = InMemoryGraphStore()
    store.bulk_upsert_entities([_entity("a", "v1"), _entity("b", "v1")])
    store.bulk_upsert_entities([_entity("a", "v2")])

    counts = store.version_counts("r")
    assert counts.entities == {"v1": 1, "v2": 1}
    assert counts.edges == {}

    store.set_active_version("r", "v2")
    assert store.get_active_version("r") == "v2"
    assert store.get_active_version("other") is None


def test_configured_backend_is_cached() -> None:
    store = get_graph_store()
    assert isinstance(store, InMemoryGraphStore)
    assert get_graph_store() is store


def _neo4j(rows, **settings):
    driver = MagicMock()
    session = driver.session.return_value.__enter__.return_value
    tx = MagicMock()
    tx.run.return_value.data.return_value = rows
    session.execute_write.side_effect = lambda work: work(tx)
    session.execute_read.side_effect = lambda work: work(tx)
    store = Neo4jGraphStore(Neo4jSettings(NEO4J_WRITE_BATCH_SIZE=2, **settings), driver=driver)
    return store, session, tx


def test_neo4j_upserts_in_batches() -> None:
    store, session, tx = _neo4j([{"written": 2}])

    written = store.bulk_upsert_entities([_entity(x, "v1") for x in "abc"])

    assert written == 4  # two batches, each reporting the mocked count
    assert session.execute_write.call_count == 2
    query, params = tx.run.call_args_list[0].args
    assert "MERGE (n:__Entity__" in query
    assert [row["id"] for row in params["rows"]] == ["a", "b"]


def test_neo4j_reads_active_version() -> None:
    store, session, _ = _neo4j([{"active_version": "v7"}])
    assert store.get_active_version("r") == "v7"
    session.execute_read.assert_called_once()


def test_neo4j_retries_transient_errors_then_raises(no_sleep) -> None:
    store, session, _ = _neo4j([], RETRY_MAX_ATTEMPTS=2)
    session.execute_write.side_effect = ServiceUnavailable("down")

    with pytest.raises(GraphStoreError):
        store.set_active_version("r", "v1")
    assert session.execute_write.call_count == 2


def _repository_service(handler, **kwargs) -> RepositoryServiceGraphStore:
    client = httpx.Client(base_url="http://repo", transport=httpx.MockTransport(handler))
    return RepositoryServiceGraphStore(client, **kwargs)


def test_repository_service_posts_edges_per_kind() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        seen.append((request.url.path, len(body["rows"])))
        return httpx.Response(200, json={"written": len(body["rows"])})

    store = _repository_service(handler, batch_size=1)
    edges = [
        Edge(from_id="a", to_id="b", kind="calls", repo_id="r"),
        Edge(from_id="a", to_id="c", kind="calls", repo_id="r"),
        Edge(from_id="f", to_id="a", kind="contains", repo_id="r"),
    ]

    assert store.bulk_upsert_edges(edges) == 3
    assert seen == [
        ("/v1/code-graph/merge-edges/CALLS", 1),
        ("/v1/code-graph/merge-edges/CALLS", 1),
        ("/v1/code-graph/merge-edges/CONTAINS", 1),
    ]


def test_repository_service_version_counts() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v1/code-graph/version-counts"
        return httpx.Response(
            200,
            json={"entities": [{"index_version": "v1", "count": 3}, {"index_version": None, "count": 1}], "edges": []},
        )

    counts = _repository_service(handler).version_counts("r")
    assert counts.entities == {"v1": 3, None: 1}
    assert counts.edges == {}


def test_repository_service_client_error_is_not_retried() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        return httpx.Response(400, json={"status": "error"})

    with pytest.raises(GraphStoreError):
        _repository_service(handler).delete_by_version("r", "v1")
    assert calls == ["/v1/code-graph/delete-by-version"]


def test_repository_service_server_error_is_retried(no_sleep) -> None:
    responses = iter([httpx.Response(503), httpx.Response(200, json={"deleted": 4})])

    def handler(request: httpx.Request) -> httpx.Response:
        return next(responses)

    assert _repository_service(handler, max_attempts=2).delete_by_version("r", "v1") == 4
