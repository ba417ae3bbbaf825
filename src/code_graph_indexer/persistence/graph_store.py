"""Graph store backends.

The indexer only needs insert-or-update by id, delete-by-version and a
per-repository record of the active version tag. Three backends implement
that contract: an in-process store (tests, local runs), Neo4j over bolt, and
the graph repository service over HTTP.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional, Protocol, Sequence

import httpx
import structlog
from neo4j import Driver, GraphDatabase
from neo4j.exceptions import ServiceUnavailable, SessionExpired, TransientError
from tenacity import retry, retry_if_exception, retry_if_exception_type, stop_after_attempt, wait_exponential

from code_graph_indexer.config import get_code_graph_indexer_settings
from code_graph_indexer.configuration.neo4j_config import Neo4jSettings, get_neo4j_settings
from code_graph_indexer.core.records import Edge, Entity
from code_graph_indexer.persistence.neo4j_writer import (
    build_delete_edges_by_version_query,
    build_delete_entities_by_version_query,
    build_edge_version_counts_query,
    build_entity_version_counts_query,
    build_get_active_version_query,
    build_merge_edges_query,
    build_merge_entities_query,
    build_set_active_version_query,
    edge_rows_by_kind,
    entity_rows,
)
from code_graph_indexer.persistence.repository_service_client import get_client, post_json


logger = structlog.get_logger(__name__)


class GraphStoreError(RuntimeError):
    """A write or read against the graph store failed after retries."""


@dataclass(frozen=True)
class VersionCounts:
    """Entity and edge counts per `index_version` tag (None = unstamped)."""

    entities: dict[Optional[str], int] = field(default_factory=dict)
    edges: dict[Optional[str], int] = field(default_factory=dict)


class GraphStore(Protocol):
    def bulk_upsert_entities(self, entities: Sequence[Entity]) -> int:
        """Insert-or-update by `id`; returns the number of rows written."""

    def bulk_upsert_edges(self, edges: Sequence[Edge]) -> int:
        """Insert-or-update by `id`; returns the number of rows written."""

    def delete_by_version(self, repo_id: str, index_version: str) -> int:
        """Delete every entity and edge of `repo_id` stamped `index_version`; returns the count removed."""

    def get_active_version(self, repo_id: str) -> Optional[str]:
        ...

    def set_active_version(self, repo_id: str, index_version: str) -> None:
        ...

    def version_counts(self, repo_id: str) -> VersionCounts:
        ...


class InMemoryGraphStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.entities: dict[str, Entity] = {}
        self.edges: dict[str, Edge] = {}
        self.active_versions: dict[str, str] = {}

    def bulk_upsert_entities(self, entities: Sequence[Entity]) -> int:
        with self._lock:
            for e in entities:
                self.entities[e.id] = e
        return len(entities)

    def bulk_upsert_edges(self, edges: Sequence[Edge]) -> int:
        with self._lock:
            for e in edges:
                self.edges[e.id] = e
        return len(edges)

    def delete_by_version(self, repo_id: str, index_version: str) -> int:
        with self._lock:
            stale_entities = [
                k for k, e in self.entities.items() if e.repo_id == repo_id and e.index_version == index_version
            ]
            for k in stale_entities:
                del self.entities[k]
            gone = set(stale_entities)
            # Edges touching a deleted entity go with it, as DETACH DELETE does.
            stale_edges = [
                k
                for k, e in self.edges.items()
                if (e.repo_id == repo_id and e.index_version == index_version) or e.from_id in gone or e.to_id in gone
            ]
            for k in stale_edges:
                del self.edges[k]
        return len(stale_entities) + len(stale_edges)

    def get_active_version(self, repo_id: str) -> Optional[str]:
        return self.active_versions.get(repo_id)

    def set_active_version(self, repo_id: str, index_version: str) -> None:
        with self._lock:
            self.active_versions[repo_id] = index_version

    def version_counts(self, repo_id: str) -> VersionCounts:
        counts = VersionCounts()
        with self._lock:
            for e in self.entities.values():
                if e.repo_id == repo_id:
                    counts.entities[e.index_version] = counts.entities.get(e.index_version, 0) + 1
            for e in self.edges.values():
                if e.repo_id == repo_id:
                    counts.edges[e.index_version] = counts.edges.get(e.index_version, 0) + 1
        return counts

    def entities_for(self, repo_id: str) -> list[Entity]:
        return sorted((e for e in self.entities.values() if e.repo_id == repo_id), key=lambda e: e.id)

    def edges_for(self, repo_id: str) -> list[Edge]:
        return sorted((e for e in self.edges.values() if e.repo_id == repo_id), key=lambda e: e.id)

    def clear(self) -> None:
        with self._lock:
            self.entities.clear()
            self.edges.clear()
            self.active_versions.clear()


_NEO4J_TRANSIENT = (ServiceUnavailable, SessionExpired, TransientError)


def _batches(rows: list[dict], size: int):
    for i in range(0, len(rows), size):
        yield rows[i:i + size]


class Neo4jGraphStore:
    def __init__(self, settings: Neo4jSettings, driver: Optional[Driver] = None):
        self.settings = settings
        self._driver = driver or GraphDatabase.driver(
            settings.NEO4J_URI,
            auth=settings.auth,
            max_connection_lifetime=settings.NEO4J_CONNECTION_TIMEOUT,
            max_connection_pool_size=settings.NEO4J_MAX_CONNECTION_POOL_SIZE,
        )
        logger.info("graph_store.neo4j_ready", uri=settings.NEO4J_URI, database=settings.NEO4J_DATABASE)

    def close(self) -> None:
        self._driver.close()

    def _run(self, query: str, params: dict, *, write: bool = True) -> list[dict]:
        @retry(
            stop=stop_after_attempt(self.settings.RETRY_MAX_ATTEMPTS),
            wait=wait_exponential(multiplier=1, max=30, exp_base=self.settings.RETRY_BACKOFF_BASE_SEC),
            retry=retry_if_exception_type(_NEO4J_TRANSIENT),
            reraise=True,
        )
        def _call() -> list[dict]:
            with self._driver.session(database=self.settings.NEO4J_DATABASE) as session:
                work = lambda tx: tx.run(query, params).data()  # noqa: E731
                return session.execute_write(work) if write else session.execute_read(work)

        try:
            return _call()
        except _NEO4J_TRANSIENT as e:
            logger.error("graph_store.neo4j_failed", error=str(e))
            raise GraphStoreError(str(e)) from e

    def bulk_upsert_entities(self, entities: Sequence[Entity]) -> int:
        query = build_merge_entities_query()
        written = 0
        for batch in _batches(entity_rows(entities), self.settings.NEO4J_WRITE_BATCH_SIZE):
            written += sum(r["written"] for r in self._run(query, {"rows": batch}))
        return written

    def bulk_upsert_edges(self, edges: Sequence[Edge]) -> int:
        written = 0
        for kind, rows in sorted(edge_rows_by_kind(edges).items()):
            query = build_merge_edges_query(kind)
            for batch in _batches(rows, self.settings.NEO4J_WRITE_BATCH_SIZE):
                written += sum(r["written"] for r in self._run(query, {"rows": batch}))
        return written

    def delete_by_version(self, repo_id: str, index_version: str) -> int:
        params = {"repo_id": repo_id, "index_version": index_version}
        deleted = sum(r["deleted"] for r in self._run(build_delete_edges_by_version_query(), params))
        deleted += sum(r["deleted"] for r in self._run(build_delete_entities_by_version_query(), params))
        return deleted

    def get_active_version(self, repo_id: str) -> Optional[str]:
        rows = self._run(build_get_active_version_query(), {"repo_id": repo_id}, write=False)
        return rows[0]["active_version"] if rows else None

    def set_active_version(self, repo_id: str, index_version: str) -> None:
        self._run(build_set_active_version_query(), {"repo_id": repo_id, "index_version": index_version})

    def version_counts(self, repo_id: str) -> VersionCounts:
        params = {"repo_id": repo_id}
        entities = self._run(build_entity_version_counts_query(), params, write=False)
        edges = self._run(build_edge_version_counts_query(), params, write=False)
        return VersionCounts(
            entities={r["index_version"]: r["count"] for r in entities},
            edges={r["index_version"]: r["count"] for r in edges},
        )


def _is_retryable_http(exc: BaseException) -> bool:
    if isinstance(exc, (httpx.ConnectError, httpx.TimeoutException)):
        return True
    return isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code >= 500


class RepositoryServiceGraphStore:
    """Graph store backed by the repository service's `/v1/code-graph/*` endpoints."""

    def __init__(self, client: httpx.Client, *, batch_size: int = 500, max_attempts: int = 3):
        self.client = client
        self.batch_size = batch_size
        self.max_attempts = max_attempts

    def _post(self, path: str, payload: dict) -> dict:
        @retry(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=1, max=30),
            retry=retry_if_exception(_is_retryable_http),
            reraise=True,
        )
        def _call() -> dict:
            return post_json(self.client, path, payload)

        try:
            return _call()
        except (httpx.HTTPError, RuntimeError) as e:
            logger.error("graph_store.repository_service_failed", path=path, error=str(e))
            raise GraphStoreError(f"{path}: {e}") from e

    def bulk_upsert_entities(self, entities: Sequence[Entity]) -> int:
        written = 0
        for batch in _batches(entity_rows(entities), self.batch_size):
            written += int(self._post("/v1/code-graph/merge-entities", {"rows": batch}).get("written", len(batch)))
        return written

    def bulk_upsert_edges(self, edges: Sequence[Edge]) -> int:
        written = 0
        for kind, rows in sorted(edge_rows_by_kind(edges).items()):
            for batch in _batches(rows, self.batch_size):
                data = self._post(f"/v1/code-graph/merge-edges/{kind.upper()}", {"rows": batch})
                written += int(data.get("written", len(batch)))
        return written

    def delete_by_version(self, repo_id: str, index_version: str) -> int:
        data = self._post("/v1/code-graph/delete-by-version", {"repo_id": repo_id, "index_version": index_version})
        return int(data.get("deleted", 0))

    def get_active_version(self, repo_id: str) -> Optional[str]:
        return self._post("/v1/code-graph/active-version/get", {"repo_id": repo_id}).get("active_version")

    def set_active_version(self, repo_id: str, index_version: str) -> None:
        self._post("/v1/code-graph/active-version/set", {"repo_id": repo_id, "index_version": index_version})

    def version_counts(self, repo_id: str) -> VersionCounts:
        data = self._post("/v1/code-graph/version-counts", {"repo_id": repo_id})
        return VersionCounts(
            entities={r.get("index_version"): int(r["count"]) for r in data.get("entities", [])},
            edges={r.get("index_version"): int(r["count"]) for r in data.get("edges", [])},
        )


@lru_cache()
def get_graph_store() -> GraphStore:
    """Return the process-wide graph store for the configured backend."""

    backend = get_code_graph_indexer_settings().GRAPH_STORE_BACKEND
    logger.info("graph_store.selected", backend=backend)
    if backend == "memory":
        return InMemoryGraphStore()
    if backend == "neo4j":
        return Neo4jGraphStore(get_neo4j_settings())
    return RepositoryServiceGraphStore(get_client())
