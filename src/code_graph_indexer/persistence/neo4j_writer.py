"""Row builders and Cypher for persisting the code graph in Neo4j.

All writes are `MERGE` on the entity / edge `id`, so replaying a batch is a
no-op. Nested values (edge metadata) are stored as JSON strings because Neo4j
properties cannot hold maps.
"""

from __future__ import annotations

import json
from typing import Iterable

from code_graph_indexer.core.records import EDGE_KINDS, Edge, Entity


ENTITY_LABEL = "__Entity__"
REPO_INDEX_LABEL = "__RepoIndex__"


def entity_rows(entities: Iterable[Entity]) -> list[dict]:
    return [
        {
            "id": e.id,
            "repo_id": e.repo_id,
            "index_version": e.index_version,
            "props": {
                "kind": e.kind,
                "name": e.name,
                "file_path": e.file_path,
                "start_line": e.start_line,
                "end_line": e.end_line,
                "language": e.language,
                "signature": e.signature,
                "exported": e.exported,
                "doc": e.doc,
                "parent": e.parent,
                "body": e.body,
                "complexity": e.complexity,
                "is_async": e.is_async,
                "parameter_count": e.parameter_count,
                "return_type": e.return_type,
            },
        }
        for e in entities
    ]


def edge_rows_by_kind(edges: Iterable[Edge]) -> dict[str, list[dict]]:
    out: dict[str, list[dict]] = {}
    for e in edges:
        out.setdefault(e.kind, []).append(
            {
                "id": e.id,
                "repo_id": e.repo_id,
                "index_version": e.index_version,
                "from_id": e.from_id,
                "to_id": e.to_id,
                "props": {
                    "imported_symbols": list(e.imported_symbols),
                    "is_external": e.is_external,
                    "package_name": e.package_name,
                    "boundary_category": e.boundary_category,
                    "confidence": float(e.confidence),
                    "metadata": json.dumps(e.metadata or {}, sort_keys=True),
                },
            }
        )
    return out


def relationship_type(kind: str) -> str:
    """Relationship types cannot be query parameters; only known kinds are interpolated."""

    if kind not in EDGE_KINDS:
        raise ValueError(f"Unknown edge kind: {kind}")
    return kind.upper()


def build_merge_entities_query() -> str:
    return (
        "UNWIND $rows AS row\n"
        f"MERGE (n:{ENTITY_LABEL} {{id: row.id}})\n"
        "SET n += row.props,\n"
        "    n.repo_id = row.repo_id,\n"
        "    n.index_version = row.index_version\n"
        "RETURN count(n) AS written"
    )


def build_merge_edges_query(kind: str) -> str:
    rel = relationship_type(kind)
    return (
        "UNWIND $rows AS row\n"
        f"MATCH (src:{ENTITY_LABEL} {{id: row.from_id}})\n"
        f"MATCH (dst:{ENTITY_LABEL} {{id: row.to_id}})\n"
        f"MERGE (src)-[r:{rel} {{id: row.id}}]->(dst)\n"
        "SET r += row.props,\n"
        "    r.repo_id = row.repo_id,\n"
        "    r.index_version = row.index_version\n"
        "RETURN count(r) AS written"
    )


def build_delete_edges_by_version_query() -> str:
    return (
        "MATCH ()-[r]->()\n"
        "WHERE r.repo_id = $repo_id AND r.index_version = $index_version\n"
        "DELETE r\n"
        "RETURN count(r) AS deleted"
    )


def build_delete_entities_by_version_query() -> str:
    return (
        f"MATCH (n:{ENTITY_LABEL} {{repo_id: $repo_id, index_version: $index_version}})\n"
        "DETACH DELETE n\n"
        "RETURN count(n) AS deleted"
    )


def build_get_active_version_query() -> str:
    return f"MATCH (v:{REPO_INDEX_LABEL} {{repo_id: $repo_id}})\nRETURN v.active_version AS active_version"


def build_set_active_version_query() -> str:
    return (
        f"MERGE (v:{REPO_INDEX_LABEL} {{repo_id: $repo_id}})\n"
        "SET v.active_version = $index_version, v.updated_at = datetime()"
    )


def build_entity_version_counts_query() -> str:
    return (
        f"MATCH (n:{ENTITY_LABEL} {{repo_id: $repo_id}})\n"
        "RETURN n.index_version AS index_version, count(*) AS count"
    )


def build_edge_version_counts_query() -> str:
    return (
        "MATCH ()-[r]->()\n"
        "WHERE r.repo_id = $repo_id\n"
        "RETURN r.index_version AS index_version, count(*) AS count"
    )
