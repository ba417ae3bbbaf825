"""Shadow-versioned graph writer.

Completes a run's entities and edges with the structural nodes parsers don't
emit (files, directories, external packages and the `contains` edges between
them), drops edges whose endpoint never materialized, stamps everything with
the run version, validates the batch and upserts it.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, replace
from typing import Iterable, Optional, Sequence

import structlog

from code_graph_indexer.core.graph_contract import validate_graph_contract
from code_graph_indexer.core.records import Edge, Entity, IndexedFile
from code_graph_indexer.core.stable_ids import (
    directory_entity_id,
    external_module_id,
    external_module_path,
    file_entity_id,
    is_external_path,
)
from code_graph_indexer.persistence.graph_store import GraphStore


logger = structlog.get_logger(__name__)

_STRUCTURAL_KINDS = ("file", "directory")


@dataclass(frozen=True)
class WriteSummary:
    entities_written: int
    edges_written: int
    dangling_dropped: int


def _ancestors(path: str) -> list[str]:
    out = []
    parent = posixpath.dirname(path)
    while parent:
        out.append(parent)
        parent = posixpath.dirname(parent)
    return out


def materialize_structure(
    *,
    repo_id: str,
    files: Iterable[IndexedFile],
    entities: Sequence[Entity],
    edges: Sequence[Edge],
) -> tuple[list[Entity], list[Edge]]:
    """Return (structural entities, structural edges) for the given run output."""

    by_path: dict[str, IndexedFile] = {f.path: f for f in files}
    for e in entities:
        if e.kind not in _STRUCTURAL_KINDS and not is_external_path(e.file_path) and e.file_path not in by_path:
            by_path[e.file_path] = IndexedFile(path=e.file_path, language=e.language, line_count=e.end_line)

    out_entities: list[Entity] = []
    out_edges: list[Edge] = []
    dirs: set[str] = set()

    for path in sorted(by_path):
        f = by_path[path]
        fid = file_entity_id(repo_id, path)
        out_entities.append(
            Entity(
                id=fid,
                repo_id=repo_id,
                kind="file",
                name=path,
                file_path=path,
                start_line=1,
                end_line=max(1, f.line_count),
                language=f.language,
                exported=True,
            )
        )
        parent = posixpath.dirname(path)
        if parent:
            out_edges.append(Edge(from_id=directory_entity_id(repo_id, parent), to_id=fid, kind="contains", repo_id=repo_id))
        dirs.update(_ancestors(path))

    for d in sorted(dirs):
        out_entities.append(
            Entity(
                id=directory_entity_id(repo_id, d),
                repo_id=repo_id,
                kind="directory",
                name=d,
                file_path=d,
                start_line=0,
                end_line=0,
                language="",
                exported=True,
            )
        )
        parent = posixpath.dirname(d)
        if parent:
            out_edges.append(
                Edge(
                    from_id=directory_entity_id(repo_id, parent),
                    to_id=directory_entity_id(repo_id, d),
                    kind="contains",
                    repo_id=repo_id,
                )
            )

    for e in entities:
        if e.kind not in _STRUCTURAL_KINDS and not is_external_path(e.file_path):
            out_edges.append(Edge(from_id=file_entity_id(repo_id, e.file_path), to_id=e.id, kind="contains", repo_id=repo_id))

    file_language = {file_entity_id(repo_id, p): f.language for p, f in by_path.items()}
    seen_packages: set[str] = set()
    for edge in edges:
        if not edge.is_external or not edge.package_name or edge.package_name in seen_packages:
            continue
        seen_packages.add(edge.package_name)
        out_entities.append(
            Entity(
                id=external_module_id(repo_id, edge.package_name),
                repo_id=repo_id,
                kind="module",
                name=edge.package_name,
                file_path=external_module_path(edge.package_name),
                start_line=0,
                end_line=0,
                language=file_language.get(edge.from_id, ""),
                exported=True,
            )
        )
    return out_entities, out_edges


def _dedup(items: Iterable, key=lambda x: x.id) -> list:
    seen: dict[str, object] = {}
    for item in items:
        seen.setdefault(key(item), item)
    return list(seen.values())


def write_entities_to_graph(
    store: GraphStore,
    *,
    repo_id: str,
    run_version: Optional[str],
    entities: Sequence[Entity],
    edges: Sequence[Edge],
    files: Iterable[IndexedFile] = (),
) -> WriteSummary:
    structural_entities, structural_edges = materialize_structure(
        repo_id=repo_id, files=files, entities=entities, edges=edges
    )
    all_entities = _dedup([*structural_entities, *entities])
    known = {e.id for e in all_entities}

    all_edges: list[Edge] = []
    dangling = 0
    for e in _dedup([*structural_edges, *edges]):
        if e.from_id in known and e.to_id in known:
            all_edges.append(e)
        else:
            dangling += 1
    if dangling:
        logger.info("writer.dangling_edges_dropped", repo_id=repo_id, dropped=dangling)

    if run_version is not None:
        all_entities = [replace(e, index_version=run_version) for e in all_entities]
        all_edges = [replace(e, index_version=run_version) for e in all_edges]

    validate_graph_contract(repo_id=repo_id, entities=all_entities, edges=all_edges, run_version=run_version)

    entities_written = store.bulk_upsert_entities(all_entities)
    edges_written = store.bulk_upsert_edges(all_edges)
    logger.info(
        "writer.done",
        repo_id=repo_id,
        run_version=run_version,
        entities=entities_written,
        edges=edges_written,
    )
    return WriteSummary(entities_written=entities_written, edges_written=edges_written, dangling_dropped=dangling)
