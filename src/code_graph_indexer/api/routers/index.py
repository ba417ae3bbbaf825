"""Indexing API endpoints."""

from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, HTTPException, Query

from code_graph_indexer.api.schemas import IndexRequest, IndexResponse, VersionAuditResponse
from code_graph_indexer.core.pipeline import index_repository
from code_graph_indexer.core.versioning import audit_versions
from code_graph_indexer.persistence.graph_store import get_graph_store


router = APIRouter(tags=["Indexing"])


@router.post("/index", response_model=IndexResponse)
def index_endpoint(payload: IndexRequest) -> IndexResponse:
    if not Path(payload.workspace_path).is_dir():
        raise HTTPException(status_code=404, detail=f"Workspace not found: {payload.workspace_path}")
    summary = index_repository(
        payload.workspace_path,
        repo_id=payload.repo_id,
        org_id=payload.org_id,
        run_version=payload.run_version,
        store=get_graph_store(),
    )
    return IndexResponse(
        repo_id=summary.repo_id,
        run_version=summary.run_version,
        file_count=summary.file_count,
        entities_written=summary.entities_written,
        edges_written=summary.edges_written,
        function_count=summary.function_count,
        class_count=summary.class_count,
        covered_files=summary.covered_files,
        failed_files=summary.failed_files,
        retired_version=summary.retired_version,
    )


@router.get("/repos/{repo_id}/versions/audit", response_model=VersionAuditResponse)
def audit_endpoint(repo_id: str, expected_version: str | None = Query(default=None)) -> VersionAuditResponse:
    store = get_graph_store()
    expected = expected_version or store.get_active_version(repo_id)
    if not expected:
        raise HTTPException(status_code=404, detail=f"No active version recorded for repo {repo_id}")
    audit = audit_versions(store, repo_id, expected)
    return VersionAuditResponse(
        repo_id=audit.repo_id,
        expected_version=audit.expected_version,
        entity_count=audit.entity_count,
        edge_count=audit.edge_count,
        unexpected_entities=audit.unexpected_entities,
        unexpected_edges=audit.unexpected_edges,
        unstamped_entities=audit.unstamped_entities,
        unstamped_edges=audit.unstamped_edges,
        ok=audit.ok,
    )
