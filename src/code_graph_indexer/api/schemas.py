"""Pydantic request/response models for the indexing API."""

from __future__ import annotations

from pydantic import BaseModel, Field


class IndexRequest(BaseModel):
    workspace_path: str = Field(min_length=1, description="Checked-out repository on the service's filesystem.")
    repo_id: str = Field(min_length=1)
    org_id: str = Field(min_length=1)
    run_version: str | None = Field(default=None, description="Tag for this run; generated when omitted.")


class IndexResponse(BaseModel):
    repo_id: str
    run_version: str
    file_count: int
    entities_written: int
    edges_written: int
    function_count: int
    class_count: int
    covered_files: int
    failed_files: list[str] = Field(default_factory=list)
    retired_version: str | None = None


class VersionAuditResponse(BaseModel):
    repo_id: str
    expected_version: str
    entity_count: int
    edge_count: int
    unexpected_entities: int
    unexpected_edges: int
    unstamped_entities: int
    unstamped_edges: int
    ok: bool
