"""Shadow-versioned re-indexing.

Every entity and edge written by a run carries that run's `index_version`.
Unchanged code keeps its id, so re-stamping it moves it into the new
generation; whatever the run did not rewrite still carries the previous tag.
Finalization deletes that previous tag, read back from the store's
active-version record, along with any tag left by a run that crashed before
finalizing, and then records the new tag as active. Until then the previous
generation stays queryable.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import structlog

from code_graph_indexer.persistence.graph_store import GraphStore


logger = structlog.get_logger(__name__)


def new_run_version(now: Optional[datetime] = None) -> str:
    """Sortable, unique tag for one indexing run, e.g. `v20260118T101500Z-1a2b3c4d`."""

    ts = (now or datetime.now(timezone.utc)).strftime("%Y%m%dT%H%M%SZ")
    return f"v{ts}-{uuid.uuid4().hex[:8]}"


def finalize_indexing(store: GraphStore, repo_id: str, run_version: str) -> Optional[str]:
    """Retire every generation of `repo_id` other than `run_version` and activate it.

    Besides the previously active tag this sweeps tags left by runs that wrote
    and then died before finalizing. Returns the previously active tag when it
    was retired, else the first orphan tag retired, else None (first run, or a
    retried finalization of the run that is already active).
    """

    previous = store.get_active_version(repo_id)
    counts = store.version_counts(repo_id)
    stale = sorted({t for t in (*counts.entities, *counts.edges) if t and t != run_version})
    if previous and previous != run_version:
        stale = [previous] + [t for t in stale if t != previous]

    for tag in stale:
        deleted = store.delete_by_version(repo_id, tag)
        logger.info(
            "versioning.retired",
            repo_id=repo_id,
            retired_version=tag,
            run_version=run_version,
            deleted=deleted,
            orphan=tag != previous,
        )
    store.set_active_version(repo_id, run_version)
    logger.info("versioning.activated", repo_id=repo_id, run_version=run_version)
    return stale[0] if stale else None


@dataclass(frozen=True)
class VersionAudit:
    repo_id: str
    expected_version: str
    entity_count: int
    edge_count: int
    unexpected_entities: int
    unexpected_edges: int
    unstamped_entities: int
    unstamped_edges: int

    @property
    def ok(self) -> bool:
        return not (self.unexpected_entities or self.unexpected_edges or self.unstamped_entities or self.unstamped_edges)


def audit_versions(store: GraphStore, repo_id: str, expected_version: str) -> VersionAudit:
    """Count what would indicate a stale generation surviving finalization.

    A tag mismatch never raises: it is reported through the counts and a
    warning so callers can alert on it.
    """

    counts = store.version_counts(repo_id)

    def split(by_version: dict[Optional[str], int]) -> tuple[int, int, int]:
        total = sum(by_version.values())
        unstamped = by_version.get(None, 0)
        unexpected = total - unstamped - by_version.get(expected_version, 0)
        return total, unexpected, unstamped

    entity_total, unexpected_entities, unstamped_entities = split(counts.entities)
    edge_total, unexpected_edges, unstamped_edges = split(counts.edges)
    audit = VersionAudit(
        repo_id=repo_id,
        expected_version=expected_version,
        entity_count=entity_total,
        edge_count=edge_total,
        unexpected_entities=unexpected_entities,
        unexpected_edges=unexpected_edges,
        unstamped_entities=unstamped_entities,
        unstamped_edges=unstamped_edges,
    )
    if not audit.ok:
        logger.warning(
            "versioning.stale_generation",
            repo_id=repo_id,
            expected_version=expected_version,
            unexpected_entities=unexpected_entities,
            unexpected_edges=unexpected_edges,
            unstamped_entities=unstamped_entities,
            unstamped_edges=unstamped_edges,
        )
    return audit
