"""Graph contract validation.

Checks the invariants of a write batch before anything reaches the graph
store. A violation means the indexer produced inconsistent data, so it is
raised rather than logged.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from code_graph_indexer.core.records import EDGE_KINDS, ENTITY_KINDS, Edge, Entity


@dataclass(frozen=True)
class GraphContractViolation(Exception):
    message: str

    def __str__(self) -> str:  # pragma: no cover
        return self.message


def validate_graph_contract(
    *,
    repo_id: str,
    entities: Sequence[Entity],
    edges: Sequence[Edge],
    run_version: Optional[str] = None,
) -> None:
    entity_ids = [e.id for e in entities]
    if len(entity_ids) != len(set(entity_ids)):
        raise GraphContractViolation("Duplicate entity id detected")
    known = set(entity_ids)

    for e in entities:
        if not e.id:
            raise GraphContractViolation(f"Entity id is empty: {e.kind} {e.name}")
        if e.repo_id != repo_id:
            raise GraphContractViolation(f"Entity repo_id mismatch: {e.id}")
        if e.kind not in ENTITY_KINDS:
            raise GraphContractViolation(f"Unknown entity kind {e.kind!r}: {e.id}")
        if not e.file_path:
            raise GraphContractViolation(f"Entity file_path is empty: {e.id}")
        if e.start_line < 0 or e.end_line < e.start_line:
            raise GraphContractViolation(f"Entity line range inverted: {e.id} ({e.start_line}-{e.end_line})")
        if run_version is not None and e.index_version != run_version:
            raise GraphContractViolation(f"Entity not stamped with run version {run_version}: {e.id}")

    edge_ids = [e.id for e in edges]
    if len(edge_ids) != len(set(edge_ids)):
        raise GraphContractViolation("Duplicate edge id detected")

    for e in edges:
        if e.repo_id != repo_id:
            raise GraphContractViolation(f"Edge repo_id mismatch: {e.kind} {e.from_id}->{e.to_id}")
        if e.kind not in EDGE_KINDS:
            raise GraphContractViolation(f"Unknown edge kind {e.kind!r}: {e.id}")
        if not (0.0 <= float(e.confidence) <= 1.0):
            raise GraphContractViolation(f"Edge confidence out of range: {e.id}")
        if e.from_id not in known or e.to_id not in known:
            raise GraphContractViolation(f"Edge endpoint missing from batch: {e.kind} {e.from_id}->{e.to_id}")
        if run_version is not None and e.index_version != run_version:
            raise GraphContractViolation(f"Edge not stamped with run version {run_version}: {e.id}")
