"""Deterministic entity and edge identity.

Every id is a pure function of its coordinates, so re-deriving the same entity
from any plugin, in any order, on any run yields the same key and storage
writes can be expressed as upsert-by-id.
"""

from __future__ import annotations

import hashlib
from typing import Optional

ID_SIZE = 16

# File path given to materialized third-party package entities.
EXTERNAL_PATH_PREFIX = "external:"


def stable_node_id(*parts: str, size: int = ID_SIZE) -> str:
    """Return a truncated sha256 hex digest over NUL-joined parts."""

    raw = "\x00".join(parts).encode("utf-8", errors="replace")
    return hashlib.sha256(raw).hexdigest()[:size]


def entity_hash(
    repo_id: str,
    file_path: str,
    kind: str,
    name: str,
    signature: Optional[str] = None,
) -> str:
    """Entity id from `(repo, file_path, kind, name, signature)`; a missing signature hashes as ""."""

    return stable_node_id(repo_id, file_path, kind, name, signature or "")


def edge_hash(from_id: str, to_id: str, kind: str) -> str:
    return stable_node_id(from_id, to_id, kind)


def file_entity_id(repo_id: str, file_path: str) -> str:
    return entity_hash(repo_id, file_path, "file", file_path)


def directory_entity_id(repo_id: str, dir_path: str) -> str:
    return entity_hash(repo_id, dir_path, "directory", dir_path)


def external_module_path(package_name: str) -> str:
    return f"{EXTERNAL_PATH_PREFIX}{package_name}"


def external_module_id(repo_id: str, package_name: str) -> str:
    path = external_module_path(package_name)
    return entity_hash(repo_id, path, "module", package_name)


def is_external_path(file_path: str) -> bool:
    return file_path.startswith(EXTERNAL_PATH_PREFIX)
