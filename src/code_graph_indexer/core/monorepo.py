"""Workspace-manager detection.

Decides how many independent precise-index passes a repository needs. Managers
are checked in a fixed order (pnpm, nx, lerna, then the generic
`package.json` "workspaces" field) and the first one that resolves to at least
one directory wins. Anything unreadable or unresolvable yields the single-root
default.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable

import structlog
import yaml

from code_graph_indexer.core.records import WorkspaceInfo


logger = structlog.get_logger(__name__)

SINGLE_ROOT = WorkspaceInfo(roots=(".",), type="single")

_NX_CANDIDATE_DIRS = ("packages", "apps", "libs")


def resolve_glob_patterns(abs_root: Path, patterns: Iterable[str]) -> list[str]:
    """Resolve single-level workspace globs (`packages/*`) to relative directories.

    Negations and multi-level patterns (`packages/*/sub`) are skipped.
    """

    roots: list[str] = []
    for raw in patterns:
        pattern = str(raw).strip()
        if not pattern or pattern.startswith("!"):
            continue
        wildcard = pattern.endswith("/*") or pattern.endswith("/**")
        cleaned = pattern.rstrip("*").rstrip("/") if wildcard else pattern.rstrip("/")
        if "*" in cleaned:
            continue
        base = abs_root / cleaned
        if not base.is_dir():
            continue
        if not wildcard:
            roots.append(cleaned)
            continue
        try:
            children = sorted(base.iterdir(), key=lambda p: p.name)
        except OSError:
            continue
        for child in children:
            if child.is_dir():
                roots.append(f"{cleaned}/{child.name}")
    return roots


def _read_json(path: Path) -> dict:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("monorepo.manifest_unreadable", path=str(path), error=str(e))
        return {}
    return data if isinstance(data, dict) else {}


def _pnpm_roots(abs_root: Path, manifest: Path) -> list[str]:
    try:
        data = yaml.safe_load(manifest.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        logger.warning("monorepo.manifest_unreadable", path=str(manifest), error=str(e))
        return []
    if not isinstance(data, dict):
        return []
    packages = data.get("packages") or []
    if not isinstance(packages, list):
        return []
    return resolve_glob_patterns(abs_root, packages)


def _nx_roots(abs_root: Path) -> list[str]:
    roots: list[str] = []
    for d in _NX_CANDIDATE_DIRS:
        if (abs_root / d).is_dir():
            roots.extend(resolve_glob_patterns(abs_root, [f"{d}/*"]))
    # nx without conventional project dirs is still an nx workspace rooted at "."
    return roots or ["."]


def _lerna_roots(abs_root: Path, manifest: Path) -> list[str]:
    packages = _read_json(manifest).get("packages") or []
    if not isinstance(packages, list):
        return []
    return resolve_glob_patterns(abs_root, packages)


def _package_json_roots(abs_root: Path, manifest: Path) -> list[str]:
    workspaces = _read_json(manifest).get("workspaces")
    if isinstance(workspaces, dict):
        workspaces = workspaces.get("packages")
    if not isinstance(workspaces, list) or not workspaces:
        return []
    return resolve_glob_patterns(abs_root, workspaces)


def detect_workspace_roots(workspace_path: str | Path) -> WorkspaceInfo:
    """Return the package roots and workspace-manager type for a repository."""

    abs_root = Path(workspace_path).resolve()
    if not abs_root.is_dir():
        return SINGLE_ROOT

    pnpm = abs_root / "pnpm-workspace.yaml"
    if pnpm.is_file():
        roots = _pnpm_roots(abs_root, pnpm)
        if roots:
            return WorkspaceInfo(roots=tuple(roots), type="pnpm")

    if (abs_root / "nx.json").is_file():
        return WorkspaceInfo(roots=tuple(_nx_roots(abs_root)), type="nx")

    lerna = abs_root / "lerna.json"
    if lerna.is_file():
        roots = _lerna_roots(abs_root, lerna)
        if roots:
            return WorkspaceInfo(roots=tuple(roots), type="lerna")

    pkg = abs_root / "package.json"
    if pkg.is_file():
        roots = _package_json_roots(abs_root, pkg)
        if roots:
            kind = "yarn" if (abs_root / "yarn.lock").is_file() else "npm"
            return WorkspaceInfo(roots=tuple(roots), type=kind)

    return SINGLE_ROOT
