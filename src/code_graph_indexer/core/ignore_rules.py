"""Ignore rules for workspace scanning.

Uses gitignore-compatible matching via `pathspec`. The always-ignored directory
set applies even when a repository's `.gitignore` does not mention it.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import pathspec


# Directory names excluded at any depth.
ALWAYS_IGNORED_DIRS: frozenset[str] = frozenset(
    {
        # VCS
        ".git",
        ".hg",
        ".svn",
        # Dependency caches
        "node_modules",
        "vendor",
        ".venv",
        "venv",
        # Build output
        "dist",
        "build",
        "target",
        "out",
        ".next",
        ".turbo",
        "coverage",
        # Tool caches
        ".cache",
        "__pycache__",
        ".mypy_cache",
        ".pytest_cache",
        ".ruff_cache",
        ".tox",
        ".nox",
        ".idea",
        ".vscode",
    }
)

DEFAULT_IGNORE_PATTERNS: tuple[str, ...] = tuple(f"{d}/" for d in sorted(ALWAYS_IGNORED_DIRS)) + (
    "*.pyc",
    "*.pyo",
    "*.swp",
    "*.scip",
    "Thumbs.db",
    "Desktop.ini",
    ".DS_Store",
)


def in_ignored_dir(repo_rel_posix_path: str) -> bool:
    """True when any directory segment of the path is always-ignored."""

    parts = repo_rel_posix_path.split("/")[:-1]
    return any(p in ALWAYS_IGNORED_DIRS for p in parts)


@dataclass(frozen=True)
class IgnoreRules:
    spec: pathspec.PathSpec

    def is_ignored(self, repo_rel_posix_path: str) -> bool:
        if in_ignored_dir(repo_rel_posix_path):
            return True
        return self.spec.match_file(repo_rel_posix_path)


def build_ignore_rules(repo_root: Path, extra_patterns: list[str] | None = None) -> IgnoreRules:
    """Build ignore rules from defaults + optional `.gitignore` + extra patterns."""

    patterns: list[str] = list(DEFAULT_IGNORE_PATTERNS)
    if extra_patterns:
        patterns.extend(extra_patterns)

    gitignore = repo_root / ".gitignore"
    if gitignore.is_file():
        patterns.extend(gitignore.read_text(encoding="utf-8", errors="replace").splitlines())

    spec = pathspec.PathSpec.from_lines("gitwildmatch", patterns)
    return IgnoreRules(spec=spec)
