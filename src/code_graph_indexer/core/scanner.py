"""Workspace file discovery and language detection.

Preferred enumeration is `git ls-files`, which already honours every
`.gitignore` in the tree; without git (or outside a repository) we fall back
to a directory walk filtered by `core.ignore_rules`. Both paths drop the
always-ignored directories and return a deterministic, path-sorted list.
"""

from __future__ import annotations

import os
import subprocess
from collections import defaultdict
from pathlib import Path
from typing import Iterable, Optional

import structlog

from code_graph_indexer.core.ignore_rules import build_ignore_rules, in_ignored_dir
from code_graph_indexer.core.records import LanguageDetection, ScannedFile


logger = structlog.get_logger(__name__)

_GIT_LS_FILES_TIMEOUT_S = 120

EXTENSION_LANGUAGE: dict[str, str] = {
    ".ts": "typescript",
    ".tsx": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".py": "python",
    ".pyi": "python",
    ".go": "go",
    ".rs": "rust",
    ".java": "java",
    ".kt": "kotlin",
    ".rb": "ruby",
    ".rake": "ruby",
    ".php": "php",
    ".c": "c",
    ".h": "c",
    ".cc": "cpp",
    ".cpp": "cpp",
    ".cxx": "cpp",
    ".hpp": "cpp",
    ".hh": "cpp",
    ".cs": "csharp",
    ".swift": "swift",
    ".scala": "scala",
    ".json": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".toml": "toml",
    ".md": "markdown",
    ".css": "css",
    ".scss": "scss",
    ".html": "html",
    ".sql": "sql",
    ".sh": "shell",
    ".bash": "shell",
    ".zsh": "shell",
}


def language_for_extension(ext: str) -> Optional[str]:
    """Return the language for a file extension (with leading dot), or None."""

    return EXTENSION_LANGUAGE.get(ext.lower())


def _extension(rel_posix_path: str) -> str:
    return os.path.splitext(rel_posix_path)[1].lower()


def _git_ls_files(abs_root: Path) -> list[str]:
    proc = subprocess.run(
        ["git", "ls-files", "--cached", "--others", "--exclude-standard", "-z"],
        cwd=abs_root,
        capture_output=True,
        check=True,
        timeout=_GIT_LS_FILES_TIMEOUT_S,
    )
    out = proc.stdout.decode("utf-8", errors="replace")
    return [p for p in out.split("\0") if p]


def _walk_files(abs_root: Path) -> list[str]:
    ignore = build_ignore_rules(abs_root)
    rels: list[str] = []
    for dirpath, dirnames, filenames in os.walk(abs_root):
        rel_dir = Path(dirpath).relative_to(abs_root).as_posix()
        prefix = "" if rel_dir == "." else f"{rel_dir}/"
        # Prune in place so os.walk never descends into ignored directories.
        dirnames[:] = sorted(d for d in dirnames if not ignore.is_ignored(f"{prefix}{d}/"))
        for name in filenames:
            rel = f"{prefix}{name}"
            if not ignore.is_ignored(rel):
                rels.append(rel)
    return rels


def scan_workspace(workspace_path: str | Path) -> list[ScannedFile]:
    """Enumerate every non-ignored regular file under `workspace_path`.

    A missing or non-directory root yields an empty list.
    """

    abs_root = Path(workspace_path).resolve()
    if not abs_root.is_dir():
        return []

    try:
        rels = _git_ls_files(abs_root)
    except (OSError, subprocess.CalledProcessError, subprocess.TimeoutExpired) as e:
        logger.info("scan.fallback_walk", root=str(abs_root), reason=type(e).__name__)
        rels = _walk_files(abs_root)

    files: list[ScannedFile] = []
    for rel in sorted(set(rels)):
        if in_ignored_dir(rel):
            continue
        p = abs_root / rel
        # ls-files lists cached paths deleted from the working tree; symlinks are skipped.
        if p.is_symlink() or not p.is_file():
            continue
        files.append(ScannedFile(relative_path=rel, absolute_path=p, extension=_extension(rel)))
    return files


def detect_languages(files: Iterable[ScannedFile]) -> list[LanguageDetection]:
    """Group files by detected language, most files first.

    The ranking is an ordering hint only; callers never filter on it.
    """

    exts: dict[str, set[str]] = defaultdict(set)
    counts: dict[str, int] = defaultdict(int)
    for f in files:
        lang = language_for_extension(f.extension)
        if lang is None:
            continue
        exts[lang].add(f.extension)
        counts[lang] += 1

    detections = [
        LanguageDetection(language=lang, extensions=tuple(sorted(exts[lang])), file_count=counts[lang])
        for lang in counts
    ]
    return sorted(detections, key=lambda d: (-d.file_count, d.language))
