"""External compiler-grade indexer invocation.

Each supported indexer writes a SCIP artifact for one workspace root. The
artifact lives in a temporary file that is removed on every exit path; any
failure (tool missing, project markers missing, non-zero exit, timeout) yields
an empty result so the caller falls back to heuristic parsing.
"""

from __future__ import annotations

import os
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path

import structlog

from code_graph_indexer.core.records import PreciseResult
from code_graph_indexer.precise.decoder import decode_index_file


logger = structlog.get_logger(__name__)

OUTPUT_PLACEHOLDER = "{output}"


@dataclass(frozen=True)
class PreciseIndexer:
    language: str
    command: tuple[str, ...]
    # At least one of these must exist at the workspace root.
    markers: tuple[str, ...]

    def has_markers(self, root: Path) -> bool:
        return any((root / m).exists() for m in self.markers)

    def argv(self, output: str) -> list[str]:
        return [output if part == OUTPUT_PLACEHOLDER else part for part in self.command]


SCIP_TYPESCRIPT = PreciseIndexer(
    language="typescript",
    command=("scip-typescript", "index", "--output", OUTPUT_PLACEHOLDER),
    markers=("tsconfig.json", "jsconfig.json"),
)

SCIP_PYTHON = PreciseIndexer(
    language="python",
    command=("scip-python", "index", ".", "--output", OUTPUT_PLACEHOLDER),
    markers=("pyproject.toml", "setup.py", "setup.cfg", "requirements.txt"),
)

SCIP_GO = PreciseIndexer(
    language="go",
    command=("scip-go", "--output", OUTPUT_PLACEHOLDER),
    markers=("go.mod",),
)

SCIP_JAVA = PreciseIndexer(
    language="java",
    command=("scip-java", "index", "--output", OUTPUT_PLACEHOLDER),
    markers=("pom.xml", "build.gradle", "build.gradle.kts"),
)

SCIP_RUST = PreciseIndexer(
    language="rust",
    command=("rust-analyzer", "scip", ".", "--output", OUTPUT_PLACEHOLDER),
    markers=("Cargo.toml",),
)


def _root_abs(workspace_path: Path, root: str) -> Path:
    return workspace_path if root in ("", ".") else workspace_path / root


def run_precise_indexer(
    indexer: PreciseIndexer,
    *,
    workspace_path: str | Path,
    root: str,
    repo_id: str,
    timeout_s: float,
) -> PreciseResult:
    """Run `indexer` over one workspace root and decode its artifact.

    Entity paths are made workspace-relative by prefixing `root`.
    """

    abs_root = _root_abs(Path(workspace_path), root)
    log = logger.bind(language=indexer.language, root=root, repo_id=repo_id)

    if not abs_root.is_dir() or not indexer.has_markers(abs_root):
        log.info("precise.skipped", reason="missing_project_markers")
        return PreciseResult()
    if shutil.which(indexer.command[0]) is None:
        log.info("precise.skipped", reason="tool_not_installed", tool=indexer.command[0])
        return PreciseResult()

    fd, artifact = tempfile.mkstemp(prefix=f"{indexer.language}-", suffix=".scip")
    os.close(fd)
    try:
        try:
            subprocess.run(
                indexer.argv(artifact),
                cwd=abs_root,
                capture_output=True,
                check=True,
                timeout=timeout_s,
            )
        except subprocess.TimeoutExpired:
            log.warning("precise.tool_timeout", timeout_s=timeout_s)
            return PreciseResult()
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or b"").decode("utf-8", errors="replace")
            log.warning("precise.tool_failed", returncode=e.returncode, stderr=stderr)
            return PreciseResult()
        except OSError as e:
            log.warning("precise.tool_failed", error=str(e))
            return PreciseResult()

        result = decode_index_file(
            artifact, repo_id=repo_id, language=indexer.language, path_prefix=root
        )
        log.info(
            "precise.decoded",
            entities=len(result.entities),
            edges=len(result.edges),
            covered_files=len(result.covered_files),
        )
        return result
    finally:
        try:
            os.unlink(artifact)
        except FileNotFoundError:
            pass
