"""Indexing pipeline.

scan -> precise (per root, per plugin) -> fallback (files precise missed)
-> cross-file calls -> write (run-version stamped) -> finalize (retire the
previous generation)

Every stage degrades to producing less data: a missing tool, a bad artifact
or one unparseable file never aborts the run. Only workspace-level and
storage-level failures propagate to the caller.
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Callable, Optional

import structlog

from code_graph_indexer.config import CodeGraphIndexerSettings, get_code_graph_indexer_settings
from code_graph_indexer.core.cross_file import resolve_cross_file_calls
from code_graph_indexer.core.monorepo import detect_workspace_roots
from code_graph_indexer.core.records import CALLABLE_KINDS, Edge, Entity, IndexedFile, ParseResult, ScannedFile
from code_graph_indexer.core.scanner import detect_languages, language_for_extension, scan_workspace
from code_graph_indexer.core.versioning import finalize_indexing, new_run_version
from code_graph_indexer.observability.tracing import get_tracer
from code_graph_indexer.persistence.graph_store import GraphStore, get_graph_store
from code_graph_indexer.persistence.graph_writer import write_entities_to_graph
from code_graph_indexer.plugins.base import FileParseContext, LanguagePlugin, PreciseContext
from code_graph_indexer.plugins.doc_comments import extract_preceding_doc, extract_python_docstring
from code_graph_indexer.plugins.imports import KnownFiles
from code_graph_indexer.plugins.registry import PluginRegistry, default_registry
from code_graph_indexer.plugins.structural import split_lines


logger = structlog.get_logger(__name__)
tracer = get_tracer(__name__)

# (stage, processed, total)
Heartbeat = Callable[[str, int, int], None]


@dataclass(frozen=True)
class IndexSummary:
    repo_id: str
    run_version: str
    file_count: int
    entities_written: int
    edges_written: int
    function_count: int
    class_count: int
    covered_files: int
    failed_files: list[str] = field(default_factory=list)
    retired_version: Optional[str] = None


@dataclass
class _RunState:
    entities: list[Entity] = field(default_factory=list)
    edges: list[Edge] = field(default_factory=list)
    covered: set[str] = field(default_factory=set)
    line_counts: dict[str, int] = field(default_factory=dict)
    failed: list[str] = field(default_factory=list)


def _noop_heartbeat(stage: str, done: int, total: int) -> None:
    return None


def _read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def _plugin_languages(plugin: LanguagePlugin) -> set[str]:
    return {lang for lang in (language_for_extension(ext) for ext in plugin.extensions) if lang}


def _precise_plugins(registry: PluginRegistry, files: list[ScannedFile]) -> list[LanguagePlugin]:
    """Plugins whose languages occur in the workspace, most files first."""

    rank = {d.language: i for i, d in enumerate(detect_languages(files))}
    present = []
    for p in registry.plugins:
        langs = _plugin_languages(p) & set(rank)
        if langs:
            present.append((min(rank[lang] for lang in langs), p.name, p))
    return [p for _, _, p in sorted(present, key=lambda t: (t[0], t[1]))]


def _backfill_precise(entities: list[Entity], workspace: Path, max_body_lines: int, state: _RunState) -> list[Entity]:
    """Fill body/doc of precise entities from their source files."""

    by_file: dict[str, list[Entity]] = {}
    for e in entities:
        by_file.setdefault(e.file_path, []).append(e)

    out: list[Entity] = []
    for path, group in by_file.items():
        try:
            lines = split_lines(_read_text(workspace / path))
        except (OSError, UnicodeDecodeError) as e:
            logger.debug("precise.backfill_skipped", file_path=path, error=str(e))
            out.extend(group)
            continue
        state.line_counts[path] = len(lines)
        for e in group:
            start_idx = max(e.start_line - 1, 0)
            end_idx = min(max(e.end_line, e.start_line), len(lines))
            body = "\n".join(lines[start_idx : min(end_idx, start_idx + max_body_lines)]) or None
            if start_idx < len(lines):
                doc = (
                    extract_python_docstring(lines, start_idx)
                    if e.language == "python"
                    else extract_preceding_doc(lines, start_idx)
                )
            else:
                doc = None
            out.append(replace(e, body=e.body or body, doc=e.doc or doc))
    return out


class _FallbackRunner:
    """Fallback parsing on a thread pool with a per-file time budget."""

    def __init__(self, *, repo_id: str, registry: PluginRegistry, known: KnownFiles, settings: CodeGraphIndexerSettings):
        self.repo_id = repo_id
        self.registry = registry
        self.known = known
        self.settings = settings
        self._started: dict[str, float] = {}
        self._abandoned: list[Future] = []
        self._lock = threading.Lock()

    def parse_one(self, f: ScannedFile) -> Optional[tuple[ParseResult, int]]:
        with self._lock:
            self._started[f.relative_path] = time.monotonic()
        plugin = self.registry.for_extension(f.extension)
        try:
            content = _read_text(f.absolute_path)
            ctx = FileParseContext(
                repo_id=self.repo_id,
                file_path=f.relative_path,
                content=content,
                language=language_for_extension(f.extension) or plugin.name,
                known_files=self.known,
                max_body_lines=self.settings.MAX_BODY_LINES,
            )
            return plugin.parse_file(ctx), len(split_lines(content))
        except UnicodeDecodeError:
            logger.debug("fallback.not_text", file_path=f.relative_path)
            return None
        except Exception as e:
            logger.warning("fallback.parse_failed", file_path=f.relative_path, plugin=plugin.name, error=str(e))
            return None

    def _await(self, path: str, fut: Future) -> Optional[tuple[ParseResult, int]]:
        budget = self.settings.PARSE_FILE_TIMEOUT_S
        while True:
            with self._lock:
                started = self._started.get(path)
            if started is None and sum(not a.done() for a in self._abandoned) >= self.settings.PARSE_WORKERS:
                # Every worker is held by an abandoned parse; queued files cannot start.
                raise FuturesTimeout()
            remaining = budget if started is None else started + budget - time.monotonic()
            if remaining <= 0:
                raise FuturesTimeout()
            try:
                return fut.result(timeout=remaining)
            except FuturesTimeout:
                # A file still queued behind busy workers has not started its own clock.
                continue

    def run(self, files: list[ScannedFile], state: _RunState, heartbeat: Heartbeat) -> None:
        total = len(files)
        pool = ThreadPoolExecutor(max_workers=self.settings.PARSE_WORKERS, thread_name_prefix="fallback-parse")
        try:
            futures = [(f, pool.submit(self.parse_one, f)) for f in files]
            for done, (f, fut) in enumerate(futures, start=1):
                try:
                    outcome = self._await(f.relative_path, fut)
                except FuturesTimeout:
                    if not fut.cancel():
                        self._abandoned.append(fut)
                    state.failed.append(f.relative_path)
                    logger.warning(
                        "fallback.parse_timeout",
                        file_path=f.relative_path,
                        timeout_s=self.settings.PARSE_FILE_TIMEOUT_S,
                    )
                    outcome = None
                if outcome is not None:
                    result, line_count = outcome
                    state.entities.extend(result.entities)
                    state.edges.extend(result.edges)
                    state.line_counts[f.relative_path] = line_count
                if done % self.settings.HEARTBEAT_EVERY == 0:
                    heartbeat("fallback", done, total)
        finally:
            # An abandoned parse keeps its thread until it returns; nothing waits for it.
            pool.shutdown(wait=False, cancel_futures=True)
        heartbeat("fallback", total, total)


def index_repository(
    workspace_path: str | Path,
    *,
    repo_id: str,
    org_id: Optional[str] = None,
    run_version: Optional[str] = None,
    store: Optional[GraphStore] = None,
    registry: Optional[PluginRegistry] = None,
    settings: Optional[CodeGraphIndexerSettings] = None,
    heartbeat: Optional[Heartbeat] = None,
) -> IndexSummary:
    """Index one repository checkout into the graph store as a new generation."""

    settings = settings or get_code_graph_indexer_settings()
    store = store or get_graph_store()
    registry = registry or default_registry()
    heartbeat = heartbeat or _noop_heartbeat
    run_version = run_version or new_run_version()
    workspace = Path(workspace_path).resolve()
    state = _RunState()

    with structlog.contextvars.bound_contextvars(repo_id=repo_id, org_id=org_id, run_version=run_version):
        with tracer.start_as_current_span("index_repository") as span:
            span.set_attribute("repo_id", repo_id)
            span.set_attribute("run_version", run_version)
            logger.info("pipeline.start", workspace_path=str(workspace))

            with tracer.start_as_current_span("scan"):
                files = scan_workspace(workspace)
                roots = detect_workspace_roots(workspace)
                known = KnownFiles.from_paths(f.relative_path for f in files)
                logger.info(
                    "pipeline.stage_done",
                    stage="scan",
                    files=len(files),
                    roots=list(roots.roots),
                    workspace_type=roots.type,
                )
                heartbeat("scan", len(files), len(files))

            with tracer.start_as_current_span("precise") as stage_span:
                if settings.PRECISE_ENABLED:
                    plugins = _precise_plugins(registry, files)
                    units = [(root, p) for root in roots.roots for p in plugins]
                    precise_entities: list[Entity] = []
                    for done, (root, plugin) in enumerate(units, start=1):
                        result = plugin.run_precise(
                            PreciseContext(
                                repo_id=repo_id,
                                workspace_path=workspace,
                                root=root,
                                timeout_s=settings.PRECISE_TIMEOUT_S,
                            )
                        )
                        precise_entities.extend(result.entities)
                        state.edges.extend(result.edges)
                        state.covered.update(result.covered_files)
                        heartbeat("precise", done, len(units))
                    state.entities.extend(
                        _backfill_precise(precise_entities, workspace, settings.MAX_BODY_LINES, state)
                    )
                stage_span.set_attribute("covered_files", len(state.covered))
                logger.info("pipeline.stage_done", stage="precise", covered_files=len(state.covered))

            with tracer.start_as_current_span("fallback") as stage_span:
                pending: list[ScannedFile] = []
                for f in files:
                    if f.relative_path in state.covered:
                        continue
                    try:
                        size = f.absolute_path.stat().st_size
                    except OSError:
                        continue
                    if size > settings.MAX_FILE_BYTES:
                        logger.info("fallback.file_too_large", file_path=f.relative_path, size=size)
                        continue
                    pending.append(f)
                runner = _FallbackRunner(repo_id=repo_id, registry=registry, known=known, settings=settings)
                runner.run(pending, state, heartbeat)
                stage_span.set_attribute("files", len(pending))
                logger.info("pipeline.stage_done", stage="fallback", files=len(pending), failed=len(state.failed))

            with tracer.start_as_current_span("cross_file"):
                cross = resolve_cross_file_calls(state.entities, state.edges, repo_id=repo_id, known_files=known)
                state.edges.extend(cross)
                logger.info("pipeline.stage_done", stage="cross_file", calls=len(cross))

            with tracer.start_as_current_span("write"):
                indexed = [
                    IndexedFile(
                        path=f.relative_path,
                        language=language_for_extension(f.extension) or registry.for_extension(f.extension).name,
                        line_count=state.line_counts.get(f.relative_path, 0),
                    )
                    for f in files
                ]
                written = write_entities_to_graph(
                    store,
                    repo_id=repo_id,
                    run_version=run_version,
                    entities=state.entities,
                    edges=state.edges,
                    files=indexed,
                )
                heartbeat("write", written.entities_written, written.entities_written)

            with tracer.start_as_current_span("finalize"):
                retired = finalize_indexing(store, repo_id, run_version)

            summary = IndexSummary(
                repo_id=repo_id,
                run_version=run_version,
                file_count=len(files),
                entities_written=written.entities_written,
                edges_written=written.edges_written,
                function_count=sum(1 for e in state.entities if e.kind in CALLABLE_KINDS),
                class_count=sum(1 for e in state.entities if e.kind == "class"),
                covered_files=len(state.covered),
                failed_files=sorted(state.failed),
                retired_version=retired,
            )
            logger.info(
                "pipeline.done",
                entities=summary.entities_written,
                edges=summary.edges_written,
                files=summary.file_count,
                retired_version=retired,
            )
            return summary
