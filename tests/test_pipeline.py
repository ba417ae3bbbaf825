import time
from dataclasses import dataclass
from pathlib import Path
from unittest.mock import Mock

from code_graph_indexer.config import CodeGraphIndexerSettings
from code_graph_indexer.core.pipeline import index_repository
from code_graph_indexer.core.records import ParseResult, PreciseResult
from code_graph_indexer.core.stable_ids import file_entity_id
from code_graph_indexer.persistence.graph_store import InMemoryGraphStore
from code_graph_indexer.plugins.registry import PluginRegistry


def _write(root: Path, rel: str, content: str) -> None:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def _workspace(root: Path) -> Path:
    _write(root, "README.md", "# demo\n")
    _write(root, "src/util.py", "def helper(x):\n    return x + 1\n")
    _write(root, "src/app.py", "from .util import helper\n\n\ndef main():\n    return helper(2)\n")
    return root


def _settings(**overrides) -> CodeGraphIndexerSettings:
    return CodeGraphIndexerSettings(PRECISE_ENABLED=False, GRAPH_STORE_BACKEND="memory", **overrides)


def test_indexes_a_small_repository(tmp_path: Path) -> None:
    store = InMemoryGraphStore()
    summary = index_repository(_workspace(tmp_path), repo_id="r", store=store, settings=_settings())

    assert summary.file_count == 3
    assert summary.function_count == 2
    assert summary.failed_files == []
    assert summary.retired_version is None
    assert store.get_active_version("r") == summary.run_version

    entities = store.entities_for("r")
    by_name = {e.name: e for e in entities}
    assert {"README.md", "src", "src/app.py", "src/util.py", "main", "helper"} <= set(by_name)
    assert {e.index_version for e in entities} == {summary.run_version}

    calls = [e for e in store.edges_for("r") if e.kind == "calls"]
    assert [(c.from_id, c.to_id) for c in calls] == [(by_name["main"].id, by_name["helper"].id)]
    assert calls[0].metadata == {"via_import": ".util"}

    imports = [e for e in store.edges_for("r") if e.kind == "imports"]
    assert [(e.from_id, e.to_id) for e in imports] == [
        (file_entity_id("r", "src/app.py"), file_entity_id("r", "src/util.py"))
    ]


def test_reindex_keeps_ids_and_retires_the_previous_generation(tmp_path: Path) -> None:
    store = InMemoryGraphStore()
    workspace = _workspace(tmp_path)
    first = index_repository(workspace, repo_id="r", store=store, settings=_settings(), run_version="v1")
    ids_first = {e.id for e in store.entities_for("r")}
    edges_first = {e.id for e in store.edges_for("r")}

    second = index_repository(workspace, repo_id="r", store=store, settings=_settings(), run_version="v2")

    assert second.retired_version == first.run_version == "v1"
    assert {e.id for e in store.entities_for("r")} == ids_first
    assert {e.id for e in store.edges_for("r")} == edges_first
    assert set(store.version_counts("r").entities) == {"v2"}


def test_removed_code_disappears_on_reindex(tmp_path: Path) -> None:
    store = InMemoryGraphStore()
    workspace = _workspace(tmp_path)
    index_repository(workspace, repo_id="r", store=store, settings=_settings(), run_version="v1")

    (workspace / "src" / "util.py").unlink()
    index_repository(workspace, repo_id="r", store=store, settings=_settings(), run_version="v2")

    names = {e.name for e in store.entities_for("r")}
    assert "helper" not in names
    assert "src/util.py" not in names
    assert "main" in names
    assert [e for e in store.edges_for("r") if e.kind == "calls"] == []


@dataclass(frozen=True)
class _SlowPlugin:
    name: str = "slow"
    extensions: tuple[str, ...] = (".py",)

    def run_precise(self, ctx) -> PreciseResult:
        return PreciseResult()

    def parse_file(self, ctx) -> ParseResult:
        time.sleep(1.0)
        return ParseResult()


@dataclass(frozen=True)
class _BrokenPlugin:
    name: str = "broken"
    extensions: tuple[str, ...] = (".py",)

    def run_precise(self, ctx) -> PreciseResult:
        return PreciseResult()

    def parse_file(self, ctx) -> ParseResult:
        raise ValueError("cannot parse")


def test_slow_files_are_abandoned_without_failing_the_run(tmp_path: Path) -> None:
    store = InMemoryGraphStore()
    summary = index_repository(
        _workspace(tmp_path),
        repo_id="r",
        store=store,
        registry=PluginRegistry([_SlowPlugin()]),
        settings=_settings(PARSE_FILE_TIMEOUT_S=0.2, PARSE_WORKERS=2),
    )

    assert summary.failed_files == ["src/app.py", "src/util.py"]
    # The files themselves are still part of the graph.
    assert {"src/app.py", "src/util.py"} <= {e.name for e in store.entities_for("r")}


def test_parser_errors_are_isolated_per_file(tmp_path: Path) -> None:
    store = InMemoryGraphStore()
    summary = index_repository(
        _workspace(tmp_path), repo_id="r", store=store, registry=PluginRegistry([_BrokenPlugin()]), settings=_settings()
    )
    assert summary.function_count == 0
    assert summary.file_count == 3
    assert store.get_active_version("r") == summary.run_version


def test_heartbeat_reports_each_stage(tmp_path: Path) -> None:
    heartbeat = Mock()
    index_repository(
        _workspace(tmp_path), repo_id="r", store=InMemoryGraphStore(), settings=_settings(), heartbeat=heartbeat
    )
    stages = [c.args[0] for c in heartbeat.call_args_list]
    assert stages[0] == "scan"
    assert "fallback" in stages
    assert stages[-1] == "write"
    heartbeat.assert_any_call("scan", 3, 3)
    heartbeat.assert_any_call("fallback", 3, 3)
