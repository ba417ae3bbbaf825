import os
import subprocess
from pathlib import Path
from unittest.mock import patch

from code_graph_indexer.core.records import PreciseResult
from code_graph_indexer.precise.runner import SCIP_GO, run_precise_indexer


RUNNER = "code_graph_indexer.precise.runner"


def _run(workspace: Path, root: str = "."):
    return run_precise_indexer(SCIP_GO, workspace_path=workspace, root=root, repo_id="r", timeout_s=5)


def test_missing_markers_skip_the_tool(tmp_path: Path) -> None:
    with patch(f"{RUNNER}.subprocess.run") as run:
        assert _run(tmp_path) == PreciseResult()
    run.assert_not_called()


def test_missing_tool_yields_empty_result(tmp_path: Path) -> None:
    (tmp_path / "go.mod").write_text("module example.com/x\n")
    with patch(f"{RUNNER}.shutil.which", return_value=None), patch(f"{RUNNER}.subprocess.run") as run:
        assert _run(tmp_path) == PreciseResult()
    run.assert_not_called()


def test_tool_failure_yields_empty_result_and_removes_artifact(tmp_path: Path) -> None:
    (tmp_path / "go.mod").write_text("module example.com/x\n")
    seen = []

    def fail(argv, **kwargs):
        seen.append(argv[-1])
        raise subprocess.CalledProcessError(1, argv, stderr=b"boom")

    with patch(f"{RUNNER}.shutil.which", return_value="/usr/bin/scip-go"), patch(f"{RUNNER}.subprocess.run", fail):
        assert _run(tmp_path) == PreciseResult()
    assert not os.path.exists(seen[0])


def test_artifact_is_decoded_relative_to_the_root(tmp_path: Path) -> None:
    (tmp_path / "svc").mkdir()
    (tmp_path / "svc" / "go.mod").write_text("module example.com/svc\n")
    decoded = PreciseResult(covered_files=["svc/main.go"])

    with patch(f"{RUNNER}.shutil.which", return_value="/usr/bin/scip-go"), patch(
        f"{RUNNER}.subprocess.run"
    ) as run, patch(f"{RUNNER}.decode_index_file", return_value=decoded) as decode:
        assert _run(tmp_path, root="svc") is decoded

    argv = run.call_args.args[0]
    assert argv[:2] == ["scip-go", "--output"]
    assert run.call_args.kwargs["cwd"] == tmp_path / "svc"
    assert decode.call_args.args[0] == argv[-1]
    assert decode.call_args.kwargs == {"repo_id": "r", "language": "go", "path_prefix": "svc"}
    assert not os.path.exists(argv[-1])
