import shutil
import subprocess
from pathlib import Path

import pytest

from code_graph_indexer.core.scanner import detect_languages, language_for_extension, scan_workspace


def _write(root: Path, rel: str, text: str = "x\n") -> None:
    p = root / rel
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(text, encoding="utf-8")


def test_scan_skips_always_ignored_dirs_and_gitignore_patterns(tmp_path: Path) -> None:
    _write(tmp_path, "src/a.ts")
    _write(tmp_path, "src/b.py")
    _write(tmp_path, "node_modules/pkg/index.js")
    _write(tmp_path, "dist/bundle.js")
    _write(tmp_path, ".git/config")
    _write(tmp_path, "secret.log")
    _write(tmp_path, ".gitignore", "*.log\n")

    rels = [f.relative_path for f in scan_workspace(tmp_path)]

    assert "src/a.ts" in rels
    assert "src/b.py" in rels
    assert not any(r.startswith(("node_modules/", "dist/", ".git/")) for r in rels)
    assert "secret.log" not in rels
    assert rels == sorted(rels)


@pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")
def test_scan_of_git_checkout_drops_tracked_build_dirs(tmp_path: Path) -> None:
    subprocess.run(["git", "init", "-q"], cwd=tmp_path, check=True)
    _write(tmp_path, ".gitignore", "*.log\n")
    _write(tmp_path, "src/a.ts")
    _write(tmp_path, "secret.log")
    _write(tmp_path, "node_modules/x.js")
    _write(tmp_path, "dist/out.js")
    # Vendored output committed by mistake is still listed by ls-files.
    subprocess.run(["git", "add", "-f", "node_modules/x.js", "dist/out.js"], cwd=tmp_path, check=True)

    rels = [f.relative_path for f in scan_workspace(tmp_path)]

    assert rels == [".gitignore", "src/a.ts"]


def test_scan_of_missing_root_is_empty(tmp_path: Path) -> None:
    assert scan_workspace(tmp_path / "does-not-exist") == []


def test_scanned_file_carries_extension(tmp_path: Path) -> None:
    _write(tmp_path, "pkg/Main.JAVA")
    (f,) = scan_workspace(tmp_path)
    assert f.extension == ".java"
    assert f.absolute_path == (tmp_path / "pkg/Main.JAVA").resolve()


def test_detect_languages_ranks_by_file_count(tmp_path: Path) -> None:
    for i in range(3):
        _write(tmp_path, f"py/m{i}.py")
    _write(tmp_path, "ts/a.ts")
    _write(tmp_path, "ts/b.tsx")
    _write(tmp_path, "README.unknownext")

    detections = detect_languages(scan_workspace(tmp_path))

    assert [d.language for d in detections] == ["python", "typescript"]
    assert detections[0].file_count == 3
    assert detections[1].extensions == (".ts", ".tsx")


def test_language_for_extension_is_case_insensitive() -> None:
    assert language_for_extension(".RS") == "rust"
    assert language_for_extension(".nope") is None
