"""Import-edge construction shared by the fallback parsers.

Parsers recognize import statements and decide, per language, whether a
specifier points inside the workspace. Internal imports become `imports`
edges from the importing file to the target file (or package directory);
external ones point at a per-package module entity and carry the package
name and boundary category.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from code_graph_indexer.core.boundaries import (
    classify_boundary,
    external_package_name,
    is_stdlib,
)
from code_graph_indexer.core.records import Edge
from code_graph_indexer.core.stable_ids import (
    directory_entity_id,
    external_module_id,
    file_entity_id,
)


RESOLVED_CONFIDENCE = 1.0
BEST_EFFORT_CONFIDENCE = 0.5


def _strip_ext(path: str) -> str:
    base, ext = posixpath.splitext(path)
    return base if ext else path


@dataclass(frozen=True)
class KnownFiles:
    """Workspace file paths with a suffix index for module-path lookups.

    `lookup("util/strings", (".go",))` finds `pkg/util/strings.go`; when several
    files share the suffix the shortest (then lexicographically first) wins.
    """

    paths: frozenset[str] = frozenset()
    dirs: frozenset[str] = frozenset()
    _by_suffix: dict = field(default_factory=dict, hash=False, compare=False, repr=False)
    _dirs_by_suffix: dict = field(default_factory=dict, hash=False, compare=False, repr=False)

    @classmethod
    def empty(cls) -> "KnownFiles":
        return cls()

    @classmethod
    def from_paths(cls, paths: Iterable[str]) -> "KnownFiles":
        all_paths = frozenset(paths)
        dirs: set[str] = set()
        by_suffix: dict[str, list[str]] = {}
        dirs_by_suffix: dict[str, list[str]] = {}
        for p in all_paths:
            parts = p.split("/")
            for i in range(len(parts)):
                by_suffix.setdefault("/".join(parts[i:]), []).append(p)
            parent = parts[:-1]
            for depth in range(1, len(parent) + 1):
                dirs.add("/".join(parent[:depth]))
        for d in dirs:
            parts = d.split("/")
            for i in range(len(parts)):
                dirs_by_suffix.setdefault("/".join(parts[i:]), []).append(d)
        return cls(
            paths=all_paths,
            dirs=frozenset(dirs),
            _by_suffix={k: tuple(sorted(v, key=lambda s: (len(s), s))) for k, v in by_suffix.items()},
            _dirs_by_suffix={k: tuple(sorted(v, key=lambda s: (len(s), s))) for k, v in dirs_by_suffix.items()},
        )

    def __contains__(self, path: object) -> bool:
        return path in self.paths

    def first_existing(self, candidates: Iterable[str]) -> Optional[str]:
        for c in candidates:
            if c in self.paths:
                return c
        return None

    def lookup(self, module_path: str, extensions: Iterable[str]) -> Optional[str]:
        """Find a file whose path ends with `module_path + ext` at a segment boundary."""

        for ext in extensions:
            hits = self._by_suffix.get(f"{module_path}{ext}")
            if hits:
                return hits[0]
        return None

    def lookup_dir(self, dir_suffix: str) -> Optional[str]:
        hits = self._dirs_by_suffix.get(dir_suffix)
        return hits[0] if hits else None

    def files_in_dir(self, dir_path: str) -> list[str]:
        prefix = f"{dir_path}/" if dir_path else ""
        return sorted(p for p in self.paths if p.startswith(prefix) and "/" not in p[len(prefix):])


def normalize_relative(from_file: str, specifier: str) -> Optional[str]:
    """Resolve `specifier` against the importing file's directory; None if it escapes the root."""

    base = posixpath.dirname(from_file)
    joined = posixpath.normpath(posixpath.join(base, specifier)) if base else posixpath.normpath(specifier)
    if joined == "." or joined.startswith("../") or joined == "..":
        return None
    return joined


@dataclass(frozen=True)
class ImportStatement:
    specifier: str
    line: int
    symbols: tuple[str, ...] = ()
    type_only: bool = False
    # Namespace-style import (`import pkg`, `#include`, Go package): every symbol of the target is reachable.
    import_all: bool = False


@dataclass(frozen=True)
class ImportTarget:
    path: str
    resolved: bool
    is_directory: bool = False


# Returns None for external specifiers.
Resolver = Callable[[str], Optional[ImportTarget]]


def resolve_with_candidates(
    known: KnownFiles, base: str, extensions: Iterable[str], index_names: Iterable[str] = ()
) -> ImportTarget:
    """Best-effort target for a path-like specifier: exact, `base+ext`, then `base/index+ext`."""

    exts = tuple(extensions)
    candidates = [base] + [f"{base}{e}" for e in exts]
    candidates += [f"{base}/{n}{e}" for n in index_names for e in exts]
    hit = known.first_existing(candidates)
    if hit is not None:
        return ImportTarget(path=hit, resolved=True)
    if base in known.dirs:
        return ImportTarget(path=base, resolved=True, is_directory=True)
    return ImportTarget(path=base, resolved=False)


def build_import_edges(
    *,
    repo_id: str,
    file_path: str,
    language: str,
    statements: Iterable[ImportStatement],
    resolve: Resolver,
) -> list[Edge]:
    """One `imports` edge per distinct target; repeated imports of a target merge their symbols."""

    from_id = file_entity_id(repo_id, file_path)
    merged: dict[str, dict] = {}
    order: list[str] = []

    for stmt in statements:
        spec = stmt.specifier.strip()
        if not spec:
            continue
        target = resolve(spec)
        if target is not None:
            if target.path == file_path:
                continue
            to_id = (
                directory_entity_id(repo_id, target.path)
                if target.is_directory
                else file_entity_id(repo_id, target.path)
            )
            fields = {
                "is_external": False,
                "confidence": RESOLVED_CONFIDENCE if target.resolved else BEST_EFFORT_CONFIDENCE,
                "metadata": {
                    "specifier": spec,
                    "target_path": target.path,
                    "target_is_directory": target.is_directory,
                },
            }
        else:
            package = external_package_name(spec, language)
            to_id = external_module_id(repo_id, package)
            fields = {
                "is_external": True,
                "package_name": package,
                "boundary_category": classify_boundary(spec, language),
                "confidence": RESOLVED_CONFIDENCE,
                "metadata": {"specifier": spec, "stdlib": is_stdlib(spec, language)},
            }

        entry = merged.get(to_id)
        if entry is None:
            entry = {"symbols": [], "type_only": True, "import_all": False, "line": stmt.line, **fields}
            merged[to_id] = entry
            order.append(to_id)
        for s in stmt.symbols:
            if s and s not in entry["symbols"]:
                entry["symbols"].append(s)
        entry["type_only"] = entry["type_only"] and stmt.type_only
        entry["import_all"] = entry["import_all"] or stmt.import_all

    edges: list[Edge] = []
    for to_id in order:
        e = merged[to_id]
        metadata = dict(e["metadata"])
        metadata["line"] = e["line"]
        if e["type_only"]:
            metadata["type_only"] = True
        if e["import_all"]:
            metadata["import_all"] = True
        edges.append(
            Edge(
                from_id=from_id,
                to_id=to_id,
                kind="imports",
                repo_id=repo_id,
                imported_symbols=tuple(e["symbols"]),
                is_external=e["is_external"],
                package_name=e.get("package_name"),
                boundary_category=e.get("boundary_category"),
                confidence=e["confidence"],
                metadata=metadata,
            )
        )
    return edges


def split_symbol_list(raw: str) -> tuple[str, ...]:
    """`a, b as c, type D` -> ("a", "b", "D"); the local alias is not the exported name."""

    out: list[str] = []
    for part in raw.replace("\n", " ").split(","):
        name = part.strip()
        if not name:
            continue
        if name.startswith("type "):
            name = name[len("type "):].strip()
        name = name.split(" as ")[0].strip()
        if name and name != "*" and name not in out:
            out.append(name)
    return tuple(out)


def imported_symbol_paths(edges: Iterable[Edge]) -> dict[str, str]:
    """Imported symbol -> internal file it was imported from (first import wins)."""

    out: dict[str, str] = {}
    for e in edges:
        if e.kind != "imports" or e.is_external or e.metadata.get("target_is_directory"):
            continue
        path = e.metadata.get("target_path")
        if not path:
            continue
        for s in e.imported_symbols:
            out.setdefault(s, path)
    return out
