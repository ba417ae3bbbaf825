"""Cross-file call resolution.

Runs after every file has been parsed. For each internal `imports` edge, the
names it brings into scope (its imported symbols, or every function, method
and class of the target for namespace-style imports) are searched for as
call sites (`name(` or `new Name(`) in the bodies of the importing file's
callables. Each distinct (caller, callee) pair yields one `calls` edge.
"""

from __future__ import annotations

import posixpath
import re
from collections import defaultdict
from typing import Iterable, Optional, Sequence

import structlog

from code_graph_indexer.core.records import CALLABLE_KINDS, Edge, Entity
from code_graph_indexer.core.stable_ids import file_entity_id
from code_graph_indexer.plugins.imports import KnownFiles


logger = structlog.get_logger(__name__)

CALL_TARGET_KINDS: frozenset[str] = CALLABLE_KINDS | {"class"}


def _files_in_dir(dir_path: str, known: KnownFiles, entity_paths: Iterable[str]) -> list[str]:
    found = set(known.files_in_dir(dir_path))
    found.update(p for p in entity_paths if posixpath.dirname(p) == dir_path)
    return sorted(found)


def _target_files(edge: Edge, known: KnownFiles, id_to_path: dict[str, str], entity_paths: Sequence[str]) -> list[str]:
    path = id_to_path.get(edge.to_id)
    if path is not None:
        return [path]
    target = edge.metadata.get("target_path")
    if not target:
        return []
    if edge.metadata.get("target_is_directory"):
        return _files_in_dir(target, known, entity_paths)
    return [target]


def resolve_cross_file_calls(
    entities: Sequence[Entity],
    edges: Iterable[Edge],
    *,
    repo_id: str,
    known_files: Optional[KnownFiles] = None,
) -> list[Edge]:
    known = known_files or KnownFiles.empty()
    by_file: dict[str, list[Entity]] = defaultdict(list)
    for e in entities:
        by_file[e.file_path].append(e)
    entity_paths = sorted(by_file)
    id_to_path = {file_entity_id(repo_id, p): p for p in set(entity_paths) | set(known.paths)}

    out: list[Edge] = []
    seen: set[tuple[str, str]] = set()
    for edge in edges:
        if edge.kind != "imports" or edge.is_external:
            continue
        import_all = bool(edge.metadata.get("import_all"))
        if not edge.imported_symbols and not import_all:
            continue
        importer = id_to_path.get(edge.from_id)
        callers = [e for e in by_file.get(importer, ()) if e.kind in CALLABLE_KINDS and e.body] if importer else []
        if not callers:
            continue

        # Name -> first matching declaration across the target files (file path, then line order).
        targets: dict[str, Entity] = {}
        wanted = set(edge.imported_symbols)
        for path in _target_files(edge, known, id_to_path, entity_paths):
            for t in sorted(by_file.get(path, ()), key=lambda x: x.start_line):
                if t.kind not in CALL_TARGET_KINDS or len(t.name) < 2:
                    continue
                if import_all or t.name in wanted:
                    targets.setdefault(t.name, t)
        if not targets:
            continue

        names = sorted(targets, key=lambda n: (-len(n), n))
        pattern = re.compile(r"(?:\bnew\s+|\b)(" + "|".join(re.escape(n) for n in names) + r")\s*\(")
        for caller in callers:
            for m in pattern.finditer(caller.body):
                callee = targets[m.group(1)]
                if callee.id == caller.id:
                    continue
                pair = (caller.id, callee.id)
                if pair in seen:
                    continue
                seen.add(pair)
                out.append(
                    Edge(
                        from_id=caller.id,
                        to_id=callee.id,
                        kind="calls",
                        repo_id=repo_id,
                        confidence=edge.confidence,
                        metadata={"via_import": edge.metadata.get("specifier", "")},
                    )
                )

    logger.debug("cross_file.resolved", repo_id=repo_id, calls=len(out))
    return out
