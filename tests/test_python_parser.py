from code_graph_indexer.core.stable_ids import entity_hash, external_module_id, file_entity_id
from code_graph_indexer.plugins.base import FileParseContext
from code_graph_indexer.plugins.imports import KnownFiles
from code_graph_indexer.plugins.python.parser import base_class_names, parse_python_file


KNOWN = KnownFiles.from_paths(["pkg/__init__.py", "pkg/service.py", "pkg/models.py", "src/app/core.py"])

SERVICE = '''"""Module docs."""
import os
from .models import User, Account as Acc
from app.core import run_core

__all__ = ["Service", "build"]


@dataclass
class Service(User, metaclass=Meta):
    """Handles user operations."""

    def __init__(self, name):
        self.name = name

    async def fetch(self, user_id: int, *, retry: bool = False) -> User:
        if retry and user_id:
            return self._load(user_id)
        return None

    def _load(self, user_id):
        return build(user_id)


def build(x):
    return Service(x)


def _helper():
    pass
'''


def _parse(path: str, content: str):
    ctx = FileParseContext(repo_id="r", file_path=path, content=content, language="python", known_files=KNOWN)
    return parse_python_file(ctx)


def test_classes_methods_and_functions() -> None:
    result = _parse("pkg/service.py", SERVICE)
    by_name = {e.name: e for e in result.entities}

    assert {n: e.kind for n, e in by_name.items()} == {
        "dataclass": "decorator",
        "Service": "class",
        "__init__": "method",
        "fetch": "method",
        "_load": "method",
        "build": "function",
        "_helper": "function",
    }

    service = by_name["Service"]
    assert (service.start_line, service.end_line) == (10, 22)
    assert service.doc == "Handles user operations."
    assert service.exported

    fetch = by_name["fetch"]
    assert (fetch.start_line, fetch.end_line) == (16, 19)
    assert fetch.parent == "Service"
    assert fetch.is_async
    assert fetch.parameter_count == 2
    assert fetch.return_type == "User"
    assert fetch.signature == "Service.fetch(self, user_id: int, *, retry: bool = False)"
    assert fetch.complexity == 3

    assert by_name["__init__"].parameter_count == 1
    assert by_name["build"].signature == "def build(x)"


def test_dunder_all_decides_module_exports_and_methods_follow_their_class() -> None:
    result = _parse("pkg/service.py", SERVICE)
    exported = {e.name for e in result.entities if e.exported}
    assert exported == {"Service", "build", "fetch"}


def test_public_method_of_unexported_class_is_not_exported() -> None:
    content = '__all__ = ["Api"]\n\n\nclass Api:\n    def get(self):\n        pass\n\n\nclass Hidden:\n    def get(self):\n        pass\n'
    result = _parse("pkg/service.py", content)
    exported = {(e.parent, e.name): e.exported for e in result.entities}
    assert exported == {(None, "Api"): True, ("Api", "get"): True, (None, "Hidden"): False, ("Hidden", "get"): False}


def test_underscore_convention_without_dunder_all() -> None:
    content = "def public():\n    pass\n\n\ndef _private():\n    pass\n\n\ndef outer():\n    def inner():\n        pass\n"
    result = _parse("pkg/service.py", content)
    exported = {e.name: e.exported for e in result.entities}
    assert exported == {"public": True, "_private": False, "outer": True, "inner": False}


def test_imports_resolve_relative_and_source_rooted_modules() -> None:
    result = _parse("pkg/service.py", SERVICE)
    by_target = {e.to_id: e for e in result.edges if e.kind == "imports"}

    models = by_target[file_entity_id("r", "pkg/models.py")]
    assert models.imported_symbols == ("User", "Account")
    assert models.metadata["specifier"] == ".models"

    core = by_target[file_entity_id("r", "src/app/core.py")]
    assert core.imported_symbols == ("run_core",)

    os_edge = by_target[external_module_id("r", "os")]
    assert os_edge.is_external
    assert os_edge.metadata["stdlib"] is True


def test_base_class_resolves_through_import() -> None:
    result = _parse("pkg/service.py", SERVICE)
    service = next(e for e in result.entities if e.name == "Service")
    extends = [(e.from_id, e.to_id) for e in result.edges if e.kind == "extends"]
    assert extends == [(service.id, entity_hash("r", "pkg/models.py", "class", "User", None))]


def test_calls_within_file() -> None:
    result = _parse("pkg/service.py", SERVICE)
    ids = {e.name: e.id for e in result.entities}
    calls = {(e.from_id, e.to_id) for e in result.edges if e.kind == "calls"}
    assert calls == {(ids["fetch"], ids["_load"]), (ids["_load"], ids["build"])}


def test_multi_line_signature() -> None:
    content = "def f(\n    a,\n    b,\n) -> int:\n    return a + b\n"
    (entity,) = _parse("pkg/service.py", content).entities
    assert entity.parameter_count == 2
    assert entity.return_type == "int"
    assert (entity.start_line, entity.end_line) == (1, 5)


def test_base_class_names_drop_keywords_and_subscripts() -> None:
    assert base_class_names("Generic[T], Base, metaclass=ABCMeta, object, *mixins") == ["Generic", "Base"]
