from dataclasses import dataclass
from unittest.mock import Mock

import pytest

from code_graph_indexer.core.records import ParseResult, PreciseResult
from code_graph_indexer.plugins.generic import GenericFilePlugin
from code_graph_indexer.plugins.registry import PluginRegistry, default_registry


@dataclass(frozen=True)
class _Plugin:
    name: str
    extensions: tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "run_precise", Mock(return_value=PreciseResult()))
        object.__setattr__(self, "parse_file", Mock(return_value=ParseResult()))


def test_routes_by_extension_case_insensitively() -> None:
    py = _Plugin(name="python", extensions=(".py",))
    go = _Plugin(name="go", extensions=(".go",))
    registry = PluginRegistry([py, go])

    assert registry.for_extension(".py") is py
    assert registry.for_extension(".GO") is go
    assert registry.by_name("go") is go


def test_unknown_extension_gets_file_only_plugin() -> None:
    registry = PluginRegistry([_Plugin(name="python", extensions=(".py",))])
    fallback = registry.for_extension(".md")
    assert isinstance(fallback, GenericFilePlugin)
    assert fallback.parse_file(Mock()) == ParseResult()


def test_duplicate_extension_claims_are_rejected() -> None:
    with pytest.raises(ValueError):
        PluginRegistry([_Plugin(name="a", extensions=(".x",)), _Plugin(name="b", extensions=(".x",))])


def test_by_name_unsupported() -> None:
    with pytest.raises(ValueError):
        PluginRegistry([]).by_name("cobol")


def test_default_registry_covers_every_language() -> None:
    registry = default_registry()
    assert sorted(p.name for p in registry.plugins) == [
        "c_family",
        "csharp",
        "go",
        "java",
        "php",
        "python",
        "ruby",
        "rust",
        "typescript",
    ]
    assert registry.for_extension(".tsx").name == "typescript"
    assert registry.for_extension(".hpp").name == "c_family"
    assert registry.for_extension(".rb").name == "ruby"
