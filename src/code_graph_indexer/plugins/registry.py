"""Plugin registry: file extension -> language plugin."""

from __future__ import annotations

from functools import lru_cache
from typing import Iterable, Optional

from code_graph_indexer.plugins.base import LanguagePlugin
from code_graph_indexer.plugins.c_family.plugin import CFamilyPlugin
from code_graph_indexer.plugins.csharp.plugin import CSharpPlugin
from code_graph_indexer.plugins.generic import GenericFilePlugin
from code_graph_indexer.plugins.go.plugin import GoPlugin
from code_graph_indexer.plugins.java.plugin import JavaPlugin
from code_graph_indexer.plugins.php.plugin import PhpPlugin
from code_graph_indexer.plugins.python.plugin import PythonPlugin
from code_graph_indexer.plugins.ruby.plugin import RubyPlugin
from code_graph_indexer.plugins.rust.plugin import RustPlugin
from code_graph_indexer.plugins.typescript.plugin import TypeScriptPlugin


class PluginRegistry:
    """Routes files to plugins by extension; unknown extensions get the file-only plugin."""

    def __init__(self, plugins: Iterable[LanguagePlugin], fallback: Optional[LanguagePlugin] = None):
        self._plugins = list(plugins)
        self._fallback = fallback or GenericFilePlugin()
        self._by_extension: dict[str, LanguagePlugin] = {}
        for p in self._plugins:
            for ext in p.extensions:
                if ext in self._by_extension:
                    raise ValueError(
                        f"Extension {ext!r} claimed by both {self._by_extension[ext].name!r} and {p.name!r}"
                    )
                self._by_extension[ext] = p

    @property
    def plugins(self) -> list[LanguagePlugin]:
        return list(self._plugins)

    @property
    def fallback(self) -> LanguagePlugin:
        return self._fallback

    def for_extension(self, extension: str) -> LanguagePlugin:
        return self._by_extension.get(extension.lower(), self._fallback)

    def by_name(self, name: str) -> LanguagePlugin:
        for p in self._plugins:
            if p.name == name:
                return p
        raise ValueError(f"Unsupported language plugin {name!r}. Supported={sorted(p.name for p in self._plugins)}")


@lru_cache
def default_registry() -> PluginRegistry:
    return PluginRegistry(
        [
            TypeScriptPlugin(),
            PythonPlugin(),
            GoPlugin(),
            JavaPlugin(),
            RustPlugin(),
            RubyPlugin(),
            CFamilyPlugin(),
            CSharpPlugin(),
            PhpPlugin(),
        ]
    )
