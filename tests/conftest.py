import pytest

from code_graph_indexer.config import get_code_graph_indexer_settings
from code_graph_indexer.persistence.graph_store import get_graph_store
from code_graph_indexer.plugins.registry import default_registry


@pytest.fixture(autouse=True)
def _memory_graph_store(monkeypatch):
    """Every test gets a fresh in-process graph store and freshly read settings."""
    monkeypatch.setenv("GRAPH_STORE_BACKEND", "memory")
    monkeypatch.setenv("PRECISE_ENABLED", "false")
    get_code_graph_indexer_settings.cache_clear()
    get_graph_store.cache_clear()
    default_registry.cache_clear()
    yield
    get_code_graph_indexer_settings.cache_clear()
    get_graph_store.cache_clear()
