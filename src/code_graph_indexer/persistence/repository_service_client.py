from __future__ import annotations

from functools import lru_cache
from typing import Any, Dict

import httpx

from code_graph_indexer.config import get_code_graph_indexer_settings


@lru_cache()
def get_client() -> httpx.Client:
    """
    Process-wide pooled HTTP client for the graph repository service.

    Indexing stages run in sync code paths (parse workers are threads), so a
    sync httpx.Client is used.
    """
    settings = get_code_graph_indexer_settings()
    return httpx.Client(
        base_url=settings.REPOSITORY_SERVICE_URL.rstrip("/"),
        timeout=httpx.Timeout(settings.REPOSITORY_SERVICE_TIMEOUT_S),
        limits=httpx.Limits(max_connections=20, max_keepalive_connections=10, keepalive_expiry=30.0),
        headers={"Accept": "application/json", "Content-Type": "application/json"},
    )


def post_json(client: httpx.Client, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    resp = client.post(path, json=payload)
    resp.raise_for_status()
    data = resp.json()
    if not isinstance(data, dict):
        raise RuntimeError(f"graph repository service returned non-object JSON for {path}")
    return data
