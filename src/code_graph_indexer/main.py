"""Code Graph Indexer FastAPI application.

- FastAPI app wiring via FastAPIFactory
- POST /index runs the full indexing pipeline against the configured graph store
"""

from __future__ import annotations

import structlog
from fastapi import FastAPI

from code_graph_indexer.api.app_factory import FastAPIFactory
from code_graph_indexer.api.routers.index import router as index_router
from code_graph_indexer.config import get_code_graph_indexer_settings
from code_graph_indexer.configuration.logging_config import configure_logging
from code_graph_indexer.observability.tracing import init_tracing

# Initialize logging before creating the app
configure_logging(get_code_graph_indexer_settings().log_level)
logger = structlog.get_logger(__name__)
init_tracing("code-graph-indexer")

app: FastAPI = FastAPIFactory.create_app(
    title="Code Graph Indexer",
    description="Polyglot code-graph construction with shadow-versioned re-indexing",
    version="0.1.0",
    enable_cors=True,
)

app.include_router(index_router)


if __name__ == "__main__":
    settings = get_code_graph_indexer_settings()
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.API_PORT)
