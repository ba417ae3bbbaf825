"""FastAPI application factory for the indexer service."""

from __future__ import annotations

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from code_graph_indexer.core.graph_contract import GraphContractViolation
from code_graph_indexer.persistence.graph_store import GraphStoreError, get_graph_store


logger = structlog.get_logger(__name__)


def _error_response(status_code: int, error_type: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"status": "error", "detail": {"error_type": error_type, "message": message}},
    )


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(GraphStoreError)
    async def graph_store_error_handler(request: Request, exc: GraphStoreError) -> JSONResponse:
        logger.error("api.graph_store_error", path=request.url.path, message=str(exc))
        return _error_response(503, "Graph store unavailable", str(exc))

    @app.exception_handler(GraphContractViolation)
    async def contract_violation_handler(request: Request, exc: GraphContractViolation) -> JSONResponse:
        logger.error("api.graph_contract_violation", path=request.url.path, message=str(exc))
        return _error_response(500, "Graph contract violation", str(exc))


class FastAPIFactory:
    """Create FastAPI apps with shared configuration."""

    @staticmethod
    def create_app(
        title: str,
        description: str,
        version: str,
        enable_cors: bool = True,
    ) -> FastAPI:
        @asynccontextmanager
        async def lifespan(app: FastAPI):
            yield
            # Only a store that was actually opened gets closed.
            if get_graph_store.cache_info().currsize:
                close = getattr(get_graph_store(), "close", None)
                if close is not None:
                    close()
                    logger.info("graph_store.closed")
            logger.info("app.shutdown")

        app = FastAPI(title=title, description=description, version=version, lifespan=lifespan)
        register_exception_handlers(app)

        if enable_cors:
            app.add_middleware(
                CORSMiddleware,
                allow_origins=["*"],
                allow_credentials=True,
                allow_methods=["*"],
                allow_headers=["*"],
            )

        @app.get("/health", tags=["Health"])
        def health_check():
            """Liveness probe."""
            return {"status": "ok"}

        return app
