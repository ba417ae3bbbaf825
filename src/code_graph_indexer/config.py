"""Service-specific configuration for the code graph indexer."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field

from code_graph_indexer.configuration.base_config import BaseConfig


GraphStoreBackend = Literal["memory", "neo4j", "repository_service"]


class CodeGraphIndexerSettings(BaseConfig):
    """Settings specific to the code graph indexer."""

    API_PORT: int = Field(default=8000, description="The port the API will run on")

    LOG_LEVEL: str = Field(default="INFO", description="Root log level for structlog/stdlib logging.")

    GRAPH_STORE_BACKEND: GraphStoreBackend = Field(
        default="neo4j",
        description="Where entities/edges are upserted: in-process memory, Neo4j (bolt), or the repository service (HTTP).",
    )

    REPOSITORY_SERVICE_URL: str = Field(
        default="http://neo4j-repository-service:8080",
        description="Base URL of the graph repository service used by the `repository_service` backend.",
    )

    REPOSITORY_SERVICE_TIMEOUT_S: float = Field(default=120.0, gt=0.0)

    MAX_BODY_LINES: int = Field(
        default=3000,
        description="Maximum number of source lines kept in an entity body.",
        ge=1,
    )

    MAX_FILE_BYTES: int = Field(
        default=1_048_576,
        description="Files larger than this are not handed to fallback parsers.",
        ge=1,
    )

    PARSE_WORKERS: int = Field(default=4, description="Thread pool size for fallback parsing.", ge=1)

    PARSE_FILE_TIMEOUT_S: float = Field(
        default=30.0,
        description="Per-file budget for fallback parsing before the file is abandoned.",
        gt=0.0,
    )

    PRECISE_ENABLED: bool = Field(default=True, description="Run external compiler-grade indexers when available.")

    PRECISE_TIMEOUT_S: float = Field(
        default=600.0,
        description="Per-root budget for an external indexer process.",
        gt=0.0,
    )

    HEARTBEAT_EVERY: int = Field(default=100, description="Files processed between heartbeat signals.", ge=1)

    @property
    def log_level(self) -> int:
        level = logging.getLevelName(self.LOG_LEVEL.upper())
        return level if isinstance(level, int) else logging.INFO


@lru_cache()
def get_code_graph_indexer_settings() -> CodeGraphIndexerSettings:
    """Return cached service settings instance."""

    return CodeGraphIndexerSettings()
