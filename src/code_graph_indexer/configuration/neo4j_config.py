"""
Neo4j graph store connection settings.
"""

from functools import lru_cache

from pydantic import Field, field_validator

from .base_config import BaseConfig


class Neo4jSettings(BaseConfig):
    """
    Connection and retry settings for the Neo4j-backed graph store.
    """
    NEO4J_URI: str = Field(default="bolt://localhost:7687", description="Neo4j connection URI")
    NEO4J_USERNAME: str = Field(default="neo4j", description="Neo4j username")
    NEO4J_PASSWORD: str = Field(default="neo4j123", description="Neo4j password")
    NEO4J_DATABASE: str = Field(default="neo4j", description="Neo4j database name")
    NEO4J_CONNECTION_TIMEOUT: float = Field(default=30.0, description="Neo4j connection lifetime in seconds")
    NEO4J_MAX_CONNECTION_POOL_SIZE: int = Field(default=50, description="Neo4j maximum connection pool size")
    NEO4J_WRITE_BATCH_SIZE: int = Field(default=500, description="Rows per UNWIND batch for bulk upserts")
    RETRY_MAX_ATTEMPTS: int = Field(default=3, description="Maximum attempts for a transient write failure")
    RETRY_BACKOFF_BASE_SEC: float = Field(default=2.0, description="Exponential backoff base in seconds")

    @field_validator("NEO4J_CONNECTION_TIMEOUT", "RETRY_BACKOFF_BASE_SEC")
    @classmethod
    def validate_timeout(cls, v):
        """Validate that timeout values are positive."""
        if v <= 0:
            raise ValueError(f"Timeout values must be positive, got {v}")
        return v

    @field_validator("RETRY_MAX_ATTEMPTS", "NEO4J_MAX_CONNECTION_POOL_SIZE", "NEO4J_WRITE_BATCH_SIZE")
    @classmethod
    def validate_positive_int(cls, v):
        """Validate that integer values are positive."""
        if v <= 0:
            raise ValueError(f"Integer values must be positive, got {v}")
        return v

    @property
    def auth(self) -> tuple[str, str]:
        return self.NEO4J_USERNAME, self.NEO4J_PASSWORD


@lru_cache()
def get_neo4j_settings() -> Neo4jSettings:
    """
    Return the cached Neo4j settings instance.
    """
    return Neo4jSettings()
