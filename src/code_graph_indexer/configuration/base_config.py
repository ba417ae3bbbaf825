"""
Base settings class shared by every settings group of the indexer.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """
    Settings groups inherit from this class so they all read the same `.env` file
    with the same (case-sensitive) environment variable names.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )
