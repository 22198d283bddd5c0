"""
Configuration settings for pgmodel.

Uses Pydantic Settings to load environment variables for the database
connection, pool sizing, and logging. Model classes never read settings
directly; only the infrastructure and CLI layers do.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("postgres", alias="DB_PASSWORD")
    db_name: str = Field("pgmodel", alias="DB_NAME")
    database_url: Optional[str] = Field(None, alias="DATABASE_URL")

    # Pool
    db_pool_min_size: int = Field(1, alias="DB_POOL_MIN_SIZE")
    db_pool_max_size: int = Field(10, alias="DB_POOL_MAX_SIZE")
    db_command_timeout: Optional[float] = Field(None, alias="DB_COMMAND_TIMEOUT")
    db_stream_prefetch: int = Field(50, alias="DB_STREAM_PREFETCH")

    # Logging
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")
    query_log: bool = Field(False, alias="QUERY_LOG")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
