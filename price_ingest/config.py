"""
Configuration settings for the price ingestion pipeline.

Uses Pydantic Settings to load environment variables for the database
connection, connection-pool limits, logging, and ingestion defaults.
`DB_PASSWORD` has no default: loading settings without it fails fast.
"""
from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ONE_MIB = 1024 * 1024


class Settings(BaseSettings):
    # Database
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("", alias="DB_PASSWORD", validate_default=True)
    db_name: str = Field("healthcare_saver", alias="DB_NAME")
    db_ssl: bool = Field(False, alias="DB_SSL")

    # Connection pool
    # Connections kept open past max_idle; matches the default worker count.
    db_pool_min_size: int = Field(10, alias="DB_POOL_MIN_SIZE", ge=0)
    db_pool_max_size: int = Field(25, alias="DB_POOL_MAX_SIZE")
    db_pool_max_lifetime: float = Field(300.0, alias="DB_POOL_MAX_LIFETIME")
    db_pool_max_idle: float = Field(600.0, alias="DB_POOL_MAX_IDLE")
    db_pool_timeout: float = Field(30.0, alias="DB_POOL_TIMEOUT")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # Ingestion defaults
    ingest_workers: int = Field(10, alias="INGEST_WORKERS", ge=1)
    ingest_max_line_bytes: int = Field(ONE_MIB, alias="INGEST_MAX_LINE_BYTES", gt=0)
    ingest_progress_every: int = Field(1000, alias="INGEST_PROGRESS_EVERY", gt=0)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("db_password")
    @classmethod
    def _require_password(cls, value: str) -> str:
        if not value:
            raise ValueError("DB_PASSWORD environment variable is required")
        return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["ONE_MIB", "Settings", "get_settings"]
