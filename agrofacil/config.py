"""
Configuration settings for AgroFácil.

Uses Pydantic Settings to load environment variables for local storage, the
remote Postgres backend, connectivity probing and logging.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # Local storage
    storage_dir: Path = Field(Path(".agrofacil"), alias="STORAGE_DIR")
    storage_quota_bytes: int = Field(5 * 1024 * 1024, alias="STORAGE_QUOTA_BYTES")

    # Remote backend
    remote_enabled: bool = Field(True, alias="REMOTE_ENABLED")
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("postgres", alias="DB_PASSWORD")
    db_name: str = Field("agrofacil", alias="DB_NAME")
    remote_timeout_seconds: float = Field(5.0, alias="REMOTE_TIMEOUT_SECONDS")
    remote_pool_min_size: int = Field(1, alias="REMOTE_POOL_MIN_SIZE")
    remote_pool_max_size: int = Field(4, alias="REMOTE_POOL_MAX_SIZE")

    # Connectivity
    connectivity_probe_interval: float = Field(15.0, alias="CONNECTIVITY_PROBE_INTERVAL")
    connectivity_probe_timeout: float = Field(2.0, alias="CONNECTIVITY_PROBE_TIMEOUT")

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
