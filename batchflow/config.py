"""
Configuration settings for batchflow.

Uses Pydantic Settings to load environment variables for the generator ticks,
the three sink stores (work queue, audit trail, analytics), the dispatcher and
logging.
"""
from __future__ import annotations

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def build_dsn(user: str, password: str, host: str, port: int, name: str) -> str:
    """Compose a PostgreSQL DSN string."""
    return f"postgresql://{user}:{password}@{host}:{port}/{name}"


class Settings(BaseSettings):
    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # Generator ticks
    batch_creation_enabled: bool = Field(True, alias="BATCH_CREATION_ENABLED")
    batch_update_enabled: bool = Field(True, alias="BATCH_UPDATE_ENABLED")
    batch_creation_interval_seconds: float = Field(65.0, alias="BATCH_CREATION_INTERVAL")
    batch_update_interval_seconds: float = Field(45.0, alias="BATCH_UPDATE_INTERVAL")
    batch_size_min: int = Field(2, alias="BATCH_SIZE_MIN")
    batch_size_max: int = Field(5, alias="BATCH_SIZE_MAX")

    # Work-queue store
    queue_db_host: str = Field("localhost", alias="QUEUE_DB_HOST")
    queue_db_port: int = Field(5432, alias="QUEUE_DB_PORT")
    queue_db_user: str = Field("postgres", alias="QUEUE_DB_USER")
    queue_db_password: str = Field("postgres", alias="QUEUE_DB_PASSWORD")
    queue_db_name: str = Field("batchflow_queue", alias="QUEUE_DB_NAME")

    # Audit-trail store
    audit_db_host: str = Field("localhost", alias="AUDIT_DB_HOST")
    audit_db_port: int = Field(5432, alias="AUDIT_DB_PORT")
    audit_db_user: str = Field("postgres", alias="AUDIT_DB_USER")
    audit_db_password: str = Field("postgres", alias="AUDIT_DB_PASSWORD")
    audit_db_name: str = Field("batchflow_audit", alias="AUDIT_DB_NAME")
    audit_schema: str = Field("paydash", alias="AUDIT_SCHEMA")

    # Analytics store
    analytics_db_path: str = Field("analytics.duckdb", alias="ANALYTICS_DB_PATH")
    analytics_batch_size: int = Field(100, alias="ANALYTICS_BATCH_SIZE")
    analytics_flush_interval_seconds: float = Field(5.0, alias="ANALYTICS_FLUSH_INTERVAL")
    analytics_stats_interval_seconds: float = Field(30.0, alias="ANALYTICS_STATS_INTERVAL")
    analytics_shutdown_timeout_seconds: float = Field(10.0, alias="ANALYTICS_SHUTDOWN_TIMEOUT")

    # Dispatcher
    poll_timeout_seconds: float = Field(1.0, alias="POLL_TIMEOUT")

    # Connection pools
    db_pool_min_size: int = Field(1, alias="DB_POOL_MIN_SIZE")
    db_pool_max_size: int = Field(10, alias="DB_POOL_MAX_SIZE")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @model_validator(mode="after")
    def _check_batch_size_range(self) -> "Settings":
        if self.batch_size_min < 1:
            raise ValueError("BATCH_SIZE_MIN must be at least 1")
        if self.batch_size_max < self.batch_size_min:
            raise ValueError("BATCH_SIZE_MAX must be greater than or equal to BATCH_SIZE_MIN")
        return self

    @property
    def queue_dsn(self) -> str:
        return build_dsn(
            self.queue_db_user,
            self.queue_db_password,
            self.queue_db_host,
            self.queue_db_port,
            self.queue_db_name,
        )

    @property
    def audit_dsn(self) -> str:
        return build_dsn(
            self.audit_db_user,
            self.audit_db_password,
            self.audit_db_host,
            self.audit_db_port,
            self.audit_db_name,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "build_dsn", "get_settings"]
