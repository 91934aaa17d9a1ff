from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class RegistrySettings(BaseSettings):
    model_config = SettingsConfigDict(extra="forbid")

    database_url: str
    log_level: str = "info"
    # Installs the OTLP span exporter at startup.
    tracing_enabled: bool = True

    # Connection pool (bounded; no overflow connections).
    db_pool_size: int = 5
    db_pool_idle_timeout_s: int = 30
    db_pool_connect_timeout_s: int = 5

    # Object store for package payloads.
    aws_region: str | None = None
    aws_bucket_name: str = "update-registry-packages"


SETTINGS = RegistrySettings()
