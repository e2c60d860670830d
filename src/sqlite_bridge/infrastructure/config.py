"""Configuration management for the driver."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LibraryConfig(BaseModel):
    """Native library configuration."""

    path: Path | None = Field(
        default=None,
        description="Explicit path to libsqlite3 (or a SQLCipher build); searched when unset",
    )


class ConnectionConfig(BaseModel):
    """Defaults applied to every new connection."""

    busy_timeout_ms: int = Field(
        default=5000, ge=0, description="Busy handler timeout in milliseconds (0 disables)"
    )
    persistent_control_statements: bool = Field(
        default=True,
        description="Prepare cached BEGIN/END/ROLLBACK statements with the persistent hint",
    )


class ObservabilityConfig(BaseModel):
    """Observability configuration."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Log level"
    )
    log_format: Literal["json", "console"] = Field(default="json", description="Log format")
    otel_endpoint: str | None = Field(
        default=None, description="OpenTelemetry collector endpoint"
    )
    otel_service_name: str = Field(default="sqlite_bridge", description="Service name for tracing")
    metrics_port: int = Field(default=8001, ge=1, le=65535, description="Prometheus metrics port")


class DriverConfig(BaseSettings):
    """Main configuration for the driver."""

    model_config = SettingsConfigDict(
        env_prefix="SQLITE_BRIDGE_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    library: LibraryConfig = Field(default_factory=LibraryConfig)
    connection: ConnectionConfig = Field(default_factory=ConnectionConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)


@lru_cache
def get_config() -> DriverConfig:
    """Get the global configuration instance."""
    return DriverConfig()
