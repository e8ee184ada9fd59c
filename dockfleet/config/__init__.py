"""Configuration management for dockfleet.

A single flat Settings class backed by environment variables (and an
optional ``.env`` file), plus grouped read-only views for the parts of the
application that only care about one concern.

Usage:
    from dockfleet.config import settings

    # Flat access
    settings.engine_port
    settings.heartbeat_interval_seconds

    # Grouped access
    settings.engine.port
    settings.sessions.terminal_shells
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .api import APIConfig
from .engine import EngineConfig
from .inventory import InventoryConfig
from .logging import LoggingConfig
from .sessions import SessionsConfig


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore")

    # API Configuration
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=3000, ge=1, le=65535)
    api_debug: bool = Field(default=False)
    api_reload: bool = Field(default=False)

    # Container engine
    engine_port: int = Field(default=2375, ge=1, le=65535, description="Engine API port on every host")
    engine_connect_timeout: float = Field(
        default=5.0,
        gt=0,
        description="Seconds to wait for a host's engine to answer when a session opens",
    )
    engine_request_timeout: int = Field(default=60, ge=1)
    engine_api_version: str | None = Field(
        default=None,
        description="Pin the engine API version (None = negotiate with the host)",
    )

    # Sessions
    heartbeat_interval_seconds: float = Field(default=30.0, gt=0)
    log_default_tail: int = Field(default=100, ge=0)
    log_default_timestamps: bool = Field(default=True)
    log_history_max_chars: int = Field(
        default=0,
        ge=0,
        description="Cap on accumulated log text per session (0 = unbounded)",
    )
    stats_poll_interval_seconds: float = Field(
        default=0.0,
        ge=0,
        description="Poll one-shot stats at this interval instead of streaming (0 = stream)",
    )
    terminal_shells: list[str] = Field(default_factory=lambda: ["/bin/bash", "/bin/sh"])
    terminal_term: str = Field(default="xterm-256color")
    deploy_on_failure_max_retries: int = Field(default=3, ge=0)

    # Host inventory
    inventory_source: str = Field(default="static")
    inventory_static_hosts: str | None = Field(
        default=None,
        description="Comma-separated host addresses used when inventory_source=static",
    )
    inventory_probe_timeout: float = Field(default=5.0, gt=0)
    cloudflare_account_id: str | None = Field(default=None)
    cloudflare_api_token: str | None = Field(default=None)
    cloudflare_api_base: str = Field(default="https://api.cloudflare.com/client/v4")

    # Logging Configuration
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")
    log_file: str | None = Field(default=None)
    log_max_size_mb: int = Field(default=100, ge=1)
    log_backup_count: int = Field(default=5, ge=1)
    enable_access_logs: bool = Field(default=True)

    # Development Configuration
    enable_cors: bool = Field(default=False)
    cors_origins: list[str] = Field(default_factory=list)
    enable_docs: bool = Field(default=True)

    @field_validator("inventory_source")
    @classmethod
    def validate_inventory_source(cls, v):
        """Only the WARP device API and a static list are supported."""
        v = v.lower().strip()
        if v not in ("warp", "static"):
            raise ValueError("inventory_source must be 'warp' or 'static'")
        return v

    @field_validator("terminal_shells")
    @classmethod
    def validate_terminal_shells(cls, v):
        """At least one shell candidate is required."""
        shells = [shell.strip() for shell in v if shell.strip()]
        if not shells:
            raise ValueError("terminal_shells must name at least one shell")
        return shells

    # ========================================================================
    # GROUPED CONFIG ACCESS
    # ========================================================================

    @property
    def api(self) -> APIConfig:
        """Access API configuration group."""
        return APIConfig(
            api_host=self.api_host,
            api_port=self.api_port,
            api_debug=self.api_debug,
            api_reload=self.api_reload,
            enable_cors=self.enable_cors,
            cors_origins=self.cors_origins,
            enable_docs=self.enable_docs,
        )

    @property
    def engine(self) -> EngineConfig:
        """Access container engine configuration group."""
        return EngineConfig(
            engine_port=self.engine_port,
            engine_connect_timeout=self.engine_connect_timeout,
            engine_request_timeout=self.engine_request_timeout,
            engine_api_version=self.engine_api_version,
        )

    @property
    def sessions(self) -> SessionsConfig:
        """Access session configuration group."""
        return SessionsConfig(
            heartbeat_interval_seconds=self.heartbeat_interval_seconds,
            log_default_tail=self.log_default_tail,
            log_default_timestamps=self.log_default_timestamps,
            log_history_max_chars=self.log_history_max_chars,
            stats_poll_interval_seconds=self.stats_poll_interval_seconds,
            terminal_shells=self.terminal_shells,
            terminal_term=self.terminal_term,
            deploy_on_failure_max_retries=self.deploy_on_failure_max_retries,
        )

    @property
    def inventory(self) -> InventoryConfig:
        """Access host inventory configuration group."""
        return InventoryConfig(
            inventory_source=self.inventory_source,
            inventory_static_hosts=self.inventory_static_hosts,
            inventory_probe_timeout=self.inventory_probe_timeout,
            cloudflare_account_id=self.cloudflare_account_id,
            cloudflare_api_token=self.cloudflare_api_token,
            cloudflare_api_base=self.cloudflare_api_base,
        )

    @property
    def logging(self) -> LoggingConfig:
        """Access logging configuration group."""
        return LoggingConfig(
            log_level=self.log_level,
            log_format=self.log_format,
            log_file=self.log_file,
            log_max_size_mb=self.log_max_size_mb,
            log_backup_count=self.log_backup_count,
            enable_access_logs=self.enable_access_logs,
        )

    # ========================================================================
    # HELPER METHODS
    # ========================================================================

    def get_static_hosts(self) -> list[str]:
        """Parse the comma-separated static host list."""
        if not self.inventory_static_hosts:
            return []
        return [host.strip() for host in self.inventory_static_hosts.split(",") if host.strip()]

    def get_engine_url(self, host: str) -> str:
        """Base URL of the engine API on a host."""
        return f"http://{host}:{self.engine_port}"


# Global settings instance
settings = Settings()

__all__ = [
    "Settings",
    "settings",
    "APIConfig",
    "EngineConfig",
    "SessionsConfig",
    "InventoryConfig",
    "LoggingConfig",
]
