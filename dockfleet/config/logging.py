"""Logging configuration."""

import logging

from pydantic import Field
from pydantic_settings import BaseSettings


class LoggingConfig(BaseSettings):
    """Where and how structured log entries are written."""

    level: str = Field(default="INFO", alias="log_level", description="Root log level name")
    format: str = Field(default="json", alias="log_format", description="'json' or 'console'")
    file: str | None = Field(default=None, alias="log_file", description="Also write to this rotating file")
    max_size_mb: int = Field(default=100, ge=1, alias="log_max_size_mb")
    backup_count: int = Field(default=5, ge=1, alias="log_backup_count")
    enable_access_logs: bool = Field(default=True, description="Keep uvicorn's per-request access log")

    @property
    def level_number(self) -> int:
        return getattr(logging, self.level.upper(), logging.INFO)

    @property
    def json_output(self) -> bool:
        return self.format.lower() == "json"

    class Config:
        env_prefix = ""
        extra = "ignore"
