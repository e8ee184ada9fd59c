"""Session, stream and deployment configuration."""

from pydantic import Field
from pydantic_settings import BaseSettings


class SessionsConfig(BaseSettings):
    """Per-container session behaviour."""

    heartbeat_interval_seconds: float = Field(default=30.0, gt=0)

    # Logs topic
    log_default_tail: int = Field(default=100, ge=0)
    log_default_timestamps: bool = Field(default=True)
    log_history_max_chars: int = Field(default=0, ge=0)

    # Stats topic (0 = hold a streaming feed instead of polling)
    stats_poll_interval_seconds: float = Field(default=0.0, ge=0)

    # Terminal topic
    terminal_shells: list[str] = Field(default_factory=lambda: ["/bin/bash", "/bin/sh"])
    terminal_term: str = Field(default="xterm-256color")

    # Deployment
    deploy_on_failure_max_retries: int = Field(default=3, ge=0)

    class Config:
        env_prefix = ""
        extra = "ignore"
