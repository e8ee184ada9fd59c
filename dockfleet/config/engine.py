"""Container engine configuration."""

from pydantic import Field
from pydantic_settings import BaseSettings


class EngineConfig(BaseSettings):
    """Settings for talking to a host's container engine API."""

    port: int = Field(default=2375, ge=1, le=65535, alias="engine_port")
    connect_timeout: float = Field(default=5.0, gt=0, alias="engine_connect_timeout")
    request_timeout: int = Field(default=60, ge=1, alias="engine_request_timeout")
    api_version: str | None = Field(default=None, alias="engine_api_version")

    class Config:
        env_prefix = ""
        extra = "ignore"
