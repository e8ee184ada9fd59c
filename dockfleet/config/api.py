"""HTTP/WebSocket server configuration."""

from pydantic import Field
from pydantic_settings import BaseSettings


class APIConfig(BaseSettings):
    """Where the server listens and which browser-facing extras it enables."""

    host: str = Field(default="0.0.0.0", alias="api_host")
    port: int = Field(default=3000, ge=1, le=65535, alias="api_port")
    debug: bool = Field(default=False, alias="api_debug")
    reload: bool = Field(default=False, alias="api_reload")

    # The dashboard is served from another origin in development
    enable_cors: bool = Field(default=False)
    cors_origins: list[str] = Field(default_factory=list, description="Empty means any origin")

    enable_docs: bool = Field(default=True, description="Serve /docs and /redoc")

    @property
    def allowed_origins(self) -> list[str]:
        return self.cors_origins or ["*"]

    class Config:
        env_prefix = ""
        extra = "ignore"
