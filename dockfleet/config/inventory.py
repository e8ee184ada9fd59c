"""Host inventory configuration."""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class InventoryConfig(BaseSettings):
    """Where hosts come from and how they are probed."""

    source: Literal["warp", "static"] = Field(default="static", alias="inventory_source")
    static_hosts: str | None = Field(default=None, alias="inventory_static_hosts")
    probe_timeout: float = Field(default=5.0, gt=0, alias="inventory_probe_timeout")

    # Cloudflare WARP device listing
    cloudflare_account_id: str | None = Field(default=None)
    cloudflare_api_token: str | None = Field(default=None)
    cloudflare_api_base: str = Field(default="https://api.cloudflare.com/client/v4")

    class Config:
        env_prefix = ""
        extra = "ignore"
