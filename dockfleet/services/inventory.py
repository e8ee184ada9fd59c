"""Host inventory.

Hosts are discovered from an external source (the Cloudflare WARP device
list, or a static list of addresses) and probed for a reachable engine.
Reachability and last-seen times are kept in memory only.
"""

import asyncio
from datetime import UTC, datetime
from typing import Dict, List, Optional, Tuple

import httpx
import structlog

from ..config import settings
from ..models.errors import ServiceUnavailableError
from ..models.hosts import HostInfo, HostMetadata, HostStatus
from .interfaces import HostInventoryInterface

logger = structlog.get_logger(__name__)

# (id, name, address)
DiscoveredHost = Tuple[str, str, str]


class HostStore:
    """In-memory status and last-seen bookkeeping per host."""

    def __init__(self):
        self._hosts: Dict[str, HostMetadata] = {}

    def update_status(self, host_id: str, online: bool) -> HostMetadata:
        """Record a probe result; last_seen only moves forward on success."""
        existing = self._hosts.get(host_id)
        metadata = HostMetadata(
            host_id=host_id,
            status=HostStatus.ONLINE if online else HostStatus.OFFLINE,
            last_seen=datetime.now(UTC) if online else (existing.last_seen if existing else None),
        )
        self._hosts[host_id] = metadata
        return metadata

    def online_count(self) -> int:
        return sum(1 for metadata in self._hosts.values() if metadata.status == HostStatus.ONLINE)


class BaseHostInventory(HostInventoryInterface):
    """Probes discovered hosts and tracks their status."""

    def __init__(self, store: Optional[HostStore] = None, probe_timeout: Optional[float] = None):
        self.store = store or HostStore()
        self.probe_timeout = probe_timeout or settings.inventory_probe_timeout

    async def discover(self) -> List[DiscoveredHost]:
        raise NotImplementedError

    async def check_reachable(self, address: str) -> bool:
        url = f"{settings.get_engine_url(address)}/_ping"
        try:
            async with httpx.AsyncClient(timeout=self.probe_timeout) as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            logger.debug("Engine ping failed", address=address, error=str(e))
            return False
        return response.status_code == 200 and response.text.strip() == "OK"

    async def list_hosts(self) -> List[HostInfo]:
        discovered = await self.discover()
        results = await asyncio.gather(*(self.check_reachable(address) for _, _, address in discovered))

        hosts = []
        for (host_id, name, address), online in zip(discovered, results):
            metadata = self.store.update_status(host_id, online)
            hosts.append(
                HostInfo(
                    id=host_id,
                    name=name,
                    address=address,
                    online=online,
                    last_seen=metadata.last_seen,
                )
            )

        logger.debug("Listed hosts", total=len(hosts), online=sum(1 for host in hosts if host.online))
        return hosts


class StaticHostInventory(BaseHostInventory):
    """Hosts from a fixed list of addresses."""

    def __init__(self, addresses: Optional[List[str]] = None, **kwargs):
        super().__init__(**kwargs)
        self.addresses = settings.get_static_hosts() if addresses is None else list(addresses)

    async def discover(self) -> List[DiscoveredHost]:
        return [(address, address, address) for address in self.addresses]


class WarpDeviceInventory(BaseHostInventory):
    """Hosts enrolled as Cloudflare WARP devices, addressed by their overlay IPv4."""

    def __init__(
        self,
        account_id: Optional[str] = None,
        api_token: Optional[str] = None,
        api_base: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        config = settings.inventory
        self.account_id = account_id or config.cloudflare_account_id
        self.api_token = api_token or config.cloudflare_api_token
        self.api_base = (api_base or config.cloudflare_api_base).rstrip("/")
        self._client = http_client

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_token}",
            "Content-Type": "application/json",
        }

    async def _get(self, client: httpx.AsyncClient, path: str, **params) -> httpx.Response:
        return await client.get(f"{self.api_base}{path}", headers=self._headers(), params=params or None)

    async def discover(self) -> List[DiscoveredHost]:
        if not self.account_id or not self.api_token:
            raise ServiceUnavailableError("cloudflare", "Cloudflare credentials not configured")

        client = self._client or httpx.AsyncClient(timeout=30.0)
        try:
            try:
                response = await self._get(client, f"/accounts/{self.account_id}/devices", policy_id="all")
            except httpx.HTTPError as e:
                raise ServiceUnavailableError("cloudflare", f"Cloudflare API error: {e}")
            if response.status_code != 200:
                raise ServiceUnavailableError("cloudflare", f"Cloudflare API error: {response.reason_phrase}")

            devices = response.json().get("result") or []
            hosts = []
            for device in devices:
                address = await self._device_address(client, device)
                if not address:
                    logger.debug("Skipping device without overlay address", device_id=device.get("id"))
                    continue
                hosts.append((device["id"], device.get("name") or device["id"], address))
            return hosts
        finally:
            if self._client is None:
                await client.aclose()

    async def _device_address(self, client: httpx.AsyncClient, device: Dict) -> Optional[str]:
        metadata = device.get("metadata") or {}
        if metadata.get("ipv4"):
            return metadata["ipv4"]
        try:
            response = await self._get(client, f"/accounts/{self.account_id}/warp/{device['id']}")
        except httpx.HTTPError as e:
            logger.warning("Failed to fetch WARP metadata", device_id=device["id"], error=str(e))
            return None
        if response.status_code != 200:
            return None
        return ((response.json().get("result") or {}).get("metadata") or {}).get("ipv4")


def create_inventory(source: Optional[str] = None) -> BaseHostInventory:
    """Build the inventory selected by configuration."""
    source = source or settings.inventory.source
    if source == "warp":
        return WarpDeviceInventory()
    return StaticHostInventory()


__all__ = [
    "HostStore",
    "BaseHostInventory",
    "StaticHostInventory",
    "WarpDeviceInventory",
    "create_inventory",
]
