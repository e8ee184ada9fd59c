"""Host inventory endpoints."""

from typing import List

import structlog
from fastapi import APIRouter

from ..dependencies.services import InventoryDep
from ..models.hosts import HostInfo

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("/hosts", response_model=List[HostInfo], summary="List container hosts")
async def list_hosts(inventory: InventoryDep):
    """Hosts known to the inventory, each probed for a reachable engine."""
    hosts = await inventory.list_hosts()
    logger.info("Listed hosts", total=len(hosts), online=sum(1 for host in hosts if host.online))
    return hosts


@router.get("/hosts/{address}/reachable", summary="Probe one host's engine")
async def check_host(address: str, inventory: InventoryDep):
    return {"address": address, "reachable": await inventory.check_reachable(address)}
