"""API routers for dockfleet."""

from . import health, hosts, websocket

__all__ = ["health", "hosts", "websocket"]
