"""Health check endpoint."""

from datetime import UTC, datetime

from fastapi import APIRouter, Request

from .._version import __version__

router = APIRouter()


@router.get("/health", summary="Basic health check")
async def basic_health_check(request: Request):
    """Liveness of the service itself; engines on hosts are not contacted."""
    registry = getattr(request.app.state, "registry", None)
    return {
        "status": "healthy",
        "version": __version__,
        "timestamp": datetime.now(UTC).isoformat(),
        "service": "dockfleet",
        "active_sessions": len(registry) if registry is not None else 0,
    }
