"""Main FastAPI application for dockfleet."""

from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ._version import __version__
from .api import health, hosts, websocket
from .config import settings
from .services.inventory import create_inventory
from .services.registry import ConnectionRegistry
from .services.session import SessionManager
from .utils.error_handlers import register_error_handlers
from .utils.logging import setup_logging
from .utils.shutdown import GracefulShutdownHandler, setup_graceful_shutdown

# Setup logging
setup_logging()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting dockfleet", version=__version__)

    registry = ConnectionRegistry()
    session_manager = SessionManager(registry)
    inventory = create_inventory()
    shutdown_handler = GracefulShutdownHandler()
    setup_graceful_shutdown(shutdown_handler, session_manager)

    app.state.registry = registry
    app.state.session_manager = session_manager
    app.state.inventory = inventory
    app.state.shutdown_handler = shutdown_handler

    if settings.api_debug:
        logger.warning("Debug mode is enabled - disable in production")

    logger.info(
        "dockfleet startup completed",
        engine_port=settings.engine_port,
        inventory_source=settings.inventory_source,
        heartbeat_interval=settings.heartbeat_interval_seconds,
    )

    yield

    logger.info("Shutting down dockfleet")
    try:
        await shutdown_handler.shutdown()
    except Exception as e:
        logger.error("Error during graceful shutdown", error=str(e))
    logger.info("dockfleet shutdown completed")


api_config = settings.api

app = FastAPI(
    title="dockfleet",
    description="Real-time logs, stats, terminals and deployments for containers on remote hosts",
    version=__version__,
    docs_url="/docs" if api_config.enable_docs else None,
    redoc_url="/redoc" if api_config.enable_docs else None,
    debug=api_config.debug,
    lifespan=lifespan,
)

if api_config.enable_cors:
    origins = api_config.allowed_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
    )
    logger.info("CORS enabled", origins=origins)

register_error_handlers(app)

app.include_router(health.router, tags=["health"])
app.include_router(hosts.router, prefix="/api/v1", tags=["hosts"])
app.include_router(websocket.router, tags=["websocket"])


def run_server():
    logger.info("Starting server", host=api_config.host, port=api_config.port)
    uvicorn.run(
        "dockfleet.main:app",
        host=api_config.host,
        port=api_config.port,
        reload=api_config.reload,
        log_level=settings.logging.level.lower(),
    )


if __name__ == "__main__":
    run_server()
