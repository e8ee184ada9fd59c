"""Graceful shutdown handling for the application."""

import asyncio
from typing import Awaitable, Callable, List

import structlog

logger = structlog.get_logger(__name__)

CALLBACK_TIMEOUT_SECONDS = 10.0


class GracefulShutdownHandler:
    """Handler for graceful application shutdown."""

    def __init__(self, callback_timeout: float = CALLBACK_TIMEOUT_SECONDS):
        self._shutdown_callbacks: List[Callable[[], Awaitable[None]]] = []
        self._is_shutting_down = False
        self._shutdown_lock = asyncio.Lock()
        self.callback_timeout = callback_timeout

    @property
    def is_shutting_down(self) -> bool:
        return self._is_shutting_down

    def add_shutdown_callback(self, callback: Callable[[], Awaitable[None]]) -> None:
        """Add a callback to be executed during shutdown."""
        self._shutdown_callbacks.append(callback)

    async def shutdown(self) -> None:
        """Run callbacks in reverse registration order, each under a timeout."""
        async with self._shutdown_lock:
            if self._is_shutting_down:
                return

            self._is_shutting_down = True
            logger.info("Starting graceful shutdown")

            for callback in reversed(self._shutdown_callbacks):
                callback_name = getattr(callback, "__name__", str(callback))
                try:
                    await asyncio.wait_for(callback(), timeout=self.callback_timeout)
                except asyncio.TimeoutError:
                    logger.warning(f"Shutdown callback {callback_name} timed out after {self.callback_timeout} seconds")
                except Exception as e:
                    logger.error(f"Error in shutdown callback {callback_name}", error=str(e))

            logger.info("Graceful shutdown completed")


def session_cleanup(session_manager) -> Callable[[], Awaitable[None]]:
    """Shutdown callback that closes every live WebSocket session."""

    async def close_sessions() -> None:
        logger.info("Closing WebSocket sessions", count=len(session_manager.registry))
        await session_manager.shutdown()

    return close_sessions


async def flush_logs() -> None:
    """Give pending log writes a moment to land."""
    await asyncio.sleep(0.1)
    logger.info("Logs flushed")


def setup_graceful_shutdown(handler: GracefulShutdownHandler, session_manager) -> None:
    """Register the application's shutdown callbacks (run in reverse order)."""
    handler.add_shutdown_callback(flush_logs)
    handler.add_shutdown_callback(session_cleanup(session_manager))
    logger.info("Graceful shutdown handling configured")
