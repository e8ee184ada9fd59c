"""Structured logging for dockfleet.

Every module logs through ``structlog.get_logger(__name__)`` with key/value
context (connection id, container id, topic, host). ``setup_logging()`` is
called once at import of the application module.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import List

import structlog

from .._version import __version__
from ..config import settings
from ..config.logging import LoggingConfig

# Chatty libraries on the engine and HTTP paths
QUIET_LOGGERS = ("httpx", "httpcore", "docker", "urllib3", "uvicorn.access")


def add_service_context(logger, method_name, event_dict):
    """Stamp every entry with the service name and version."""
    event_dict.setdefault("service", "dockfleet")
    event_dict.setdefault("version", __version__)
    return event_dict


def _processors(json_output: bool) -> List:
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        add_service_context,
    ]
    processors.append(structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer())
    return processors


def _rotating_handler(config: LoggingConfig, level: int) -> logging.Handler:
    path = Path(config.file)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        filename=path,
        maxBytes=config.max_size_mb * 1024 * 1024,
        backupCount=config.backup_count,
        encoding="utf-8",
    )
    # structlog has already rendered the entry
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.setLevel(level)
    return handler


def setup_logging() -> None:
    """Configure stdlib logging and structlog from settings."""
    config = settings.logging
    level = config.level_number

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    if config.file:
        logging.getLogger().addHandler(_rotating_handler(config, level))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    if config.enable_access_logs:
        logging.getLogger("uvicorn.access").setLevel(logging.INFO)

    structlog.configure(
        processors=_processors(config.json_output),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
