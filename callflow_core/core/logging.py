"""
Engine Logging

structlog on top of the stdlib root logger. JSON lines in production,
console output in development. Each turn binds its session id with
`log_context` so every event emitted while handling it carries the id.
"""

import logging
import sys
from contextlib import contextmanager
from enum import Enum
from typing import Any, Iterator, List, Optional

import structlog


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    PRETTY = "pretty"


# Loggers that are too chatty below WARNING
QUIET_LOGGERS = ("httpx", "httpcore", "asyncio")


def _processors(format: str) -> List[Any]:
    renderer: Any
    if format == LogFormat.JSON.value:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
        renderer,
    ]


def setup_logging(
    level: str = "INFO",
    format: str = LogFormat.PRETTY.value,
    service_name: Optional[str] = None,
) -> None:
    """
    Route structlog through a single stdout handler on the root logger.

    Args:
        level: Root log level name
        format: "json" or "pretty"
        service_name: Bound to every log entry when given
    """
    log_level = logging.getLevelName(level.upper())

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=_processors(format),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if service_name:
        structlog.contextvars.bind_contextvars(service=service_name)

    structlog.get_logger(__name__).info("logging_configured", level=level, format=format)


@contextmanager
def log_context(**kwargs: Any) -> Iterator[None]:
    """
    Bind values to every log entry emitted inside the block.

    Usage:
        with log_context(session_id="abc123"):
            logger.info("turn_started")
    """
    tokens = structlog.contextvars.bind_contextvars(**kwargs)
    try:
        yield
    finally:
        structlog.contextvars.reset_contextvars(**tokens)


__all__ = [
    "LogFormat",
    "setup_logging",
    "log_context",
]
