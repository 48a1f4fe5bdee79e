from __future__ import annotations

import logging
import sys
from typing import Any

import structlog


def setup_logging(*, debug: bool = False) -> None:
    level = logging.DEBUG if debug else logging.INFO
    renderer: Any
    if sys.stderr.isatty():
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )
    # aiohttp logs through the stdlib; keep its access log quiet unless debugging
    logging.basicConfig(level=level, stream=sys.stderr, format="%(message)s")
    logging.getLogger("aiohttp.access").setLevel(
        logging.DEBUG if debug else logging.WARNING
    )


def get_logger(name: str | None = None) -> Any:
    return structlog.get_logger(name)


def bind_message_context(*, sender: str | None, message_sid: str | None) -> None:
    structlog.contextvars.bind_contextvars(sender=sender, message_sid=message_sid)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
