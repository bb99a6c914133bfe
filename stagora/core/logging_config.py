"""
Logging setup - stdlib logging rendered through structlog, configured once
at startup.

Modules keep using `logging.getLogger(__name__)`; their records go through
the structlog processor chain and come out as one JSON object per line (or
coloured key/value pairs with LOG_FORMAT=console).
"""

import logging
import sys

import structlog

from stagora.core.config import get_settings


def build_formatter(log_format: str = "json") -> structlog.stdlib.ProcessorFormatter:
    pre_chain = [
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
    ]
    if log_format == "console":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    return structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        foreign_pre_chain=pre_chain,
    )


def configure_logging() -> None:
    settings = get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(build_formatter(settings.log_format))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)

    # uvicorn logs through the root handler
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        log = logging.getLogger(name)
        log.handlers = []
        log.propagate = True

    # pymongo is chatty at DEBUG
    logging.getLogger("pymongo").setLevel(max(level, logging.INFO))

    structlog.configure(
        processors=[
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
