from __future__ import annotations

import logging
import sys

import structlog

from urs.core.config import settings


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """Configure structured logging for migration auditability/traceability."""
    level_name = (level or settings.log_level).upper()
    renderer = (
        structlog.dev.ConsoleRenderer(colors=False)
        if (fmt or settings.log_format) == "console"
        else structlog.processors.JSONRenderer()
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level_name, logging.INFO),
        force=True,
    )

    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.stdlib.add_log_level,
            structlog.contextvars.merge_contextvars,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
