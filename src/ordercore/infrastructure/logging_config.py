"""structlog configuration.

Log records go through the standard library so third-party loggers share
one handler.  Output is written to stderr to keep command output on
stdout clean.
"""

from __future__ import annotations

import logging
import sys

import structlog

from ordercore.infrastructure.settings import Settings


def configure_logging(settings: Settings) -> None:
    """(Re)configure logging; safe to call once per CLI invocation."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(settings.log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(settings.log_level)
    root_logger.handlers = [handler]

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if settings.log_json:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )
