"""
Logging Configuration

Structured logging through structlog on top of the standard library.

Development renders colored key/value lines:
    2024-01-15T10:30:00Z [info     ] Post created   post_id=65a4... email=alice@example.com

Everything else renders one JSON object per line:
    {"timestamp": "2024-01-15T10:30:00Z", "level": "info", "event": "Post created", ...}

Usage:
    from declutter_api.logging import logger, log_context

    logger.info("Post created", post_id=post_id)
    log_context(email=email)  # attached to every later log line in this context
"""

import logging
import sys
from typing import Any

import structlog
from structlog.typing import Processor

from declutter_api.config import settings


def setup_logging() -> None:
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    )

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.is_development:
        processors: list[Processor] = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=True),
        ]
    else:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def log_context(**kwargs: Any) -> None:
    """Bind key/value pairs to every subsequent log call in the current context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_log_context() -> None:
    structlog.contextvars.clear_contextvars()


setup_logging()

logger = get_logger("declutter")
