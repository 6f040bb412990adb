"""
Structured logging configuration for the cardauth service.

Logs carry these standard fields:
- timestamp: ISO 8601 timestamp
- event: the log event name (first positional argument)
- request_id: UUID for tracing a request end-to-end (bound by the middleware)
- level / logger: severity and emitting module

Production renders one JSON object per line; other environments use the
structlog console renderer.
"""
from __future__ import annotations

import logging
import sys
import uuid
from typing import Any, Optional

import structlog

from cardauth.core.config import get_settings


def configure_logging(level: Optional[str] = None, json_output: Optional[bool] = None) -> None:
    """Configure stdlib logging and structlog with context processors."""
    settings = get_settings()
    level_name = (level or settings.log_level).upper()
    use_json = settings.log_json if json_output is None else json_output

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level_name)

    renderer: Any = structlog.processors.JSONRenderer() if use_json else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso", key="timestamp"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """Get a configured logger instance."""
    return structlog.get_logger(name)


def generate_request_id() -> str:
    return str(uuid.uuid4())


def bind_request_context(request_id: str, **extra: Any) -> None:
    """Bind request-scoped fields that every subsequent log line will carry."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, **extra)


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()
