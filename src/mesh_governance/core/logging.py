"""Structured logging for the governance engine.

Every module logs through ``get_logger(__name__)`` with event-style messages
and keyword context, e.g. ``logger.info("grant_revoked", grant_id=...)``.
"""

import logging
import sys
from enum import Enum
from typing import Any, Optional

import structlog

SERVICE_NAME = "mesh-governance"


def _add_service_name(_logger: Any, _method: str, event_dict: dict) -> dict:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def _render_enums(_logger: Any, _method: str, event_dict: dict) -> dict:
    """Log enum members by value so JSON output stays flat."""
    for key, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[key] = value.value
    return event_dict


def configure_logging(level: str = "INFO", json_format: bool = False) -> None:
    """Configure structlog for the process.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Emit one JSON object per line instead of console output
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)

    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _add_service_name,
        _render_enums,
        structlog.processors.StackInfoRenderer(),
    ]
    if json_format:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger bound to ``name``."""
    return structlog.get_logger(name)


def bind_actor(actor_id: Optional[str]) -> None:
    """Attach the acting principal to every log line of the current context."""
    structlog.contextvars.clear_contextvars()
    if actor_id:
        structlog.contextvars.bind_contextvars(actor_id=actor_id)
