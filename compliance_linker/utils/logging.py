"""Structured logging utilities using structlog for engine components."""

import logging
import os
import sys
import uuid
from typing import Any, Optional
import structlog
from structlog.processors import JSONRenderer
from structlog.contextvars import merge_contextvars

IS_TTY = sys.stderr.isatty()
LOG_FORMAT = os.getenv("LOG_FORMAT", "console").lower()
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def configure_structured_logging(level: Optional[str] = None) -> None:
    """
    Configure structured logging with appropriate processors and renderers.

    Uses:
    - Console renderer for development (colorized, human-readable)
    - JSON renderer for production (structured, machine-readable)
    - Context binding for session_id and actor

    Args:
        level: Overrides LOG_LEVEL (e.g. "DEBUG" for --verbose)
    """
    processors = [
        merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if IS_TTY and LOG_FORMAT == "console":
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.plain_traceback,
            )
        )
    else:
        processors.append(JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_structured_logger(
    name: str,
    session_id: Optional[str] = None,
    actor_id: Optional[str] = None,
    **additional_context: Any,
) -> structlog.BoundLogger:
    """
    Get a structured logger with bound context.

    Args:
        name: Logger name (typically module name)
        session_id: Optional linking session ID to bind
        actor_id: Optional acting user ID to bind
        **additional_context: Additional context to bind

    Returns:
        Configured BoundLogger instance with context

    Example:
        >>> logger = get_structured_logger("linking.engine", session_id="abc-123")
        >>> logger.info("bulk_link_started", evidence=3, requirements=4)
    """
    logger = structlog.get_logger(name)

    if session_id:
        logger = logger.bind(session_id=session_id)
    if actor_id:
        logger = logger.bind(actor_id=actor_id)

    if additional_context:
        logger = logger.bind(**additional_context)

    return logger


def new_session_id() -> str:
    """
    Generate an ID for one linking session, used to correlate its log lines.

    Returns:
        UUID string
    """
    return str(uuid.uuid4())


# Configure on module import
configure_structured_logging()


__all__ = [
    "get_structured_logger",
    "new_session_id",
    "configure_structured_logging",
]
