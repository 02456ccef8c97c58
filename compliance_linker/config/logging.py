"""Loguru setup for the catalog/link stores and the CLI.

Engine components log through structlog (see utils/logging.py); both write
to stderr so CLI output and exported files on stdout stay clean.
"""

import sys
from typing import Optional

from loguru import logger

from compliance_linker.config.settings import settings

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[component]}</cyan> | <level>{message}</level>"
)


def configure_logging(
    level: Optional[str] = None,
    fmt: Optional[str] = None,
    log_file: Optional[str] = None,
) -> None:
    """
    Install loguru sinks. Arguments override the matching settings.

    - TTY with console format: colorized one-line records
    - Otherwise: one JSON object per record (serialize=True)
    - log_file: additional JSON sink, rotated at 10 MB
    """
    level = (level or settings.log_level).upper()
    fmt = (fmt or settings.log_format).lower()
    log_file = log_file or settings.log_file

    logger.remove()
    # Records logged without a bound component still render
    logger.configure(extra={"component": "-"})

    if sys.stderr.isatty() and fmt == "console":
        logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level, colorize=True)
    else:
        logger.add(sys.stderr, format="{message}", level=level, serialize=True, diagnose=False)

    if log_file:
        logger.add(
            log_file,
            level=level,
            serialize=True,
            rotation="10 MB",
            enqueue=True,
            diagnose=False,
        )


def get_logger(component: str):
    """
    Logger bound to a component name.

    Example:
        >>> log = get_logger("cli")
        >>> log.info("Running auto-link")
    """
    return logger.bind(component=component)


configure_logging()

__all__ = ["logger", "get_logger", "configure_logging"]
