"""Structured logging for blkhistory.

All modules obtain their logger with ``get_logger(__name__)`` and log
key-value pairs::

    logger.warning("Skipping invalid alias", device="/dev/sda", alias=alias)

Output goes to stderr so that it never mixes with the enumeration tool's
report on stdout.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

_LEVELS: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def configure_logging(level: str = "warning", json_output: bool = False) -> None:
    """Configure structlog for command-line use.

    Args:
        level: Minimum level name (debug, info, warning, error).
        json_output: Render one JSON object per line instead of the
            human-readable console format.
    """
    renderer: Any = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            _LEVELS.get(level.lower(), logging.WARNING)
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> Any:
    """Return a structured logger bound to a module name.

    Args:
        name: Usually ``__name__`` of the calling module.

    Returns:
        A structlog bound logger.
    """
    return structlog.get_logger(name)
