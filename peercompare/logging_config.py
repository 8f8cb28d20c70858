"""Structured logging configuration using structlog.

JSON output for log aggregation, coloured console output for development.

Usage::

    from peercompare.logging_config import get_logger

    logger = get_logger(__name__)
    logger.info("scores_computed", items=4, metrics=12)
    # Output: {"event": "scores_computed", "items": 4, "metrics": 12, "timestamp": "...", ...}

Engine modules log through the standard library (``logging.getLogger``) with
%-style messages; ``setup_logging`` sends both through the same stream.
"""

import logging
import sys
from typing import Any, List

import structlog

from peercompare.config import Settings


def _processors(json_logs: bool) -> List[Any]:
    shared = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if json_logs:
        return shared + [structlog.processors.JSONRenderer()]
    return shared + [structlog.dev.ConsoleRenderer(colors=True)]


def setup_logging(json_logs: bool = False, log_level: str = "INFO") -> None:
    """Configure structured logging for the engine.

    Args:
        json_logs: If True, output JSON format. If False, use human-readable format.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).

    Raises:
        ValueError: If *log_level* is not a standard level name.
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    logging.getLogger("peercompare").setLevel(level)

    structlog.configure(
        processors=_processors(json_logs),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def setup_logging_from_settings(settings: Settings) -> None:
    """Apply the logging options carried by *settings*."""
    setup_logging(json_logs=settings.json_logs, log_level=settings.log_level)


def get_logger(name: str) -> Any:
    """Get a structured logger instance.

    Args:
        name: Logger name, typically __name__ of the module.

    Returns:
        Structured logger instance with bound context.
    """
    return structlog.get_logger(name)
