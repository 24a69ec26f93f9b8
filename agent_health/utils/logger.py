"""Structured JSON logging configuration."""

import logging
import sys
from typing import Iterable

from pythonjsonlogger import jsonlogger

# Third-party loggers that log every request or job run at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "apscheduler")

LOG_FORMAT = '%(asctime)s %(name)s %(levelname)s %(message)s'


def _json_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(jsonlogger.JsonFormatter(LOG_FORMAT, timestamp=True))
    return handler


def setup_logger(
    name: str = "agent_health",
    level: str = "INFO",
    quiet: Iterable[str] = NOISY_LOGGERS
) -> logging.Logger:
    """
    Configure structured JSON logging for the exporter.

    The named logger gets its own stdout handler and does not propagate,
    so component loggers created with ``logger.getChild()`` share it.
    Loggers listed in ``quiet`` are routed through the same JSON format
    but capped at WARNING.

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        quiet: Library logger names to cap at WARNING

    Returns:
        logging.Logger: Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))

    # Remove existing handlers to avoid duplicates
    logger.handlers = []
    logger.addHandler(_json_handler())
    logger.propagate = False

    for library in quiet:
        library_logger = logging.getLogger(library)
        library_logger.setLevel(logging.WARNING)
        library_logger.handlers = [_json_handler()]
        library_logger.propagate = False

    return logger
