"""Structured logging for the field upload queue.

Usage:
    from fieldsync.logging import setup_logging, get_logger

    setup_logging()
    logger = get_logger(__name__)
    logger.info("Queued photo", extra={"group_id": "survey-1"})
"""

from fieldsync.logging.config import LogFormat, LoggingConfig, LogLevel
from fieldsync.logging.context import (
    bind_context,
    clear_context,
    get_bound_context,
    get_drain_id,
    start_drain_context,
    unbind_context,
)
from fieldsync.logging.formatters import HumanFormatter, JSONFormatter
from fieldsync.logging.logger import get_logger, reset_logging, setup_logging

__all__ = [
    "HumanFormatter",
    "JSONFormatter",
    "LogFormat",
    "LogLevel",
    "LoggingConfig",
    "bind_context",
    "clear_context",
    "get_bound_context",
    "get_drain_id",
    "get_logger",
    "reset_logging",
    "setup_logging",
    "start_drain_context",
    "unbind_context",
]
