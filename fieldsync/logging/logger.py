"""Root logger setup and logger factory."""

import logging
import sys
from dataclasses import dataclass
from typing import TextIO

from fieldsync.logging.config import LogFormat, LoggingConfig, LogLevel, get_logging_config
from fieldsync.logging.formatters import HumanFormatter, JSONFormatter


@dataclass
class LoggingState:
    """The handler setup_logging installed, if any."""

    handler: logging.Handler | None = None

    @property
    def configured(self) -> bool:
        return self.handler is not None


_state = LoggingState()


def _build_formatter(config: LoggingConfig, stream: TextIO | None) -> logging.Formatter:
    if config.log_format == LogFormat.JSON:
        return JSONFormatter(
            service_name=config.service_name,
            include_timestamp=config.include_timestamp,
            include_location=config.include_location,
        )
    # Colors only on an interactive stderr; never in files or captured streams.
    return HumanFormatter(use_colors=stream is None and sys.stderr.isatty())


def setup_logging(
    config: LoggingConfig | None = None,
    stream: TextIO | None = None,
    *,
    log_level: str | None = None,
    force: bool = False,
) -> None:
    """Install one formatted handler on the root logger.

    Handlers attached by anyone else are replaced as well, so the uploader's
    lines are never printed twice.

    Args:
        config: Logging configuration; read from the environment when omitted.
        stream: Output stream. Defaults to sys.stderr.
        log_level: Level taken from the uploader settings; overrides config.log_level.
        force: Reconfigure even if setup already ran.
    """
    if _state.configured and not force:
        return

    config = config or get_logging_config()
    level = LogLevel(log_level) if log_level else config.log_level

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(_build_formatter(config, stream))

    root_logger = logging.getLogger()
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(level.value)

    for name in config.quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)

    _state.handler = handler


def get_logger(name: str) -> logging.Logger:
    """Return the module logger; call with __name__."""
    return logging.getLogger(name)


def reset_logging() -> None:
    """Detach the installed handler and forget the cached config. Used by tests."""
    if _state.handler is not None:
        logging.getLogger().removeHandler(_state.handler)
        _state.handler = None
    get_logging_config.cache_clear()
