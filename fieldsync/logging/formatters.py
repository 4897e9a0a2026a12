"""Log formatters for JSON and console output.

Both formatters render the same field set: the current drain id, the
item/group fields bound for the photo being uploaded, and anything passed
via extra=. Drain failures attach the error as a nested "error" dict.
"""

import json
import logging
import traceback
from datetime import UTC, datetime
from typing import Any, ClassVar

from fieldsync.logging.context import get_bound_context, get_drain_id

# Attributes every LogRecord has; anything else came in through extra=.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}

_MAX_LOGGER_NAME_LENGTH = 28


def _record_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Drain id, bound photo fields and extras, in that order."""
    fields: dict[str, Any] = {}
    drain_id = get_drain_id()
    if drain_id:
        fields["drain_id"] = drain_id
    fields.update(get_bound_context())
    fields.update(
        (key, value)
        for key, value in record.__dict__.items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    )
    return fields


def _exception_fields(exc_info: Any) -> dict[str, Any]:
    error_type, error, _ = exc_info
    return {
        "type": error_type.__name__ if error_type else "Unknown",
        "message": str(error) if error else "",
        "traceback": traceback.format_exception(*exc_info),
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for logs shipped off the device."""

    def __init__(
        self,
        *,
        service_name: str = "fieldsync",
        include_timestamp: bool = True,
        include_location: bool = False,
    ) -> None:
        super().__init__()
        self._service_name = service_name
        self._include_timestamp = include_timestamp
        self._include_location = include_location

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {}
        if self._include_timestamp:
            entry["timestamp"] = datetime.fromtimestamp(record.created, UTC).isoformat(
                timespec="milliseconds"
            )
        entry.update(
            level=record.levelname,
            logger=record.name,
            message=record.getMessage(),
            service=self._service_name,
        )
        if self._include_location:
            entry.update(module=record.module, function=record.funcName, line=record.lineno)

        entry.update(_record_fields(record))

        if record.exc_info:
            entry["exception"] = _exception_fields(record.exc_info)

        return json.dumps(entry, default=str)


class HumanFormatter(logging.Formatter):
    """Single-line console output with the drain fields in brackets.

    A nested error dict is shown by its code only; the message is already
    part of the log line.
    """

    COLORS: ClassVar[dict[str, str]] = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET: ClassVar[str] = "\033[0m"

    def __init__(self, *, use_colors: bool = True) -> None:
        super().__init__()
        self._use_colors = use_colors

    def _level(self, levelname: str) -> str:
        if not self._use_colors:
            return f"{levelname:<8}"
        return f"{self.COLORS.get(levelname, '')}{levelname:<8}{self.RESET}"

    @staticmethod
    def _logger_name(name: str) -> str:
        if len(name) > _MAX_LOGGER_NAME_LENGTH:
            name = "..." + name[-(_MAX_LOGGER_NAME_LENGTH - 3) :]
        return f"{name:<{_MAX_LOGGER_NAME_LENGTH}}"

    @staticmethod
    def _context(record: logging.LogRecord) -> str:
        fields = _record_fields(record)
        if "drain_id" in fields:
            fields = {"drain": fields.pop("drain_id"), **fields}
        error = fields.pop("error", None)
        if isinstance(error, dict):
            fields["error_code"] = error.get("error_code", "UNKNOWN")
        elif error is not None:
            fields["error"] = error
        return " ".join(f"{key}={value}" for key, value in fields.items())

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = f"{timestamp} {self._level(record.levelname)} {self._logger_name(record.name)} {record.getMessage()}"

        context = self._context(record)
        if context:
            line += f" [{context}]"
        if record.exc_info:
            line += "\n" + "".join(traceback.format_exception(*record.exc_info))
        return line
