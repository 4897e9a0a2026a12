"""Base exception class for the field upload queue.

Every error carries a machine-readable code. Failures recorded on a queued
photo keep only the message; the code and context go to the log line.
"""

from typing import Any, ClassVar


class FieldSyncError(Exception):
    """Base exception for all upload queue errors.

    Attributes:
        message: Human-readable error description, stored on failed photos.
        error_code: Machine-readable error code.
        context: Identifiers of the photo, object or store involved.
    """

    error_code: ClassVar[str] = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        *,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_log_dict(self) -> dict[str, Any]:
        """Fields attached to the log record of a failed drain step."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
            "exception_type": self.__class__.__name__,
        }

    def __str__(self) -> str:
        if self.context:
            return f"{self.message} (context: {self.context})"
        return self.message

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"context={self.context!r})"
        )
