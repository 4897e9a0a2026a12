"""Errors raised by the queue store and its persistence layer."""

from typing import Any, ClassVar

from fieldsync.exceptions.base import FieldSyncError


class QueueError(FieldSyncError):
    """Base class for queue store errors."""

    error_code: ClassVar[str] = "QUEUE_ERROR"


class ItemNotFoundError(QueueError):
    """Queued item does not exist (never enqueued, or already removed)."""

    error_code: ClassVar[str] = "ITEM_NOT_FOUND"

    def __init__(
        self,
        message: str,
        *,
        item_id: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize not found error with the missing item id.

        Args:
            message: Description of what was not found.
            item_id: Identifier of the missing queued item.
            context: Additional context information.
        """
        context_dict = context or {}
        if item_id is not None:
            context_dict["item_id"] = item_id
        super().__init__(message, context=context_dict)


class InvalidTransitionError(QueueError):
    """Requested status change is not allowed by the item lifecycle."""

    error_code: ClassVar[str] = "INVALID_TRANSITION"

    def __init__(
        self,
        message: str,
        *,
        current: str | None = None,
        target: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize transition error with the rejected status pair.

        Args:
            message: Description of the rejected transition.
            current: Status the item is in.
            target: Status that was requested.
            context: Additional context information.
        """
        context_dict = context or {}
        if current is not None:
            context_dict["current"] = current
        if target is not None:
            context_dict["target"] = target
        super().__init__(message, context=context_dict)


class PersistenceError(QueueError):
    """Durable key-value storage could not be read or written."""

    error_code: ClassVar[str] = "PERSISTENCE_ERROR"
