"""Errors raised while moving a photo from the device to object storage.

The drain pass treats every failure alike: the message is recorded on the
item and the item is retried until its budget is spent.
"""

from typing import Any, ClassVar

from fieldsync.exceptions.base import FieldSyncError


class TransferError(FieldSyncError):
    """Base class for transfer failures."""

    error_code: ClassVar[str] = "TRANSFER_ERROR"


class LocalReferenceError(TransferError):
    """Local blob reference could not be resolved to bytes."""

    error_code: ClassVar[str] = "LOCAL_REFERENCE_ERROR"

    def __init__(
        self,
        message: str,
        *,
        local_ref: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with a shortened copy of the offending reference.

        Args:
            message: Description of the resolution failure.
            local_ref: The reference that failed; data URLs are truncated.
            context: Additional context information.
        """
        context_dict = context or {}
        if local_ref is not None:
            context_dict["local_ref"] = local_ref[:64]
        super().__init__(message, context=context_dict)


class StorageError(TransferError):
    """Object storage rejected or failed the write."""

    error_code: ClassVar[str] = "STORAGE_ERROR"

    def __init__(
        self,
        message: str,
        *,
        path: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize storage error with the target object path.

        Args:
            message: Description of the storage failure.
            path: Object path that was being written.
            context: Additional context information.
        """
        context_dict = context or {}
        if path is not None:
            context_dict["path"] = path
        super().__init__(message, context=context_dict)
