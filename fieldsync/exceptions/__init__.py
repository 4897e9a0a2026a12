"""Field upload queue exception hierarchy.

Architecture:
    FieldSyncError (base)
    ├── QueueError
    │   ├── ItemNotFoundError
    │   ├── InvalidTransitionError
    │   └── PersistenceError
    └── TransferError
        ├── LocalReferenceError
        └── StorageError

Usage:
    from fieldsync.exceptions import ItemNotFoundError

    def get(item_id: str) -> QueuedItem:
        item = index.get(item_id)
        if item is None:
            raise ItemNotFoundError(f"Queued item {item_id} not found", item_id=item_id)
        return item
"""

from fieldsync.exceptions.base import FieldSyncError
from fieldsync.exceptions.queue_errors import (
    InvalidTransitionError,
    ItemNotFoundError,
    PersistenceError,
    QueueError,
)
from fieldsync.exceptions.transfer_errors import (
    LocalReferenceError,
    StorageError,
    TransferError,
)

__all__ = [
    "FieldSyncError",
    "InvalidTransitionError",
    "ItemNotFoundError",
    "LocalReferenceError",
    "PersistenceError",
    "QueueError",
    "StorageError",
    "TransferError",
]
