"""Queue store: the single owner of queued photo state.

Every mutation writes the full collection to the injected key-value
backend before it becomes visible in memory, so a crash mid-drain always
leaves recoverable state behind and a failed write changes nothing. The
"drain running" flag is kept in memory only; a store built from persisted
state always starts inactive.
"""

from __future__ import annotations

import threading
from enum import Enum
from typing import TYPE_CHECKING

from pydantic import ValidationError

from fieldsync.config import DEFAULT_RETRY_LIMIT, DEFAULT_STORE_NAMESPACE
from fieldsync.exceptions import InvalidTransitionError, ItemNotFoundError, PersistenceError
from fieldsync.logging import get_logger
from fieldsync.queue.models import (
    PERSISTED_QUEUE_VERSION,
    EnqueueRequest,
    PersistedQueue,
    QueuedItem,
    StatusCounts,
    UploadStatus,
    validate_transition,
)

if TYPE_CHECKING:
    from fieldsync.queue.persistence import KeyValueStore

logger = get_logger(__name__)

_QUEUE_KEY: str = "queue"
INTERRUPTED_UPLOAD_ERROR: str = "Upload interrupted before completion"


class _Unset(Enum):
    UNSET = "unset"


UNSET = _Unset.UNSET


class QueueStore:
    """Ordered, persisted collection of queued photos.

    Items keep their insertion order for their whole lifetime; selection
    of the next item to upload is strictly first-in, first-out across all
    groups.
    """

    def __init__(
        self,
        backend: KeyValueStore,
        *,
        namespace: str = DEFAULT_STORE_NAMESPACE,
        retry_limit: int = DEFAULT_RETRY_LIMIT,
    ) -> None:
        """Load the queue persisted under namespace.

        Args:
            backend: Durable key-value storage.
            namespace: Fixed namespace the collection is stored under.
            retry_limit: Automatic attempts allowed before a manual retry is needed.

        Raises:
            PersistenceError: If the persisted queue cannot be read or parsed.
        """
        self._backend = backend
        self._namespace = namespace
        self._retry_limit = retry_limit
        self._lock = threading.RLock()
        self._items: list[QueuedItem] = []
        self._processing = False
        self._load()

    @property
    def retry_limit(self) -> int:
        return self._retry_limit

    # ---- persistence ----

    def _load(self) -> None:
        raw = self._backend.get(self._namespace, _QUEUE_KEY)
        if raw is None:
            logger.info("Upload queue %s is empty (nothing persisted)", self._namespace)
            return

        try:
            persisted = PersistedQueue.model_validate_json(raw)
        except ValidationError as error:
            raise PersistenceError(
                f"Persisted upload queue is unreadable: {error.error_count()} validation errors",
                context={"namespace": self._namespace},
            ) from error

        if persisted.version != PERSISTED_QUEUE_VERSION:
            raise PersistenceError(
                f"Unsupported persisted upload queue version {persisted.version}",
                context={"namespace": self._namespace, "version": persisted.version},
            )

        self._items = persisted.queue
        reconciled = self.reconcile_interrupted()

        logger.info(
            "Loaded upload queue %s (items=%d, interrupted=%d)",
            self._namespace,
            len(self._items),
            reconciled,
        )

    def _commit(self, items: list[QueuedItem]) -> None:
        """Write items and only then make them the in-memory queue.

        A failed write leaves memory exactly as it was on disk.
        """
        payload = PersistedQueue(queue=items).model_dump_json()
        self._backend.put(self._namespace, _QUEUE_KEY, payload)
        self._items = items

    def _index(self, item_id: str) -> int:
        for index, item in enumerate(self._items):
            if item.id == item_id:
                return index
        raise ItemNotFoundError(f"Queued photo {item_id} not found", item_id=item_id)

    def _replaced(self, index: int, item: QueuedItem) -> list[QueuedItem]:
        items = list(self._items)
        items[index] = item
        return items

    def _working_copy(self, item_id: str) -> tuple[int, QueuedItem]:
        index = self._index(item_id)
        return index, self._items[index].model_copy(deep=True)

    # ---- mutations ----

    def reconcile_interrupted(self) -> int:
        """Fail photos left in uploading by a transfer that never finished.

        Runs on load, and after a drain pass that could not record its
        outcome. The interrupted attempt counts against the retry budget,
        so a photo whose transfer keeps killing the process stops being
        retried automatically.

        Returns:
            Number of photos marked failed.

        Raises:
            PersistenceError: If the reconciled queue cannot be written.
        """
        with self._lock:
            items = list(self._items)
            reconciled = 0
            for index, item in enumerate(items):
                if item.status != UploadStatus.UPLOADING:
                    continue
                items[index] = item.model_copy(
                    update={
                        "status": UploadStatus.FAILED,
                        "error": INTERRUPTED_UPLOAD_ERROR,
                        "retry_count": item.retry_count + 1,
                    },
                    deep=True,
                )
                reconciled += 1
                logger.warning(
                    "Photo %s was interrupted mid-upload, marked failed (retry %d/%d)",
                    item.id,
                    item.retry_count + 1,
                    self._retry_limit,
                )
            if reconciled:
                self._commit(items)
        return reconciled

    def enqueue(self, request: EnqueueRequest) -> str:
        """Append a new pending photo and return its id."""
        item = QueuedItem.from_request(request)
        with self._lock:
            self._commit([*self._items, item])
            queue_size = len(self._items)

        logger.info(
            "Queued photo %s (group=%s, category=%s, queue_size=%d)",
            item.id,
            item.group_id,
            item.category,
            queue_size,
        )
        return item.id

    def remove(self, item_id: str) -> bool:
        """Remove one photo. Returns False if it was not queued."""
        with self._lock:
            remaining = [item for item in self._items if item.id != item_id]
            if len(remaining) == len(self._items):
                return False
            self._commit(remaining)
        logger.debug("Removed photo %s", item_id)
        return True

    def clear_completed(self) -> int:
        """Drop every uploaded photo. Returns how many were dropped."""
        with self._lock:
            remaining = [item for item in self._items if item.status != UploadStatus.UPLOADED]
            dropped = len(self._items) - len(remaining)
            self._commit(remaining)
        logger.info("Cleared %d completed uploads", dropped)
        return dropped

    def clear_group(self, group_id: str) -> int:
        """Drop every photo of a group, whatever its status."""
        with self._lock:
            remaining = [item for item in self._items if item.group_id != group_id]
            dropped = len(self._items) - len(remaining)
            self._commit(remaining)
        logger.info("Cleared %d photos for group %s", dropped, group_id)
        return dropped

    def update_status(
        self,
        item_id: str,
        status: UploadStatus,
        remote_url: str | None | _Unset = UNSET,
        error: str | None | _Unset = UNSET,
    ) -> None:
        """Move a photo to a new status.

        Args:
            item_id: Queued photo identifier.
            status: Target status.
            remote_url: New remote URL; left unchanged when not given.
            error: New error text; left unchanged when not given.

        Raises:
            ItemNotFoundError: If the photo is not queued.
            InvalidTransitionError: If the lifecycle does not allow the change,
                including an automatic retry of a photo whose budget is spent.
            PersistenceError: If the change cannot be written; the photo
                keeps its previous status.
        """
        with self._lock:
            index, item = self._working_copy(item_id)

            if not validate_transition(item.status, status):
                raise InvalidTransitionError(
                    f"Cannot transition photo {item_id} from {item.status} to {status}",
                    current=item.status.value,
                    target=status.value,
                )
            if (
                item.status == UploadStatus.FAILED
                and status == UploadStatus.UPLOADING
                and item.retry_count >= self._retry_limit
            ):
                raise InvalidTransitionError(
                    f"Photo {item_id} has used its {self._retry_limit} automatic attempts",
                    current=item.status.value,
                    target=status.value,
                )

            item.status = status
            if remote_url is not UNSET:
                item.remote_url = remote_url
            if error is not UNSET:
                item.error = error
            self._commit(self._replaced(index, item))

    def update_metadata(
        self,
        item_id: str,
        *,
        category: str | None = None,
        location: str | None = None,
        caption: str | None = None,
    ) -> None:
        """Edit a photo's description. Allowed in any status.

        Raises:
            ItemNotFoundError: If the photo is not queued.
        """
        with self._lock:
            index, item = self._working_copy(item_id)
            if category is not None:
                item.category = category
            if location is not None:
                item.metadata.location = location
            if caption is not None:
                item.metadata.caption = caption
            self._commit(self._replaced(index, item))

    def increment_retry_count(self, item_id: str) -> int:
        """Count one more failed attempt and return the new total.

        Raises:
            ItemNotFoundError: If the photo is not queued.
        """
        with self._lock:
            index, item = self._working_copy(item_id)
            item.retry_count += 1
            self._commit(self._replaced(index, item))
            return item.retry_count

    def retry_failed(self) -> int:
        """Manually requeue every failed photo.

        Failed photos go straight back to pending and their error is
        cleared. retry_count is NOT reset: automatic selection of failed
        photos is gated on retry_count < retry_limit, and moving to pending
        sidesteps that gate, so a photo that exhausted its budget gets one
        more automatic attempt per manual retry.

        Returns:
            Number of photos requeued.
        """
        with self._lock:
            requeued = 0
            items = list(self._items)
            for index, item in enumerate(items):
                if item.status == UploadStatus.FAILED:
                    items[index] = item.model_copy(
                        update={"status": UploadStatus.PENDING, "error": None},
                        deep=True,
                    )
                    requeued += 1
            if requeued:
                self._commit(items)
        logger.info("Manually requeued %d failed photos", requeued)
        return requeued

    # ---- drain support ----

    def _is_eligible(self, item: QueuedItem) -> bool:
        if item.status == UploadStatus.PENDING:
            return True
        return item.status == UploadStatus.FAILED and item.retry_count < self._retry_limit

    def next_eligible(self) -> QueuedItem | None:
        """Return the oldest photo a drain pass may upload now, or None."""
        with self._lock:
            for item in self._items:
                if self._is_eligible(item):
                    return item.model_copy(deep=True)
        return None

    def has_remaining_work(self) -> bool:
        """Whether anything is pending, uploading, or failed with budget left."""
        with self._lock:
            return any(
                item.status == UploadStatus.UPLOADING or self._is_eligible(item)
                for item in self._items
            )

    @property
    def is_processing(self) -> bool:
        return self._processing

    def set_processing(self, processing: bool) -> None:
        with self._lock:
            self._processing = processing

    def try_begin_processing(self) -> bool:
        """Atomically claim the drain flag. False if a drain is already active."""
        with self._lock:
            if self._processing:
                return False
            self._processing = True
            return True

    # ---- queries ----

    def get(self, item_id: str) -> QueuedItem:
        """Return a snapshot of one photo.

        Raises:
            ItemNotFoundError: If the photo is not queued.
        """
        with self._lock:
            return self._items[self._index(item_id)].model_copy(deep=True)

    def items(self) -> list[QueuedItem]:
        with self._lock:
            return [item.model_copy(deep=True) for item in self._items]

    def items_for_group(self, group_id: str) -> list[QueuedItem]:
        with self._lock:
            return [
                item.model_copy(deep=True) for item in self._items if item.group_id == group_id
            ]

    def status_counts(self, group_id: str | None = None) -> StatusCounts:
        """Count photos by status, optionally for one group only."""
        counts = StatusCounts()
        with self._lock:
            for item in self._items:
                if group_id is not None and item.group_id != group_id:
                    continue
                counts.total += 1
                if item.status in (UploadStatus.PENDING, UploadStatus.UPLOADING):
                    counts.pending += 1
                elif item.status == UploadStatus.UPLOADED:
                    counts.uploaded += 1
                else:
                    counts.failed += 1
        return counts

    def pending_count(self, group_id: str | None = None) -> int:
        return self.status_counts(group_id).pending

    def failed_count(self, group_id: str | None = None) -> int:
        return self.status_counts(group_id).failed

    def uploaded_count(self, group_id: str | None = None) -> int:
        return self.status_counts(group_id).uploaded
