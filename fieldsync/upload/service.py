"""Upload service: bounded drain passes over the queue store.

A drain pass uploads photos one at a time, oldest first, and stops after a
small number of successful uploads so each pass stays short. A background
worker with an explicit start/stop lifecycle keeps issuing passes while
work remains, and otherwise sleeps until it is triggered or the periodic
sync interval elapses.
"""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass
from typing import TYPE_CHECKING

from fieldsync.config import DEFAULT_MAX_UPLOADS_PER_PASS
from fieldsync.exceptions import FieldSyncError, ItemNotFoundError, PersistenceError
from fieldsync.logging import bind_context, clear_context, get_logger, start_drain_context
from fieldsync.queue.models import UploadStatus
from fieldsync.transfer.local_refs import LocalBlobResolver

if TYPE_CHECKING:
    from fieldsync.config import UploadQueueSettings
    from fieldsync.queue.models import QueuedItem
    from fieldsync.queue.store import QueueStore
    from fieldsync.transfer.connectivity import Connectivity
    from fieldsync.transfer.storage import ObjectStorage

logger = get_logger(__name__)

_DEFAULT_EXTENSION: str = "jpg"
_CANCELLED_UPLOAD_ERROR: str = "Upload cancelled before completion"
_STOP_TIMEOUT_SECONDS: float = 30.0


def extension_for_content_type(content_type: str | None) -> str:
    """Derive a file extension from a MIME type ("image/jpeg" -> "jpg")."""
    if not content_type or "/" not in content_type:
        return _DEFAULT_EXTENSION
    subtype = content_type.split("/", 1)[1].split(";", 1)[0].strip().lower()
    return subtype.replace("jpeg", "jpg") or _DEFAULT_EXTENSION


def build_object_path(item: QueuedItem, extension: str) -> str:
    """Object key for a photo: groups/{group_id}/{category}/{id}.{ext}."""
    return f"groups/{item.group_id}/{item.category}/{item.id}.{extension}"


def _describe_error(error: BaseException) -> str:
    if isinstance(error, FieldSyncError):
        return error.message
    return str(error) or error.__class__.__name__


def _error_log_fields(error: BaseException) -> dict[str, object]:
    if isinstance(error, FieldSyncError):
        return {"error": error.to_log_dict()}
    return {"error": {"message": _describe_error(error), "exception_type": error.__class__.__name__}}


@dataclass(slots=True, frozen=True)
class DrainResult:
    """Outcome of one drain pass.

    skipped is True when the pass did nothing because another drain was
    active or the device was offline.
    """

    skipped: bool = False
    attempted: int = 0
    uploaded: int = 0
    failed: int = 0
    remaining: bool = False


class UploadService:
    """Moves queued photos from the device to object storage."""

    def __init__(
        self,
        store: QueueStore,
        storage: ObjectStorage,
        connectivity: Connectivity,
        *,
        resolver: LocalBlobResolver | None = None,
        max_uploads_per_pass: int = DEFAULT_MAX_UPLOADS_PER_PASS,
        retry_delay_seconds: float = 2.0,
        reschedule_delay_seconds: float = 0.1,
        sync_interval_seconds: float = 30.0,
    ) -> None:
        """Initialize the upload service.

        Args:
            store: Queue store the service reads and records outcomes in.
            storage: Remote object storage.
            connectivity: Signal consulted before each pass.
            resolver: Local reference resolver.
            max_uploads_per_pass: Successful uploads after which a pass stops.
            retry_delay_seconds: Fixed pause after a failure with budget left.
            reschedule_delay_seconds: Pause between passes while work remains.
            sync_interval_seconds: Idle wait of the background worker.
        """
        self._store = store
        self._storage = storage
        self._connectivity = connectivity
        self._resolver = resolver or LocalBlobResolver()
        self._max_uploads_per_pass = max_uploads_per_pass
        self._retry_delay_seconds = retry_delay_seconds
        self._reschedule_delay_seconds = reschedule_delay_seconds
        self._sync_interval_seconds = sync_interval_seconds

        self._worker: asyncio.Task[None] | None = None
        self._worker_loop: asyncio.AbstractEventLoop | None = None
        self._wake: asyncio.Event | None = None
        self._stop_requested: asyncio.Event | None = None
        self._one_shot_tasks: set[asyncio.Task[int]] = set()

    @classmethod
    def from_settings(
        cls,
        settings: UploadQueueSettings,
        *,
        store: QueueStore,
        storage: ObjectStorage,
        connectivity: Connectivity,
        resolver: LocalBlobResolver | None = None,
    ) -> UploadService:
        return cls(
            store,
            storage,
            connectivity,
            resolver=resolver,
            max_uploads_per_pass=settings.max_uploads_per_pass,
            retry_delay_seconds=settings.retry_delay_seconds,
            reschedule_delay_seconds=settings.reschedule_delay_seconds,
            sync_interval_seconds=settings.sync_interval_seconds,
        )

    # ---- drain pass ----

    async def drain(self) -> DrainResult:
        """Run one bounded drain pass.

        Returns immediately (skipped) when a drain is already active, or
        when offline; in the offline case the active flag is never set, so
        a caller that sees connectivity return can drain right away.
        Transfer failures are recorded on their item and never escape.

        Returns:
            What the pass did and whether work remains.

        Raises:
            PersistenceError: If an outcome cannot be written. A photo left
                mid-upload is released to failed when the store allows it.
        """
        if self._store.is_processing:
            logger.debug("Drain already active, skipping")
            return DrainResult(skipped=True, remaining=self._store.has_remaining_work())

        if not self._connectivity.is_online:
            logger.debug("Offline, skipping drain")
            return DrainResult(skipped=True, remaining=self._store.has_remaining_work())

        if not self._store.try_begin_processing():
            return DrainResult(skipped=True, remaining=self._store.has_remaining_work())

        drain_id = start_drain_context()
        attempted = uploaded = failed = 0
        try:
            while uploaded < self._max_uploads_per_pass:
                item = self._store.next_eligible()
                if item is None:
                    break

                attempted += 1
                outcome = await self._process_item(item)
                if outcome == UploadStatus.UPLOADED:
                    uploaded += 1
                elif outcome == UploadStatus.FAILED:
                    failed += 1
        except PersistenceError:
            self._release_interrupted()
            raise
        finally:
            self._store.set_processing(False)
            clear_context()

        remaining = self._store.has_remaining_work()
        logger.info(
            "Drain %s finished (uploaded=%d, failed=%d, remaining=%s)",
            drain_id,
            uploaded,
            failed,
            remaining,
        )
        return DrainResult(
            attempted=attempted,
            uploaded=uploaded,
            failed=failed,
            remaining=remaining,
        )

    def _release_interrupted(self) -> None:
        """Fail a photo whose outcome could not be recorded, so a later pass retries it."""
        try:
            released = self._store.reconcile_interrupted()
        except PersistenceError as error:
            logger.error(
                "Could not release interrupted upload: %s",
                error.message,
                extra=_error_log_fields(error),
            )
            return
        if released:
            logger.warning("Released %d interrupted uploads after a failed write", released)

    async def _process_item(self, item: QueuedItem) -> UploadStatus | None:
        """Upload one photo and record the outcome.

        Returns None when the photo was removed from the queue mid-flight.
        """
        bind_context(item_id=item.id, group_id=item.group_id)
        try:
            self._store.update_status(item.id, UploadStatus.UPLOADING)
        except ItemNotFoundError:
            logger.info("Photo %s removed before upload started", item.id)
            return None

        try:
            remote_url = await self.transfer(item)
        except asyncio.CancelledError:
            self._record_cancelled(item)
            raise
        except Exception as error:
            return await self._record_failure(item, error)

        try:
            self._store.update_status(
                item.id,
                UploadStatus.UPLOADED,
                remote_url=remote_url,
                error=None,
            )
        except ItemNotFoundError:
            logger.info("Photo %s removed while uploading", item.id)
            return None

        logger.info("Uploaded photo %s", item.id, extra={"remote_url": remote_url})
        return UploadStatus.UPLOADED

    async def _record_failure(self, item: QueuedItem, error: Exception) -> UploadStatus | None:
        message = _describe_error(error)
        try:
            retry_count = self._store.increment_retry_count(item.id)
            self._store.update_status(item.id, UploadStatus.FAILED, error=message)
        except ItemNotFoundError:
            logger.info("Photo %s removed while uploading", item.id)
            return None

        if retry_count < self._store.retry_limit:
            logger.warning(
                "Upload failed for photo %s, retry %d/%d: %s",
                item.id,
                retry_count,
                self._store.retry_limit,
                message,
                extra=_error_log_fields(error),
            )
            await asyncio.sleep(self._retry_delay_seconds)
        else:
            logger.error(
                "Upload permanently failed for photo %s after %d attempts: %s",
                item.id,
                retry_count,
                message,
                extra=_error_log_fields(error),
            )
        return UploadStatus.FAILED

    def _record_cancelled(self, item: QueuedItem) -> None:
        with contextlib.suppress(ItemNotFoundError):
            self._store.increment_retry_count(item.id)
            self._store.update_status(item.id, UploadStatus.FAILED, error=_CANCELLED_UPLOAD_ERROR)
        logger.warning("Upload of photo %s cancelled", item.id)

    async def transfer(self, item: QueuedItem) -> str:
        """Upload a photo's bytes and return its durable URL.

        Raises:
            TransferError: If the local bytes or the remote write fail.
        """
        blob = await asyncio.to_thread(self._resolver.resolve, item.local_ref, item.file_type)
        path = build_object_path(item, extension_for_content_type(blob.content_type))
        await asyncio.to_thread(
            self._storage.upload,
            path,
            blob.data,
            content_type=blob.content_type,
            upsert=True,
        )
        return self._storage.public_url(path)

    async def run_until_idle(self) -> int:
        """Drain repeatedly until no work remains or a pass cannot run.

        Returns:
            Number of passes that ran.
        """
        passes = 0
        while True:
            result = await self.drain()
            if result.skipped:
                return passes
            passes += 1
            if not result.remaining or result.attempted == 0:
                return passes
            await asyncio.sleep(self._reschedule_delay_seconds)

    # ---- background worker ----

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def start(self) -> None:
        """Start the background worker on the running event loop."""
        if self.is_running:
            return
        self._worker_loop = asyncio.get_running_loop()
        self._wake = asyncio.Event()
        self._stop_requested = asyncio.Event()
        self._worker = self._worker_loop.create_task(
            self._run(self._wake, self._stop_requested),
            name="fieldsync-uploader",
        )

    async def stop(self, timeout_seconds: float = _STOP_TIMEOUT_SECONDS) -> None:
        """Stop the background worker.

        The worker finishes the photo it is transferring; it is only
        cancelled if that takes longer than timeout_seconds.
        """
        worker = self._worker
        if worker is None:
            return
        if self._stop_requested is not None:
            self._stop_requested.set()
        if self._wake is not None:
            self._wake.set()

        try:
            await asyncio.wait_for(asyncio.shield(worker), timeout_seconds)
        except TimeoutError:
            logger.warning("Uploader did not stop within %.1fs, cancelling", timeout_seconds)
            worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await worker
        finally:
            self._worker = None

    def trigger(self) -> None:
        """Ask for a drain as soon as possible.

        Wakes the background worker when it runs (safe from any thread).
        Otherwise starts a one-shot run_until_idle on the current event
        loop; without a running loop the request waits for the next sync.
        """
        if self.is_running and self._worker_loop is not None and self._wake is not None:
            self._worker_loop.call_soon_threadsafe(self._wake.set)
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, drain deferred")
            return

        task = loop.create_task(self.run_until_idle())
        self._one_shot_tasks.add(task)
        task.add_done_callback(self._one_shot_done)

    def _one_shot_done(self, task: asyncio.Task[int]) -> None:
        self._one_shot_tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "Triggered drain failed: %s",
                _describe_error(error),
                exc_info=error,
                extra=_error_log_fields(error),
            )

    async def _run(self, wake: asyncio.Event, stop_requested: asyncio.Event) -> None:
        logger.info("Background uploader started")
        try:
            while not stop_requested.is_set():
                delay = self._sync_interval_seconds
                try:
                    result = await self.drain()
                except Exception:
                    logger.exception("Drain pass failed")
                else:
                    if result.remaining and not result.skipped and result.attempted:
                        delay = self._reschedule_delay_seconds

                if stop_requested.is_set():
                    break
                with contextlib.suppress(TimeoutError):
                    await asyncio.wait_for(wake.wait(), delay)
                wake.clear()
        finally:
            logger.info("Background uploader stopped")
