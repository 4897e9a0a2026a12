"""Upload queue application entry point.

Wires the queue store, upload service and progress facade together and
runs the background uploader until a shutdown signal arrives.
"""

from __future__ import annotations

import asyncio
import signal
from typing import TYPE_CHECKING

from fieldsync.config import get_settings
from fieldsync.logging import get_logger, setup_logging
from fieldsync.progress.facade import ProgressFacade
from fieldsync.queue.persistence import SqliteKeyValueStore
from fieldsync.queue.store import QueueStore
from fieldsync.transfer.connectivity import ConnectivitySignal
from fieldsync.transfer.storage import S3ObjectStorage
from fieldsync.upload.service import UploadService

if TYPE_CHECKING:
    from fieldsync.config import UploadQueueSettings
    from fieldsync.queue.models import EnqueueRequest
    from fieldsync.queue.persistence import KeyValueStore
    from fieldsync.transfer.local_refs import LocalBlobResolver
    from fieldsync.transfer.storage import ObjectStorage

logger = get_logger(__name__)


class UploadQueueApplication:
    """The device-side photo upload queue as one unit.

    Capture code calls capture(); review/submit code awaits
    wait_for_group() before finalizing a record.
    """

    def __init__(
        self,
        settings: UploadQueueSettings,
        *,
        backend: KeyValueStore | None = None,
        storage: ObjectStorage | None = None,
        connectivity: ConnectivitySignal | None = None,
        resolver: LocalBlobResolver | None = None,
    ) -> None:
        """Build every component from settings.

        Args:
            settings: Upload queue configuration.
            backend: Durable key-value store; SQLite at settings.store_path by default.
            storage: Object storage; the configured S3 bucket by default.
            connectivity: Connectivity signal; starts online by default.
            resolver: Local reference resolver.
        """
        self._settings = settings
        self._store = QueueStore(
            backend or SqliteKeyValueStore(settings.store_path),
            namespace=settings.store_namespace,
            retry_limit=settings.retry_limit,
        )
        self._connectivity = connectivity or ConnectivitySignal()
        self._uploads = UploadService.from_settings(
            settings,
            store=self._store,
            storage=storage or S3ObjectStorage.from_settings(settings),
            connectivity=self._connectivity,
            resolver=resolver,
        )
        self._progress = ProgressFacade(
            self._store,
            self._uploads,
            poll_interval_seconds=settings.poll_interval_seconds,
        )
        self._connectivity.add_listener(self._uploads.trigger)
        self._stop_event: asyncio.Event | None = None

    @property
    def store(self) -> QueueStore:
        return self._store

    @property
    def uploads(self) -> UploadService:
        return self._uploads

    @property
    def progress(self) -> ProgressFacade:
        return self._progress

    @property
    def connectivity(self) -> ConnectivitySignal:
        return self._connectivity

    def capture(self, request: EnqueueRequest) -> str:
        """Queue a captured photo and kick off a drain."""
        item_id = self._store.enqueue(request)
        self._uploads.trigger()
        return item_id

    def retry_failed(self) -> int:
        """Manually requeue failed photos and kick off a drain."""
        requeued = self._store.retry_failed()
        if requeued:
            self._uploads.trigger()
        return requeued

    def discard_group(self, group_id: str) -> int:
        """Drop every queued photo of an abandoned record."""
        return self._store.clear_group(group_id)

    async def wait_for_group(self, group_id: str, timeout_seconds: float | None = None) -> bool:
        """Block a dependent workflow until the group's photos are uploaded."""
        if timeout_seconds is None:
            timeout_seconds = self._settings.wait_timeout_seconds
        return await self._progress.wait_for_uploads(group_id, timeout_seconds)

    async def run(self) -> None:
        """Run the background uploader until stop() is called."""
        self._stop_event = asyncio.Event()
        counts = self._store.status_counts()
        logger.info(
            "Starting uploader (bucket=%s, pending=%d, failed=%d)",
            self._settings.bucket_name,
            counts.pending,
            counts.failed,
        )

        self._uploads.start()
        try:
            await self._stop_event.wait()
        except asyncio.CancelledError:
            logger.info("Uploader cancelled")
        finally:
            await self._uploads.stop()

    def stop(self) -> None:
        """Signal run() to return."""
        logger.info("Stop signal received")
        if self._stop_event is not None:
            self._stop_event.set()


async def run_uploader(settings: UploadQueueSettings) -> None:
    """Run the upload queue with signal handling for graceful shutdown.

    Args:
        settings: Upload queue configuration.
    """
    application = UploadQueueApplication(settings)

    loop = asyncio.get_running_loop()
    for signal_number in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signal_number, application.stop)

    await application.run()


def main() -> None:
    """CLI entry point: load settings and run the uploader."""
    settings = get_settings()
    setup_logging(log_level=settings.log_level)

    logger.info(
        "Starting fieldsync (store=%s, namespace=%s, bucket=%s)",
        settings.store_path,
        settings.store_namespace,
        settings.bucket_name,
    )

    asyncio.run(run_uploader(settings))


if __name__ == "__main__":
    main()
