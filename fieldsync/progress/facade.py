"""Read-only upload progress and the "wait until uploaded" gate.

Workflows that finalize a record referencing a group's photos (submitting
a site survey, for instance) call wait_for_uploads first and only proceed
when it returns True.
"""

from __future__ import annotations

import asyncio
import math
from typing import TYPE_CHECKING

from fieldsync.logging import get_logger
from fieldsync.progress.models import UploadedItem, UploadProgress
from fieldsync.queue.models import UploadStatus

if TYPE_CHECKING:
    from fieldsync.queue.store import QueueStore
    from fieldsync.upload.service import UploadService

logger = get_logger(__name__)


def percent_uploaded(uploaded: int, total: int) -> int:
    """Whole-number percentage, rounding halves up; 100 for an empty group."""
    if total == 0:
        return 100
    return math.floor(uploaded * 100 / total + 0.5)


class ProgressFacade:
    """Aggregates over the queue store for UI display and workflow gating."""

    def __init__(
        self,
        store: QueueStore,
        uploads: UploadService | None = None,
        *,
        poll_interval_seconds: float = 0.5,
    ) -> None:
        """Initialize the facade.

        Args:
            store: Queue store to read from.
            uploads: Upload service triggered by wait_for_uploads.
            poll_interval_seconds: Fixed progress polling interval.
        """
        self._store = store
        self._uploads = uploads
        self._poll_interval_seconds = poll_interval_seconds

    def uploaded_items(self, group_id: str) -> list[UploadedItem]:
        """Uploaded photos of a group that have a remote URL."""
        return [
            UploadedItem(
                id=item.id,
                url=item.remote_url,
                category=item.category,
                location=item.metadata.location,
                caption=item.metadata.caption,
                gps_coordinates=item.gps_coordinates,
            )
            for item in self._store.items_for_group(group_id)
            if item.status == UploadStatus.UPLOADED and item.remote_url
        ]

    def all_uploaded(self, group_id: str) -> bool:
        """True when the group has no photos or every photo is uploaded."""
        return all(
            item.status == UploadStatus.UPLOADED
            for item in self._store.items_for_group(group_id)
        )

    def progress(self, group_id: str) -> UploadProgress:
        counts = self._store.status_counts(group_id)
        return UploadProgress(
            total=counts.total,
            uploaded=counts.uploaded,
            pending=counts.pending,
            failed=counts.failed,
            percent=percent_uploaded(counts.uploaded, counts.total),
        )

    async def wait_for_uploads(self, group_id: str, timeout_seconds: float = 60.0) -> bool:
        """Trigger a drain and wait for the group's photos to settle.

        Polls progress until nothing is pending or the timeout elapses.
        Work in progress is never aborted; the wait simply ends.

        Args:
            group_id: Group whose photos must be uploaded.
            timeout_seconds: Maximum time to wait.

        Returns:
            True if nothing is pending and nothing failed; False on timeout
            or when photos are left failed.
        """
        if self._uploads is not None:
            self._uploads.trigger()

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_seconds

        while True:
            progress = self.progress(group_id)
            if progress.pending == 0:
                if progress.failed:
                    logger.warning(
                        "Group %s settled with %d failed uploads",
                        group_id,
                        progress.failed,
                    )
                return progress.failed == 0

            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            await asyncio.sleep(min(self._poll_interval_seconds, remaining))

        logger.warning(
            "Timed out after %.1fs waiting for group %s (%d still pending)",
            timeout_seconds,
            group_id,
            progress.pending,
        )
        return False
