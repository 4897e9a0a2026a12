"""Upload queue data models."""

from datetime import UTC, datetime
from enum import StrEnum
from uuid import uuid4

from pydantic import BaseModel, Field


class UploadStatus(StrEnum):
    """Status of a queued photo upload."""

    PENDING = "pending"
    UPLOADING = "uploading"
    UPLOADED = "uploaded"
    FAILED = "failed"


# Valid state transitions. failed -> pending is the manual retry.
VALID_TRANSITIONS: dict[UploadStatus, set[UploadStatus]] = {
    UploadStatus.PENDING: {UploadStatus.UPLOADING},
    UploadStatus.UPLOADING: {UploadStatus.UPLOADED, UploadStatus.FAILED},
    UploadStatus.UPLOADED: set(),
    UploadStatus.FAILED: {UploadStatus.UPLOADING, UploadStatus.PENDING},
}


PERSISTED_QUEUE_VERSION: int = 1


def validate_transition(current: UploadStatus, target: UploadStatus) -> bool:
    """Check if an upload status transition is valid.

    Args:
        current: Current upload status.
        target: Target upload status.

    Returns:
        True if the transition is valid.
    """
    return target in VALID_TRANSITIONS.get(current, set())


def generate_item_id() -> str:
    """Return a new queued item identifier."""
    return f"photo-{uuid4().hex}"


class GpsCoordinates(BaseModel):
    """Where the photo was taken."""

    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)


class PhotoMetadata(BaseModel):
    """Freeform, user-editable description of a photo."""

    location: str = ""
    caption: str = ""


class EnqueueRequest(BaseModel):
    """Everything the capture workflow knows about a new photo."""

    group_id: str = Field(min_length=1)
    local_ref: str = Field(min_length=1)
    category: str = Field(min_length=1)
    metadata: PhotoMetadata = Field(default_factory=PhotoMetadata)
    gps_coordinates: GpsCoordinates | None = None
    file_size: int | None = Field(default=None, ge=0)
    file_type: str | None = None


class QueuedItem(BaseModel):
    """A photo held in the upload queue."""

    id: str
    group_id: str
    local_ref: str
    category: str
    metadata: PhotoMetadata = Field(default_factory=PhotoMetadata)
    gps_coordinates: GpsCoordinates | None = None
    status: UploadStatus = Field(default=UploadStatus.PENDING)
    remote_url: str | None = None
    error: str | None = None
    retry_count: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    file_size: int | None = Field(default=None, ge=0)
    file_type: str | None = None

    @classmethod
    def from_request(cls, request: EnqueueRequest) -> "QueuedItem":
        """Create a fresh pending item from an enqueue request."""
        return cls(
            id=generate_item_id(),
            group_id=request.group_id,
            local_ref=request.local_ref,
            category=request.category,
            metadata=request.metadata.model_copy(),
            gps_coordinates=request.gps_coordinates,
            file_size=request.file_size,
            file_type=request.file_type,
        )


class StatusCounts(BaseModel):
    """Item counts by status. pending includes items currently uploading."""

    total: int = 0
    pending: int = 0
    uploaded: int = 0
    failed: int = 0


class PersistedQueue(BaseModel):
    """Shape of the queue as written to durable storage."""

    version: int = PERSISTED_QUEUE_VERSION
    queue: list[QueuedItem] = Field(default_factory=list)
