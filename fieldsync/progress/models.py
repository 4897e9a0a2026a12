"""Progress facade data models."""

from pydantic import BaseModel, Field

from fieldsync.queue.models import GpsCoordinates


class UploadedItem(BaseModel):
    """An uploaded photo, shaped for the workflow that references it."""

    id: str
    url: str
    category: str
    location: str
    caption: str
    gps_coordinates: GpsCoordinates | None = None


class UploadProgress(BaseModel):
    """Upload progress of one group. pending includes photos mid-upload."""

    total: int = Field(default=0, ge=0)
    uploaded: int = Field(default=0, ge=0)
    pending: int = Field(default=0, ge=0)
    failed: int = Field(default=0, ge=0)
    percent: int = Field(default=100, ge=0, le=100)
