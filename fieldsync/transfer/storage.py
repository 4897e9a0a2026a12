"""Remote object storage for uploaded photos."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol
from urllib.parse import quote

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from fieldsync.exceptions import StorageError
from fieldsync.logging import get_logger

if TYPE_CHECKING:
    from fieldsync.config import UploadQueueSettings

logger = get_logger(__name__)

_NOT_FOUND_CODES: frozenset[str] = frozenset({"404", "NoSuchKey", "NotFound"})


class ObjectStorage(Protocol):
    """Write-with-upsert plus durable URL resolution."""

    def upload(
        self,
        path: str,
        data: bytes,
        *,
        content_type: str,
        upsert: bool = True,
    ) -> None: ...

    def public_url(self, path: str) -> str: ...


class S3ObjectStorage:
    """S3 (or S3-compatible) bucket holding uploaded photos."""

    def __init__(
        self,
        bucket_name: str,
        *,
        region_name: str = "us-east-1",
        endpoint_url: str | None = None,
        public_base_url: str | None = None,
        client: Any | None = None,
    ) -> None:
        """Initialize the S3 storage.

        Args:
            bucket_name: S3 bucket name.
            region_name: Bucket region, used for the default public URL.
            endpoint_url: S3-compatible endpoint override.
            public_base_url: Base URL objects are publicly served from.
            client: Preconfigured boto3 S3 client.
        """
        self._s3 = client or boto3.client(  # type: ignore[call-overload]
            "s3",
            region_name=region_name,
            endpoint_url=endpoint_url or None,
        )
        self._bucket_name = bucket_name
        self._region_name = region_name
        self._endpoint_url = endpoint_url or None
        self._public_base_url = public_base_url or None

    @classmethod
    def from_settings(cls, settings: UploadQueueSettings) -> S3ObjectStorage:
        return cls(
            settings.bucket_name,
            region_name=settings.aws_region,
            endpoint_url=settings.endpoint_url,
            public_base_url=settings.public_base_url,
        )

    def upload(
        self,
        path: str,
        data: bytes,
        *,
        content_type: str,
        upsert: bool = True,
    ) -> None:
        """Write an object.

        put_object replaces any existing object at the key, which is what
        makes re-uploading a photo after a lost response harmless.

        Args:
            path: Object key.
            data: Object body.
            content_type: Stored Content-Type.
            upsert: When False, refuse to overwrite an existing object.

        Raises:
            StorageError: If the write fails or the object exists and upsert is False.
        """
        if not upsert and self.exists(path):
            raise StorageError(f"Object already exists: {path}", path=path)

        try:
            self._s3.put_object(
                Bucket=self._bucket_name,
                Key=path,
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as error:
            raise StorageError(f"Upload failed: {error}", path=path) from error

        logger.debug("Wrote s3://%s/%s (%d bytes)", self._bucket_name, path, len(data))

    def exists(self, path: str) -> bool:
        """Check whether an object is present.

        Raises:
            StorageError: If the check itself fails.
        """
        try:
            self._s3.head_object(Bucket=self._bucket_name, Key=path)
        except ClientError as error:
            if error.response.get("Error", {}).get("Code") in _NOT_FOUND_CODES:
                return False
            raise StorageError(f"Cannot check object: {error}", path=path) from error
        except BotoCoreError as error:
            raise StorageError(f"Cannot check object: {error}", path=path) from error
        return True

    def public_url(self, path: str) -> str:
        """Return the durable URL an uploaded object is served from."""
        key = quote(path)
        if self._public_base_url:
            return f"{self._public_base_url.rstrip('/')}/{key}"
        if self._endpoint_url:
            return f"{self._endpoint_url.rstrip('/')}/{self._bucket_name}/{key}"
        return f"https://{self._bucket_name}.s3.{self._region_name}.amazonaws.com/{key}"
