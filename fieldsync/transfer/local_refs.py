"""Resolve the local reference of a captured photo to bytes.

Capture front-ends hand the queue either an inline data URL or a path to
the compressed file they wrote to disk.
"""

from __future__ import annotations

import base64
import binascii
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote_to_bytes, urlparse
from urllib.request import url2pathname

from fieldsync.exceptions import LocalReferenceError

DEFAULT_CONTENT_TYPE: str = "image/jpeg"
_DATA_URL_PREFIX: str = "data:"
_FILE_URI_PREFIX: str = "file://"


@dataclass(frozen=True, slots=True)
class LocalBlob:
    """Photo bytes plus the content type they should be stored with."""

    data: bytes
    content_type: str


class LocalBlobResolver:
    """Turn data URLs, file:// URIs and plain paths into LocalBlobs.

    Relative paths are resolved against base_directory when one is given.
    """

    def __init__(self, base_directory: str | Path | None = None) -> None:
        self._base_directory = Path(base_directory) if base_directory is not None else None

    def resolve(self, local_ref: str, declared_type: str | None = None) -> LocalBlob:
        """Read the bytes behind a local reference.

        The content type is the one the source itself declares (data URL
        media type, or the file suffix), then declared_type, then JPEG.

        Args:
            local_ref: data URL, file:// URI, or filesystem path.
            declared_type: Content type recorded at capture time.

        Returns:
            The resolved blob.

        Raises:
            LocalReferenceError: If the reference is malformed or unreadable.
        """
        if local_ref.startswith(_DATA_URL_PREFIX):
            data, source_type = self._decode_data_url(local_ref)
        else:
            path = self._to_path(local_ref)
            data = self._read_file(path, local_ref)
            source_type = mimetypes.guess_type(path.name)[0]

        content_type = source_type or declared_type or DEFAULT_CONTENT_TYPE
        return LocalBlob(data=data, content_type=content_type)

    @staticmethod
    def _decode_data_url(local_ref: str) -> tuple[bytes, str | None]:
        header, separator, payload = local_ref[len(_DATA_URL_PREFIX) :].partition(",")
        if not separator:
            raise LocalReferenceError("Malformed data URL: missing ','", local_ref=local_ref)

        parameters = header.split(";")
        media_type = parameters[0].strip().lower() or None
        if "base64" in (parameter.strip().lower() for parameter in parameters[1:]):
            try:
                data = base64.b64decode(payload, validate=True)
            except (binascii.Error, ValueError) as error:
                raise LocalReferenceError(
                    f"Malformed data URL: invalid base64 ({error})",
                    local_ref=local_ref,
                ) from error
        else:
            data = unquote_to_bytes(payload)

        return data, media_type

    def _to_path(self, local_ref: str) -> Path:
        if local_ref.startswith(_FILE_URI_PREFIX):
            path = Path(url2pathname(urlparse(local_ref).path))
        else:
            path = Path(local_ref).expanduser()
        if not path.is_absolute() and self._base_directory is not None:
            path = self._base_directory / path
        return path

    @staticmethod
    def _read_file(path: Path, local_ref: str) -> bytes:
        try:
            return path.read_bytes()
        except OSError as error:
            raise LocalReferenceError(
                f"Cannot read local photo {path}: {error.strerror or error}",
                local_ref=local_ref,
            ) from error
