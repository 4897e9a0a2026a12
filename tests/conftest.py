"""Shared test fixtures."""

import base64

import pytest

from fieldsync.exceptions import PersistenceError, StorageError
from fieldsync.queue.models import EnqueueRequest, GpsCoordinates, PhotoMetadata
from fieldsync.queue.persistence import InMemoryKeyValueStore
from fieldsync.queue.store import QueueStore
from fieldsync.transfer.connectivity import ConnectivitySignal
from fieldsync.upload.service import UploadService

JPEG_BYTES = b"\xff\xd8\xff\xe0fake-jpeg-body"


@pytest.fixture(autouse=True)
def _clear_environment(monkeypatch):
    """Clear environment variables that affect settings."""
    env_vars_to_clear = [
        "FIELDSYNC_STORE_PATH",
        "FIELDSYNC_STORE_NAMESPACE",
        "FIELDSYNC_BUCKET_NAME",
        "FIELDSYNC_AWS_REGION",
        "FIELDSYNC_ENDPOINT_URL",
        "FIELDSYNC_PUBLIC_BASE_URL",
        "FIELDSYNC_MAX_UPLOADS_PER_PASS",
        "FIELDSYNC_RETRY_LIMIT",
        "FIELDSYNC_RETRY_DELAY_SECONDS",
        "FIELDSYNC_RESCHEDULE_DELAY_SECONDS",
        "FIELDSYNC_POLL_INTERVAL_SECONDS",
        "FIELDSYNC_WAIT_TIMEOUT_SECONDS",
        "FIELDSYNC_SYNC_INTERVAL_SECONDS",
        "FIELDSYNC_LOG_LEVEL",
        "LOG_LEVEL",
        "LOG_FORMAT",
        "SERVICE_NAME",
        "INCLUDE_TIMESTAMP",
        "INCLUDE_LOCATION",
    ]
    for var in env_vars_to_clear:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture()
def anyio_backend():
    return "asyncio"


class FakeObjectStorage:
    """In-memory object storage that records writes and can be told to fail."""

    def __init__(self) -> None:
        self.objects: dict[str, tuple[bytes, str]] = {}
        self.upload_calls: list[str] = []
        self.fail_all = False
        self.failures_remaining = 0

    def upload(self, path, data, *, content_type, upsert=True):
        self.upload_calls.append(path)
        if self.fail_all or self.failures_remaining > 0:
            self.failures_remaining = max(0, self.failures_remaining - 1)
            raise StorageError("Upload failed: bucket unavailable", path=path)
        if not upsert and path in self.objects:
            raise StorageError(f"Object already exists: {path}", path=path)
        self.objects[path] = (data, content_type)

    def public_url(self, path):
        return f"https://cdn.example.test/{path}"


class FlakyKeyValueStore(InMemoryKeyValueStore):
    """In-memory backend whose writes can be told to fail."""

    def __init__(self) -> None:
        super().__init__()
        self._successes_before_failure = 0
        self._failures_remaining = 0

    def fail_next_put(self, *, after: int = 0, times: int = 1) -> None:
        self._successes_before_failure = after
        self._failures_remaining = times

    def put(self, namespace, key, value):
        if self._failures_remaining:
            if self._successes_before_failure:
                self._successes_before_failure -= 1
            else:
                self._failures_remaining -= 1
                raise PersistenceError(
                    f"Failed to write {namespace}/{key}: database is locked",
                    context={"namespace": namespace, "key": key},
                )
        super().put(namespace, key, value)


def make_data_url(data: bytes = JPEG_BYTES, content_type: str = "image/jpeg") -> str:
    return f"data:{content_type};base64,{base64.b64encode(data).decode('ascii')}"


def make_request(group_id="survey-1", category="exterior", **overrides) -> EnqueueRequest:
    defaults = {
        "group_id": group_id,
        "local_ref": make_data_url(),
        "category": category,
        "metadata": PhotoMetadata(location="North wall", caption="Water damage"),
        "gps_coordinates": GpsCoordinates(latitude=47.6062, longitude=-122.3321),
        "file_size": len(JPEG_BYTES),
        "file_type": "image/jpeg",
    }
    defaults.update(overrides)
    return EnqueueRequest(**defaults)


@pytest.fixture()
def photo_request():
    """Factory for EnqueueRequests with a small inline JPEG."""
    return make_request


@pytest.fixture()
def data_url():
    """Factory for base64 data URLs."""
    return make_data_url


@pytest.fixture()
def backend():
    return InMemoryKeyValueStore()


@pytest.fixture()
def flaky_backend():
    return FlakyKeyValueStore()


@pytest.fixture()
def store(backend):
    return QueueStore(backend)


@pytest.fixture()
def fake_storage():
    return FakeObjectStorage()


@pytest.fixture()
def connectivity():
    return ConnectivitySignal(online=True)


@pytest.fixture()
def make_service(store, fake_storage, connectivity):
    """Build an UploadService with test-friendly (zero) delays."""

    def _make(**overrides):
        options = {
            "max_uploads_per_pass": 2,
            "retry_delay_seconds": 0.0,
            "reschedule_delay_seconds": 0.0,
            "sync_interval_seconds": 0.05,
        }
        options.update(overrides)
        return UploadService(store, fake_storage, connectivity, **options)

    return _make
