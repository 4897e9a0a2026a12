"""Tests for the upload queue exception hierarchy."""

import pytest

from fieldsync.exceptions import (
    FieldSyncError,
    InvalidTransitionError,
    ItemNotFoundError,
    LocalReferenceError,
    PersistenceError,
    QueueError,
    StorageError,
    TransferError,
)


class TestFieldSyncError:
    def test_default_error_code(self):
        assert FieldSyncError("something failed").error_code == "INTERNAL_ERROR"

    def test_message_attribute(self):
        assert FieldSyncError("test message").message == "test message"

    def test_empty_context_by_default(self):
        assert FieldSyncError("test").context == {}

    def test_to_log_dict(self):
        result = StorageError("Upload failed", path="groups/g/roof/p.jpg").to_log_dict()
        assert result == {
            "error_code": "STORAGE_ERROR",
            "message": "Upload failed",
            "context": {"path": "groups/g/roof/p.jpg"},
            "exception_type": "StorageError",
        }

    def test_str_without_context(self):
        assert str(FieldSyncError("test message")) == "test message"

    def test_str_with_context(self):
        assert "context" in str(FieldSyncError("test", context={"id": "123"}))

    def test_repr(self):
        result = repr(FieldSyncError("test"))
        assert "FieldSyncError" in result
        assert "test" in result


class TestErrorCodes:
    @pytest.mark.parametrize(
        ("error_class", "expected"),
        [
            (QueueError, "QUEUE_ERROR"),
            (ItemNotFoundError, "ITEM_NOT_FOUND"),
            (InvalidTransitionError, "INVALID_TRANSITION"),
            (PersistenceError, "PERSISTENCE_ERROR"),
            (TransferError, "TRANSFER_ERROR"),
            (LocalReferenceError, "LOCAL_REFERENCE_ERROR"),
            (StorageError, "STORAGE_ERROR"),
        ],
    )
    def test_class_error_code(self, error_class, expected):
        assert error_class.error_code == expected

    def test_codes_are_distinct(self):
        classes = [
            FieldSyncError,
            QueueError,
            ItemNotFoundError,
            InvalidTransitionError,
            PersistenceError,
            TransferError,
            LocalReferenceError,
            StorageError,
        ]
        assert len({error_class.error_code for error_class in classes}) == len(classes)


class TestQueueErrors:
    def test_not_found_records_item_id(self):
        error = ItemNotFoundError("missing", item_id="photo-1")
        assert error.context == {"item_id": "photo-1"}
        assert isinstance(error, QueueError)

    def test_transition_records_statuses(self):
        error = InvalidTransitionError("nope", current="uploaded", target="pending")
        assert error.context == {"current": "uploaded", "target": "pending"}

    def test_persistence_is_queue_error(self):
        assert isinstance(PersistenceError("disk"), QueueError)


class TestTransferErrors:
    def test_local_reference_truncated(self):
        error = LocalReferenceError("bad", local_ref="data:image/jpeg;base64," + "A" * 500)
        assert len(error.context["local_ref"]) == 64

    def test_storage_error_records_path(self):
        error = StorageError("denied", path="groups/g/roof/p.jpg")
        assert error.context["path"] == "groups/g/roof/p.jpg"
        assert isinstance(error, TransferError)
