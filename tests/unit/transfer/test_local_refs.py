"""Tests for local photo reference resolution."""

import pytest

from fieldsync.exceptions import LocalReferenceError
from fieldsync.transfer.local_refs import DEFAULT_CONTENT_TYPE, LocalBlobResolver


class TestDataUrls:
    def test_base64_data_url(self, data_url):
        blob = LocalBlobResolver().resolve(data_url(b"png-bytes", "image/png"))
        assert blob.data == b"png-bytes"
        assert blob.content_type == "image/png"

    def test_percent_encoded_data_url(self):
        blob = LocalBlobResolver().resolve("data:text/plain,hello%20world")
        assert blob.data == b"hello world"
        assert blob.content_type == "text/plain"

    def test_data_url_without_media_type_uses_declared(self):
        blob = LocalBlobResolver().resolve("data:;base64,aGk=", "image/webp")
        assert blob.data == b"hi"
        assert blob.content_type == "image/webp"

    def test_missing_comma(self):
        with pytest.raises(LocalReferenceError, match="missing ','"):
            LocalBlobResolver().resolve("data:image/jpeg;base64")

    def test_invalid_base64(self):
        with pytest.raises(LocalReferenceError, match="invalid base64"):
            LocalBlobResolver().resolve("data:image/jpeg;base64,!!!not-base64")


class TestFileReferences:
    def test_plain_path(self, tmp_path):
        photo = tmp_path / "roof.png"
        photo.write_bytes(b"png")
        blob = LocalBlobResolver().resolve(str(photo))
        assert blob.data == b"png"
        assert blob.content_type == "image/png"

    def test_file_uri(self, tmp_path):
        photo = tmp_path / "wall.jpg"
        photo.write_bytes(b"jpg")
        blob = LocalBlobResolver().resolve(photo.as_uri())
        assert blob.data == b"jpg"
        assert blob.content_type == "image/jpeg"

    def test_relative_to_base_directory(self, tmp_path):
        (tmp_path / "captures").mkdir()
        (tmp_path / "captures" / "a.jpg").write_bytes(b"a")
        blob = LocalBlobResolver(tmp_path).resolve("captures/a.jpg")
        assert blob.data == b"a"

    def test_unknown_suffix_falls_back(self, tmp_path):
        photo = tmp_path / "capture.bin0"
        photo.write_bytes(b"raw")
        assert LocalBlobResolver().resolve(str(photo)).content_type == DEFAULT_CONTENT_TYPE

    def test_unknown_suffix_uses_declared_type(self, tmp_path):
        photo = tmp_path / "capture.bin0"
        photo.write_bytes(b"raw")
        assert LocalBlobResolver().resolve(str(photo), "image/heic").content_type == "image/heic"

    def test_missing_file(self, tmp_path):
        with pytest.raises(LocalReferenceError, match="Cannot read local photo") as error_info:
            LocalBlobResolver().resolve(str(tmp_path / "gone.jpg"))
        assert error_info.value.error_code == "LOCAL_REFERENCE_ERROR"
