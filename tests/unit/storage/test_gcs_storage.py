"""Unit tests for the GCS object storage adapter (bucket mocked)."""

from __future__ import annotations

from datetime import timedelta
from unittest import mock

import pytest
from google.api_core import exceptions as gcs_exceptions
from google.auth import exceptions as auth_exceptions

from modules.core.exceptions import CollaboratorTimeout, StorageUnavailable
from modules.storage.gcs import GCSObjectStorage, build_gcs_storage, build_object_key

pytestmark = pytest.mark.unit


@pytest.fixture()
def bucket():
    return mock.Mock()


@pytest.fixture()
def adapter(bucket):
    return GCSObjectStorage(bucket)


class TestObjectKey:
    def test_keeps_stem_and_extension(self):
        assert build_object_key("Mix Notes.pdf", now_ms=1700000000000) == (
            "products/Mix Notes-1700000000000.pdf"
        )

    def test_strips_directories(self):
        assert build_object_key("../../etc/passwd", now_ms=1) == "products/passwd-1"

    def test_empty_stem(self):
        assert build_object_key(".zip", now_ms=5).startswith("products/")


class TestPutFile:
    def test_uploads_private_object(self, adapter, bucket):
        stored = adapter.put_file(b"abc", "loop.wav", "audio/wav")

        blob = bucket.blob.return_value
        blob.upload_from_string.assert_called_once_with(b"abc", content_type="audio/wav")
        blob.make_public.assert_not_called()
        assert stored.original_name == "loop.wav"
        assert stored.size_bytes == 3
        assert stored.storage_key.startswith("products/loop-")

    def test_timeout(self, adapter, bucket):
        bucket.blob.return_value.upload_from_string.side_effect = gcs_exceptions.DeadlineExceeded("slow")
        with pytest.raises(CollaboratorTimeout):
            adapter.put_file(b"abc", "loop.wav", "audio/wav")

    def test_api_error(self, adapter, bucket):
        bucket.blob.return_value.upload_from_string.side_effect = gcs_exceptions.Forbidden("denied")
        with pytest.raises(StorageUnavailable):
            adapter.put_file(b"abc", "loop.wav", "audio/wav")


class TestSignedUrl:
    def test_v4_get_url(self, adapter, bucket):
        bucket.blob.return_value.generate_signed_url.return_value = "https://signed"

        url = adapter.get_signed_url("products/a.zip", timedelta(minutes=60), filename="a.zip")

        assert url == "https://signed"
        bucket.blob.assert_called_with("products/a.zip")
        bucket.blob.return_value.generate_signed_url.assert_called_once_with(
            version="v4",
            expiration=timedelta(minutes=60),
            method="GET",
            response_disposition='attachment; filename="a.zip"',
        )

    def test_credentials_that_cannot_sign(self, adapter, bucket):
        bucket.blob.return_value.generate_signed_url.side_effect = AttributeError("no key")
        with pytest.raises(StorageUnavailable):
            adapter.get_signed_url("products/a.zip", timedelta(minutes=1))


class TestDeleteFiles:
    def test_missing_objects_ignored(self, adapter, bucket):
        bucket.blob.return_value.delete.side_effect = [gcs_exceptions.NotFound("gone"), None]
        adapter.delete_files(["a", "b"])
        assert bucket.blob.return_value.delete.call_count == 2

    def test_api_error(self, adapter, bucket):
        bucket.blob.return_value.delete.side_effect = gcs_exceptions.ServiceUnavailable("down")
        with pytest.raises(StorageUnavailable):
            adapter.delete_files(["a"])


class TestBuild:
    def test_no_bucket_means_not_configured(self, settings):
        settings.GCS_BUCKET_NAME = ""
        assert build_gcs_storage(settings) is None

    def test_builds_client_for_bucket(self, settings):
        settings.GCS_BUCKET_NAME = "downloads"
        settings.GCS_PROJECT_ID = "shop"
        settings.GCS_CREDENTIALS_FILE = ""
        with mock.patch("modules.storage.gcs.storage.Client") as client:
            adapter = build_gcs_storage(settings)

        client.assert_called_once_with(project="shop")
        client.return_value.bucket.assert_called_once_with("downloads")
        assert isinstance(adapter, GCSObjectStorage)

    def test_missing_credentials_means_not_configured(self, settings):
        settings.GCS_BUCKET_NAME = "downloads"
        settings.GCS_CREDENTIALS_FILE = ""
        with mock.patch(
            "modules.storage.gcs.storage.Client",
            side_effect=auth_exceptions.DefaultCredentialsError("no credentials"),
        ):
            assert build_gcs_storage(settings) is None
