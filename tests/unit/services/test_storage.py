"""
Unit tests for storage service.
"""

from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
from google.cloud.exceptions import GoogleCloudError

from photofolio.errors import ConfigurationError, StorageError, ValidationError
from photofolio.services.storage import StorageService, build_object_name, guess_content_type

BUCKET = "test-photos-bucket"


def make_blob(name: str) -> MagicMock:
    blob = MagicMock()
    blob.name = name
    return blob


@pytest.fixture
def mock_client():
    client = MagicMock()
    bucket = MagicMock()
    bucket.blob.side_effect = make_blob
    client.bucket.return_value = bucket
    return client


@pytest.fixture
def service(mock_client):
    return StorageService(bucket_name=BUCKET, project_id="test-project", client=mock_client)


class TestStorageServiceInit:
    """Construction and configuration."""

    def test_init_with_explicit_values(self, mock_client):
        service = StorageService(bucket_name=BUCKET, project_id="test-project", client=mock_client)

        assert service.bucket_name == BUCKET
        assert service.bucket is mock_client.bucket.return_value
        mock_client.bucket.assert_called_once_with(BUCKET)

    def test_init_from_environment(self, monkeypatch):
        monkeypatch.setenv("GCS_PHOTOS_BUCKET", BUCKET)
        monkeypatch.setenv("GOOGLE_CLOUD_PROJECT", "test-project")

        with patch("photofolio.services.storage.storage.Client") as mock_client_class:
            service = StorageService()

        mock_client_class.assert_called_once_with(project="test-project")
        assert service.bucket_name == BUCKET

    def test_init_missing_bucket(self):
        with pytest.raises(ConfigurationError, match="GCS_PHOTOS_BUCKET"):
            StorageService(project_id="test-project", client=MagicMock())

    def test_init_missing_project(self):
        with pytest.raises(ConfigurationError, match="GOOGLE_CLOUD_PROJECT"):
            StorageService(bucket_name=BUCKET, client=MagicMock())

    @patch("photofolio.services.storage.storage.Client")
    def test_init_client_error(self, mock_client_class):
        mock_client_class.side_effect = GoogleCloudError("no credentials")

        with pytest.raises(StorageError, match="Failed to initialize GCS client"):
            StorageService(bucket_name=BUCKET, project_id="test-project")

    @patch("photofolio.services.storage.storage.Client")
    def test_init_credentials_error(self, mock_client_class):
        mock_client_class.side_effect = RuntimeError("could not find default credentials")

        with pytest.raises(StorageError, match="default credentials"):
            StorageService(bucket_name=BUCKET, project_id="test-project")


class TestObjectNames:
    def test_build_object_name_strips_directories(self):
        name = build_object_name("Alice", "../../etc/passwd")

        assert name.startswith("photos/alice/")
        assert name.endswith("-passwd")
        assert ".." not in name

    def test_build_object_name_is_unique(self):
        assert build_object_name("alice", "a.jpg") != build_object_name("alice", "a.jpg")

    def test_guess_content_type(self):
        assert guess_content_type("photo.JPG") == "image/jpeg"
        assert guess_content_type("photo.webp") == "image/webp"
        assert guess_content_type("notes.txt") == "application/octet-stream"

    def test_url_round_trip(self, service):
        url = service.url_for("photos/alice/abc-my photo.jpg")

        assert url == f"https://storage.googleapis.com/{BUCKET}/photos/alice/abc-my%20photo.jpg"
        assert service.object_name_from_url(url) == "photos/alice/abc-my photo.jpg"

    def test_gs_url(self, service):
        assert service.object_name_from_url(f"gs://{BUCKET}/photos/a.jpg") == "photos/a.jpg"

    @pytest.mark.parametrize(
        "url",
        [
            "https://storage.googleapis.com/other-bucket/photos/a.jpg",
            "gs://other-bucket/photos/a.jpg",
            "https://example.com/test-photos-bucket/a.jpg",
            f"https://storage.googleapis.com/{BUCKET}/",
            "blob://1",
        ],
    )
    def test_foreign_urls_rejected(self, service, url):
        with pytest.raises(ValidationError):
            service.object_name_from_url(url)


class TestPut:
    def test_put_uploads_and_publishes(self, service):
        url = service.put("photos/alice/a.png", b"data", "image/png")

        last_call = service.bucket.blob.call_args_list[-1]
        assert last_call.args == ("photos/alice/a.png",)
        assert url == f"https://storage.googleapis.com/{BUCKET}/photos/alice/a.png"

    def test_put_private(self, mock_client):
        bucket = mock_client.bucket.return_value
        blob = MagicMock()
        bucket.blob.side_effect = None
        bucket.blob.return_value = blob
        service = StorageService(bucket_name=BUCKET, project_id="test-project", client=mock_client)

        service.put("photos/alice/a.jpg", b"data", public=False)

        blob.upload_from_string.assert_called_once_with(b"data", content_type="image/jpeg")
        blob.make_public.assert_not_called()

    def test_put_public_by_default(self, mock_client):
        bucket = mock_client.bucket.return_value
        blob = MagicMock()
        bucket.blob.side_effect = None
        bucket.blob.return_value = blob
        service = StorageService(bucket_name=BUCKET, project_id="test-project", client=mock_client)

        service.put("photos/alice/a.jpg", b"data")

        blob.make_public.assert_called_once()

    def test_put_failure(self, mock_client):
        bucket = mock_client.bucket.return_value
        blob = MagicMock()
        blob.upload_from_string.side_effect = GoogleCloudError("quota")
        bucket.blob.side_effect = None
        bucket.blob.return_value = blob
        service = StorageService(bucket_name=BUCKET, project_id="test-project", client=mock_client)

        with pytest.raises(StorageError, match="Failed to upload"):
            service.put("photos/alice/a.jpg", b"data")

    def test_put_transport_failure(self, mock_client):
        bucket = mock_client.bucket.return_value
        blob = MagicMock()
        blob.upload_from_string.side_effect = TimeoutError("read timed out")
        bucket.blob.side_effect = None
        bucket.blob.return_value = blob
        service = StorageService(bucket_name=BUCKET, project_id="test-project", client=mock_client)

        with pytest.raises(StorageError, match="Unexpected error uploading"):
            service.put("photos/alice/a.jpg", b"data")


class TestDeleteMany:
    """Bulk blob deletion."""

    def test_empty_list_makes_no_request(self, service):
        assert service.delete_many([]) == []
        service.bucket.delete_blobs.assert_not_called()

    def test_single_request_for_all_urls(self, service):
        urls = [service.url_for(f"photos/alice/{i}.jpg") for i in range(3)]

        assert service.delete_many(urls) == []

        service.bucket.delete_blobs.assert_called_once()
        blobs = service.bucket.delete_blobs.call_args.args[0]
        assert [blob.name for blob in blobs] == [f"photos/alice/{i}.jpg" for i in range(3)]

    def test_missing_objects_count_as_deleted(self, service):
        def delete_blobs(blobs, on_error):
            on_error(blobs[0])

        service.bucket.delete_blobs.side_effect = delete_blobs

        assert service.delete_many([service.url_for("photos/gone.jpg")]) == []

    def test_foreign_urls_skipped_and_returned(self, service):
        urls = [service.url_for("photos/a.jpg"), f"gs://{BUCKET}/photos/b.jpg", "https://legacy.blob.example.com/c.jpg"]

        assert service.delete_many(urls) == ["https://legacy.blob.example.com/c.jpg"]

        service.bucket.delete_blobs.assert_called_once()
        blobs = service.bucket.delete_blobs.call_args.args[0]
        assert [blob.name for blob in blobs] == ["photos/a.jpg", "photos/b.jpg"]

    def test_only_foreign_urls_makes_no_request(self, service):
        assert service.delete_many(["https://example.com/x.jpg"]) == ["https://example.com/x.jpg"]
        service.bucket.delete_blobs.assert_not_called()

    def test_strict_rejects_foreign_url_before_request(self, service):
        with pytest.raises(ValidationError) as exc_info:
            service.delete_many([service.url_for("photos/a.jpg"), "https://example.com/x.jpg"], strict=True)

        assert exc_info.value.code == "foreign_blob_url"
        service.bucket.delete_blobs.assert_not_called()

    def test_split_urls(self, service):
        names, foreign = service.split_urls([service.url_for("photos/a b.jpg"), "https://example.com/x.jpg"])

        assert names == ["photos/a b.jpg"]
        assert foreign == ["https://example.com/x.jpg"]

    def test_service_failure(self, service):
        service.bucket.delete_blobs.side_effect = GoogleCloudError("unavailable")

        with pytest.raises(StorageError, match="Failed to delete 1 blob"):
            service.delete_many([service.url_for("photos/a.jpg")])

    def test_transport_failure_wrapped(self, service):
        service.bucket.delete_blobs.side_effect = ConnectionError("network down")

        with pytest.raises(StorageError, match="network down") as exc_info:
            service.delete_many([service.url_for("photos/a.jpg")])

        assert isinstance(exc_info.value.original_exception, ConnectionError)


class TestCreateUploadUrl:
    def test_signed_put_url(self, mock_client):
        bucket = mock_client.bucket.return_value
        blob = MagicMock()
        blob.generate_signed_url.return_value = "https://signed.example/upload"
        bucket.blob.side_effect = None
        bucket.blob.return_value = blob
        service = StorageService(bucket_name=BUCKET, project_id="test-project", client=mock_client)

        handoff = service.create_upload_url("photos/alice/a.png", "image/png", expiration=600)

        blob.generate_signed_url.assert_called_once_with(
            version="v4", expiration=timedelta(seconds=600), method="PUT", content_type="image/png"
        )
        assert handoff == {
            "upload_url": "https://signed.example/upload",
            "url": f"https://storage.googleapis.com/{BUCKET}/photos/alice/a.png",
            "object_name": "photos/alice/a.png",
            "content_type": "image/png",
            "expires_in": 600,
        }

    def test_default_expiration(self, service):
        assert service.default_signed_url_expiration == 3600

    def test_credentials_cannot_sign(self, mock_client):
        bucket = mock_client.bucket.return_value
        blob = MagicMock()
        blob.generate_signed_url.side_effect = AttributeError("you need a private key to sign credentials")
        bucket.blob.side_effect = None
        bucket.blob.return_value = blob
        service = StorageService(bucket_name=BUCKET, project_id="test-project", client=mock_client)

        with pytest.raises(StorageError, match="Failed to generate upload URL"):
            service.create_upload_url("photos/alice/a.png", "image/png")

    def test_unexpected_signing_failure(self, mock_client):
        bucket = mock_client.bucket.return_value
        blob = MagicMock()
        blob.generate_signed_url.side_effect = RuntimeError("token refresh failed")
        bucket.blob.side_effect = None
        bucket.blob.return_value = blob
        service = StorageService(bucket_name=BUCKET, project_id="test-project", client=mock_client)

        with pytest.raises(StorageError, match="token refresh failed"):
            service.create_upload_url("photos/alice/a.png", "image/png")
