"""
Unit tests for the brokered upload endpoint.
"""

import asyncio

import pytest
from fastapi.testclient import TestClient

from photofolio.api.app import create_app
from photofolio.backend import Backend
from photofolio.errors import StorageError, ValidationError


@pytest.fixture
def client(backend):
    return TestClient(create_app(backend))


@pytest.fixture
def unconfigured_client(store):
    return TestClient(create_app(Backend(documents=store, storage=None)))


def _handoff(object_name="photos/alice/abc-beach.jpg"):
    return {
        "upload_url": "https://storage.googleapis.com/photos-bucket/signed",
        "url": f"https://storage.googleapis.com/photos-bucket/{object_name}",
        "object_name": object_name,
        "content_type": "image/jpeg",
        "expires_in": 3600,
    }


def _event_loop_running() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


class TestCreateUpload:
    """POST /api/upload"""

    def test_returns_handoff(self, client, mock_storage):
        mock_storage.create_upload_url.return_value = _handoff()

        response = client.post(
            "/api/upload", json={"pathname": "beach.jpg", "contentType": "image/jpeg", "owner": "Alice"}
        )

        assert response.status_code == 200
        assert response.json() == {
            "uploadUrl": "https://storage.googleapis.com/photos-bucket/signed",
            "url": "https://storage.googleapis.com/photos-bucket/photos/alice/abc-beach.jpg",
            "pathname": "photos/alice/abc-beach.jpg",
            "contentType": "image/jpeg",
            "expiresIn": 3600,
        }
        object_name, content_type = mock_storage.create_upload_url.call_args.args
        assert object_name.startswith("photos/alice/")
        assert object_name.endswith("-beach.jpg")
        assert content_type == "image/jpeg"

    def test_owner_defaults_to_shared(self, client, mock_storage):
        mock_storage.create_upload_url.return_value = _handoff("photos/shared/abc-beach.jpg")

        client.post("/api/upload", json={"pathname": "beach.jpg", "contentType": "image/jpeg"})

        assert mock_storage.create_upload_url.call_args.args[0].startswith("photos/shared/")

    @pytest.mark.parametrize("content_type", ["application/pdf", "image/heic", "text/html"])
    def test_disallowed_content_type(self, client, mock_storage, content_type):
        response = client.post("/api/upload", json={"pathname": "file", "contentType": content_type})

        assert response.status_code == 400
        assert "not allowed" in response.json()["error"]
        mock_storage.create_upload_url.assert_not_called()

    @pytest.mark.parametrize(
        "body",
        [{"contentType": "image/jpeg"}, {"pathname": "", "contentType": "image/jpeg"}, {"pathname": "a.jpg"}, []],
    )
    def test_invalid_body(self, client, mock_storage, body):
        response = client.post("/api/upload", json=body)

        assert response.status_code == 400
        assert response.json()["error"].startswith("Invalid upload request")
        mock_storage.create_upload_url.assert_not_called()

    def test_malformed_json(self, client):
        response = client.post("/api/upload", content=b"{not json", headers={"content-type": "application/json"})

        assert response.status_code == 400

    def test_signing_runs_off_the_event_loop(self, client, mock_storage):
        on_loop = []

        def create_upload_url(object_name, content_type):
            on_loop.append(_event_loop_running())
            return _handoff()

        mock_storage.create_upload_url.side_effect = create_upload_url

        response = client.post("/api/upload", json={"pathname": "beach.jpg", "contentType": "image/jpeg"})

        assert response.status_code == 200
        assert on_loop == [False]

    def test_handoff_failure(self, client, mock_storage):
        mock_storage.create_upload_url.side_effect = StorageError("Failed to sign upload URL")

        response = client.post("/api/upload", json={"pathname": "beach.jpg", "contentType": "image/jpeg"})

        assert response.status_code == 400
        assert response.json() == {"error": "Failed to sign upload URL"}

    def test_not_configured(self, unconfigured_client):
        response = unconfigured_client.post("/api/upload", json={"pathname": "beach.jpg", "contentType": "image/jpeg"})

        assert response.status_code == 500
        assert "not configured" in response.json()["error"]


class TestDeleteUploads:
    """DELETE /api/upload"""

    def test_deletes_in_one_request(self, client, mock_storage):
        urls = ["https://storage.googleapis.com/photos-bucket/a.jpg", "https://storage.googleapis.com/photos-bucket/b.jpg"]

        response = client.request("DELETE", "/api/upload", json={"urls": urls})

        assert response.status_code == 200
        assert response.json() == {"success": True}
        mock_storage.delete_many.assert_called_once_with(urls, strict=True)

    @pytest.mark.parametrize("body", [{}, {"urls": "a.jpg"}, {"urls": [1, 2]}, None])
    def test_invalid_url_list(self, client, mock_storage, body):
        response = client.request("DELETE", "/api/upload", json=body)

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid URL list provided."}
        mock_storage.delete_many.assert_not_called()

    def test_foreign_url(self, client, mock_storage):
        mock_storage.delete_many.side_effect = ValidationError("URL is not in this bucket", code="foreign_blob_url")

        response = client.request("DELETE", "/api/upload", json={"urls": ["https://example.com/x.jpg"]})

        assert response.status_code == 400
        assert response.json() == {"error": "URL is not in this bucket"}

    def test_delete_runs_off_the_event_loop(self, client, mock_storage):
        on_loop = []

        def delete_many(urls, strict=False):
            on_loop.append(_event_loop_running())
            return []

        mock_storage.delete_many.side_effect = delete_many

        response = client.request("DELETE", "/api/upload", json={"urls": ["blob://1"]})

        assert response.status_code == 200
        assert on_loop == [False]

    def test_storage_failure(self, client, mock_storage):
        mock_storage.delete_many.side_effect = StorageError("Failed to delete 1 blob(s)")

        response = client.request("DELETE", "/api/upload", json={"urls": ["blob://1"]})

        assert response.status_code == 500
        assert response.json()["error"].startswith("Failed to delete files:")

    def test_not_configured(self, unconfigured_client):
        response = unconfigured_client.request("DELETE", "/api/upload", json={"urls": ["blob://1"]})

        assert response.status_code == 500


class TestHealth:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok", "storage_configured": True}
