"""Storage service for Google Cloud Storage operations."""

import uuid
from collections.abc import Iterable
from datetime import timedelta
from pathlib import Path
from urllib.parse import quote, unquote, urlparse

from google.cloud import storage  # type: ignore[attr-defined]
from google.cloud.exceptions import GoogleCloudError

from ..config import get_env, get_photos_bucket, get_project_id
from ..errors import ConfigurationError, StorageError, ValidationError
from ..logging_config import get_logger

logger = get_logger(__name__)

PUBLIC_HOST = "storage.googleapis.com"

CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
}


def build_object_name(owner: str, filename: str) -> str:
    """
    Generate the object name for a new upload.

    Args:
        owner: Owning user name
        filename: Client supplied filename

    Returns:
        str: ``photos/{owner}/{uuid}-{basename}``
    """
    # Strip directories to prevent path traversal
    safe_filename = Path(filename).name or "upload"
    return f"photos/{owner.lower()}/{uuid.uuid4().hex}-{safe_filename}"


def guess_content_type(filename: str) -> str:
    """Determine content type from filename."""
    return CONTENT_TYPES.get(Path(filename).suffix.lower(), "application/octet-stream")


class StorageService:
    """Service for Google Cloud Storage operations on the photos bucket."""

    def __init__(
        self,
        bucket_name: str | None = None,
        project_id: str | None = None,
        client: storage.Client | None = None,
    ) -> None:
        """
        Initialize the storage service.

        Args:
            bucket_name: GCS photos bucket name (defaults to GCS_PHOTOS_BUCKET)
            project_id: GCP project ID (defaults to GOOGLE_CLOUD_PROJECT)
            client: Pre-built storage client

        Raises:
            ConfigurationError: If bucket or project is missing
            StorageError: If the client cannot be created
        """
        self.bucket_name = bucket_name or get_photos_bucket()
        self.project_id = project_id or get_project_id()
        self.default_signed_url_expiration = int(get_env("GCS_SIGNED_URL_EXPIRATION", 3600, int))
        self.public_objects = bool(get_env("GCS_PUBLIC_OBJECTS", True, bool))

        if not self.bucket_name:
            raise ConfigurationError("GCS_PHOTOS_BUCKET is required", details={"key": "GCS_PHOTOS_BUCKET"})
        if not self.project_id:
            raise ConfigurationError("GOOGLE_CLOUD_PROJECT is required", details={"key": "GOOGLE_CLOUD_PROJECT"})

        try:
            self.client = client or storage.Client(project=self.project_id)
            self.bucket = self.client.bucket(self.bucket_name)
            logger.info("storage_service_initialized", bucket=self.bucket_name, project_id=self.project_id)
        except GoogleCloudError as e:
            raise StorageError(f"Failed to initialize GCS client: {e}", original_exception=e) from e
        except Exception as e:
            raise StorageError(f"Unexpected error initializing GCS client: {e}", original_exception=e) from e

    def url_for(self, object_name: str) -> str:
        """Public URL of an object in the photos bucket."""
        return f"https://{PUBLIC_HOST}/{self.bucket_name}/{quote(object_name)}"

    def _match_object_name(self, url: str) -> str | None:
        parsed = urlparse(url)
        if parsed.scheme == "gs" and parsed.netloc == self.bucket_name:
            return parsed.path.lstrip("/") or None
        if parsed.scheme in ("http", "https") and parsed.netloc == PUBLIC_HOST:
            bucket, _, rest = parsed.path.lstrip("/").partition("/")
            if bucket == self.bucket_name:
                return unquote(rest) or None
        return None

    def object_name_from_url(self, url: str) -> str:
        """
        Map a blob URL back to its object name.

        Accepts ``https://storage.googleapis.com/{bucket}/{name}`` and
        ``gs://{bucket}/{name}``.

        Raises:
            ValidationError: If the URL does not point into the photos bucket
        """
        name = self._match_object_name(url)
        if not name:
            raise ValidationError(
                f"URL does not belong to bucket '{self.bucket_name}': {url}",
                code="foreign_blob_url",
                details={"url": url},
            )
        return name

    def put(self, object_name: str, data: bytes, content_type: str | None = None, public: bool | None = None) -> str:
        """
        Upload bytes to the photos bucket.

        Args:
            object_name: Target object name
            data: Raw bytes
            content_type: MIME type (guessed from the name when omitted)
            public: Make the object publicly readable (defaults to GCS_PUBLIC_OBJECTS)

        Returns:
            str: Public URL of the stored object

        Raises:
            StorageError: If upload fails
        """
        content_type = content_type or guess_content_type(object_name)
        public = self.public_objects if public is None else public

        try:
            blob = self.bucket.blob(object_name)
            blob.upload_from_string(data, content_type=content_type)
            if public:
                blob.make_public()
        except GoogleCloudError as e:
            logger.error("blob_upload_failed", object_name=object_name, error=str(e))
            raise StorageError(
                f"Failed to upload '{object_name}': {e}",
                details={"object_name": object_name},
                original_exception=e,
            ) from e
        except Exception as e:
            logger.error("blob_upload_failed", object_name=object_name, error=str(e), error_type=type(e).__name__)
            raise StorageError(
                f"Unexpected error uploading '{object_name}': {e}",
                details={"object_name": object_name},
                original_exception=e,
            ) from e

        logger.info("blob_uploaded", object_name=object_name, size=len(data), content_type=content_type)
        return self.url_for(object_name)

    def split_urls(self, urls: Iterable[str]) -> tuple[list[str], list[str]]:
        """Partition URLs into object names in the photos bucket and foreign URLs."""
        names: list[str] = []
        foreign: list[str] = []
        for url in urls:
            name = self._match_object_name(url)
            if name:
                names.append(name)
            else:
                foreign.append(url)
        return names, foreign

    def delete_many(self, urls: Iterable[str], strict: bool = False) -> list[str]:
        """
        Delete several blobs in one bulk request.

        Objects that are already gone count as deleted. URLs outside the
        photos bucket are skipped unless ``strict`` is set.

        Args:
            urls: Blob URLs
            strict: Reject the whole batch when any URL is foreign

        Returns:
            list[str]: Foreign URLs that were not deleted

        Raises:
            ValidationError: If ``strict`` and a URL does not belong to the bucket
            StorageError: If the request fails
        """
        names, foreign = self.split_urls(urls)
        if foreign:
            if strict:
                raise ValidationError(
                    f"URL does not belong to bucket '{self.bucket_name}': {foreign[0]}",
                    code="foreign_blob_url",
                    details={"urls": foreign},
                )
            logger.warning("foreign_blob_urls_skipped", bucket=self.bucket_name, urls=foreign)
        if not names:
            return foreign

        missing: list[str] = []

        def on_missing(blob: storage.Blob) -> None:
            missing.append(blob.name)

        try:
            self.bucket.delete_blobs([self.bucket.blob(name) for name in names], on_error=on_missing)
        except GoogleCloudError as e:
            logger.error("blob_delete_failed", count=len(names), error=str(e))
            raise StorageError(
                f"Failed to delete {len(names)} blob(s): {e}",
                details={"object_names": names},
                original_exception=e,
            ) from e
        except Exception as e:
            logger.error("blob_delete_failed", count=len(names), error=str(e), error_type=type(e).__name__)
            raise StorageError(
                f"Unexpected error deleting {len(names)} blob(s): {e}",
                details={"object_names": names},
                original_exception=e,
            ) from e

        if missing:
            logger.warning("blobs_already_missing", object_names=missing)
        logger.info("blobs_deleted", count=len(names))
        return foreign

    def create_upload_url(self, object_name: str, content_type: str, expiration: int | None = None) -> dict:
        """
        Generate a signed URL for a direct client upload.

        Args:
            object_name: Target object name
            content_type: MIME type the client must send
            expiration: URL lifetime in seconds (defaults to GCS_SIGNED_URL_EXPIRATION)

        Returns:
            dict: ``upload_url``, ``url``, ``object_name``, ``content_type``, ``expires_in``

        Raises:
            StorageError: If URL generation fails
        """
        expires_in = expiration or self.default_signed_url_expiration

        try:
            blob = self.bucket.blob(object_name)
            upload_url: str = blob.generate_signed_url(
                version="v4",
                expiration=timedelta(seconds=expires_in),
                method="PUT",
                content_type=content_type,
            )
        except (GoogleCloudError, ValueError, AttributeError) as e:
            # Credentials without a private key cannot sign
            raise StorageError(
                f"Failed to generate upload URL for '{object_name}': {e}",
                details={"object_name": object_name},
                original_exception=e,
            ) from e
        except Exception as e:
            raise StorageError(
                f"Unexpected error generating upload URL for '{object_name}': {e}",
                details={"object_name": object_name},
                original_exception=e,
            ) from e

        logger.debug("upload_url_generated", object_name=object_name, expires_in=expires_in)
        return {
            "upload_url": upload_url,
            "url": self.url_for(object_name),
            "object_name": object_name,
            "content_type": content_type,
            "expires_in": expires_in,
        }
