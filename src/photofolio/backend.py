"""
Backend wiring for photofolio.

A Backend bundles the document store and the object storage service. Either
slot may be None, which means "not configured"; operations that need a slot
ask for it through ``require_documents`` / ``require_storage`` and fail with
ConfigurationError before making any remote call.
"""

from dataclasses import dataclass

from .config import get_database_path, get_photos_bucket, get_project_id
from .errors import ConfigurationError
from .logging_config import get_logger
from .models.database import create_database
from .services.documents import DocumentStore
from .services.storage import StorageService

logger = get_logger(__name__)


@dataclass
class Backend:
    documents: DocumentStore | None = None
    storage: StorageService | None = None

    @property
    def is_configured(self) -> bool:
        return self.documents is not None and self.storage is not None

    def require_documents(self) -> DocumentStore:
        if self.documents is None:
            raise ConfigurationError("Document store is not configured", details={"slot": "documents"})
        return self.documents

    def require_storage(self) -> StorageService:
        if self.storage is None:
            raise ConfigurationError(
                "Object storage is not configured (GCS_PHOTOS_BUCKET / GOOGLE_CLOUD_PROJECT)",
                details={"slot": "storage"},
            )
        return self.storage

    def close(self) -> None:
        if self.documents is not None:
            self.documents.close()


def create_backend(db_path: str | None = None, storage: StorageService | None = None) -> Backend:
    """
    Build the backend from configuration.

    Args:
        db_path: DuckDB path (defaults to PHOTOFOLIO_DB_PATH)
        storage: Storage service to use instead of one built from configuration

    Returns:
        Backend whose storage slot is None when object storage is not configured
    """
    documents = DocumentStore(create_database(db_path or get_database_path()))

    if storage is None:
        if get_photos_bucket() and get_project_id():
            storage = StorageService()
        else:
            logger.warning("storage_not_configured", bucket=get_photos_bucket(), project_id=get_project_id())

    return Backend(documents=documents, storage=storage)
