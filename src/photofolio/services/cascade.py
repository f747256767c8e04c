"""
Cascading deletes across object storage and the document store.

Every cascade has the same two phases:

1. Blobs. All URLs owned by the target are removed with a single bulk
   request. A failure here is recorded as a warning on the report and the
   cascade carries on, leaving orphaned blobs behind.
2. Documents. Children are removed before their parent. Sibling photos are
   removed in parallel and the parent is only removed once every sibling is
   gone. A failure here stops the cascade and raises CascadeAbortedError with
   the partial report attached.

Nothing is rolled back and there is no reconciliation of orphaned blobs.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..config import get_delete_max_workers
from ..errors import CascadeAbortedError, NotFoundError, PhotoFolioError, ProhibitedActionError, TransientIOError
from ..logging_config import get_logger, log_context, log_user_action
from ..models.gallery import Photo
from ..policy import is_protected_user
from .documents import DocumentStore
from .storage import StorageService

if TYPE_CHECKING:
    from ..backend import Backend

logger = get_logger(__name__)


@dataclass
class DeletionReport:
    """What a cascade did, and what it could not do."""

    target: str
    target_id: str
    blob_urls: list[str] = field(default_factory=list)
    blob_delete_requests: int = 0
    documents_deleted: int = 0
    warnings: list[str] = field(default_factory=list)
    session_invalidated: bool = False

    @property
    def status(self) -> str:
        return "partial" if self.warnings else "success"

    def to_dict(self) -> dict[str, Any]:
        return {
            "target": self.target,
            "target_id": self.target_id,
            "status": self.status,
            "blob_urls": list(self.blob_urls),
            "blob_delete_requests": self.blob_delete_requests,
            "documents_deleted": self.documents_deleted,
            "warnings": list(self.warnings),
            "session_invalidated": self.session_invalidated,
        }


class CascadeDeleter:
    """Deletes photos, variants, collections and users with everything they own."""

    def __init__(self, backend: "Backend", sessions: Any = None, max_workers: int | None = None):
        """
        Args:
            backend: Document store and object storage
            sessions: Session manager to log out when the current user is deleted
            max_workers: Fan-out width for parallel document deletes
        """
        self.backend = backend
        self.sessions = sessions
        self.max_workers = max_workers or get_delete_max_workers()

    def _require_backend(self) -> tuple[DocumentStore, StorageService]:
        return self.backend.require_documents(), self.backend.require_storage()

    # ------------------------------------------------------------------
    # phases

    def _delete_blobs(self, storage: StorageService, report: DeletionReport, urls: list[str]) -> None:
        if not urls:
            return

        report.blob_urls.extend(urls)
        report.blob_delete_requests += 1
        try:
            skipped = storage.delete_many(urls)
        except PhotoFolioError as e:
            logger.warning(
                "blob_delete_failed",
                target=report.target,
                target_id=report.target_id,
                count=len(urls),
                error=str(e),
            )
            report.warnings.append(f"Failed to delete {len(urls)} file(s) from storage: {e}")
            return

        if skipped:
            logger.warning("foreign_blobs_skipped", target=report.target, target_id=report.target_id, urls=skipped)
            report.warnings.append(
                f"Skipped {len(skipped)} file(s) outside the photos bucket: {', '.join(skipped)}"
            )

    def _abort(self, report: DeletionReport, message: str, error: Exception) -> CascadeAbortedError:
        logger.error(
            "cascade_aborted",
            target=report.target,
            target_id=report.target_id,
            documents_deleted=report.documents_deleted,
            error=str(error),
        )
        return CascadeAbortedError(message, report, original_exception=error)

    @staticmethod
    def _delete_photo_documents(documents: DocumentStore, photo: Photo) -> int:
        deleted = 0
        for variant in photo.variants:
            if documents.delete_variant(photo.collection_id, photo.id, variant.id):
                deleted += 1
        if documents.delete_photo(photo.collection_id, photo.id):
            deleted += 1
        return deleted

    def _delete_photos_parallel(self, documents: DocumentStore, photos: list[Photo], report: DeletionReport) -> None:
        """Delete sibling photo documents concurrently and wait for all of them."""
        if not photos:
            return

        failures: list[tuple[Photo, TransientIOError]] = []
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(photos))) as executor:
            futures = [(photo, executor.submit(self._delete_photo_documents, documents, photo)) for photo in photos]
            for photo, future in futures:
                try:
                    report.documents_deleted += future.result()
                except TransientIOError as e:
                    failures.append((photo, e))

        if failures:
            photo, error = failures[0]
            raise self._abort(
                report,
                f"Failed to delete {len(failures)} of {len(photos)} photo document(s), first: '{photo.id}'",
                error,
            ) from error

    def _delete_document(self, report: DeletionReport, description: str, delete, *args: str) -> None:
        try:
            if delete(*args):
                report.documents_deleted += 1
        except TransientIOError as e:
            raise self._abort(report, f"Failed to delete {description}", e) from e

    @staticmethod
    def _load_photos(documents: DocumentStore, collection_id: str) -> list[Photo]:
        photos = documents.list_photos(collection_id)
        variants = documents.list_variants(collection_id)
        for photo in photos:
            photo.variants = [variant for variant in variants if variant.photo_id == photo.id]
        return photos

    # ------------------------------------------------------------------
    # operations

    def delete_photo(self, collection_id: str, photo_id: str) -> DeletionReport:
        """
        Delete a photo, its variants and all of their blobs.

        Raises:
            ConfigurationError: Backend not configured
            NotFoundError: No such photo
            CascadeAbortedError: A document delete failed
        """
        documents, storage = self._require_backend()

        photo = documents.get_photo(collection_id, photo_id)
        if photo is None:
            raise NotFoundError(
                f"Photo '{photo_id}' not found", details={"collection_id": collection_id, "photo_id": photo_id}
            )
        photo.variants = documents.list_variants(collection_id, photo_id)

        report = DeletionReport(target="photo", target_id=photo_id)
        self._delete_blobs(storage, report, photo.blob_urls())

        try:
            report.documents_deleted += self._delete_photo_documents(documents, photo)
        except TransientIOError as e:
            raise self._abort(report, f"Failed to delete photo '{photo_id}'", e) from e

        logger.info("photo_deleted", collection_id=collection_id, photo_id=photo_id, status=report.status)
        return report

    def delete_variant(self, collection_id: str, photo_id: str, variant_id: str) -> DeletionReport:
        """Delete one variant rendition and its blob."""
        documents, storage = self._require_backend()

        variant = documents.get_variant(collection_id, photo_id, variant_id)
        if variant is None:
            raise NotFoundError(
                f"Variant '{variant_id}' not found",
                details={"collection_id": collection_id, "photo_id": photo_id, "variant_id": variant_id},
            )

        report = DeletionReport(target="variant", target_id=variant_id)
        self._delete_blobs(storage, report, [variant.src])
        self._delete_document(
            report, f"variant '{variant_id}'", documents.delete_variant, collection_id, photo_id, variant_id
        )

        logger.info("variant_deleted", photo_id=photo_id, variant_id=variant_id, status=report.status)
        return report

    def delete_collection(self, collection_id: str, photos: list[Photo] | None = None) -> DeletionReport:
        """
        Delete a collection with its photos, variants and blobs.

        Args:
            collection_id: Collection to delete
            photos: The photos as the caller loaded them (with variants).
                Queried from the store only when omitted.

        Raises:
            ConfigurationError: Backend not configured
            CascadeAbortedError: A document delete failed; the collection
                document is then left in place
        """
        documents, storage = self._require_backend()
        if photos is None:
            photos = self._load_photos(documents, collection_id)

        report = DeletionReport(target="collection", target_id=collection_id)
        urls = [url for photo in photos for url in photo.blob_urls()]

        self._delete_blobs(storage, report, urls)
        self._delete_photos_parallel(documents, photos, report)
        self._delete_document(report, f"collection '{collection_id}'", documents.delete_collection, collection_id)

        logger.info(
            "collection_deleted",
            collection_id=collection_id,
            photos=len(photos),
            blobs=len(urls),
            status=report.status,
        )
        return report

    def delete_user(self, name: str) -> DeletionReport:
        """
        Delete an account together with all of its collections.

        If the account is the one currently logged in, the session is ended
        whatever the outcome once deletion has begun.

        Raises:
            ProhibitedActionError: The protected account
            ConfigurationError: Backend not configured
            NotFoundError: No such user
            CascadeAbortedError: A document delete failed
        """
        normalized = (name or "").strip().lower()
        if is_protected_user(normalized):
            raise ProhibitedActionError(
                f"User '{normalized}' is protected and cannot be deleted",
                code="protected_user",
                user_message="This account cannot be deleted.",
                details={"name": normalized},
            )

        documents, storage = self._require_backend()

        user = documents.find_user(normalized)
        if user is None:
            raise NotFoundError(f"User '{normalized}' not found", details={"name": normalized})

        report = DeletionReport(target="user", target_id=normalized)
        is_current = self.sessions is not None and self.sessions.is_current_user(normalized)

        with log_context("photofolio.cascade", target="user", target_id=normalized) as log:
            try:
                urls: list[str] = []
                try:
                    collections = documents.list_collections(normalized)
                    for collection in collections:
                        photos = self._load_photos(documents, collection.id)
                        urls.extend(url for photo in photos for url in photo.blob_urls())
                        self._delete_photos_parallel(documents, photos, report)
                        self._delete_document(
                            report, f"collection '{collection.id}'", documents.delete_collection, collection.id
                        )
                except CascadeAbortedError:
                    raise
                except TransientIOError as e:
                    raise self._abort(report, f"Failed to read the collections of '{normalized}'", e) from e

                self._delete_blobs(storage, report, urls)
                self._delete_document(report, f"user '{normalized}'", documents.delete_user, user.id)
            finally:
                if is_current:
                    self.sessions.logout()
                    report.session_invalidated = True

            log.info("user_deleted", collections=len(collections), blobs=len(urls), status=report.status)

        log_user_action(normalized, "user_deleted", status=report.status)
        return report
