"""
Collection and photo repository.

Reads materialise the full tree for one owner (collections, their photos and
the photos' variants) in display order. Writes are single-document
operations; batch adds report success per item and never roll back what
already succeeded.
"""

import threading
from collections import defaultdict
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from ..errors import NotFoundError, PhotoFolioError, ValidationError
from ..logging_config import get_logger, log_user_action
from ..models.gallery import Collection, Photo
from .documents import ChangeEvent

if TYPE_CHECKING:
    from ..backend import Backend

logger = get_logger(__name__)


def sort_collections(collections: list[Collection]) -> list[Collection]:
    return sorted(collections, key=lambda c: c.created_at, reverse=True)


def sort_photos(photos: list[Photo]) -> list[Photo]:
    """
    Display order of a collection's photos.

    Newest first until the owner reorders. After a reorder, photos follow
    their stored position, except photos added since then (no position),
    which come first, newest first.
    """
    unpositioned = sorted((p for p in photos if p.sort_order is None), key=lambda p: p.created_at, reverse=True)
    positioned = sorted((p for p in photos if p.sort_order is not None), key=lambda p: (p.sort_order, p.created_at))
    return unpositioned + positioned


def _clean_title(title: str | None) -> str:
    cleaned = (title or "").strip()
    if not cleaned:
        raise ValidationError("Title must not be empty", code="empty_title")
    return cleaned


class GalleryRepository:
    """Collection and photo operations for the gallery."""

    def __init__(self, backend: "Backend"):
        self.backend = backend

    @property
    def documents(self):
        return self.backend.require_documents()

    def _require_collection(self, collection_id: str) -> Collection:
        collection = self.documents.get_collection(collection_id)
        if collection is None:
            raise NotFoundError(f"Collection '{collection_id}' not found", details={"collection_id": collection_id})
        return collection

    # ------------------------------------------------------------------
    # writes

    def create_collection(self, title: str, owner_name: str) -> Collection:
        cleaned = _clean_title(title)
        owner = (owner_name or "").strip().lower()
        if not owner:
            raise ValidationError("Owner is required", code="missing_owner")

        collection = self.documents.add_collection(cleaned, owner)
        log_user_action(owner, "collection_created", collection_id=collection.id)
        return collection

    def update_collection_title(self, collection_id: str, title: str) -> None:
        self.documents.update_collection_title(collection_id, _clean_title(title))

    def update_photo_title(self, collection_id: str, photo_id: str, title: str) -> None:
        self.documents.update_photo_title(collection_id, photo_id, _clean_title(title))

    def add_photos(self, collection_id: str, photos: list[dict[str, str]]) -> list[dict[str, Any]]:
        """
        Create one photo document per item.

        Args:
            collection_id: Target collection
            photos: Items with ``src`` and ``title``

        Returns:
            One result per item: ``{"success": True, "photo_id", "title"}`` or
            ``{"success": False, "title", "error"}``

        Raises:
            NotFoundError: Unknown collection
        """
        documents = self.documents
        self._require_collection(collection_id)

        results: list[dict[str, Any]] = []
        for item in photos:
            title = (item.get("title") or "").strip()
            try:
                src = (item.get("src") or "").strip()
                if not src:
                    raise ValidationError("Photo source URL is required", code="missing_src")
                photo = documents.add_photo(collection_id, src, _clean_title(title))
                results.append({"success": True, "photo_id": photo.id, "title": photo.title})
            except PhotoFolioError as e:
                logger.error("photo_add_failed", collection_id=collection_id, title=title, error=str(e))
                results.append({"success": False, "title": title, "error": e.user_message})

        succeeded = sum(1 for r in results if r["success"])
        logger.info("photos_added", collection_id=collection_id, succeeded=succeeded, failed=len(results) - succeeded)
        return results

    def add_variants(self, collection_id: str, photo_id: str, srcs: list[str]) -> list[dict[str, Any]]:
        """Attach variant renditions to a photo, reporting each one separately."""
        documents = self.documents
        if documents.get_photo(collection_id, photo_id) is None:
            raise NotFoundError(f"Photo '{photo_id}' not found", details={"collection_id": collection_id})

        results: list[dict[str, Any]] = []
        for src in srcs:
            try:
                if not (src or "").strip():
                    raise ValidationError("Variant source URL is required", code="missing_src")
                variant = documents.add_variant(collection_id, photo_id, src.strip())
                results.append({"success": True, "variant_id": variant.id, "src": variant.src})
            except PhotoFolioError as e:
                logger.error("variant_add_failed", photo_id=photo_id, src=src, error=str(e))
                results.append({"success": False, "src": src, "error": e.user_message})
        return results

    def reorder_photos(self, collection_id: str, ordered_ids: list[str]) -> None:
        """
        Persist a manual order: the photo at index i gets position i.

        Raises:
            ValidationError: Duplicate ids, or ids not in the collection
        """
        documents = self.documents
        existing = {photo.id for photo in documents.list_photos(collection_id)}

        if len(set(ordered_ids)) != len(ordered_ids):
            raise ValidationError("Photo order contains duplicates", code="invalid_order")
        unknown = [photo_id for photo_id in ordered_ids if photo_id not in existing]
        if unknown:
            raise ValidationError(
                "Photo order references photos outside the collection",
                code="invalid_order",
                details={"collection_id": collection_id, "unknown_ids": unknown},
            )

        documents.set_photo_order(collection_id, ordered_ids)
        logger.info("photos_reordered", collection_id=collection_id, count=len(ordered_ids))

    # ------------------------------------------------------------------
    # reads

    def load_photos(self, collection_id: str) -> list[Photo]:
        documents = self.documents
        photos = documents.list_photos(collection_id)

        variants_by_photo = defaultdict(list)
        for variant in documents.list_variants(collection_id):
            variants_by_photo[variant.photo_id].append(variant)
        for photo in photos:
            photo.variants = variants_by_photo.get(photo.id, [])

        return sort_photos(photos)

    def load_collections(self, owner_name: str) -> list[Collection]:
        """The owner's collections with photos and variants, in display order."""
        collections = self.documents.list_collections((owner_name or "").strip().lower())
        for collection in collections:
            collection.photos = self.load_photos(collection.id)
        return sort_collections(collections)

    def subscribe(
        self,
        owner_name: str,
        on_next: Callable[[list[Collection]], None],
        on_error: Callable[[Exception], None] | None = None,
    ) -> "CollectionsSubscription":
        """
        Watch an owner's collections.

        ``on_next`` receives the current tree immediately and again after
        every relevant change. A failed read is terminal.
        """
        subscription = CollectionsSubscription(self, owner_name, on_next, on_error)
        subscription.start()
        return subscription


class CollectionsSubscription:
    """Live view of one owner's collections."""

    RELEVANT_TABLES = frozenset({"collections", "photos", "photo_variants"})

    def __init__(
        self,
        repository: GalleryRepository,
        owner_name: str,
        on_next: Callable[[list[Collection]], None],
        on_error: Callable[[Exception], None] | None = None,
    ):
        self.repository = repository
        self.owner_name = owner_name
        self.on_next = on_next
        self.on_error = on_error
        self.snapshot: list[Collection] | None = None
        self.error: Exception | None = None
        self.active = False
        self._lock = threading.RLock()
        self._unwatch: Callable[[], None] | None = None

    def start(self) -> None:
        self._unwatch = self.repository.documents.watch(self._on_change)
        self.active = True
        self.refresh()

    def _on_change(self, event: ChangeEvent) -> None:
        if event.table in self.RELEVANT_TABLES:
            self.refresh()

    def refresh(self) -> None:
        with self._lock:
            if not self.active:
                return

            try:
                snapshot = self.repository.load_collections(self.owner_name)
            except PhotoFolioError as e:
                logger.error("collections_subscription_failed", owner=self.owner_name, error=str(e))
                self.error = e
                self.unsubscribe()
                if self.on_error is not None:
                    self.on_error(e)
                return

            self.snapshot = snapshot
            self.on_next(snapshot)

    def unsubscribe(self) -> None:
        with self._lock:
            self.active = False
            if self._unwatch is not None:
                self._unwatch()
                self._unwatch = None
