"""
Document store client backed by DuckDB.

The store exposes the hierarchy the gallery works with as plain document
operations:

    users
    collections
    collections/{collection_id}/photos
    collections/{collection_id}/photos/{photo_id}/variants

Each table row is one document. Creation timestamps are assigned here, never
by callers, and are strictly increasing so that "newest first" ordering is
stable even for documents written in the same microsecond.

Every committed mutation is announced to watchers as a ChangeEvent after the
write. Watchers run on the writer's thread; a failing watcher is logged and
never affects the write that triggered it.

All DuckDB failures surface as DatabaseError. Updating a document that does
not exist raises NotFoundError; deleting one returns False.
"""

import contextlib
import threading
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import duckdb

from ..errors import DatabaseError, NotFoundError
from ..logging_config import get_logger, log_error
from ..models.database import DatabaseManager
from ..models.gallery import Collection, Photo, PhotoVariant, User

logger = get_logger(__name__)

USER_COLUMNS = "id, name, password_hash, created_at"
COLLECTION_COLUMNS = "id, title, owner_name, created_at"
PHOTO_COLUMNS = "id, collection_id, src, title, created_at, sort_order"
VARIANT_COLUMNS = "id, collection_id, photo_id, src, created_at"


@dataclass(frozen=True)
class ChangeEvent:
    """A committed change to one document."""

    table: str
    action: str
    document_id: str
    parent_id: str | None = None


ChangeListener = Callable[[ChangeEvent], None]


class DocumentStore:
    """Thread-safe document operations over a single DuckDB connection."""

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager
        self._lock = threading.RLock()
        self._listeners: list[ChangeListener] = []
        self._last_timestamp: datetime | None = None

    # ------------------------------------------------------------------
    # plumbing

    def _now(self) -> datetime:
        """Server-assigned creation time (naive UTC, strictly increasing)."""
        with self._lock:
            now = datetime.now(UTC).replace(tzinfo=None)
            if self._last_timestamp is not None and now <= self._last_timestamp:
                now = self._last_timestamp + timedelta(microseconds=1)
            self._last_timestamp = now
            return now

    def _execute(self, operation: str, query: str, parameters: Sequence | None = None) -> list[tuple]:
        try:
            with self._lock:
                return self.db_manager.execute_query(query, parameters)
        except duckdb.Error as e:
            raise DatabaseError(
                f"Document store operation '{operation}' failed: {e}",
                details={"operation": operation},
                original_exception=e,
            ) from e

    def _execute_batch(self, operation: str, statements: list[tuple[str, Sequence]]) -> None:
        """Run several statements in one transaction."""
        with self._lock:
            conn = self.db_manager.connect()
            try:
                conn.begin()
                for query, parameters in statements:
                    conn.execute(query, parameters)
                conn.commit()
            except duckdb.Error as e:
                with contextlib.suppress(duckdb.Error):
                    conn.rollback()
                raise DatabaseError(
                    f"Document store batch '{operation}' failed: {e}",
                    details={"operation": operation, "statements": len(statements)},
                    original_exception=e,
                ) from e

    def _delete(self, operation: str, table: str, where: str, parameters: Sequence, event: ChangeEvent) -> bool:
        with self._lock:
            if not self._execute(operation, f"SELECT id FROM {table} WHERE {where}", parameters):
                logger.warning("document_not_found_for_deletion", table=table, document_id=event.document_id)
                return False
            self._execute(operation, f"DELETE FROM {table} WHERE {where}", parameters)

        logger.debug("document_deleted", table=table, document_id=event.document_id)
        self._notify(event)
        return True

    def _update(self, operation: str, table: str, assignments: str, where: str, parameters: Sequence,
                event: ChangeEvent) -> None:
        where_parameters = parameters[-where.count("?"):]
        with self._lock:
            if not self._execute(operation, f"SELECT id FROM {table} WHERE {where}", where_parameters):
                raise NotFoundError(
                    f"Document '{event.document_id}' not found in {table}",
                    details={"table": table, "document_id": event.document_id},
                )
            self._execute(operation, f"UPDATE {table} SET {assignments} WHERE {where}", parameters)

        self._notify(event)

    def watch(self, listener: ChangeListener) -> Callable[[], None]:
        """
        Register a change listener.

        Returns:
            A callable that detaches the listener.
        """
        with self._lock:
            self._listeners.append(listener)

        def unwatch() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unwatch

    def _notify(self, event: ChangeEvent) -> None:
        with self._lock:
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(event)
            except Exception as e:
                log_error(e, {"operation": "change_listener", "table": event.table, "action": event.action})

    def close(self) -> None:
        """Detach all listeners and close the connection."""
        with self._lock:
            self._listeners.clear()
            self.db_manager.close()

    # ------------------------------------------------------------------
    # users

    def count_users(self) -> int:
        result = self._execute("count_users", "SELECT COUNT(*) FROM users")
        return result[0][0] if result else 0

    def find_user(self, name: str) -> User | None:
        """Equality lookup on the stored (lowercase) name."""
        result = self._execute("find_user", f"SELECT {USER_COLUMNS} FROM users WHERE name = ?", (name,))
        return User.from_row(result[0]) if result else None

    def list_users(self) -> list[User]:
        result = self._execute("list_users", f"SELECT {USER_COLUMNS} FROM users ORDER BY name")
        return [User.from_row(row) for row in result]

    def add_user(self, name: str, password_hash: str | None) -> User:
        user = User(id=str(uuid.uuid4()), name=name, password_hash=password_hash, created_at=self._now())
        self._execute(
            "add_user",
            "INSERT INTO users (id, name, password_hash, created_at) VALUES (?, ?, ?, ?)",
            (user.id, user.name, user.password_hash, user.created_at),
        )
        user.created_at = user.created_at.replace(tzinfo=UTC)
        self._notify(ChangeEvent("users", "added", user.id))
        return user

    def add_users(self, records: list[tuple[str, str | None]]) -> list[User]:
        """Insert several users atomically: either all of them or none."""
        users = [
            User(id=str(uuid.uuid4()), name=name, password_hash=password_hash, created_at=self._now())
            for name, password_hash in records
        ]
        self._execute_batch(
            "add_users",
            [
                (
                    "INSERT INTO users (id, name, password_hash, created_at) VALUES (?, ?, ?, ?)",
                    (user.id, user.name, user.password_hash, user.created_at),
                )
                for user in users
            ],
        )
        for user in users:
            user.created_at = user.created_at.replace(tzinfo=UTC)
            self._notify(ChangeEvent("users", "added", user.id))
        return users

    def update_user_password(self, user_id: str, password_hash: str) -> None:
        self._update(
            "update_user_password",
            "users",
            "password_hash = ?",
            "id = ?",
            (password_hash, user_id),
            ChangeEvent("users", "modified", user_id),
        )

    def delete_user(self, user_id: str) -> bool:
        return self._delete("delete_user", "users", "id = ?", (user_id,), ChangeEvent("users", "removed", user_id))

    # ------------------------------------------------------------------
    # collections

    def add_collection(self, title: str, owner_name: str) -> Collection:
        created_at = self._now()
        collection_id = str(uuid.uuid4())
        self._execute(
            "add_collection",
            "INSERT INTO collections (id, title, owner_name, created_at) VALUES (?, ?, ?, ?)",
            (collection_id, title, owner_name, created_at),
        )
        self._notify(ChangeEvent("collections", "added", collection_id))
        return Collection(id=collection_id, title=title, owner_name=owner_name, created_at=created_at.replace(tzinfo=UTC))

    def get_collection(self, collection_id: str) -> Collection | None:
        result = self._execute(
            "get_collection", f"SELECT {COLLECTION_COLUMNS} FROM collections WHERE id = ?", (collection_id,)
        )
        return Collection.from_row(result[0]) if result else None

    def list_collections(self, owner_name: str) -> list[Collection]:
        result = self._execute(
            "list_collections",
            f"SELECT {COLLECTION_COLUMNS} FROM collections WHERE owner_name = ? ORDER BY created_at DESC",
            (owner_name,),
        )
        return [Collection.from_row(row) for row in result]

    def update_collection_title(self, collection_id: str, title: str) -> None:
        self._update(
            "update_collection_title",
            "collections",
            "title = ?",
            "id = ?",
            (title, collection_id),
            ChangeEvent("collections", "modified", collection_id),
        )

    def delete_collection(self, collection_id: str) -> bool:
        return self._delete(
            "delete_collection",
            "collections",
            "id = ?",
            (collection_id,),
            ChangeEvent("collections", "removed", collection_id),
        )

    # ------------------------------------------------------------------
    # photos

    def add_photo(self, collection_id: str, src: str, title: str) -> Photo:
        created_at = self._now()
        photo_id = str(uuid.uuid4())
        self._execute(
            "add_photo",
            "INSERT INTO photos (id, collection_id, src, title, created_at, sort_order) VALUES (?, ?, ?, ?, ?, NULL)",
            (photo_id, collection_id, src, title, created_at),
        )
        self._notify(ChangeEvent("photos", "added", photo_id, collection_id))
        return Photo(
            id=photo_id, collection_id=collection_id, src=src, title=title, created_at=created_at.replace(tzinfo=UTC)
        )

    def get_photo(self, collection_id: str, photo_id: str) -> Photo | None:
        result = self._execute(
            "get_photo",
            f"SELECT {PHOTO_COLUMNS} FROM photos WHERE id = ? AND collection_id = ?",
            (photo_id, collection_id),
        )
        return Photo.from_row(result[0]) if result else None

    def list_photos(self, collection_id: str) -> list[Photo]:
        result = self._execute(
            "list_photos",
            f"SELECT {PHOTO_COLUMNS} FROM photos WHERE collection_id = ? ORDER BY created_at DESC",
            (collection_id,),
        )
        return [Photo.from_row(row) for row in result]

    def update_photo_title(self, collection_id: str, photo_id: str, title: str) -> None:
        self._update(
            "update_photo_title",
            "photos",
            "title = ?",
            "id = ? AND collection_id = ?",
            (title, photo_id, collection_id),
            ChangeEvent("photos", "modified", photo_id, collection_id),
        )

    def set_photo_order(self, collection_id: str, ordered_ids: list[str]) -> None:
        """
        Persist ``sort_order = index`` for every id, in one transaction.

        Photos of the collection that are not listed lose their position.
        """
        positioned = self._execute(
            "set_photo_order",
            "SELECT id FROM photos WHERE collection_id = ? AND sort_order IS NOT NULL",
            (collection_id,),
        )
        self._execute_batch(
            "set_photo_order",
            [("UPDATE photos SET sort_order = NULL WHERE collection_id = ?", (collection_id,))]
            + [
                ("UPDATE photos SET sort_order = ? WHERE id = ? AND collection_id = ?", (index, photo_id, collection_id))
                for index, photo_id in enumerate(ordered_ids)
            ],
        )
        listed = set(ordered_ids)
        cleared = [row[0] for row in positioned if row[0] not in listed]
        for photo_id in [*ordered_ids, *cleared]:
            self._notify(ChangeEvent("photos", "modified", photo_id, collection_id))

    def delete_photo(self, collection_id: str, photo_id: str) -> bool:
        return self._delete(
            "delete_photo",
            "photos",
            "id = ? AND collection_id = ?",
            (photo_id, collection_id),
            ChangeEvent("photos", "removed", photo_id, collection_id),
        )

    # ------------------------------------------------------------------
    # variants

    def add_variant(self, collection_id: str, photo_id: str, src: str) -> PhotoVariant:
        created_at = self._now()
        variant_id = str(uuid.uuid4())
        self._execute(
            "add_variant",
            "INSERT INTO photo_variants (id, collection_id, photo_id, src, created_at) VALUES (?, ?, ?, ?, ?)",
            (variant_id, collection_id, photo_id, src, created_at),
        )
        self._notify(ChangeEvent("photo_variants", "added", variant_id, photo_id))
        return PhotoVariant(
            id=variant_id,
            collection_id=collection_id,
            photo_id=photo_id,
            src=src,
            created_at=created_at.replace(tzinfo=UTC),
        )

    def get_variant(self, collection_id: str, photo_id: str, variant_id: str) -> PhotoVariant | None:
        result = self._execute(
            "get_variant",
            f"SELECT {VARIANT_COLUMNS} FROM photo_variants WHERE id = ? AND photo_id = ? AND collection_id = ?",
            (variant_id, photo_id, collection_id),
        )
        return PhotoVariant.from_row(result[0]) if result else None

    def list_variants(self, collection_id: str, photo_id: str | None = None) -> list[PhotoVariant]:
        """Variants of one photo, or of every photo in the collection when ``photo_id`` is None."""
        if photo_id is None:
            result = self._execute(
                "list_variants",
                f"SELECT {VARIANT_COLUMNS} FROM photo_variants WHERE collection_id = ? ORDER BY created_at DESC",
                (collection_id,),
            )
        else:
            result = self._execute(
                "list_variants",
                f"SELECT {VARIANT_COLUMNS} FROM photo_variants "
                "WHERE collection_id = ? AND photo_id = ? ORDER BY created_at DESC",
                (collection_id, photo_id),
            )
        return [PhotoVariant.from_row(row) for row in result]

    def delete_variant(self, collection_id: str, photo_id: str, variant_id: str) -> bool:
        return self._delete(
            "delete_variant",
            "photo_variants",
            "id = ? AND photo_id = ? AND collection_id = ?",
            (variant_id, photo_id, collection_id),
            ChangeEvent("photo_variants", "removed", variant_id, photo_id),
        )
