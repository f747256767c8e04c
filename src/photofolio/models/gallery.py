"""
Gallery document models for photofolio.

Containment is strict: a collection owns its photos and a photo owns its
variants. Binaries are referenced only through the ``src`` URL.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any


def as_utc(value: datetime | str | None) -> datetime | None:
    """Normalise a timestamp read from the store to an aware UTC datetime."""
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


@dataclass
class User:
    """A gallery account. Names are stored lowercase."""

    id: str
    name: str
    password_hash: str | None = field(default=None, repr=False)
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row: tuple) -> "User":
        return cls(id=row[0], name=row[1], password_hash=row[2], created_at=as_utc(row[3]))

    def to_dict(self) -> dict[str, Any]:
        # The hash never leaves the directory
        return {
            "id": self.id,
            "name": self.name,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class PhotoVariant:
    """An alternative rendition of a photo."""

    id: str
    collection_id: str
    photo_id: str
    src: str
    created_at: datetime

    @classmethod
    def from_row(cls, row: tuple) -> "PhotoVariant":
        return cls(id=row[0], collection_id=row[1], photo_id=row[2], src=row[3], created_at=as_utc(row[4]))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "collection_id": self.collection_id,
            "photo_id": self.photo_id,
            "src": self.src,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class Photo:
    """
    A photo document inside a collection.

    ``sort_order`` is set once the owner has manually rearranged the
    collection; ``variants`` is populated when the tree is materialised.
    """

    id: str
    collection_id: str
    src: str
    title: str
    created_at: datetime
    sort_order: int | None = None
    variants: list[PhotoVariant] = field(default_factory=list)

    @classmethod
    def from_row(cls, row: tuple) -> "Photo":
        return cls(
            id=row[0],
            collection_id=row[1],
            src=row[2],
            title=row[3],
            created_at=as_utc(row[4]),
            sort_order=row[5],
        )

    def blob_urls(self) -> list[str]:
        """URLs of every blob owned by this photo, its own first."""
        return [self.src] + [variant.src for variant in self.variants]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "collection_id": self.collection_id,
            "src": self.src,
            "title": self.title,
            "created_at": self.created_at.isoformat(),
            "sort_order": self.sort_order,
            "variants": [variant.to_dict() for variant in self.variants],
        }


@dataclass
class Collection:
    """A named set of photos owned by exactly one user."""

    id: str
    title: str
    owner_name: str
    created_at: datetime
    photos: list[Photo] = field(default_factory=list)

    @classmethod
    def from_row(cls, row: tuple) -> "Collection":
        return cls(id=row[0], title=row[1], owner_name=row[2], created_at=as_utc(row[3]))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "owner_name": self.owner_name,
            "created_at": self.created_at.isoformat(),
            "photos": [photo.to_dict() for photo in self.photos],
        }
