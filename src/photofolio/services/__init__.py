"""
Services module for photofolio.

This module contains the service classes that hold the business logic:
- DocumentStore: DuckDB-backed document operations with change notifications
- StorageService: Google Cloud Storage operations
- UserDirectory: credential validation and account management
- GalleryRepository: collections, photos and variants
- CascadeDeleter: deletes that span object storage and the document store
- SessionManager: login state
- ImageProcessor / TitleGenerator: upload checks and AI titles
"""

from .documents import ChangeEvent, DocumentStore
from .storage import StorageService, build_object_name
from .users import DEFAULT_USERS, UserDirectory
from .gallery import CollectionsSubscription, GalleryRepository
from .cascade import CascadeDeleter, DeletionReport
from .session import SessionManager
from .image_processor import ImageProcessor
from .title_generator import TitleGenerator

__all__ = [
    "ChangeEvent",
    "DocumentStore",
    "StorageService",
    "build_object_name",
    "DEFAULT_USERS",
    "UserDirectory",
    "CollectionsSubscription",
    "GalleryRepository",
    "CascadeDeleter",
    "DeletionReport",
    "SessionManager",
    "ImageProcessor",
    "TitleGenerator",
]
