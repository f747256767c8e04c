"""
Models module for photofolio.

This module contains data models and schemas:
- User, Collection, Photo, PhotoVariant: gallery documents
- Database schemas and table definitions
- DatabaseManager: DuckDB connection and schema management
"""

from .database import DatabaseManager, create_database
from .gallery import Collection, Photo, PhotoVariant, User
from .schema import get_schema_statements, validate_schema_compatibility

__all__ = [
    "Collection",
    "Photo",
    "PhotoVariant",
    "User",
    "DatabaseManager",
    "create_database",
    "get_schema_statements",
    "validate_schema_compatibility",
]
