"""
photofolio - Multi-user photo gallery backend

A backend for organising personal photo collections with features including:
- Photo and variant binaries stored in Google Cloud Storage
- Users, collections, photos and variants kept in a DuckDB document store
- Cascading deletion of photos, collections and whole users
- Live, sorted views of a user's collections
- Optional AI-generated photo titles
"""

__version__ = "0.1.0"
__author__ = "photofolio"
__description__ = "Multi-user photo gallery backend"
