"""
Document store schema definitions for photofolio.

Each table holds one kind of document. Child tables carry the ids of their
parents, mirroring the nesting users / collections / photos / variants.
"""

from typing import List

USERS_TABLE_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL UNIQUE,
    password_hash TEXT,
    created_at TIMESTAMP NOT NULL
);
"""

COLLECTIONS_TABLE_SCHEMA = """
CREATE TABLE IF NOT EXISTS collections (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    owner_name TEXT NOT NULL,
    created_at TIMESTAMP NOT NULL
);
"""

PHOTOS_TABLE_SCHEMA = """
CREATE TABLE IF NOT EXISTS photos (
    id TEXT PRIMARY KEY,
    collection_id TEXT NOT NULL,
    src TEXT NOT NULL,
    title TEXT NOT NULL,
    created_at TIMESTAMP NOT NULL,
    sort_order INTEGER
);
"""

PHOTO_VARIANTS_TABLE_SCHEMA = """
CREATE TABLE IF NOT EXISTS photo_variants (
    id TEXT PRIMARY KEY,
    collection_id TEXT NOT NULL,
    photo_id TEXT NOT NULL,
    src TEXT NOT NULL,
    created_at TIMESTAMP NOT NULL
);
"""

TABLE_SCHEMAS = {
    "users": USERS_TABLE_SCHEMA,
    "collections": COLLECTIONS_TABLE_SCHEMA,
    "photos": PHOTOS_TABLE_SCHEMA,
    "photo_variants": PHOTO_VARIANTS_TABLE_SCHEMA,
}

REQUIRED_COLUMNS = {
    "users": {"id", "name", "password_hash", "created_at"},
    "collections": {"id", "title", "owner_name", "created_at"},
    "photos": {"id", "collection_id", "src", "title", "created_at", "sort_order"},
    "photo_variants": {"id", "collection_id", "photo_id", "src", "created_at"},
}

INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_collections_owner ON collections(owner_name);",
    "CREATE INDEX IF NOT EXISTS idx_photos_collection ON photos(collection_id);",
    "CREATE INDEX IF NOT EXISTS idx_variants_photo ON photo_variants(collection_id, photo_id);",
]


def get_schema_statements() -> List[str]:
    """
    Get all schema creation statements, tables first.

    Returns:
        List of SQL statements to create tables and indexes
    """
    return list(TABLE_SCHEMAS.values()) + INDEXES


def validate_schema_compatibility() -> bool:
    """
    Check that every column the models rely on is declared in the schema.

    Returns:
        True if schema is compatible, False otherwise
    """
    for table, columns in REQUIRED_COLUMNS.items():
        schema_lower = TABLE_SCHEMAS[table].lower()
        for column in columns:
            if f"    {column} " not in schema_lower:
                return False

    return True
