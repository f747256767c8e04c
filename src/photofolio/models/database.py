"""
Database initialization and management for photofolio.

This module provides functions to initialize the DuckDB file backing the
document store and manage its connection.
"""

from pathlib import Path
from typing import Any

import duckdb

from ..logging_config import get_logger
from .schema import REQUIRED_COLUMNS, get_schema_statements, validate_schema_compatibility

logger = get_logger(__name__)

IN_MEMORY = ":memory:"


class DatabaseManager:
    """
    Manages a DuckDB database connection and its schema.
    """

    def __init__(self, db_path: str):
        """
        Initialize DatabaseManager.

        Args:
            db_path: Path to the DuckDB database file, or ":memory:"
        """
        self.db_path = db_path
        self._connection: duckdb.DuckDBPyConnection | None = None

    def connect(self) -> duckdb.DuckDBPyConnection:
        """
        Get or create a database connection.

        Returns:
            DuckDB connection object
        """
        if self._connection is None:
            self._connection = duckdb.connect(self.db_path)
            logger.info("database_connected", db_path=self.db_path)

        return self._connection

    def close(self) -> None:
        """Close the database connection."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None
            logger.info("database_closed", db_path=self.db_path)

    def initialize_schema(self) -> None:
        """
        Create all tables and indexes if they don't exist.

        Raises:
            RuntimeError: If schema validation fails
            duckdb.Error: If database operations fail
        """
        if not validate_schema_compatibility():
            raise RuntimeError("Schema is not compatible with the gallery models")

        conn = self.connect()

        try:
            for statement in get_schema_statements():
                logger.debug("executing_schema_statement", statement=statement.strip().splitlines()[0])
                conn.execute(statement)

            logger.info("database_schema_initialized", db_path=self.db_path)

        except duckdb.Error as e:
            logger.error("database_schema_initialization_failed", error=str(e))
            raise

    def verify_schema(self) -> bool:
        """
        Verify that every table exists with the expected columns.

        Returns:
            True if schema is valid, False otherwise
        """
        conn = self.connect()

        try:
            for table, required_columns in REQUIRED_COLUMNS.items():
                result = conn.execute(
                    "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (table,)
                ).fetchone()

                if not result:
                    logger.warning("table_missing", table=table)
                    return False

                columns = conn.execute(f"PRAGMA table_info('{table}')").fetchall()
                column_names = {col[1] for col in columns}

                missing_columns = required_columns - column_names
                if missing_columns:
                    logger.warning("columns_missing", table=table, missing=sorted(missing_columns))
                    return False

            logger.debug("database_schema_verified", db_path=self.db_path)
            return True

        except duckdb.Error as e:
            logger.error("database_schema_verification_failed", error=str(e))
            return False

    def execute_query(self, query: str, parameters: tuple | list | None = None) -> list[tuple]:
        """
        Execute a SQL query and return results.

        Args:
            query: SQL query string
            parameters: Optional query parameters

        Returns:
            List of result tuples

        Raises:
            duckdb.Error: If query execution fails
        """
        conn = self.connect()

        try:
            if parameters:
                result = conn.execute(query, parameters)
            else:
                result = conn.execute(query)

            return result.fetchall()

        except duckdb.Error as e:
            logger.error("query_execution_failed", query=query.strip().splitlines()[0], error=str(e))
            raise

    def __enter__(self) -> "DatabaseManager":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


def create_database(db_path: str) -> DatabaseManager:
    """
    Open (creating if needed) a DuckDB database and make sure its schema exists.

    Args:
        db_path: Path of the database file, or ":memory:"

    Returns:
        Initialized DatabaseManager instance

    Raises:
        RuntimeError: If database creation fails
    """
    try:
        if db_path != IN_MEMORY:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        db_manager = DatabaseManager(db_path)
        db_manager.initialize_schema()

        if not db_manager.verify_schema():
            raise RuntimeError("Schema verification failed after creation")

        logger.info("database_ready", db_path=db_path)
        return db_manager

    except Exception as e:
        logger.error("database_creation_failed", db_path=db_path, error=str(e))
        raise RuntimeError(f"Database creation failed: {e}") from e
