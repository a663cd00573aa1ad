"""
SQLite database connection and management utilities.
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import List, Optional

from hub_tracker.utils.errors import DatabaseError
from hub_tracker.utils.logging import get_business_logger


logger = get_business_logger('database')


class SQLiteDatabaseManager:
    """Manages SQLite database connections and operations."""

    def __init__(self, database_path: str = "data/hub.db"):
        """
        Initialize SQLite database manager.

        Args:
            database_path: Path to SQLite database file
        """
        self.database_path = Path(database_path)
        self.database_path.parent.mkdir(parents=True, exist_ok=True)

    def initialize(self) -> None:
        """Initialize the database and create tables."""
        try:
            self.create_tables()
            logger.info(f"SQLite database initialized at {self.database_path}")
        except sqlite3.Error as e:
            raise DatabaseError(
                "Failed to initialize SQLite database",
                {"error": str(e)}
            )

    @contextmanager
    def get_connection(self):
        """
        Get a database connection.

        Yields:
            SQLite database connection
        """
        conn = None
        try:
            conn = sqlite3.connect(
                str(self.database_path),
                timeout=30.0,
                check_same_thread=False
            )
            conn.execute("PRAGMA foreign_keys = ON")
            conn.row_factory = sqlite3.Row
            yield conn
        except sqlite3.Error as e:
            if conn:
                conn.rollback()
            raise DatabaseError(
                "SQLite database operation failed",
                {"error": str(e)}
            )
        finally:
            if conn:
                conn.close()

    @contextmanager
    def get_cursor(self):
        """
        Get a database cursor with automatic connection management.

        Yields:
            SQLite database cursor
        """
        with self.get_connection() as conn:
            cursor = conn.cursor()
            try:
                yield cursor
                conn.commit()
            except Exception:
                conn.rollback()
                raise
            finally:
                cursor.close()

    def execute_query(
        self,
        query: str,
        params: Optional[tuple] = None,
        fetch: bool = True
    ) -> Optional[List[sqlite3.Row]]:
        """
        Execute a SQL query.

        Args:
            query: SQL query string
            params: Query parameters
            fetch: Whether to fetch results

        Returns:
            Query results if fetch=True, None otherwise
        """
        with self.get_cursor() as cursor:
            cursor.execute(query, params or ())
            if fetch:
                return cursor.fetchall()
            return None

    def execute_update(self, query: str, params: Optional[tuple] = None) -> int:
        """
        Execute a write statement.

        Returns:
            Number of affected rows
        """
        with self.get_cursor() as cursor:
            cursor.execute(query, params or ())
            return cursor.rowcount

    def create_tables(self) -> None:
        """Create database tables if they don't exist."""

        create_repositories_table = """
        CREATE TABLE IF NOT EXISTS repositories (
            repository_id TEXT PRIMARY KEY,
            name TEXT NOT NULL UNIQUE,
            kind INTEGER NOT NULL,
            url TEXT NOT NULL,
            branch TEXT,
            digest TEXT,
            verified_publisher INTEGER NOT NULL DEFAULT 0,
            disabled INTEGER NOT NULL DEFAULT 0,
            last_tracking_ts TIMESTAMP,
            last_tracking_errors TEXT
        )
        """

        create_packages_table = """
        CREATE TABLE IF NOT EXISTS packages (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            repository_id TEXT NOT NULL REFERENCES repositories(repository_id) ON DELETE CASCADE,
            name TEXT NOT NULL,
            version TEXT NOT NULL,
            digest TEXT NOT NULL,
            description TEXT,
            app_version TEXT,
            logo_url TEXT,
            logo_image_id TEXT,
            content_url TEXT,
            data TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            UNIQUE(repository_id, name, version)
        )
        """

        create_images_table = """
        CREATE TABLE IF NOT EXISTS images (
            image_id TEXT PRIMARY KEY,
            data BLOB NOT NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
        """

        create_indexes = [
            "CREATE INDEX IF NOT EXISTS idx_packages_repository ON packages(repository_id)",
            "CREATE INDEX IF NOT EXISTS idx_repositories_kind ON repositories(kind)",
        ]

        with self.get_cursor() as cursor:
            cursor.execute(create_repositories_table)
            cursor.execute(create_packages_table)
            cursor.execute(create_images_table)
            for index_sql in create_indexes:
                cursor.execute(index_sql)
