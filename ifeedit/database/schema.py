"""
iFeedIt Database Schema
=======================

SQLite schema for the item store:
- items: feed items from the most recent ingestion run
- preferences: small key/value store (last successfully loaded feed URL)
"""

import sqlite3
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

ITEMS_TABLE = "items"
PREFERENCES_TABLE = "preferences"

COL_ID = "_id"
COL_PUB_DATE = "pub_date"
COL_TITLE = "title"
COL_LINK = "link"
COL_DESCRIPTION = "description"
COL_IMAGE_URL = "image_url"
COL_IMAGE_CONTENT = "image_content"

ITEM_COLUMNS = (
    COL_ID,
    COL_PUB_DATE,
    COL_TITLE,
    COL_LINK,
    COL_DESCRIPTION,
    COL_IMAGE_URL,
    COL_IMAGE_CONTENT,
)


class DatabaseSchema:
    """Database schema manager for the iFeedIt SQLite database."""

    def __init__(self, db_path: str = "data/ifeedit.db"):
        """Initialize database schema manager.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def create_tables(self) -> None:
        """Create all database tables."""
        with sqlite3.connect(self.db_path) as conn:
            self._create_items_table(conn)
            self._create_preferences_table(conn)
            self._create_indexes(conn)

            conn.commit()
            logger.info("Database schema created successfully")

    def _create_items_table(self, conn: sqlite3.Connection) -> None:
        """Create items table for ingested feed content."""
        # _id is assigned per run by the ingestion worker, not by SQLite
        conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {ITEMS_TABLE} (
                {COL_ID} INTEGER,
                {COL_PUB_DATE} INTEGER NOT NULL DEFAULT 0,
                {COL_TITLE} TEXT NOT NULL DEFAULT '',
                {COL_LINK} TEXT NOT NULL DEFAULT '',
                {COL_DESCRIPTION} TEXT NOT NULL DEFAULT '',
                {COL_IMAGE_URL} TEXT,
                {COL_IMAGE_CONTENT} BLOB
            )
        """
        )

    def _create_preferences_table(self, conn: sqlite3.Connection) -> None:
        """Create key/value preferences table."""
        conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {PREFERENCES_TABLE} (
                key TEXT PRIMARY KEY,
                value TEXT,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """
        )

    def _create_indexes(self, conn: sqlite3.Connection) -> None:
        """Create indexes for list ordering and detail lookup."""
        indexes = [
            f"CREATE INDEX IF NOT EXISTS idx_items_pub_date ON {ITEMS_TABLE}({COL_PUB_DATE})",
            f"CREATE INDEX IF NOT EXISTS idx_items_id ON {ITEMS_TABLE}({COL_ID})",
        ]

        for index_sql in indexes:
            conn.execute(index_sql)

    def drop_tables(self) -> None:
        """Drop all tables (for testing/reset purposes)."""
        with sqlite3.connect(self.db_path) as conn:
            for table in (ITEMS_TABLE, PREFERENCES_TABLE):
                conn.execute(f"DROP TABLE IF EXISTS {table}")

            conn.commit()
            logger.info("All database tables dropped")

    def get_connection(self) -> sqlite3.Connection:
        """Get database connection with dict-like row access."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def verify_schema(self) -> bool:
        """Verify database schema is correctly created."""
        try:
            with self.get_connection() as conn:
                cursor = conn.execute(
                    """
                    SELECT name FROM sqlite_master
                    WHERE type='table' AND name NOT LIKE 'sqlite_%'
                    ORDER BY name
                """
                )

                tables = {row[0] for row in cursor.fetchall()}
                expected_tables = {ITEMS_TABLE, PREFERENCES_TABLE}

                if not expected_tables.issubset(tables):
                    logger.error(
                        f"Missing tables. Expected: {expected_tables}, Found: {tables}"
                    )
                    return False

                columns = {
                    row[1] for row in conn.execute(f"PRAGMA table_info({ITEMS_TABLE})")
                }
                missing = set(ITEM_COLUMNS) - columns
                if missing:
                    logger.error(f"Missing item columns: {sorted(missing)}")
                    return False

                logger.info("Database schema verification passed")
                return True

        except sqlite3.Error as e:
            logger.error(f"Schema verification failed: {e}")
            return False
