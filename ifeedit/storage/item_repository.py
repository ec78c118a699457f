"""
Item Repository
===============

Data access for ingested feed items. The ingestion worker only needs
delete-all and insert; the read side serves list and detail views.
"""

from typing import List, Optional

from ..database.models import FeedItem
from ..database.connection import DatabaseConnection
from ..database.schema import (
    ITEMS_TABLE,
    ITEM_COLUMNS,
    COL_ID,
    COL_PUB_DATE,
    COL_TITLE,
)
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import DatabaseError, ErrorCode


class ItemRepository:
    """Repository for FeedItem storage with database abstraction."""

    def __init__(self, db_connection: DatabaseConnection):
        """Initialize item repository.

        Args:
            db_connection: Database connection manager
        """
        self.db = db_connection
        self.logger = get_logger_for_component("item_repository")

    def delete_all(self) -> int:
        """Remove every stored item.

        Returns:
            Number of items deleted

        Raises:
            DatabaseError: If deletion fails
        """
        try:
            deleted = self.db.execute_update(f"DELETE FROM {ITEMS_TABLE}")
            self.logger.info(f"Deleted {deleted} stored items")
            return deleted

        except Exception as e:
            raise DatabaseError(
                f"Failed to delete items: {e}",
                error_code=ErrorCode.DATABASE_ERROR
            ) from e

    def insert_item(self, item: FeedItem) -> int:
        """Insert one item and commit immediately.

        Args:
            item: FeedItem to store

        Returns:
            The item id

        Raises:
            DatabaseError: If the insert fails
        """
        row = item.to_db_row()
        placeholders = ", ".join("?" for _ in ITEM_COLUMNS)

        try:
            self.db.execute_update(
                f"INSERT INTO {ITEMS_TABLE} ({', '.join(ITEM_COLUMNS)}) VALUES ({placeholders})",
                tuple(row[column] for column in ITEM_COLUMNS)
            )
            self.logger.debug(f"Stored item {item.id}: {item.title[:60]}")
            return item.id

        except Exception as e:
            raise DatabaseError(
                f"Failed to insert item {item.id}: {e}",
                error_code=ErrorCode.DATABASE_ERROR
            ) from e

    def query_items(self, title_filter: Optional[str] = None) -> List[FeedItem]:
        """Get items, newest first, optionally filtered by title substring.

        Args:
            title_filter: Text that must appear in the title; None or empty
                returns everything

        Returns:
            List of FeedItem models ordered by publication date descending
        """
        query = f"SELECT {', '.join(ITEM_COLUMNS)} FROM {ITEMS_TABLE}"
        params: tuple = ()

        if title_filter:
            query += f" WHERE {COL_TITLE} LIKE ? ESCAPE '\\'"
            params = (f"%{_escape_like(title_filter)}%",)

        query += f" ORDER BY {COL_PUB_DATE} DESC, {COL_ID} ASC"

        try:
            rows = self.db.execute_query(query, params)
            return [FeedItem.from_db_row(row) for row in rows]

        except Exception as e:
            raise DatabaseError(
                f"Failed to query items: {e}",
                query=query,
                error_code=ErrorCode.DATABASE_ERROR
            ) from e

    def get_item(self, item_id: int) -> Optional[FeedItem]:
        """Get item by id.

        Args:
            item_id: Item id to retrieve

        Returns:
            FeedItem or None if not found
        """
        try:
            row = self.db.execute_one(
                f"SELECT {', '.join(ITEM_COLUMNS)} FROM {ITEMS_TABLE} WHERE {COL_ID} = ?",
                (item_id,)
            )
            return FeedItem.from_db_row(row) if row else None

        except Exception as e:
            self.logger.error(f"Failed to get item {item_id}: {e}")
            return None

    def count_items(self) -> int:
        """Count stored items."""
        row = self.db.execute_one(f"SELECT COUNT(*) FROM {ITEMS_TABLE}")
        return row[0] if row else 0


def _escape_like(text: str) -> str:
    """Escape LIKE wildcards so the filter matches literally."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
