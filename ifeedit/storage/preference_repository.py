"""
Preference Repository
=====================

Small key/value store kept next to the items. The application remembers
the last feed URL that was loaded successfully so it can skip reloading an
unchanged feed.
"""

from typing import Optional

from ..database.connection import DatabaseConnection
from ..database.schema import PREFERENCES_TABLE
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import DatabaseError, ErrorCode

LAST_FEED_URL_KEY = "last_feed_url_loaded"


class PreferenceRepository:
    """Repository for string preferences."""

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection
        self.logger = get_logger_for_component("preference_repository")

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Get a preference value, or default when unset."""
        row = self.db.execute_one(
            f"SELECT value FROM {PREFERENCES_TABLE} WHERE key = ?", (key,)
        )
        if row is None:
            return default
        return row["value"]

    def set(self, key: str, value: str) -> None:
        """Create or replace a preference value.

        Raises:
            DatabaseError: If the write fails
        """
        try:
            self.db.execute_update(
                f"""
                INSERT INTO {PREFERENCES_TABLE} (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, value)
            )
            self.logger.debug(f"Preference {key} updated")

        except Exception as e:
            raise DatabaseError(
                f"Failed to store preference {key}: {e}",
                error_code=ErrorCode.DATABASE_ERROR
            ) from e

    def get_last_loaded_url(self) -> str:
        """URL of the last successful refresh, empty string if none."""
        return self.get(LAST_FEED_URL_KEY, "") or ""

    def set_last_loaded_url(self, url: str) -> None:
        self.set(LAST_FEED_URL_KEY, url)
