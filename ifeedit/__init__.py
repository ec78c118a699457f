"""
iFeedIt - RSS Feed Reader
=========================

Fetches one RSS feed, stream-parses its items, downloads their images and
keeps the latest content in a local SQLite store.

Main Components:
- Ingestion: feed fetch, pull parser, image download, refresh orchestration
- Database: SQLite with connection pooling and schema management
- Configuration: environment variables with Pydantic validation
"""

__version__ = "1.0.0"
__author__ = "iFeedIt Development Team"
__description__ = "RSS feed ingestion and reader"

from .config.settings import get_settings
from .database.connection import get_db_manager
from .database.schema import DatabaseSchema
from .utils.logging import configure_application_logging, get_logger_for_component
from .utils.exceptions import IFeedItError

__all__ = [
    "get_settings",
    "get_db_manager",
    "DatabaseSchema",
    "configure_application_logging",
    "get_logger_for_component",
    "IFeedItError",
]
