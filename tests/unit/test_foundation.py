"""
Foundation Tests for iFeedIt
============================

Test suite for core foundation components: database schema and connection
pool, data models, configuration, logging and the exception hierarchy.
"""

import json
import logging
import sqlite3
from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError

from ifeedit.config.settings import DEFAULT_FEED_URL, IFeedItSettings, get_settings, load_settings
from ifeedit.database.connection import DatabaseConnection
from ifeedit.database.models import MAX_IMAGE_BYTES, FeedItem, IngestionStats
from ifeedit.database.schema import ITEM_COLUMNS, DatabaseSchema
from ifeedit.utils.exceptions import (
    ConfigurationError,
    DatabaseError,
    DateUnparsableError,
    ErrorCode,
    FeedFetchError,
    IFeedItError,
    ImageUnavailableError,
    MalformedFeedError,
    RefreshInProgressError,
    get_user_friendly_message,
    handle_exception,
)
from ifeedit.utils.logging import (
    PerformanceLogger,
    StructuredFormatter,
    get_logger_for_component,
    setup_logger,
)


class TestDatabaseSchema:
    """Test database schema creation and validation."""

    def test_create_tables(self, tmp_path):
        db_path = tmp_path / "test.db"
        DatabaseSchema(str(db_path)).create_tables()

        with sqlite3.connect(db_path) as conn:
            tables = {
                row[0] for row in conn.execute(
                    "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'"
                )
            }
            columns = [row[1] for row in conn.execute("PRAGMA table_info(items)")]

        assert tables == {"items", "preferences"}
        assert tuple(columns) == ITEM_COLUMNS

    def test_verify_schema(self, tmp_path):
        schema = DatabaseSchema(str(tmp_path / "test.db"))

        assert not schema.verify_schema()
        schema.create_tables()
        assert schema.verify_schema()

    def test_create_tables_is_idempotent(self, tmp_path):
        schema = DatabaseSchema(str(tmp_path / "test.db"))
        schema.create_tables()
        schema.create_tables()
        assert schema.verify_schema()

    def test_drop_tables(self, tmp_path):
        schema = DatabaseSchema(str(tmp_path / "test.db"))
        schema.create_tables()
        schema.drop_tables()
        assert not schema.verify_schema()


class TestDatabaseConnection:
    """Test the pooled connection manager."""

    def test_execute_helpers(self, db_connection):
        assert db_connection.execute_update(
            "INSERT INTO preferences (key, value) VALUES (?, ?)", ("a", "1")
        ) == 1
        assert db_connection.execute_one("SELECT value FROM preferences WHERE key = ?", ("a",))["value"] == "1"
        assert len(db_connection.execute_query("SELECT * FROM preferences")) == 1

    def test_transaction_commits(self, db_connection):
        with db_connection.transaction() as conn:
            conn.execute("INSERT INTO preferences (key, value) VALUES ('k', 'v')")

        assert db_connection.execute_one("SELECT value FROM preferences WHERE key = 'k'")["value"] == "v"

    def test_transaction_rolls_back(self, db_connection):
        with pytest.raises(sqlite3.IntegrityError):
            with db_connection.transaction() as conn:
                conn.execute("INSERT INTO preferences (key, value) VALUES ('k', 'v')")
                conn.execute("INSERT INTO preferences (key, value) VALUES ('k', 'again')")

        assert db_connection.execute_one("SELECT value FROM preferences WHERE key = 'k'") is None

    def test_database_info(self, db_connection):
        info = db_connection.get_database_info()

        assert info["table_counts"] == {"items": 0, "preferences": 0}
        assert info["database_size_mb"] > 0

    def test_connections_are_reused(self, temp_db):
        connection = DatabaseConnection(temp_db, pool_size=1)

        with connection.get_connection() as first:
            pass
        with connection.get_connection() as second:
            pass

        assert first is second
        connection.close_all_connections()


class TestFeedItem:
    """Test FeedItem model validation."""

    def test_defaults(self):
        item = FeedItem(id=0)

        assert item.title == ""
        assert item.link == ""
        assert item.description == ""
        assert item.image_url is None
        assert item.image_content is None
        assert item.published_at == 0
        assert item.published is None

    def test_none_text_becomes_empty(self):
        item = FeedItem(id=1, title=None, link=None, description=None)
        assert (item.title, item.link, item.description) == ("", "", "")

    def test_negative_id_rejected(self):
        with pytest.raises(ValidationError):
            FeedItem(id=-1)

    def test_image_cap(self):
        FeedItem(id=0, image_content=b"x" * MAX_IMAGE_BYTES)
        with pytest.raises(ValidationError):
            FeedItem(id=0, image_content=b"x" * (MAX_IMAGE_BYTES + 1))

    def test_published_datetime(self):
        item = FeedItem(id=0, published_at=1_630_946_700_000)
        assert item.published.isoformat() == "2021-09-06T16:45:00+00:00"

    def test_db_row_round_trip(self):
        item = FeedItem(id=3, title="t", link="l", description="d",
                        image_url="u", image_content=b"\x00\x01", published_at=5)
        assert FeedItem.from_db_row(item.to_db_row()) == item

    def test_str(self):
        assert str(FeedItem(id=7, title="Hello")) == "FeedItem(7:Hello)"

    def test_stats_defaults(self):
        stats = IngestionStats()
        assert stats.items_stored == 0
        assert stats.duration_seconds == 0.0


class TestConfiguration:
    """Test settings loading from the environment."""

    def test_environment_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("IFEEDIT_FEED__URL", "https://news.example.org/rss")
        monkeypatch.setenv("IFEEDIT_DATABASE__PATH", str(tmp_path / "x.db"))
        monkeypatch.setenv("IFEEDIT_LOGGING__LEVEL", "WARNING")

        settings = load_settings()

        assert settings.feed.url == "https://news.example.org/rss"
        assert settings.database.path == str(tmp_path / "x.db")
        assert settings.logging.level.value == "WARNING"

    def test_default_feed_url(self, monkeypatch):
        monkeypatch.delenv("IFEEDIT_FEED__URL", raising=False)
        assert IFeedItSettings(_env_file=None).feed.url == DEFAULT_FEED_URL

    def test_invalid_feed_url(self, monkeypatch):
        monkeypatch.setenv("IFEEDIT_FEED__URL", "ftp://example.com/feed")

        with pytest.raises(ConfigurationError) as exc_info:
            load_settings()
        assert exc_info.value.error_code == ErrorCode.CONFIG_INVALID

    def test_effective_log_level(self, monkeypatch):
        monkeypatch.setenv("IFEEDIT_DEBUG", "true")
        assert load_settings().get_effective_log_level() == "DEBUG"

        monkeypatch.setenv("IFEEDIT_DEBUG", "false")
        monkeypatch.setenv("IFEEDIT_LOGGING__LEVEL", "ERROR")
        assert load_settings().get_effective_log_level() == "ERROR"

    def test_settings_singleton(self):
        first = get_settings()
        assert get_settings() is first
        assert get_settings(reload=True) is not first


class TestLogging:
    """Test logging configuration."""

    def test_component_logger_context(self):
        adapter = get_logger_for_component("feed_parser", feed_url="https://x.org/rss")

        assert adapter.logger.name == "ifeedit.feed_parser"
        assert adapter.extra == {"component": "feed_parser", "feed_url": "https://x.org/rss"}

    def test_structured_formatter(self):
        record = logging.LogRecord("ifeedit.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
        record.component = "test"
        record.payload = b"\xff\xd8"

        data = json.loads(StructuredFormatter().format(record))

        assert data["message"] == "hello world"
        assert data["level"] == "INFO"
        assert data["component"] == "test"
        assert "feed_url" not in data
        assert data["extra"] == {"payload": "b'\\xff\\xd8'"}

    def test_file_logging(self, tmp_path):
        log_file = tmp_path / "logs" / "test.log"
        logger = setup_logger("ifeedit.test_file", level="DEBUG", log_file=str(log_file), console=False)

        logger.info("written to file")
        for handler in logger.handlers:
            handler.flush()

        line = json.loads(log_file.read_text(encoding="utf-8").splitlines()[-1])
        assert line["message"] == "written to file"

    def test_performance_logger(self):
        logger = MagicMock()

        with PerformanceLogger(logger, "feed ingestion", feed_url="u"):
            pass

        message = logger.info.call_args[0][0]
        assert message.startswith("Completed feed ingestion in")
        assert logger.info.call_args[1]["extra"]["success"] is True

    def test_performance_logger_failure(self):
        logger = MagicMock()

        with pytest.raises(ValueError):
            with PerformanceLogger(logger, "feed ingestion"):
                raise ValueError("boom")

        assert logger.error.called


class TestExceptions:
    """Test exception hierarchy and helpers."""

    def test_error_string_contains_code(self):
        error = FeedFetchError("unreachable", feed_url="https://x.org/rss")

        assert str(error) == "[F004] unreachable"
        assert error.context == {"feed_url": "https://x.org/rss"}
        assert not error.recoverable

    def test_malformed_feed_code(self):
        assert MalformedFeedError("bad").error_code == ErrorCode.FEED_PARSE_ERROR

    def test_recoverable_errors(self):
        assert ImageUnavailableError("gone", image_url="u").recoverable
        assert DateUnparsableError("bad", value="x").recoverable
        assert RefreshInProgressError().error_code == ErrorCode.RESOURCE_BUSY

    def test_to_dict(self):
        data = DatabaseError("locked", query="DELETE FROM items").to_dict()

        assert data["error_type"] == "DatabaseError"
        assert data["error_code"] == "D001"
        assert data["context"]["query"] == "DELETE FROM items"

    def test_handle_exception_maps_builtin_errors(self):
        logger = MagicMock()

        assert isinstance(handle_exception(ConnectionError("x"), logger, "fetch"), FeedFetchError)
        assert handle_exception(PermissionError("x"), logger, "write").error_code == \
            ErrorCode.SYSTEM_PERMISSION_DENIED
        generic = handle_exception(RuntimeError("x"), logger, "parse", {"feed_url": "u"})
        assert type(generic) is IFeedItError
        assert generic.context["operation"] == "parse"
        assert logger.error.call_count == 3

    def test_handle_exception_passes_through_own_errors(self):
        error = MalformedFeedError("bad")
        assert handle_exception(error, MagicMock(), "parse") is error

    def test_user_friendly_message(self):
        assert get_user_friendly_message(RefreshInProgressError()) == "Content is already being refreshed"
        assert "unexpected" in get_user_friendly_message(KeyError("x"))
