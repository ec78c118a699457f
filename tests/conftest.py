"""
PyTest Configuration and Fixtures
=================================

Shared fixtures and configuration for iFeedIt tests: temporary databases,
sample feed documents and fake HTTP responses.
"""

import io
import os
import sys
import tempfile
from pathlib import Path
from unittest.mock import Mock

import pytest
import requests

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test environment variables before any imports
_TEST_DIR = Path(tempfile.gettempdir()) / "ifeedit_tests"
_TEST_DIR.mkdir(exist_ok=True)
os.environ["IFEEDIT_FEED__URL"] = "https://feeds.example.com/rss.xml"
os.environ["IFEEDIT_DATABASE__PATH"] = str(_TEST_DIR / "ifeedit_test.db")
os.environ["IFEEDIT_LOGGING__FILE_PATH"] = str(_TEST_DIR / "ifeedit_test.log")
os.environ["IFEEDIT_LOGGING__CONSOLE_LOGGING"] = "false"
os.environ["IFEEDIT_DEBUG"] = "true"


SAMPLE_FEED_URL = "https://feeds.example.com/rss.xml"

SAMPLE_RSS = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:media="http://search.yahoo.com/mrss/">
  <channel>
    <title>Example Feed</title>
    <link>https://example.com/</link>
    <image><url>https://example.com/logo.png</url></image>
    <item>
      <title>First story</title>
      <link>https://example.com/1</link>
      <description>&lt;p&gt;&lt;img src="https://example.com/img/1.jpg" /&gt;&lt;/p&gt;&lt;p&gt;First body&lt;/p&gt;</description>
      <pubDate>Mon, 06 Sep 2021 16:45:00 +0000</pubDate>
      <media:thumbnail url="https://example.com/thumb.jpg"/>
    </item>
    <item>
      <title>Second story</title>
      <link>https://example.com/2</link>
      <description>No images here</description>
      <pubDate>not a date</pubDate>
      <image><url>https://example.com/img/2.png</url></image>
    </item>
    <item>
      <title>Third story</title>
      <link>https://example.com/3</link>
      <pubDate>Tue, 07 Sep 2021 08:00:00 GMT</pubDate>
    </item>
  </channel>
</rss>
"""


class RawBody(io.BytesIO):
    """Response body; accepts attributes such as ``decode_content``."""


class FakeResponse:
    """Just enough of ``requests.Response`` for streaming reads."""

    def __init__(self, body: bytes = b"", status_code: int = 200, raw=None, headers=None):
        self.raw = raw if raw is not None else RawBody(body)
        self.status_code = status_code
        self.headers = headers or {"Content-Type": "application/rss+xml"}
        self.closed = False
        self.chunk_sizes = []

    def iter_content(self, chunk_size=1):
        while True:
            self.chunk_sizes.append(chunk_size)
            chunk = self.raw.read(chunk_size)
            if not chunk:
                break
            yield chunk

    def close(self):
        self.closed = True


class FailingRaw(io.BytesIO):
    """Body that breaks with ``error`` once ``limit`` bytes were read."""

    def __init__(self, body: bytes, limit: int, error: Exception):
        super().__init__(body)
        self.limit = limit
        self.error = error

    def read(self, size=-1):
        if self.tell() >= self.limit:
            raise self.error
        if size is None or size < 0:
            size = self.limit - self.tell()
        return super().read(min(size, self.limit - self.tell()))


def build_session(responses):
    """Mock session serving ``responses`` by URL; unknown URLs answer 404.

    Values may be FakeResponse objects, exceptions to raise, or zero-argument
    callables returning a fresh response for every request.
    """
    session = Mock(spec=requests.Session)

    def get(url, **kwargs):
        response = responses.get(url)
        if response is None:
            return FakeResponse(b"", status_code=404)
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response()
        return response

    session.get.side_effect = get
    return session


# ============================================================================
# Global state
# ============================================================================


@pytest.fixture(autouse=True)
def reset_singletons():
    """Drop cached settings and database managers between tests."""
    from ifeedit.config import settings
    from ifeedit.database import connection

    settings._settings = None
    if connection._db_manager is not None:
        connection._db_manager.close_all_connections()
    connection._db_manager = None

    yield

    settings._settings = None
    if connection._db_manager is not None:
        connection._db_manager.close_all_connections()
    connection._db_manager = None


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def temp_db(tmp_path):
    """Temporary database file with the schema created."""
    from ifeedit.database.schema import DatabaseSchema

    db_path = tmp_path / "ifeedit_test.db"
    DatabaseSchema(str(db_path)).create_tables()
    return str(db_path)


@pytest.fixture
def db_connection(temp_db):
    """Database connection manager for the temporary database."""
    from ifeedit.database.connection import DatabaseConnection

    connection = DatabaseConnection(temp_db, pool_size=2)
    yield connection
    connection.close_all_connections()


@pytest.fixture
def item_repo(db_connection):
    from ifeedit.storage.item_repository import ItemRepository

    return ItemRepository(db_connection)


@pytest.fixture
def preference_repo(db_connection):
    from ifeedit.storage.preference_repository import PreferenceRepository

    return PreferenceRepository(db_connection)


@pytest.fixture
def sample_items():
    """Items as they would come out of one ingestion run."""
    from ifeedit.database.models import FeedItem

    return [
        FeedItem(id=0, title="Python 3.13 released", link="https://example.com/a",
                 description="<p>News</p>", published_at=1_700_000_000_000),
        FeedItem(id=1, title="Weekly links", link="https://example.com/b",
                 description="", published_at=1_800_000_000_000,
                 image_url="https://example.com/b.jpg", image_content=b"\xff\xd8jpeg"),
        FeedItem(id=2, title="100% python_tips", link="https://example.com/c",
                 description="Tips", published_at=0),
    ]


# ============================================================================
# HTTP Fixtures
# ============================================================================


@pytest.fixture
def sample_rss():
    return SAMPLE_RSS


@pytest.fixture
def feed_url():
    return SAMPLE_FEED_URL


@pytest.fixture
def fake_response():
    """Factory for FakeResponse objects."""
    return FakeResponse


@pytest.fixture
def failing_raw():
    """Factory for bodies that fail part way through."""
    return FailingRaw


@pytest.fixture
def http_session():
    """Factory for mock sessions keyed by URL."""
    return build_session
