"""
Feed Fetcher
============

Opens a feed URL and hands back the response body as a readable byte stream.

One attempt per fetch with fixed connect and read timeouts. The body is not
buffered, the parser pulls it as it goes, so the stream must be closed by the
caller on every exit path.
"""

from typing import Optional

import requests
import urllib3
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config.settings import get_settings
from ..utils.exceptions import ErrorCode, FeedFetchError
from ..utils.logging import get_logger_for_component

CONNECT_TIMEOUT = 15
READ_TIMEOUT = 10
REQUEST_TIMEOUT = (CONNECT_TIMEOUT, READ_TIMEOUT)

STREAM_ERRORS = (requests.RequestException, urllib3.exceptions.HTTPError, OSError)


def create_session(accept: str) -> requests.Session:
    """Build a session that makes exactly one attempt per request.

    Redirects are still followed.
    """
    settings = get_settings()
    session = requests.Session()

    retry_strategy = Retry(total=None, connect=0, read=0, status=0, redirect=10)
    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("http://", adapter)
    session.mount("https://", adapter)

    session.headers.update(
        {
            "User-Agent": f"{settings.app_name}/{settings.version}",
            "Accept": accept,
        }
    )
    return session


class FeedStream:
    """File-like view over a streaming feed response."""

    def __init__(self, response: requests.Response, feed_url: str):
        self._response = response
        self._raw = response.raw
        # Let urllib3 undo gzip/deflate transfer encodings
        self._raw.decode_content = True
        self.feed_url = feed_url
        self.bytes_read = 0
        self.closed = False
        self.logger = get_logger_for_component("feed_fetcher", feed_url=feed_url)

    def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes of the body.

        Raises:
            FeedFetchError: If the connection fails or times out mid-read
        """
        try:
            data = self._raw.read(None if size is None or size < 0 else size)
        except STREAM_ERRORS as e:
            raise FeedFetchError(
                f"Feed stream failed after {self.bytes_read} bytes: {e}",
                feed_url=self.feed_url,
                error_code=ErrorCode.FEED_NETWORK_ERROR,
            ) from e

        data = data or b""
        self.bytes_read += len(data)
        return data

    def close(self) -> None:
        """Release the connection. Failures here are logged and ignored."""
        if self.closed:
            return
        self.closed = True
        try:
            self._response.close()
        except STREAM_ERRORS as e:
            self.logger.debug(f"Ignoring error while closing feed stream: {e}")

    def __enter__(self) -> "FeedStream":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class FeedFetcher:
    """Fetches RSS documents over HTTP(S)."""

    def __init__(self, session: Optional[requests.Session] = None):
        """Initialize feed fetcher.

        Args:
            session: Preconfigured session, mostly for tests
        """
        self.session = session or create_session(
            "application/rss+xml, application/xml, text/xml"
        )
        self.logger = get_logger_for_component("feed_fetcher")

    def fetch(self, feed_url: str) -> FeedStream:
        """Open the feed at ``feed_url``.

        Args:
            feed_url: Absolute http(s) URL of the feed

        Returns:
            Open FeedStream; the caller closes it

        Raises:
            FeedFetchError: Invalid URL, connection failure, timeout or
                non-success status
        """
        self.logger.info(f"Fetching RSS feed: {feed_url}")

        try:
            response = self.session.get(feed_url, timeout=REQUEST_TIMEOUT, stream=True)
        except requests.Timeout as e:
            raise FeedFetchError(
                f"Timed out fetching feed {feed_url}: {e}",
                feed_url=feed_url,
                error_code=ErrorCode.FEED_FETCH_TIMEOUT,
            ) from e
        except (requests.exceptions.MissingSchema,
                requests.exceptions.InvalidSchema,
                requests.exceptions.InvalidURL) as e:
            raise FeedFetchError(
                f"Invalid feed URL {feed_url!r}: {e}",
                feed_url=feed_url,
                error_code=ErrorCode.FEED_INVALID_URL,
            ) from e
        except requests.RequestException as e:
            raise FeedFetchError(
                f"Failed to fetch feed {feed_url}: {e}",
                feed_url=feed_url,
            ) from e

        if not 200 <= response.status_code < 300:
            response.close()
            error_code = (
                ErrorCode.FEED_NOT_FOUND
                if response.status_code == 404
                else ErrorCode.FEED_NETWORK_ERROR
            )
            raise FeedFetchError(
                f"HTTP {response.status_code} fetching feed {feed_url}",
                feed_url=feed_url,
                error_code=error_code,
            )

        self.logger.debug(
            f"Feed responded {response.status_code}, "
            f"content type {response.headers.get('Content-Type', 'unknown')}"
        )
        return FeedStream(response, feed_url)

    def close(self) -> None:
        self.session.close()
