"""
Image Fetcher
=============

Best-effort download of one item image, capped at 1 MiB.
"""

from typing import Optional

import requests

from .feed_fetcher import REQUEST_TIMEOUT, STREAM_ERRORS, create_session
from ..database.models import MAX_IMAGE_BYTES
from ..utils.exceptions import ImageUnavailableError
from ..utils.logging import get_logger_for_component

CHUNK_SIZE = 1024


class ImageFetcher:
    """Downloads item images; a failed download is never an error for the caller."""

    def __init__(self, session: Optional[requests.Session] = None,
                 max_bytes: int = MAX_IMAGE_BYTES):
        self.session = session or create_session("image/*, */*")
        self.max_bytes = max_bytes
        self.logger = get_logger_for_component("image_fetcher")

    def fetch(self, image_url: Optional[str]) -> Optional[bytes]:
        """Download the image at ``image_url``.

        Args:
            image_url: Absolute image URL, may be None

        Returns:
            The downloaded bytes, truncated to ``max_bytes``, or None when the
            image could not be retrieved
        """
        if not image_url:
            return None

        try:
            return self._download(image_url)
        except ImageUnavailableError as e:
            self.logger.info(f"Image not available: {e}")
            return None

    def _download(self, image_url: str) -> bytes:
        try:
            response = self.session.get(image_url, timeout=REQUEST_TIMEOUT, stream=True)
        except requests.RequestException as e:
            raise ImageUnavailableError(
                f"Cannot connect for {image_url}: {e}", image_url=image_url
            ) from e

        try:
            if not 200 <= response.status_code < 300:
                raise ImageUnavailableError(
                    f"HTTP {response.status_code} for {image_url}",
                    image_url=image_url,
                )

            buffer = bytearray()
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                remaining = self.max_bytes - len(buffer)
                buffer.extend(chunk[:remaining])
                if len(buffer) >= self.max_bytes:
                    self.logger.debug(
                        f"Image truncated at {self.max_bytes} bytes: {image_url}"
                    )
                    break

            return bytes(buffer)

        except STREAM_ERRORS as e:
            raise ImageUnavailableError(
                f"Download of {image_url} failed: {e}", image_url=image_url
            ) from e
        finally:
            response.close()

    def close(self) -> None:
        self.session.close()
