"""
Text and Date Normalization
===========================

Pure helpers that turn raw feed character data into stored values.
No I/O happens here.
"""

import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional

from bs4 import BeautifulSoup

from ..utils.exceptions import DateUnparsableError
from ..utils.logging import get_logger_for_component

logger = get_logger_for_component("normalizer")

IMAGE_SRC_MARKER = 'src="'
IMAGE_EXTENSION_MARKER = ".jpg"

# Zone names understood by email.utils; anything else leaves the result naive
NAMED_ZONES = (
    "UTC", "UT", "GMT", "Z",
    "AST", "ADT", "EST", "EDT", "CST", "CDT", "MST", "MDT", "PST", "PDT",
)

# EEE, d MMM yyyy HH:mm:ss Z, trailing text such as "(UTC)" is ignored
_RFC822_DATE = re.compile(
    r"^\s*(?:Mon|Tue|Wed|Thu|Fri|Sat|Sun),\s+"
    r"\d{1,2}\s+"
    r"(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)\s+"
    r"\d{4}\s+"
    r"\d{1,2}:\d{2}:\d{2}\s+"
    r"(?:[+-]\d{4}(?!\d)|(?:" + "|".join(NAMED_ZONES) + r")(?![A-Za-z]))",
    re.IGNORECASE,
)


def normalize_text(value: Optional[str]) -> str:
    """Return character data verbatim, with absent values as empty string."""
    if value is None:
        return ""
    return value


def infer_image_url(description: Optional[str]) -> Optional[str]:
    """Guess an image URL from an HTML description.

    Takes everything after the first ``src="`` up to and including the next
    ``.jpg``.

    Args:
        description: Raw item description

    Returns:
        The inferred URL, or None when either marker is missing
    """
    if not description:
        return None

    start = description.find(IMAGE_SRC_MARKER)
    if start == -1:
        return None
    start += len(IMAGE_SRC_MARKER)

    stop = description.find(IMAGE_EXTENSION_MARKER, start)
    if stop == -1:
        return None

    return description[start:stop + len(IMAGE_EXTENSION_MARKER)]


def parse_pub_date(value: Optional[str]) -> datetime:
    """Parse an RSS ``pubDate`` value.

    Accepts ``EEE, d MMM yyyy HH:mm:ss Z`` with English day and month names
    and either a numeric offset (``+0200``) or a named zone (``GMT``). Text
    following the zone, such as a ``(UTC)`` comment, is ignored.

    Args:
        value: Raw pubDate text

    Returns:
        Timezone-aware datetime; naive results are taken as UTC

    Raises:
        DateUnparsableError: If the value is missing or does not match
    """
    if value is None or not value.strip():
        raise DateUnparsableError("Publication date is missing", value=value)

    match = _RFC822_DATE.match(value)
    if match is None:
        raise DateUnparsableError(f"Unexpected date format: {value!r}", value=value)

    try:
        parsed = parsedate_to_datetime(match.group(0).strip())
    except (TypeError, ValueError, IndexError) as e:
        raise DateUnparsableError(f"Cannot parse date {value!r}: {e}", value=value) from e

    if parsed is None:
        raise DateUnparsableError(f"Cannot parse date {value!r}", value=value)

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_epoch_millis(value: Optional[str]) -> int:
    """Convert a pubDate to epoch milliseconds, 0 when it cannot be parsed."""
    try:
        parsed = parse_pub_date(value)
    except DateUnparsableError as e:
        logger.debug(f"Using timestamp 0: {e}")
        return 0

    return int(parsed.timestamp()) * 1000


def summarize_description(description: Optional[str]) -> str:
    """Short plain-text summary of a description for list views.

    Descriptions that hold several paragraphs usually start with an image
    paragraph, so the summary starts after the second ``<p>`` when present.
    """
    if not description:
        return ""

    first = description.find("<p>")
    second = description.find("<p>", first + 3) if first != -1 else -1
    fragment = description[second + 3:] if second != -1 else description

    text = BeautifulSoup(fragment, "html.parser").get_text(separator=" ", strip=True)
    return re.sub(r"\s+", " ", text)


def html_to_text(markup: Optional[str]) -> str:
    """Strip HTML tags and entities from a title or description."""
    if not markup:
        return ""
    return BeautifulSoup(markup, "html.parser").get_text(separator=" ", strip=True)
