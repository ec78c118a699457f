"""
Streaming RSS Parser
====================

Walks ``rss > channel > item`` on top of the pull tokenizer and yields one
raw record per item, in document order, as soon as the item's end tag is
read. Unknown elements at any level are skipped without being materialized,
which keeps the parser indifferent to feed extensions.

The parser does no I/O of its own beyond pulling tokens; image download,
date conversion and persistence happen in the caller for every yielded item.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, Optional

from .tokenizer import Token, TokenKind, XmlPullTokenizer
from ..utils.exceptions import MalformedFeedError
from ..utils.logging import get_logger_for_component

RSS_TAG = "rss"
CHANNEL_TAG = "channel"
ITEM_TAG = "item"
IMAGE_URL_TAG = "url"


class ParserState(str, Enum):
    """Where the parser currently is in the document."""
    DOCUMENT = "document"
    RSS = "rss"
    CHANNEL = "channel"
    ITEM = "item"
    LEAF = "leaf"


class ItemField(str, Enum):
    """Item child elements that are extracted; every other child is skipped."""
    TITLE = "title"
    LINK = "link"
    DESCRIPTION = "description"
    PUB_DATE = "pubDate"
    IMAGE = "image"


ITEM_FIELDS: Dict[str, ItemField] = {field.value: field for field in ItemField}

# Text fields and the RawItem attribute they fill
TEXT_FIELD_ATTRIBUTES: Dict[ItemField, str] = {
    ItemField.TITLE: "title",
    ItemField.LINK: "link",
    ItemField.DESCRIPTION: "description",
    ItemField.PUB_DATE: "pub_date",
}


@dataclass
class RawItem:
    """Item fields exactly as found in the feed."""
    title: str = ""
    link: str = ""
    description: str = ""
    pub_date: str = ""
    image_url: Optional[str] = None


class FeedParser:
    """Pull parser for RSS 2.0 documents.

    Usage:
        parser = FeedParser(XmlPullTokenizer(stream))
        for raw_item in parser.items():
            ...
    """

    def __init__(self, tokenizer: XmlPullTokenizer, feed_url: Optional[str] = None):
        """Initialize parser.

        Args:
            tokenizer: Source of tokens, positioned at the start of the document
            feed_url: Feed URL, for log and error context only
        """
        self.tokenizer = tokenizer
        self.feed_url = feed_url
        self.state = ParserState.DOCUMENT
        self.channel_count = 0
        self.item_count = 0
        self.skipped_count = 0
        self.logger = get_logger_for_component("feed_parser", feed_url=feed_url)

    def items(self) -> Iterator[RawItem]:
        """Yield every item of every channel in document order.

        Raises:
            MalformedFeedError: If the root element is not ``rss`` or the token
                stream ends or breaks before the document closes
        """
        root = self.tokenizer.next_tag()
        if not root.is_start(RSS_TAG):
            raise MalformedFeedError(
                f"Expected <{RSS_TAG}> as root element, found <{root.name}>",
                feed_url=self.feed_url,
            )

        yield from self._read_rss()

        self.state = ParserState.DOCUMENT
        self.logger.debug(
            f"Parsed {self.item_count} items in {self.channel_count} channels, "
            f"skipped {self.skipped_count} unknown elements"
        )

    def _read_rss(self) -> Iterator[RawItem]:
        self.state = ParserState.RSS
        for name in self._children(RSS_TAG):
            if name == CHANNEL_TAG:
                yield from self._read_channel()
                self.state = ParserState.RSS
            else:
                self.skip()

    def _read_channel(self) -> Iterator[RawItem]:
        self.state = ParserState.CHANNEL
        self.channel_count += 1
        for name in self._children(CHANNEL_TAG):
            if name == ITEM_TAG:
                yield self._read_item()
                self.state = ParserState.CHANNEL
            else:
                self.skip()

    def _read_item(self) -> RawItem:
        self.state = ParserState.ITEM
        item = RawItem()

        for name in self._children(ITEM_TAG):
            field = ITEM_FIELDS.get(name)
            if field is None:
                self.skip()
            elif field is ItemField.IMAGE:
                item.image_url = self._read_image()
                self.state = ParserState.ITEM
            else:
                setattr(item, TEXT_FIELD_ATTRIBUTES[field], self.read_text(name))
                self.state = ParserState.ITEM

        self.item_count += 1
        return item

    def _read_image(self) -> Optional[str]:
        """Read an item ``image`` element and return its ``url`` child text."""
        image_url = None
        for name in self._children(ItemField.IMAGE.value):
            if name == IMAGE_URL_TAG:
                image_url = self.read_text(IMAGE_URL_TAG) or None
            else:
                self.skip()
        return image_url

    def read_text(self, name: str) -> str:
        """Read the character data of a leaf element whose start tag was consumed.

        Returns the text verbatim, or an empty string for an empty element.

        Raises:
            MalformedFeedError: If the element does not end right after its text
        """
        self.state = ParserState.LEAF
        token = self._next()

        result = ""
        if token.kind is TokenKind.TEXT:
            result = token.text
            token = self.tokenizer.next_tag()

        if not token.is_end(name):
            raise MalformedFeedError(
                f"Expected </{name}>, found {token.kind.value} {token.name}".rstrip(),
                feed_url=self.feed_url,
            )
        return result

    def skip(self) -> None:
        """Discard the subtree of a start tag that was just consumed."""
        depth = 1
        while depth != 0:
            token = self._next()
            if token.kind is TokenKind.END_TAG:
                depth -= 1
            elif token.kind is TokenKind.START_TAG:
                depth += 1
        self.skipped_count += 1

    def _children(self, parent: str) -> Iterator[str]:
        """Yield child start tag names until the parent's end tag.

        The caller must consume each child's subtree before asking for the
        next one. Text between children is ignored.
        """
        while True:
            token = self._next()
            if token.kind is TokenKind.START_TAG:
                yield token.name
            elif token.kind is TokenKind.END_TAG:
                if token.name != parent:
                    raise MalformedFeedError(
                        f"Expected </{parent}>, found </{token.name}>",
                        feed_url=self.feed_url,
                    )
                return

    def _next(self) -> Token:
        token = self.tokenizer.next()
        if token.kind is TokenKind.END_DOCUMENT:
            raise MalformedFeedError(
                f"Document ended inside <{self.state.value}>",
                feed_url=self.feed_url,
            )
        return token


def parse_feed(stream, feed_url: Optional[str] = None) -> Iterator[RawItem]:
    """Convenience generator over the items of an RSS byte stream."""
    return FeedParser(XmlPullTokenizer(stream), feed_url=feed_url).items()
