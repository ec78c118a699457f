"""
XML Pull Tokenizer
==================

Turns a byte stream into a flat sequence of start-tag, end-tag, text and
end-of-document tokens, one at a time and on demand.

The stream is fed in chunks to ``defusedxml``'s expat reader, so entity
expansion and external-entity tricks in remote documents are refused.
Namespace processing is off: a prefixed tag is reported under its literal
``prefix:local`` name whether or not the prefix was ever declared. No
element tree is built; only the tokens of the current chunk are held.
"""

from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Deque, Iterator, List, Optional
from xml.sax import SAXException
from xml.sax.handler import ContentHandler

from defusedxml import DefusedXmlException
from defusedxml.expatreader import create_parser

from ..utils.exceptions import MalformedFeedError

READ_SIZE = 16 * 1024


class TokenKind(str, Enum):
    """Kinds of token produced by the tokenizer."""
    START_TAG = "start_tag"
    END_TAG = "end_tag"
    TEXT = "text"
    END_DOCUMENT = "end_document"


@dataclass(frozen=True)
class Token:
    """One pull-parser token."""
    kind: TokenKind
    name: str = ""
    text: str = ""

    def is_start(self, name: Optional[str] = None) -> bool:
        return self.kind is TokenKind.START_TAG and (name is None or self.name == name)

    def is_end(self, name: Optional[str] = None) -> bool:
        return self.kind is TokenKind.END_TAG and (name is None or self.name == name)


END_DOCUMENT = Token(TokenKind.END_DOCUMENT)


class _TokenCollector(ContentHandler):
    """Queues SAX events as tokens until the tokenizer drains them."""

    def __init__(self):
        super().__init__()
        self.tokens: Deque[Token] = deque()
        self._text: List[str] = []

    def startElement(self, name, attrs):
        self._flush_text()
        self.tokens.append(Token(TokenKind.START_TAG, name=name))

    def endElement(self, name):
        self._flush_text()
        self.tokens.append(Token(TokenKind.END_TAG, name=name))

    def characters(self, content):
        # expat may split one run of character data over several calls
        self._text.append(content)

    def _flush_text(self) -> None:
        text = "".join(self._text)
        self._text.clear()
        if text:
            self.tokens.append(Token(TokenKind.TEXT, text=text))

    def drain(self) -> Iterator[Token]:
        while self.tokens:
            yield self.tokens.popleft()


class XmlPullTokenizer:
    """Pull-style access to an XML document.

    Usage:
        tokenizer = XmlPullTokenizer(stream)
        token = tokenizer.next()
        while token.kind is not TokenKind.END_DOCUMENT:
            ...
            token = tokenizer.next()
    """

    def __init__(self, stream: BinaryIO, read_size: int = READ_SIZE):
        self._tokens = self._generate(stream, read_size)
        self._finished = False

    def next(self) -> Token:
        """Return the next token.

        Raises:
            MalformedFeedError: If the document is not well-formed XML
        """
        if self._finished:
            return END_DOCUMENT

        token = next(self._tokens, END_DOCUMENT)
        if token.kind is TokenKind.END_DOCUMENT:
            self._finished = True
        return token

    def next_tag(self) -> Token:
        """Return the next start or end tag, skipping whitespace-only text.

        Raises:
            MalformedFeedError: On non-whitespace text or end of document
        """
        token = self.next()
        while token.kind is TokenKind.TEXT and not token.text.strip():
            token = self.next()

        if token.kind not in (TokenKind.START_TAG, TokenKind.END_TAG):
            raise MalformedFeedError(f"Expected a tag, found {token.kind.value}")
        return token

    def __iter__(self) -> Iterator[Token]:
        token = self.next()
        while token.kind is not TokenKind.END_DOCUMENT:
            yield token
            token = self.next()
        yield token

    def _generate(self, stream: BinaryIO, read_size: int) -> Iterator[Token]:
        collector = _TokenCollector()
        parser = create_parser()
        parser.setContentHandler(collector)
        received = 0

        while True:
            chunk = stream.read(read_size)
            received += len(chunk)
            failure: Optional[Exception] = None

            try:
                if chunk:
                    parser.feed(chunk)
                elif received:
                    parser.close()
            except (SAXException, DefusedXmlException) as e:
                failure = e

            # Tokens read before a syntax error are still delivered
            yield from collector.drain()
            if isinstance(failure, DefusedXmlException):
                raise MalformedFeedError(f"Forbidden XML construct: {failure}") from failure
            if failure is not None:
                raise MalformedFeedError(f"Invalid XML: {failure}") from failure
            if not chunk:
                break

        if not received:
            raise MalformedFeedError("Document is empty")

        yield END_DOCUMENT
