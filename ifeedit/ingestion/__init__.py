"""
iFeedIt Ingestion Module
========================

Feed refresh pipeline: fetch, pull-parse, normalize, download images and
persist items in source order.
"""

from .orchestrator import IngestionOrchestrator, RunContext
from .feed_fetcher import FeedFetcher, FeedStream
from .image_fetcher import ImageFetcher
from .feed_parser import FeedParser, RawItem, parse_feed
from .tokenizer import XmlPullTokenizer, Token, TokenKind

__all__ = [
    "IngestionOrchestrator",
    "RunContext",
    "FeedFetcher",
    "FeedStream",
    "ImageFetcher",
    "FeedParser",
    "RawItem",
    "parse_feed",
    "XmlPullTokenizer",
    "Token",
    "TokenKind",
]
