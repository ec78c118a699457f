"""
Ingestion Orchestrator
======================

Runs one feed refresh end to end: clear the store, then on a background
worker fetch the feed, stream-parse it and persist each item as soon as it
is read, downloading its image and converting its date on the way.

Completion is reported once per refresh, as the result of the returned
future and through the optional ``on_done`` callback.
"""

import asyncio
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Optional

from .feed_fetcher import FeedFetcher
from .feed_parser import FeedParser, RawItem
from .image_fetcher import ImageFetcher
from .normalizer import infer_image_url, normalize_text, to_epoch_millis
from .tokenizer import XmlPullTokenizer
from ..database.models import FeedItem, IngestionStats
from ..storage.item_repository import ItemRepository
from ..storage.preference_repository import PreferenceRepository
from ..utils.exceptions import (
    DatabaseError,
    FeedError,
    RefreshInProgressError,
    handle_exception,
)
from ..utils.logging import PerformanceLogger, get_ingestion_logger, get_logger_for_component

CompletionCallback = Callable[[bool], None]
Notifier = Callable[[CompletionCallback, bool], None]


@dataclass
class RunContext:
    """State owned by a single refresh run."""
    feed_url: str
    repository: ItemRepository
    next_id: int = 0
    stats: IngestionStats = field(default_factory=IngestionStats)

    def allocate_id(self) -> int:
        item_id = self.next_id
        self.next_id += 1
        return item_id


class IngestionOrchestrator:
    """Coordinates feed refreshes on a single background worker.

    Only one refresh may be in flight; a second request while one is running
    is refused before the store is touched.

    Usage:
        orchestrator = IngestionOrchestrator(ItemRepository(db))
        future = orchestrator.refresh(url, on_done=print)
        succeeded = future.result()
    """

    def __init__(
        self,
        repository: ItemRepository,
        feed_fetcher: Optional[FeedFetcher] = None,
        image_fetcher: Optional[ImageFetcher] = None,
        notifier: Optional[Notifier] = None,
        preferences: Optional[PreferenceRepository] = None,
    ):
        """Initialize orchestrator.

        Args:
            repository: Item store written by every run
            feed_fetcher: Feed fetcher, a default one is created if omitted
            image_fetcher: Image fetcher, a default one is created if omitted
            notifier: Hands ``on_done`` and the result to the caller's
                context, e.g. ``loop.call_soon_threadsafe``. Without one the
                callback runs on the worker thread.
            preferences: When given, the feed URL is remembered after each
                successful run
        """
        self.repository = repository
        self.feed_fetcher = feed_fetcher or FeedFetcher()
        self.image_fetcher = image_fetcher or ImageFetcher()
        self.notifier = notifier
        self.preferences = preferences
        self.logger = get_logger_for_component("orchestrator")

        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="ifeedit-ingest")
        self._lock = threading.Lock()
        self._running = False

    @property
    def is_refreshing(self) -> bool:
        return self._running

    def refresh(self, feed_url: str, on_done: Optional[CompletionCallback] = None) -> "Future[bool]":
        """Replace the stored items with the content of ``feed_url``.

        The store is cleared before this method returns; fetching, parsing
        and persisting continue in the background.

        Args:
            feed_url: Feed to ingest
            on_done: Called exactly once with True on success, False otherwise

        Returns:
            Future resolving to the same boolean passed to ``on_done``

        Raises:
            RefreshInProgressError: If a previous refresh has not completed
        """
        with self._lock:
            if self._running:
                raise RefreshInProgressError(context={"feed_url": feed_url})

            try:
                self.repository.delete_all()
                cleared = True
            except DatabaseError as e:
                self.logger.error(f"Cannot clear item store before refresh: {e}", extra=e.to_dict())
                cleared = False

            if cleared:
                self._running = True
                context = RunContext(feed_url=feed_url, repository=self.repository)
                try:
                    return self._executor.submit(self._run, context, on_done)
                except RuntimeError:
                    self._running = False
                    raise

        self._deliver(on_done, False)
        failed: "Future[bool]" = Future()
        failed.set_result(False)
        return failed

    async def refresh_async(self, feed_url: str) -> bool:
        """Run a refresh and await its outcome from asyncio code."""
        return await asyncio.wrap_future(self.refresh(feed_url))

    def shutdown(self, wait: bool = True) -> None:
        """Stop the worker and release HTTP sessions."""
        self._executor.shutdown(wait=wait)
        self.feed_fetcher.close()
        self.image_fetcher.close()

    def _run(self, context: RunContext, on_done: Optional[CompletionCallback]) -> bool:
        logger = get_ingestion_logger(context.feed_url)
        timer = PerformanceLogger(logger, "feed ingestion")
        success = False

        try:
            with timer:
                self._ingest(context)
            success = True

        except (FeedError, DatabaseError) as e:
            logger.error(f"Ingestion of {context.feed_url} failed: {e}", extra=e.to_dict())

        except Exception as e:
            handle_exception(e, logger, "feed ingestion", {"feed_url": context.feed_url})

        context.stats.duration_seconds = timer.duration_seconds
        logger.info(
            f"Refresh {'succeeded' if success else 'failed'}: "
            f"{context.stats.items_stored} items stored, "
            f"{context.stats.images_downloaded} images downloaded, "
            f"{context.stats.images_unavailable} images unavailable, "
            f"{context.stats.dates_unparsable} dates unparsable"
        )

        if success and self.preferences is not None:
            self._remember_url(context.feed_url)

        with self._lock:
            self._running = False

        self._deliver(on_done, success)
        return success

    def _ingest(self, context: RunContext) -> None:
        with self.feed_fetcher.fetch(context.feed_url) as stream:
            parser = FeedParser(XmlPullTokenizer(stream), feed_url=context.feed_url)
            for raw_item in parser.items():
                self._store_item(context, raw_item)

    def _store_item(self, context: RunContext, raw_item: RawItem) -> None:
        description = normalize_text(raw_item.description)
        image_url = raw_item.image_url or infer_image_url(description)

        image_content = None
        if image_url:
            image_content = self.image_fetcher.fetch(image_url)
            if image_content is None:
                context.stats.images_unavailable += 1
            else:
                context.stats.images_downloaded += 1

        published_at = to_epoch_millis(raw_item.pub_date)
        if published_at == 0:
            context.stats.dates_unparsable += 1

        item = FeedItem(
            id=context.allocate_id(),
            title=normalize_text(raw_item.title),
            link=normalize_text(raw_item.link),
            description=description,
            image_url=image_url,
            image_content=image_content,
            published_at=published_at,
        )
        context.repository.insert_item(item)
        context.stats.items_stored += 1

    def _remember_url(self, feed_url: str) -> None:
        try:
            self.preferences.set_last_loaded_url(feed_url)
        except DatabaseError as e:
            self.logger.error(f"Cannot record last loaded feed: {e}", extra=e.to_dict())

    def _deliver(self, on_done: Optional[CompletionCallback], success: bool) -> None:
        if on_done is None:
            return

        if self.notifier is not None:
            self.notifier(on_done, success)
            return

        try:
            on_done(success)
        except Exception:
            self.logger.exception("Refresh completion callback raised")
