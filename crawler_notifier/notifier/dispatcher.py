"""Crawler Notifier — Notification Dispatcher.

Turns a batch of scraped URLs into notifications. Each URL is offered to
the links table; only URLs that were not stored before are queued for
Telegram and, on request, opened in the browser.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Iterable, Optional

from crawler_notifier.database import queries
from crawler_notifier.database.db import Database
from crawler_notifier.database.models import BatchOptions, BatchResult
from crawler_notifier.errors import StorageUnavailable
from crawler_notifier.notifier.queue import NotificationQueue
from crawler_notifier.notifier.viewer import open_in_viewer
from crawler_notifier.utils.logger import get_logger

logger = get_logger(__name__)

Viewer = Callable[[str], Awaitable[None]]
DatabaseFactory = Callable[[str], Database]


class NotificationDispatcher:
    """Stores new URLs and hands them to the notification queue.

    Attributes:
        db_path: SQLite file holding the links table.
        queue: Process-wide notification queue.
    """

    def __init__(
        self,
        db_path: str,
        queue: NotificationQueue,
        *,
        viewer: Viewer = open_in_viewer,
        database_factory: DatabaseFactory = Database,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            db_path: Path to the SQLite database file.
            queue: The notification queue shared for the whole process.
            viewer: Coroutine function that opens one URL in a browser.
            database_factory: Builds the Database for each batch.
        """
        self.db_path = db_path
        self.queue = queue
        self._viewer = viewer
        self._database_factory = database_factory

    async def process_batch(
        self,
        urls: Iterable[str],
        options: BatchOptions = BatchOptions(),
        source: Optional[str] = None,
    ) -> BatchResult:
        """Store a batch of URLs and notify about the new ones.

        The store is opened once for the batch and closed after every
        insert has been attempted. Returns once all inserts and browser
        openings are done; notification delivery continues in the
        background.

        Args:
            urls: Candidate URLs in discovery order.
            options: Viewer and storage flags.
            source: Crawler name attached to the queued notifications.

        Returns:
            BatchResult with per-batch counters.

        Raises:
            StorageUnavailable: If the store cannot be opened.
        """
        urls = list(urls)
        result = BatchResult(total=len(urls))

        if not urls:
            logger.debug("Empty batch, nothing to store")
            return result

        if options.skip_storage:
            logger.info("Storage skipped — opening %d urls in browser", len(urls))
            await self._open_all(urls, result)
            return result

        viewer_tasks: list[asyncio.Task[bool]] = []
        try:
            async with self._database_factory(self.db_path) as db:
                for url in urls:
                    try:
                        outcome = await queries.insert_if_absent(db, url)
                    except StorageUnavailable as e:
                        result.errors += 1
                        logger.error("Could not store %s: %s", url, e)
                        continue

                    if not outcome.inserted:
                        result.duplicates += 1
                        continue

                    result.new_urls += 1
                    logger.info("Added url: %s", url)
                    self.queue.enqueue(url, source=source)

                    if options.open_in_viewer:
                        viewer_tasks.append(
                            asyncio.create_task(self._open_one(url))
                        )
        finally:
            if viewer_tasks:
                self._tally_viewer(await asyncio.gather(*viewer_tasks), result)

        logger.info(
            "Database operation: %d urls, %d new, %d already seen, %d errors",
            result.total, result.new_urls, result.duplicates, result.errors,
        )
        return result

    async def _open_all(self, urls: list[str], result: BatchResult) -> None:
        """Open every URL in the browser concurrently and count outcomes."""
        outcomes = await asyncio.gather(*(self._open_one(url) for url in urls))
        self._tally_viewer(outcomes, result)

    async def _open_one(self, url: str) -> bool:
        """Open one URL; failures are logged and reported as False."""
        try:
            await self._viewer(url)
            return True
        except Exception as e:
            logger.warning("Failed to open %s in browser: %s", url, e)
            return False

    @staticmethod
    def _tally_viewer(outcomes: list[bool], result: BatchResult) -> None:
        """Add browser outcomes to the batch counters."""
        opened = sum(1 for ok in outcomes if ok)
        result.viewer_opened += opened
        result.viewer_failed += len(outcomes) - opened
