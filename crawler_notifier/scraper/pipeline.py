"""Crawler Notifier — Crawler Pipeline.

Runs one crawler end to end: fetch every search/category page, extract
listing links, record per-search metrics, and hand the collected URLs to
the NotificationDispatcher.
"""

from __future__ import annotations

import asyncio
import time
from typing import Optional

from crawler_notifier.config import AppConfig, CrawlerConfig
from crawler_notifier.database.models import BatchOptions, BatchResult
from crawler_notifier.notifier.dispatcher import NotificationDispatcher
from crawler_notifier.scraper.client import ListingClient
from crawler_notifier.scraper.link_scraper import LinkScraper, dedupe_urls
from crawler_notifier.utils.health import CrawlerMonitor
from crawler_notifier.utils.logger import get_logger

logger = get_logger(__name__)


class CrawlerPipeline:
    """Scrape-then-dispatch pipeline for a single configured crawler.

    Attributes:
        config: Full application configuration.
        crawler: The crawler being run.
    """

    def __init__(
        self,
        config: AppConfig,
        crawler: CrawlerConfig,
        dispatcher: NotificationDispatcher,
        monitor: CrawlerMonitor,
        client: Optional[ListingClient] = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            config: Full AppConfig instance.
            crawler: Which site to crawl.
            dispatcher: Stores URLs and queues notifications.
            monitor: Receives per-search metrics.
            client: HTTP client to use; one is created per run when omitted.
        """
        self.config = config
        self.crawler = crawler
        self._dispatcher = dispatcher
        self._monitor = monitor
        self._client = client
        self._scraper = LinkScraper(crawler)

    async def collect_urls(
        self,
        client: ListingClient,
        search_terms: Optional[list[str]] = None,
    ) -> list[str]:
        """Fetch every target page and gather listing URLs.

        Fetch failures for one page are recorded and skipped.

        Args:
            client: HTTP client.
            search_terms: Terms overriding the configured ones.

        Returns:
            De-duplicated URLs in discovery order.
        """
        name = self.crawler.name
        targets = self._scraper.build_search_urls(search_terms)
        delay = self.config.scraper.search_delay_seconds
        urls: list[str] = []

        for i, (label, page_url) in enumerate(targets, 1):
            logger.info("  [%d/%d] Searching %s: %s", i, len(targets), name, label)
            html = await client.fetch_page(page_url)
            if html is None:
                self._monitor.record_error(name, f"Could not fetch {page_url}")
                found: list[str] = []
            else:
                found = self._scraper.extract_links(html, page_url)
            self._monitor.record_search(name, label, len(found))
            urls.extend(found)

            # Space out searches against the same site
            if i < len(targets) and delay > 0:
                await asyncio.sleep(delay)

        return dedupe_urls(urls)

    async def run(
        self,
        options: BatchOptions = BatchOptions(),
        search_terms: Optional[list[str]] = None,
    ) -> BatchResult:
        """Run the crawler once.

        Args:
            options: Viewer/storage flags passed to the dispatcher.
            search_terms: Terms overriding the configured ones.

        Returns:
            The dispatcher's BatchResult.
        """
        name = self.crawler.name
        start = time.monotonic()
        self._monitor.start_crawler(name)
        logger.info("═══ Crawler %s starting ═══", name)

        if search_terms and not self.crawler.is_templated:
            logger.warning("Crawler %s has fixed URLs; search terms ignored", name)

        client = self._client or ListingClient(self.config.scraper)
        try:
            urls = await self.collect_urls(client, search_terms)
        finally:
            if self._client is None:
                await client.close()

        logger.info("Crawler %s found %d unique urls", name, len(urls))

        try:
            result = await self._dispatcher.process_batch(urls, options, source=name)
            self._monitor.record_new_urls(name, result.new_urls)
            for _ in range(result.errors):
                self._monitor.record_error(name, "Storage write failed")
        finally:
            self._monitor.complete_crawler(name)

        logger.info(
            "═══ Crawler %s complete: %d found, %d new (%.1fs) ═══",
            name, result.total, result.new_urls, time.monotonic() - start,
        )
        return result
