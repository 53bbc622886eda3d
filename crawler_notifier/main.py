"""Crawler Notifier — Main Orchestrator.

Ties all components together: config, the process-wide notification
queue, the dispatcher, crawler pipelines and monitoring.

Runs either once (``--once``) or on a schedule with APScheduler, one scan
cycle every ``scheduler.scan_interval_minutes``.

Usage:
    python -m crawler_notifier.main                 # all crawlers, scheduled
    python -m crawler_notifier.main tori --once     # one crawler, one run
    python -m crawler_notifier.main duunitori --term rust --open
    python scripts/run.py
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import time
import traceback
from dataclasses import dataclass, field
from typing import Optional, Sequence

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from crawler_notifier.config import AppConfig, CrawlerConfig, load_config
from crawler_notifier.database.models import BatchOptions, BatchResult
from crawler_notifier.notifier.dispatcher import NotificationDispatcher
from crawler_notifier.notifier.queue import NotificationQueue
from crawler_notifier.notifier.telegram_bot import TelegramTransport
from crawler_notifier.scraper.pipeline import CrawlerPipeline
from crawler_notifier.utils.health import CrawlerMonitor
from crawler_notifier.utils.logger import get_logger, set_console_level

logger = get_logger(__name__)


@dataclass
class RunRequest:
    """What one scan cycle should do, as given on the command line."""

    crawler_names: list[str] = field(default_factory=list)
    search_terms: list[str] = field(default_factory=list)
    options: BatchOptions = field(default_factory=BatchOptions)
    once: bool = False


class CrawlerNotifier:
    """Main application orchestrator.

    Owns the single NotificationQueue for the process and runs the
    configured crawlers through the dispatcher.

    Attributes:
        config: Full application configuration.
        monitor: Crawler metrics.
        queue: The notification queue shared by every crawler.
        dispatcher: Store-then-notify batch handler.
    """

    def __init__(self, config: AppConfig) -> None:
        """Build all components from config. Call start() to run."""
        self.config = config
        self.monitor = CrawlerMonitor()

        self.queue = NotificationQueue.from_config(
            config.telegram,
            config.queue,
            on_result=lambda pending, ok: self.monitor.record_notification(
                pending.source, ok,
            ),
        )
        self.dispatcher = NotificationDispatcher(config.database_path, self.queue)

        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False
        self._cycle_count = 0
        self._cycle_lock = asyncio.Lock()

    def select_crawlers(self, names: Sequence[str]) -> list[CrawlerConfig]:
        """Resolve crawler names, defaulting to every enabled crawler.

        Raises:
            KeyError: If a name is not configured.
        """
        if names:
            return [self.config.get_crawler(name) for name in names]
        return [c for c in self.config.crawlers if c.enabled]

    async def run_once(self, request: RunRequest) -> BatchResult:
        """Run the selected crawlers one after another.

        A crawler that fails is logged and recorded; the others still run.
        The store is unavailable only for that crawler's batch.

        Returns:
            Combined BatchResult of all crawlers.
        """
        if self._cycle_lock.locked():
            logger.warning("Previous scan cycle still running, skipping")
            return BatchResult()

        async with self._cycle_lock:
            self._cycle_count += 1
            cycle_start = time.monotonic()
            crawlers = self.select_crawlers(request.crawler_names)
            logger.info(
                "═══ Scan Cycle #%d — %d crawlers ═══",
                self._cycle_count, len(crawlers),
            )

            total = BatchResult()
            for crawler in crawlers:
                pipeline = CrawlerPipeline(
                    self.config, crawler, self.dispatcher, self.monitor,
                )
                try:
                    result = await pipeline.run(
                        request.options, request.search_terms or None,
                    )
                    total.merge(result)
                except Exception as e:
                    self.monitor.record_error(crawler.name, str(e))
                    logger.error("Crawler %s failed: %s", crawler.name, e)
                    logger.debug(traceback.format_exc())

            logger.info(
                "═══ Cycle #%d Complete ═══ Found: %d | New: %d | Errors: %d | "
                "Queued: %d | Time: %.1fs",
                self._cycle_count, total.total, total.new_urls, total.errors,
                self.queue.pending_count, time.monotonic() - cycle_start,
            )
            return total

    async def start(self, request: RunRequest) -> None:
        """Application startup.

        1. Verify the Telegram bot (when configured)
        2. One-shot: run, drain the queue, stop
        3. Scheduled: run now, then every scan_interval_minutes
        """
        self._running = True
        try:
            if self.queue.configured and isinstance(self.queue.transport, TelegramTransport):
                if not await self.queue.transport.initialize():
                    logger.error("Telegram bot connection failed! Continuing anyway...")

            if request.once:
                await self.run_once(request)
                return

            interval = self.config.scan_interval_minutes
            self._scheduler = AsyncIOScheduler()
            self._scheduler.add_job(
                self.run_once,
                IntervalTrigger(minutes=interval),
                args=[request],
                id="scan_cycle",
                max_instances=1,
                misfire_grace_time=60,
                name=f"Scan cycle (every {interval}m)",
            )
            self._scheduler.start()
            logger.info("Scheduler started: scan every %d minutes", interval)

            await self.run_once(request)

            while self._running:
                await asyncio.sleep(1)

        finally:
            await self.shutdown()

    def stop(self) -> None:
        """Ask the keep-alive loop to exit."""
        self._running = False

    async def shutdown(self) -> None:
        """Stop the scheduler, deliver queued messages, release the bot."""
        logger.info("═══ Shutting down ═══")
        self._running = False

        if self._scheduler and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

        if self.queue.is_processing:
            logger.info("Waiting for %d queued notifications", self.queue.pending_count + 1)
        await self.queue.wait_until_idle()

        if isinstance(self.queue.transport, TelegramTransport):
            await self.queue.transport.close()

        status = self.monitor.get_status()
        logger.info(
            "Shutdown complete (status: %s, sent: %d, failed: %d)",
            status["status"], self.monitor.notifications_sent,
            self.monitor.notifications_failed,
        )


def parse_args(argv: Optional[Sequence[str]] = None) -> RunRequest:
    """Translate command-line arguments into a RunRequest."""
    parser = argparse.ArgumentParser(
        prog="crawler-notifier",
        description="Scrape listing sites and send new URLs to Telegram.",
    )
    parser.add_argument(
        "crawlers", nargs="*",
        help="crawler names from settings.yaml (default: all enabled)",
    )
    parser.add_argument(
        "--term", action="append", default=[], dest="terms",
        help="search term overriding the configured ones (repeatable)",
    )
    parser.add_argument(
        "--open", action="store_true", dest="open_in_viewer",
        help="also open new listings in the default browser",
    )
    parser.add_argument(
        "--no-store", action="store_true", dest="skip_storage",
        help="do not touch the database; only open results in the browser",
    )
    parser.add_argument(
        "--once", action="store_true",
        help="run a single scan cycle and exit",
    )
    args = parser.parse_args(argv)

    return RunRequest(
        crawler_names=args.crawlers,
        search_terms=args.terms,
        options=BatchOptions(
            open_in_viewer=args.open_in_viewer,
            skip_storage=args.skip_storage,
        ),
        once=args.once,
    )


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Application entry point."""
    request = parse_args(argv)
    config = load_config()
    set_console_level(config.log_level)

    try:
        for name in request.crawler_names:
            config.get_crawler(name)
    except KeyError as e:
        raise SystemExit(e.args[0]) from e

    app = CrawlerNotifier(config)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    def _signal_handler(sig, frame):
        logger.info("Signal %s received, shutting down...", sig)
        app.stop()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    try:
        loop.run_until_complete(app.start(request))
    except KeyboardInterrupt:
        pass
    finally:
        loop.close()


if __name__ == "__main__":
    main()
