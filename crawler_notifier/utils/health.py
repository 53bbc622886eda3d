"""Crawler Notifier — Crawler Monitoring.

Tracks per-crawler run metrics (searches, URLs found, new URLs, errors,
Telegram deliveries) and derives a simple health status. Everything is
kept in memory with bounded history (deque).

Usage:
    monitor = CrawlerMonitor()
    monitor.start_crawler("tori")
    monitor.record_search("tori", "arduino", 7)
    monitor.record_new_urls("tori", 2)
    monitor.complete_crawler("tori")
    status = monitor.get_status()
"""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from crawler_notifier.utils.logger import get_logger

logger = get_logger(__name__)

# Errors newer than this make the status "warning"
RECENT_ERROR_WINDOW_SECONDS = 3600


@dataclass
class CrawlerMetrics:
    """Counters for one crawler run."""

    crawler_name: str
    start_time: datetime = field(default_factory=datetime.now)
    end_time: Optional[datetime] = None
    searches_processed: int = 0
    total_urls_found: int = 0
    new_urls_added: int = 0
    errors: int = 0
    notifications_sent: int = 0
    notifications_failed: int = 0

    @property
    def duration_seconds(self) -> Optional[float]:
        """Run time, or None while the crawler is still running."""
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds()

    @property
    def success_rate(self) -> float:
        """Percentage of searches that did not record an error."""
        if self.errors == 0 or self.searches_processed == 0:
            return 100.0
        ok = max(self.searches_processed - self.errors, 0)
        return ok / self.searches_processed * 100

    def to_dict(self) -> dict[str, Any]:
        """Serialize for logging and status reports."""
        return {
            "crawler": self.crawler_name,
            "duration": self.duration_seconds,
            "searches_processed": self.searches_processed,
            "total_urls_found": self.total_urls_found,
            "new_urls_added": self.new_urls_added,
            "errors": self.errors,
            "notifications_sent": self.notifications_sent,
            "notifications_failed": self.notifications_failed,
            "success_rate": f"{self.success_rate:.2f}%",
        }


@dataclass
class _ErrorRecord:
    """Record of a single error event."""
    timestamp: float
    crawler: str
    error: str


class CrawlerMonitor:
    """Collects crawler metrics for logging and health checks.

    Attributes:
        start_time: Monotonic time the monitor was created.
    """

    def __init__(self, max_history: int = 200) -> None:
        """Initialize the monitor.

        Args:
            max_history: Maximum number of error records to keep.
        """
        self.start_time = time.monotonic()
        self._metrics: dict[str, CrawlerMetrics] = {}
        self._errors: deque[_ErrorRecord] = deque(maxlen=max_history)

        # Aggregate counters (never reset)
        self.notifications_sent = 0
        self.notifications_failed = 0

    def start_crawler(self, crawler_name: str) -> CrawlerMetrics:
        """Begin a fresh metrics record for a crawler run."""
        metrics = CrawlerMetrics(crawler_name=crawler_name)
        self._metrics[crawler_name] = metrics
        logger.info("Crawler monitoring started: %s", crawler_name)
        return metrics

    def complete_crawler(self, crawler_name: str) -> Optional[CrawlerMetrics]:
        """Close a crawler run and log its summary."""
        metrics = self._metrics.get(crawler_name)
        if metrics is None:
            return None
        metrics.end_time = datetime.now()
        logger.info(
            "Crawler monitoring completed: %s | Searches: %d | Found: %d | "
            "New: %d | Errors: %d | Success: %.0f%% | Time: %.1fs",
            crawler_name, metrics.searches_processed, metrics.total_urls_found,
            metrics.new_urls_added, metrics.errors, metrics.success_rate,
            metrics.duration_seconds or 0.0,
        )
        return metrics

    def record_search(self, crawler_name: str, search_term: str, urls_found: int) -> None:
        """Count a finished search and the URLs it produced."""
        metrics = self._metrics.get(crawler_name)
        if metrics is not None:
            metrics.searches_processed += 1
            metrics.total_urls_found += urls_found
        logger.info("Search completed: %s '%s' → %d urls", crawler_name, search_term, urls_found)

    def record_error(self, crawler_name: str, error: str) -> None:
        """Count an error for a crawler."""
        metrics = self._metrics.get(crawler_name)
        if metrics is not None:
            metrics.errors += 1
        self._errors.append(_ErrorRecord(
            timestamp=time.monotonic(),
            crawler=crawler_name,
            error=error[:200],
        ))
        logger.error("Crawler error recorded: %s: %s", crawler_name, error[:200])

    def record_new_urls(self, crawler_name: str, new_urls: int) -> None:
        """Count URLs that were not seen before."""
        metrics = self._metrics.get(crawler_name)
        if metrics is not None:
            metrics.new_urls_added += new_urls

    def record_notification(self, crawler_name: Optional[str], success: bool) -> None:
        """Count a delivered or abandoned Telegram message.

        Deliveries finish in the background, often after the crawler that
        found the URL has completed; the message carries that crawler's
        name. Messages without one only count towards the totals.
        """
        if success:
            self.notifications_sent += 1
        else:
            self.notifications_failed += 1

        metrics = self._metrics.get(crawler_name) if crawler_name else None
        if metrics is None:
            return
        if success:
            metrics.notifications_sent += 1
        else:
            metrics.notifications_failed += 1

    def get_metrics(self, crawler_name: str) -> Optional[CrawlerMetrics]:
        """Metrics of the latest run of a crawler, if any."""
        return self._metrics.get(crawler_name)

    def get_all_metrics(self) -> list[CrawlerMetrics]:
        """Metrics of every crawler that has run."""
        return list(self._metrics.values())

    def get_status(self) -> dict[str, Any]:
        """Summarize health.

        Returns:
            Dict with 'status' ('healthy' or 'warning') and details.
        """
        now = time.monotonic()
        recent = [
            e for e in self._errors
            if now - e.timestamp < RECENT_ERROR_WINDOW_SECONDS
        ]
        running = [m.crawler_name for m in self._metrics.values() if m.end_time is None]

        details: dict[str, Any] = {
            "uptime": self._format_uptime(now - self.start_time),
            "active_crawlers": running,
            "notifications_sent": self.notifications_sent,
            "notifications_failed": self.notifications_failed,
            "crawlers": [m.to_dict() for m in self._metrics.values()],
        }
        status = "healthy"
        if recent:
            status = "warning"
            details["recent_errors"] = len(recent)
            details["crawlers_with_errors"] = sorted({e.crawler for e in recent})

        return {"status": status, "details": details}

    @staticmethod
    def _format_uptime(seconds: float) -> str:
        """Format seconds into human-readable uptime."""
        hours = int(seconds // 3600)
        mins = int((seconds % 3600) // 60)
        if hours >= 24:
            days = hours // 24
            hours = hours % 24
            return f"{days}d {hours}h {mins}m"
        if hours:
            return f"{hours}h {mins}m"
        return f"{mins}m"
