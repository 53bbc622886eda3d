"""Crawler Notifier — Error Types.

Exception hierarchy shared by the storage, notification and viewer layers.

  StorageUnavailable   → store could not be opened or written
  TransportRateLimited → Telegram asked us to slow down (retry_after)
  TransportError       → any other failed send
  RetriesExhausted     → rate-limited on every attempt
  ViewerOpenError      → browser refused to open a URL
"""

from __future__ import annotations

from typing import Optional


class CrawlerNotifierError(Exception):
    """Base class for all application errors."""


class StorageUnavailable(CrawlerNotifierError):
    """Raised when the URL store cannot be opened, created or written."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Storage unavailable at {path}: {reason}")


class TransportError(CrawlerNotifierError):
    """Raised when the message transport fails to deliver a message."""


class TransportRateLimited(TransportError):
    """Raised when the transport signals a rate limit.

    Attributes:
        retry_after: Seconds the remote side asked us to wait, or None
            when the response did not say.
    """

    def __init__(self, retry_after: Optional[float] = None) -> None:
        self.retry_after = retry_after
        super().__init__(f"Too Many Requests: retry after {retry_after}")


class RetriesExhausted(CrawlerNotifierError):
    """Raised when a message stayed rate-limited through every retry."""

    def __init__(self, message: str, attempts: int) -> None:
        self.message = message
        self.attempts = attempts
        super().__init__(
            f"Max retries exceeded after {attempts} attempts for message: {message[:80]}"
        )


class ViewerOpenError(CrawlerNotifierError):
    """Raised when a URL could not be opened in the default viewer."""

    def __init__(self, url: str, reason: str = "no runnable browser") -> None:
        self.url = url
        super().__init__(f"Could not open {url}: {reason}")
