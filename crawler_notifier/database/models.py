"""Crawler Notifier — Data Models.

Dataclasses for the values that move between the crawlers, the URL store
and the notification queue:

  - SeenUrl / InsertResult: rows and insert outcomes of the links table
  - PendingMessage / DeliveryAttempt: notification queue entries
  - BatchOptions / BatchResult: input flags and outcome of one dispatch batch
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


# ═══════════════════════════════════════════════════════════
# Storage Models
# ═══════════════════════════════════════════════════════════


@dataclass(frozen=True)
class SeenUrl:
    """A listing URL stored in the links table."""

    url: str

    @classmethod
    def from_db_row(cls, row: Any) -> "SeenUrl":
        """Construct a SeenUrl from a database row."""
        return cls(url=row["url"])


@dataclass(frozen=True)
class InsertResult:
    """Outcome of one insert_if_absent call.

    Attributes:
        url: The submitted URL, unchanged.
        inserted: True if the URL was new, False if it was already stored.
    """

    url: str
    inserted: bool


# ═══════════════════════════════════════════════════════════
# Notification Models
# ═══════════════════════════════════════════════════════════


@dataclass
class PendingMessage:
    """A notification waiting in the in-memory queue.

    Attributes:
        payload: Text to send.
        source: Crawler that found the URL, if known.
        enqueued_at: When the message entered the queue.
    """

    payload: str
    source: Optional[str] = None
    enqueued_at: datetime = field(default_factory=datetime.now)


@dataclass
class DeliveryAttempt:
    """Bookkeeping for one message while it is being retried."""

    message: str
    retry_count: int = 0
    last_error: Optional[BaseException] = None

    @property
    def attempts(self) -> int:
        """Number of send calls made so far."""
        return self.retry_count + 1


# ═══════════════════════════════════════════════════════════
# Dispatch Models
# ═══════════════════════════════════════════════════════════


@dataclass(frozen=True)
class BatchOptions:
    """Flags for a dispatch batch.

    Attributes:
        open_in_viewer: Also open every new URL in the default browser.
        skip_storage: Bypass the store entirely; only open URLs in the
            browser and send no notifications.
    """

    open_in_viewer: bool = False
    skip_storage: bool = False


@dataclass
class BatchResult:
    """Counters describing what a dispatch batch did."""

    total: int = 0
    new_urls: int = 0
    duplicates: int = 0
    errors: int = 0
    viewer_opened: int = 0
    viewer_failed: int = 0

    def merge(self, other: "BatchResult") -> None:
        """Add another result's counters into this one."""
        self.total += other.total
        self.new_urls += other.new_urls
        self.duplicates += other.duplicates
        self.errors += other.errors
        self.viewer_opened += other.viewer_opened
        self.viewer_failed += other.viewer_failed

    def to_dict(self) -> dict[str, int]:
        """Serialize for logging and health reporting."""
        return {
            "total": self.total,
            "new_urls": self.new_urls,
            "duplicates": self.duplicates,
            "errors": self.errors,
            "viewer_opened": self.viewer_opened,
            "viewer_failed": self.viewer_failed,
        }
