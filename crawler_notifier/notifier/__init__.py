"""Crawler Notifier — Notifier Package.

Delivery of "new listing" notifications. Components:
  - telegram_bot: single-attempt Telegram transport
  - queue: ordered, rate-limited, retrying notification queue
  - viewer: open URLs in the default browser
  - dispatcher: store-then-notify handling of scraped URL batches
"""

from crawler_notifier.notifier.telegram_bot import MessageTransport, TelegramTransport
from crawler_notifier.notifier.queue import NotificationQueue
from crawler_notifier.notifier.viewer import open_in_viewer
from crawler_notifier.notifier.dispatcher import NotificationDispatcher

__all__ = [
    "MessageTransport",
    "TelegramTransport",
    "NotificationQueue",
    "open_in_viewer",
    "NotificationDispatcher",
]
