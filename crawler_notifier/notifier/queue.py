"""Crawler Notifier — Notification Queue.

In-memory FIFO of outbound notifications with a single drain loop.

Guarantees:
  - Messages are delivered in enqueue order, one at a time.
  - Successive deliveries are at least ``rate_limit_delay`` seconds apart,
    also when the second message arrives after the loop went idle.
  - A rate-limited send waits ``retry_after`` and tries again; any other
    failure waits ``retry_delay``. After ``max_retries`` retries the
    message is logged and dropped, and the loop moves on.
  - At most one drain loop runs per queue; ``is_processing`` is the guard.

The queue is created once at startup and shared by reference for the
lifetime of the process. Without a transport or chat id it is
unconfigured and ``enqueue`` only logs.

Usage:
    queue = NotificationQueue(TelegramTransport(token), chat_id)
    queue.enqueue("https://www.tori.fi/vi/123")
    await queue.wait_until_idle()
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from typing import Awaitable, Callable, Optional

from crawler_notifier.config import QueueConfig, TelegramConfig
from crawler_notifier.database.models import DeliveryAttempt, PendingMessage
from crawler_notifier.errors import RetriesExhausted, TransportRateLimited
from crawler_notifier.notifier.telegram_bot import MessageTransport, TelegramTransport
from crawler_notifier.utils.logger import get_logger

logger = get_logger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]
ClockFunc = Callable[[], float]
ResultCallback = Callable[[PendingMessage, bool], None]


class NotificationQueue:
    """Ordered, rate-limited, retrying delivery queue.

    Attributes:
        rate_limit_delay: Seconds to wait between two deliveries.
        max_retries: Retries after the first attempt before giving up.
        retry_delay: Backoff after a non rate-limit failure.
        default_retry_after: Wait used when a rate limit carries no duration.
        delivered_count: Messages delivered since construction.
        abandoned_count: Messages dropped after exhausting retries.
    """

    def __init__(
        self,
        transport: Optional[MessageTransport],
        chat_id: Optional[str],
        *,
        rate_limit_delay: float = 1.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        default_retry_after: float = 5.0,
        sleep: Optional[SleepFunc] = None,
        clock: Optional[ClockFunc] = None,
        on_result: Optional[ResultCallback] = None,
    ) -> None:
        """Initialize the queue.

        Args:
            transport: Message sender, or None to run unconfigured.
            chat_id: Destination chat, or None/empty to run unconfigured.
            rate_limit_delay: Seconds between successive deliveries.
            max_retries: Retries per message after the first attempt.
            retry_delay: Seconds to wait after a generic send failure.
            default_retry_after: Seconds to wait after a rate limit that
                did not say how long to wait.
            sleep: Awaitable sleep, replaceable in tests.
            clock: Monotonic clock paired with ``sleep``.
            on_result: Called with (PendingMessage, delivered) once a
                message is resolved.
        """
        self._transport = transport
        self._chat_id = chat_id or ""
        self._configured = transport is not None and bool(self._chat_id)

        self.rate_limit_delay = rate_limit_delay
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.default_retry_after = default_retry_after
        self._sleep: SleepFunc = sleep or asyncio.sleep
        self._clock: ClockFunc = clock or time.monotonic
        self._on_result = on_result

        self._messages: deque[PendingMessage] = deque()
        self._is_processing = False
        self._drain_task: Optional[asyncio.Task[None]] = None
        self._last_resolved_at: Optional[float] = None

        self.delivered_count = 0
        self.abandoned_count = 0

        if not self._configured:
            logger.info("Notification queue created without Telegram credentials")

    @classmethod
    def from_config(
        cls,
        telegram: TelegramConfig,
        policy: QueueConfig,
        transport: Optional[MessageTransport] = None,
        on_result: Optional[ResultCallback] = None,
    ) -> "NotificationQueue":
        """Build the queue from application config.

        A TelegramTransport is created only when both credentials exist.
        """
        if transport is None and telegram.is_configured:
            transport = TelegramTransport(telegram.api_key)
        return cls(
            transport if telegram.is_configured else None,
            telegram.chat_id,
            rate_limit_delay=policy.rate_limit_delay_seconds,
            max_retries=policy.max_retries,
            retry_delay=policy.retry_delay_seconds,
            default_retry_after=policy.default_retry_after_seconds,
            on_result=on_result,
        )

    # ── State ────────────────────────────────────────────

    @property
    def configured(self) -> bool:
        """Whether a transport and destination were available at construction."""
        return self._configured

    @property
    def is_processing(self) -> bool:
        """Whether a drain loop is currently active."""
        return self._is_processing

    @property
    def pending_count(self) -> int:
        """Messages waiting behind the one being delivered."""
        return len(self._messages)

    @property
    def transport(self) -> Optional[MessageTransport]:
        """The underlying transport, if any."""
        return self._transport

    # ── Public API ───────────────────────────────────────

    def enqueue(self, message: str, source: Optional[str] = None) -> None:
        """Queue a message for delivery and make sure a drain loop runs.

        Returns immediately. Must be called from inside a running event
        loop when the queue is configured.

        Args:
            message: Text to deliver.
            source: Name of the crawler that produced the message.

        Raises:
            RuntimeError: If no event loop is running. The queue is left
                unchanged.
        """
        if not self._configured:
            logger.debug("Telegram bot not configured, skipping notification: %s", message)
            return

        loop = asyncio.get_running_loop()
        self._messages.append(PendingMessage(payload=message, source=source))

        if self._is_processing:
            return

        self._is_processing = True
        self._drain_task = loop.create_task(
            self._drain(), name="notification-queue-drain",
        )

    async def wait_until_idle(self) -> None:
        """Wait until every queued message is delivered or abandoned."""
        while self._drain_task is not None and not self._drain_task.done():
            await asyncio.wait({self._drain_task})

    async def send_with_retry(self, message: str) -> DeliveryAttempt:
        """Send one message, retrying transient failures.

        Args:
            message: Text to deliver.

        Returns:
            The DeliveryAttempt describing the successful send.

        Raises:
            RetriesExhausted: The transport kept rate limiting us.
            Exception: The last non rate-limit error, once retries run out.
        """
        attempt = DeliveryAttempt(message=message)

        while True:
            try:
                await self._transport.send(self._chat_id, message)
                return attempt

            except TransportRateLimited as e:
                attempt.last_error = e
                if attempt.retry_count >= self.max_retries:
                    raise RetriesExhausted(message, attempt.attempts) from e
                wait = e.retry_after or self.default_retry_after
                logger.warning(
                    "Rate limited (attempt %d/%d). Waiting %.1f seconds...",
                    attempt.attempts, self.max_retries + 1, wait,
                )
                await self._sleep(wait)

            except Exception as e:
                attempt.last_error = e
                if attempt.retry_count >= self.max_retries:
                    raise
                logger.warning(
                    "Send failed (attempt %d/%d): %s",
                    attempt.attempts, self.max_retries + 1, e,
                )
                await self._sleep(self.retry_delay)

            attempt.retry_count += 1

    # ── Internals ────────────────────────────────────────

    async def _drain(self) -> None:
        """Deliver queued messages until the deque is empty."""
        try:
            while self._messages:
                await self._wait_for_spacing()
                pending = self._messages.popleft()
                delivered = True
                try:
                    await self.send_with_retry(pending.payload)
                except Exception as e:
                    delivered = False
                    self.abandoned_count += 1
                    logger.error(
                        "Failed to send Telegram message after retries: %s (%s)",
                        pending.payload, e,
                    )
                else:
                    self.delivered_count += 1

                self._last_resolved_at = self._clock()
                self._report(pending, delivered)
        finally:
            self._is_processing = False

    async def _wait_for_spacing(self) -> None:
        """Sleep out what is left of rate_limit_delay since the last message."""
        if self._last_resolved_at is None:
            return
        remaining = self.rate_limit_delay - (self._clock() - self._last_resolved_at)
        if remaining > 0:
            await self._sleep(remaining)

    def _report(self, pending: PendingMessage, delivered: bool) -> None:
        """Pass a resolved message to on_result; callback errors are logged."""
        if self._on_result is None:
            return
        try:
            self._on_result(pending, delivered)
        except Exception as e:
            logger.error("Notification result callback failed for %s: %s", pending.payload, e)
