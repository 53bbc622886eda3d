"""Crawler Notifier — Telegram Bot Transport.

Thin async wrapper around python-telegram-bot's Bot. It makes exactly one
send attempt per call and translates Telegram errors into the transport
errors understood by the notification queue; retrying and pacing are the
queue's job.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Optional, Protocol, Union

from telegram import Bot
from telegram.error import RetryAfter, TelegramError

from crawler_notifier.errors import TransportError, TransportRateLimited
from crawler_notifier.utils.logger import get_logger

logger = get_logger(__name__)


class MessageTransport(Protocol):
    """Anything that can push a text message to a chat."""

    async def send(self, chat_id: str, message: str) -> None:
        """Deliver one message or raise TransportError / TransportRateLimited."""
        ...


def _retry_after_seconds(value: Union[int, float, timedelta, None]) -> Optional[float]:
    """Normalize RetryAfter.retry_after, which is int or timedelta by PTB version."""
    if value is None:
        return None
    if isinstance(value, timedelta):
        return value.total_seconds()
    return float(value)


class TelegramTransport:
    """Sends plain-text messages through the Telegram Bot API.

    Attributes:
        sent_count: Messages accepted by Telegram during this process.
    """

    def __init__(self, bot_token: str, bot: Optional[Bot] = None) -> None:
        """Initialize the transport.

        Args:
            bot_token: Bot API token from @BotFather.
            bot: Pre-built Bot instance (tests inject a mock here).
        """
        self._bot = bot or Bot(token=bot_token)
        self.sent_count = 0

    async def initialize(self) -> bool:
        """Test the bot connection.

        Calls getMe to verify the token is valid.

        Returns:
            True if connected successfully, False otherwise.
        """
        try:
            me = await self._bot.get_me()
            logger.info("Telegram bot connected: @%s", me.username)
            return True
        except TelegramError as e:
            logger.error("Telegram bot connection failed: %s", e)
            return False

    async def send(self, chat_id: str, message: str) -> None:
        """Send a single message to a chat.

        Args:
            chat_id: Destination chat or channel identifier.
            message: Text to send, usually a listing URL.

        Raises:
            TransportRateLimited: Telegram answered 429 Too Many Requests.
            TransportError: Any other Telegram or network failure.
        """
        try:
            await self._bot.send_message(chat_id=chat_id, text=message)
        except RetryAfter as e:
            retry_after = _retry_after_seconds(e.retry_after)
            logger.warning("Telegram rate limited, retry after %s seconds", retry_after)
            raise TransportRateLimited(retry_after) from e
        except TelegramError as e:
            logger.debug("Telegram send failed: %s", e)
            raise TransportError(str(e)) from e

        self.sent_count += 1
        logger.info("Telegram notification sent: %s", message[:120])

    async def close(self) -> None:
        """Release the bot's HTTP resources."""
        await self._bot.shutdown()
