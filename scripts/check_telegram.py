"""Crawler Notifier — Telegram Integration Check.

Sends real messages through the notification queue to verify the bot
token, the chat id, ordering and pacing.

Requires TELEGRAM_API_KEY and TELEGRAM_CHAT_ID in .env.

Run: python scripts/check_telegram.py
"""

from __future__ import annotations

import asyncio
import sys
import time
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from crawler_notifier.config import load_config
from crawler_notifier.notifier.queue import NotificationQueue
from crawler_notifier.notifier.telegram_bot import TelegramTransport
from crawler_notifier.utils.logger import get_logger

logger = get_logger(__name__)

_passed = 0
_failed = 0


def check(label: str, condition: bool) -> None:
    """Track check pass/fail."""
    global _passed, _failed
    if condition:
        _passed += 1
        logger.info("  ✅ %s", label)
    else:
        _failed += 1
        logger.error("  ❌ FAILED: %s", label)


async def run_checks() -> None:
    """Run all Telegram integration checks."""
    logger.info("╔══════════════════════════════════════════════════════╗")
    logger.info("║  Crawler Notifier — Telegram Integration Check      ║")
    logger.info("╚══════════════════════════════════════════════════════╝")

    config = load_config()
    if not config.telegram.is_configured:
        logger.error("TELEGRAM_API_KEY / TELEGRAM_CHAT_ID not set. Nothing to check.")
        sys.exit(1)

    transport = TelegramTransport(config.telegram.api_key)

    # ═══ Check 1: Bot Connection ═══
    logger.info("═══ Check 1: Bot Connection ═══")
    connected = await transport.initialize()
    check("Bot connected", connected)
    if not connected:
        logger.error("Cannot proceed without bot connection.")
        sys.exit(1)

    # ═══ Check 2: Queued delivery ═══
    logger.info("═══ Check 2: Three queued messages ═══")
    results: list[tuple[str, bool]] = []
    queue = NotificationQueue.from_config(
        config.telegram, config.queue, transport=transport,
        on_result=lambda pending, ok: results.append((pending.payload, ok)),
    )
    messages = [f"🧪 Crawler Notifier check {i}/3" for i in range(1, 4)]

    start = time.monotonic()
    for message in messages:
        queue.enqueue(message)
    check("Single drain loop", queue.is_processing)
    await queue.wait_until_idle()
    elapsed = time.monotonic() - start

    check("All delivered", [ok for _, ok in results] == [True, True, True])
    check("Delivered in order", [m for m, _ in results] == messages)
    min_spacing = config.queue.rate_limit_delay_seconds * (len(messages) - 1)
    check(f"Paced ≥ {min_spacing:.1f}s (took {elapsed:.1f}s)", elapsed >= min_spacing)

    await transport.close()

    logger.info("═══ Results: %d passed, %d failed ═══", _passed, _failed)
    if _failed:
        sys.exit(1)


def main() -> None:
    """Entry point."""
    asyncio.run(run_checks())


if __name__ == "__main__":
    main()
