"""Crawler Notifier — Open in Browser.

Opens listing URLs in the platform's default web browser. The blocking
webbrowser call runs in a worker thread so the event loop keeps going.
"""

from __future__ import annotations

import asyncio
import webbrowser

from crawler_notifier.errors import ViewerOpenError
from crawler_notifier.utils.logger import get_logger

logger = get_logger(__name__)


async def open_in_viewer(url: str) -> None:
    """Open a URL in the default browser.

    Args:
        url: The URL to open.

    Raises:
        ViewerOpenError: If no browser could be launched.
    """
    try:
        opened = await asyncio.to_thread(webbrowser.open, url)
    except webbrowser.Error as e:
        raise ViewerOpenError(url, str(e)) from e

    if not opened:
        raise ViewerOpenError(url)

    logger.debug("Opened in browser: %s", url)
