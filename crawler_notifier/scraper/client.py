"""Crawler Notifier — Async HTTP Client.

Rate-limited, retrying async HTTP client for fetching search-result and
category pages. Built on httpx.AsyncClient with:
  - User-agent rotation from config
  - Backoff retry (429, 5xx, timeout, connection errors)
  - Request spacing via AsyncRateLimiter
  - Request counting for session telemetry
"""

from __future__ import annotations

import asyncio
import random
from typing import Optional

import httpx

from crawler_notifier.config import ScraperConfig
from crawler_notifier.utils.logger import get_logger
from crawler_notifier.utils.rate_limiter import AsyncRateLimiter

logger = get_logger(__name__)

_DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)

# ── Browser-like headers common to all requests ──────────
_COMMON_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "fi,en;q=0.9",
    "Connection": "keep-alive",
}

# Cap on a server-provided Retry-After so one site cannot stall a run
_MAX_RETRY_AFTER_SECONDS = 60


class ListingClient:
    """Async HTTP client for listing pages with retry and rate limiting.

    Attributes:
        config: Scraper configuration from settings.yaml.
        total_requests: Running count of successful requests this session.
    """

    def __init__(
        self,
        config: ScraperConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: ScraperConfig instance loaded from settings.yaml.
            transport: Optional httpx transport (tests pass a MockTransport).
        """
        self.config = config
        self.total_requests: int = 0
        self._transport = transport
        self._rate_limiter = AsyncRateLimiter(
            max_calls=1,
            period_seconds=float(config.request_delay_seconds),
        )
        self._client: Optional[httpx.AsyncClient] = None

    def _pick_user_agent(self) -> str:
        """Random user agent from config, or a default one."""
        if self.config.user_agents:
            return random.choice(self.config.user_agents)
        return _DEFAULT_USER_AGENT

    async def _get_client(self) -> httpx.AsyncClient:
        """Lazily create the httpx.AsyncClient."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={**_COMMON_HEADERS, "User-Agent": self._pick_user_agent()},
                follow_redirects=True,
                timeout=httpx.Timeout(self.config.timeout_seconds),
                transport=self._transport,
            )
        return self._client

    async def fetch_page(self, url: str) -> Optional[str]:
        """Fetch a page and return its HTML.

        Retry strategy:
          - 429 Too Many Requests: wait Retry-After (default 30s) then retry
          - 5xx Server Error: wait 5s × attempt then retry
          - Timeout / transport error: wait 3s × attempt then retry
          - Connection error: wait 10s then retry
          - Other 4xx: give up immediately

        Args:
            url: Page URL.

        Returns:
            Response text, or None if all retries failed.
        """
        client = await self._get_client()
        max_retries = max(self.config.max_retries, 1)

        for attempt in range(1, max_retries + 1):
            await self._rate_limiter.acquire()
            client.headers["User-Agent"] = self._pick_user_agent()

            try:
                logger.debug("GET %s (attempt %d/%d)", url, attempt, max_retries)
                resp = await client.get(url)

                if resp.status_code == 429:
                    retry_after = _parse_retry_after(resp.headers.get("Retry-After"))
                    logger.warning(
                        "Rate limited (429) on attempt %d/%d. Waiting %ds...",
                        attempt, max_retries, retry_after,
                    )
                    if attempt < max_retries:
                        await asyncio.sleep(retry_after)
                    continue

                if resp.status_code >= 500:
                    wait = 5 * attempt
                    logger.warning(
                        "Server error %d on attempt %d/%d. Waiting %ds...",
                        resp.status_code, attempt, max_retries, wait,
                    )
                    if attempt < max_retries:
                        await asyncio.sleep(wait)
                    continue

                resp.raise_for_status()
                self.total_requests += 1
                return resp.text

            except httpx.HTTPStatusError as e:
                logger.error("HTTP error %d for %s", e.response.status_code, url)
                return None

            except httpx.TimeoutException:
                wait = 3 * attempt
                logger.warning(
                    "Timeout on attempt %d/%d. Waiting %ds...",
                    attempt, max_retries, wait,
                )
                if attempt < max_retries:
                    await asyncio.sleep(wait)

            except httpx.ConnectError as e:
                logger.warning(
                    "Connection error on attempt %d/%d: %s",
                    attempt, max_retries, e,
                )
                if attempt < max_retries:
                    await asyncio.sleep(10)

            except httpx.HTTPError as e:
                logger.warning(
                    "HTTP error on attempt %d/%d: %s",
                    attempt, max_retries, e,
                )
                if attempt < max_retries:
                    await asyncio.sleep(3 * attempt)

        logger.error("All %d attempts failed for %s", max_retries, url)
        return None

    async def close(self) -> None:
        """Close the underlying httpx client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.debug("HTTP client closed (total requests: %d)", self.total_requests)

    async def __aenter__(self) -> "ListingClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()


def _parse_retry_after(value: Optional[str]) -> int:
    """Seconds from a Retry-After header, 30 when absent or not a number."""
    try:
        seconds = int(value) if value is not None else 30
    except ValueError:
        seconds = 30
    return max(0, min(seconds, _MAX_RETRY_AFTER_SECONDS))
