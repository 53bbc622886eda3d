"""Shared fixtures: fake Telegram transport, recorded sleeps, configs."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from pathlib import Path
from typing import Optional

import pytest

from crawler_notifier.config import (
    AppConfig,
    CrawlerConfig,
    QueueConfig,
    ScraperConfig,
    TelegramConfig,
)
from crawler_notifier.notifier.queue import NotificationQueue


class FakeTransport:
    """Records sends; can be told to fail specific messages first.

    ``failures[message]`` is a list of exceptions raised, one per call,
    before that message finally goes through. ``always_fail`` raises on
    every call.
    """

    def __init__(self, always_fail: Optional[Exception] = None) -> None:
        self.sent: list[str] = []
        self.calls: list[str] = []
        self.chat_ids: list[str] = []
        self.failures: dict[str, list[Exception]] = defaultdict(list)
        self.always_fail = always_fail
        self.in_flight = 0
        self.max_in_flight = 0

    async def send(self, chat_id: str, message: str) -> None:
        self.calls.append(message)
        self.chat_ids.append(chat_id)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            # Yield like a real network call would
            await asyncio.sleep(0)
            if self.always_fail is not None:
                raise self.always_fail
            if self.failures[message]:
                raise self.failures[message].pop(0)
            self.sent.append(message)
        finally:
            self.in_flight -= 1


class SleepRecorder:
    """Stand-in for asyncio.sleep that records durations and only yields.

    ``clock`` is a fake monotonic clock that moves only when something
    sleeps, so queue spacing is deterministic.
    """

    def __init__(self) -> None:
        self.durations: list[float] = []
        self.now = 0.0

    def clock(self) -> float:
        return self.now

    async def __call__(self, seconds: float) -> None:
        self.durations.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def make_queue(sleeps: SleepRecorder):
    """Factory for queues that never really sleep."""

    def _make(transport, chat_id: str = "chat-1", **kwargs) -> NotificationQueue:
        return NotificationQueue(
            transport, chat_id, sleep=sleeps, clock=sleeps.clock, **kwargs,
        )

    return _make


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    return str(tmp_path / "data" / "links.db")


def build_app_config(
    db_path: str,
    crawlers: Optional[list[CrawlerConfig]] = None,
    telegram: Optional[TelegramConfig] = None,
) -> AppConfig:
    """AppConfig with fast scraper timings for tests."""
    return AppConfig(
        telegram=telegram or TelegramConfig(api_key="", chat_id=""),
        queue=QueueConfig(),
        scraper=ScraperConfig(
            timeout_seconds=5,
            max_retries=2,
            request_delay_seconds=0.0,
            search_delay_seconds=0.0,
            user_agents=["pytest-agent"],
        ),
        crawlers=crawlers or [],
        database_path=db_path,
        log_level="DEBUG",
        scan_interval_minutes=30,
    )
