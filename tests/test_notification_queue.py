"""Tests for NotificationQueue ordering, pacing, retry and single-flight."""

from __future__ import annotations

import asyncio
import logging

import pytest

from crawler_notifier.config import QueueConfig, TelegramConfig
from crawler_notifier.errors import RetriesExhausted, TransportError, TransportRateLimited
from crawler_notifier.notifier.queue import NotificationQueue

from tests.conftest import FakeTransport


@pytest.mark.asyncio
async def test_delivers_message_to_configured_chat(make_queue, transport):
    queue = make_queue(transport, chat_id="12345")

    queue.enqueue("https://www.tori.fi/vi/1")
    await queue.wait_until_idle()

    assert transport.sent == ["https://www.tori.fi/vi/1"]
    assert transport.chat_ids == ["12345"]
    assert queue.delivered_count == 1
    assert not queue.is_processing


@pytest.mark.asyncio
async def test_messages_keep_enqueue_order_despite_failures(make_queue, transport):
    messages = [f"m{i}" for i in range(6)]
    transport.failures["m1"] = [TransportError("boom")]
    transport.failures["m3"] = [TransportRateLimited(2), TransportError("again")]
    transport.failures["m4"] = [TransportRateLimited(None)]
    queue = make_queue(transport)

    for message in messages:
        queue.enqueue(message)
    await queue.wait_until_idle()

    assert transport.sent == messages
    assert transport.max_in_flight == 1


@pytest.mark.asyncio
async def test_spacing_only_between_deliveries(make_queue, transport, sleeps):
    queue = make_queue(transport, rate_limit_delay=1.0)

    for message in ("a", "b", "c"):
        queue.enqueue(message)
    await queue.wait_until_idle()

    assert transport.sent == ["a", "b", "c"]
    assert sleeps.durations == [1.0, 1.0]


@pytest.mark.asyncio
async def test_always_rate_limited_is_attempted_max_retries_plus_one(make_queue, sleeps):
    transport = FakeTransport(always_fail=TransportRateLimited(1))
    queue = make_queue(transport, max_retries=3)

    queue.enqueue("stuck")
    await queue.wait_until_idle()

    assert transport.calls == ["stuck"] * 4
    assert sleeps.durations == [1, 1, 1]
    assert queue.abandoned_count == 1
    assert queue.delivered_count == 0


@pytest.mark.asyncio
async def test_rate_limit_without_duration_waits_default(make_queue, transport, sleeps):
    transport.failures["x"] = [TransportRateLimited(None), TransportRateLimited(0)]
    queue = make_queue(transport, default_retry_after=5.0)

    queue.enqueue("x")
    await queue.wait_until_idle()

    assert transport.sent == ["x"]
    assert sleeps.durations == [5.0, 5.0]


@pytest.mark.asyncio
async def test_generic_errors_retry_with_fixed_backoff(make_queue, sleeps):
    transport = FakeTransport(always_fail=TransportError("Generic API Error"))
    queue = make_queue(transport, max_retries=3, retry_delay=1.0)

    queue.enqueue("broken")
    await queue.wait_until_idle()

    assert len(transport.calls) == 4
    assert sleeps.durations == [1.0, 1.0, 1.0]
    assert queue.abandoned_count == 1


@pytest.mark.asyncio
async def test_send_with_retry_raises_retries_exhausted(make_queue):
    transport = FakeTransport(always_fail=TransportRateLimited(1))
    queue = make_queue(transport, max_retries=2)

    with pytest.raises(RetriesExhausted) as info:
        await queue.send_with_retry("stuck")

    assert info.value.attempts == 3


@pytest.mark.asyncio
async def test_send_with_retry_reraises_original_error(make_queue):
    error = TransportError("bad chat id")
    queue = make_queue(FakeTransport(always_fail=error), max_retries=1)

    with pytest.raises(TransportError) as info:
        await queue.send_with_retry("x")

    assert info.value is error


@pytest.mark.asyncio
async def test_abandoned_message_does_not_stop_the_loop(make_queue, transport, sleeps):
    transport.failures["bad"] = [TransportError("down")] * 4
    queue = make_queue(transport, max_retries=3, rate_limit_delay=1.0)

    queue.enqueue("bad")
    queue.enqueue("good")
    await queue.wait_until_idle()

    assert transport.sent == ["good"]
    assert queue.abandoned_count == 1
    assert queue.delivered_count == 1
    # three backoffs for "bad", then the spacing before "good"
    assert sleeps.durations == [1.0, 1.0, 1.0, 1.0]


@pytest.mark.asyncio
async def test_enqueue_during_drain_keeps_single_loop(make_queue, transport):
    queue = make_queue(transport)

    queue.enqueue("m0")
    drain_task = queue._drain_task
    await asyncio.sleep(0)
    assert queue.is_processing

    for i in range(1, 10):
        queue.enqueue(f"m{i}")
        assert queue._drain_task is drain_task

    await queue.wait_until_idle()

    assert transport.sent == [f"m{i}" for i in range(10)]
    assert transport.max_in_flight == 1


@pytest.mark.asyncio
async def test_new_loop_starts_after_previous_finished(make_queue, transport):
    queue = make_queue(transport)

    queue.enqueue("first")
    await queue.wait_until_idle()
    first_task = queue._drain_task

    queue.enqueue("second")
    assert queue._drain_task is not first_task
    await queue.wait_until_idle()

    assert transport.sent == ["first", "second"]


@pytest.mark.asyncio
async def test_unconfigured_queue_only_logs(caplog):
    caplog.set_level(logging.DEBUG, logger="crawler_notifier.notifier.queue")
    queue = NotificationQueue(None, "chat-1")

    queue.enqueue("https://a")

    assert not queue.configured
    assert not queue.is_processing
    assert queue.pending_count == 0
    assert "Telegram bot not configured, skipping notification" in caplog.text


@pytest.mark.asyncio
async def test_missing_chat_id_is_unconfigured(transport):
    queue = NotificationQueue(transport, "")

    queue.enqueue("https://a")
    await queue.wait_until_idle()

    assert not queue.configured
    assert transport.calls == []


@pytest.mark.asyncio
async def test_payload_is_sent_unchanged(make_queue, transport):
    messages = ["", "Message with äöü and 🚀 emoji and @mention", "A" * 4096]
    queue = make_queue(transport)

    for message in messages:
        queue.enqueue(message)
    await queue.wait_until_idle()

    assert transport.sent == messages


@pytest.mark.asyncio
async def test_on_result_reports_each_outcome(make_queue, transport):
    outcomes = []
    transport.failures["bad"] = [TransportError("x")] * 2
    queue = make_queue(
        transport, max_retries=1,
        on_result=lambda pending, ok: outcomes.append((pending.payload, ok)),
    )

    queue.enqueue("ok-1")
    queue.enqueue("bad")
    queue.enqueue("ok-2")
    await queue.wait_until_idle()

    assert outcomes == [("ok-1", True), ("bad", False), ("ok-2", True)]


def test_from_config_without_credentials_is_unconfigured():
    queue = NotificationQueue.from_config(
        TelegramConfig(api_key="", chat_id="123"), QueueConfig(),
    )

    assert not queue.configured
    assert queue.transport is None


def test_from_config_applies_policy(transport):
    policy = QueueConfig(
        rate_limit_delay_seconds=2.5,
        max_retries=5,
        retry_delay_seconds=0.5,
        default_retry_after_seconds=7.0,
    )
    queue = NotificationQueue.from_config(
        TelegramConfig(api_key="token", chat_id="123"), policy, transport=transport,
    )

    assert queue.configured
    assert queue.transport is transport
    assert queue.rate_limit_delay == 2.5
    assert queue.max_retries == 5
    assert queue.retry_delay == 0.5
    assert queue.default_retry_after == 7.0


@pytest.mark.asyncio
async def test_spacing_holds_when_loop_restarts(make_queue, transport, sleeps):
    queue = make_queue(transport, rate_limit_delay=1.0)

    queue.enqueue("first")
    await queue.wait_until_idle()
    queue.enqueue("second")
    await queue.wait_until_idle()

    assert transport.sent == ["first", "second"]
    assert sleeps.durations == [1.0]


@pytest.mark.asyncio
async def test_only_remaining_spacing_is_waited(make_queue, transport, sleeps):
    queue = make_queue(transport, rate_limit_delay=1.0)

    queue.enqueue("first")
    await queue.wait_until_idle()
    sleeps.now += 0.25
    queue.enqueue("second")
    await queue.wait_until_idle()
    sleeps.now += 5.0
    queue.enqueue("third")
    await queue.wait_until_idle()

    assert transport.sent == ["first", "second", "third"]
    assert sleeps.durations == [0.75]


def test_enqueue_without_running_loop_leaves_queue_usable(make_queue, transport):
    queue = make_queue(transport)

    with pytest.raises(RuntimeError):
        queue.enqueue("first")

    assert not queue.is_processing
    assert queue.pending_count == 0

    async def deliver() -> None:
        queue.enqueue("second")
        await queue.wait_until_idle()

    asyncio.run(deliver())

    assert transport.sent == ["second"]
    assert not queue.is_processing


@pytest.mark.asyncio
async def test_failing_result_callback_does_not_stop_delivery(make_queue, transport):
    def broken_callback(pending, ok):
        raise ValueError("metrics backend down")

    queue = make_queue(transport, on_result=broken_callback)

    for message in ("a", "b", "c"):
        queue.enqueue(message)
    await queue.wait_until_idle()

    assert transport.sent == ["a", "b", "c"]
    assert queue.delivered_count == 3
    assert not queue.is_processing


@pytest.mark.asyncio
async def test_source_travels_with_message(make_queue, transport):
    sources = []
    queue = make_queue(
        transport, on_result=lambda pending, ok: sources.append(pending.source),
    )

    queue.enqueue("https://a", source="tori")
    queue.enqueue("https://b")
    await queue.wait_until_idle()

    assert sources == ["tori", None]
