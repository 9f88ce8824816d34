"""Tests for the asyncio scheduler."""

import asyncio

import pytest

from ntpsync.transport.scheduler import AsyncioScheduler


@pytest.mark.asyncio
async def test_run_once_fires_after_delay():
    scheduler = AsyncioScheduler()
    fired = asyncio.Event()

    scheduler.run_once(fired.set, 10)

    await asyncio.wait_for(fired.wait(), timeout=1.0)


@pytest.mark.asyncio
async def test_cancelled_once_never_fires():
    scheduler = AsyncioScheduler()
    calls = []

    handle = scheduler.run_once(lambda: calls.append(1), 10)
    scheduler.cancel(handle)
    await asyncio.sleep(0.05)

    assert calls == []


@pytest.mark.asyncio
async def test_periodic_repeats_until_cancelled():
    scheduler = AsyncioScheduler()
    calls = []

    handle = scheduler.run_periodically(lambda: calls.append(1), 10)
    await asyncio.sleep(0.1)
    scheduler.cancel(handle)
    count = len(calls)
    await asyncio.sleep(0.05)

    assert count >= 2
    assert len(calls) == count


@pytest.mark.asyncio
async def test_periodic_callback_can_cancel_itself():
    scheduler = AsyncioScheduler()
    calls = []
    handle = None

    def tick():
        calls.append(1)
        scheduler.cancel(handle)

    handle = scheduler.run_periodically(tick, 10)
    await asyncio.sleep(0.08)

    assert calls == [1]


@pytest.mark.asyncio
async def test_periodic_survives_failing_callback():
    scheduler = AsyncioScheduler()
    calls = []

    def flaky():
        calls.append(1)
        raise RuntimeError("tick failed")

    handle = scheduler.run_periodically(flaky, 10)
    await asyncio.sleep(0.08)
    scheduler.cancel(handle)

    assert len(calls) >= 2
