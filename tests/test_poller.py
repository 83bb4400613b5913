"""Tests for the periodic poll loops."""

import asyncio

import pytest

from order_monitor.poller import Poller, PollLoop


class SlowFetch:
    """Refresh that takes ``duration`` seconds and tracks concurrency."""

    def __init__(self, duration: float, *, fail: bool = False) -> None:
        self.duration = duration
        self.fail = fail
        self.calls = 0
        self.active = 0
        self.max_active = 0

    async def __call__(self) -> None:
        self.calls += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.duration)
            if self.fail:
                raise RuntimeError("boom")
        finally:
            self.active -= 1


def test_rejects_non_positive_interval() -> None:
    with pytest.raises(ValueError):
        PollLoop("x", 0, SlowFetch(0))


@pytest.mark.asyncio
async def test_slow_fetch_never_overlaps() -> None:
    fetch = SlowFetch(0.05)
    loop = PollLoop("open-orders", 0.01, fetch)

    loop.start()
    await asyncio.sleep(0.2)
    await loop.stop()

    assert fetch.max_active == 1
    assert loop.skipped > 0
    assert fetch.calls >= 2


@pytest.mark.asyncio
async def test_start_refreshes_immediately() -> None:
    fetch = SlowFetch(0)
    loop = PollLoop("watched-orders", 10, fetch)
    loop.start()
    await asyncio.sleep(0.01)
    assert fetch.calls == 1
    await loop.stop()


@pytest.mark.asyncio
async def test_failures_do_not_stop_loop() -> None:
    fetch = SlowFetch(0, fail=True)
    loop = PollLoop("maintenance", 0.01, fetch)
    loop.start()
    await asyncio.sleep(0.06)
    await loop.stop()

    assert loop.failures >= 2
    assert fetch.calls >= loop.failures


@pytest.mark.asyncio
async def test_stop_cancels_outstanding_refresh() -> None:
    fetch = SlowFetch(1.0)
    loop = PollLoop("open-orders", 0.01, fetch)
    loop.start()
    await asyncio.sleep(0.01)
    assert loop.in_flight is True

    await loop.stop()

    assert loop.running is False
    assert loop.in_flight is False
    assert fetch.active == 0
    calls = fetch.calls
    await asyncio.sleep(0.05)
    assert fetch.calls == calls


@pytest.mark.asyncio
async def test_loops_are_independent() -> None:
    slow = SlowFetch(0.1)
    fast = SlowFetch(0)
    other = SlowFetch(0)
    poller = Poller(
        refresh_open_orders=slow,
        refresh_watched_orders=fast,
        refresh_maintenance=other,
        open_orders_interval=0.01,
        watched_orders_interval=0.01,
        maintenance_interval=0.01,
    )
    poller.start()
    assert poller.running is True
    await asyncio.sleep(0.05)
    await poller.stop()

    assert slow.calls == 1
    assert fast.calls >= 2
    assert poller.running is False
