"""Periodic refresh loops with a per-loop in-flight guard."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

RefreshFn = Callable[[], Awaitable[None]]


class PollLoop:
    """Call ``refresh`` every ``interval`` seconds, never more than once at a time.

    A tick that fires while the previous refresh is still outstanding is
    skipped, not queued. Refresh failures are logged and dropped; the next
    tick is the retry.
    """

    def __init__(self, name: str, interval: float, refresh: RefreshFn) -> None:
        if interval <= 0:
            raise ValueError(f"Poll interval must be positive, got {interval}")
        self.name = name
        self.interval = interval
        self._refresh = refresh
        self._timer: asyncio.Task[None] | None = None
        self._in_flight: asyncio.Task[None] | None = None
        self.ticks = 0
        self.skipped = 0
        self.failures = 0

    @property
    def running(self) -> bool:
        return self._timer is not None

    @property
    def in_flight(self) -> bool:
        return self._in_flight is not None

    def start(self) -> None:
        """Refresh immediately, then keep ticking until :meth:`stop`."""
        if self._timer is not None:
            return
        self.tick()
        self._timer = asyncio.create_task(self._run(), name=f"poll-{self.name}")

    async def stop(self) -> None:
        """Cancel the timer and any outstanding refresh and wait for both to finish."""
        tasks = [t for t in (self._timer, self._in_flight) if t is not None]
        self._timer = None
        self._in_flight = None
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def tick(self) -> bool:
        """Start one refresh unless one is already outstanding. Returns True if started."""
        if self._in_flight is not None:
            self.skipped += 1
            logger.debug("Skipping %s tick: previous refresh still in flight", self.name, extra={"loop": self.name})
            return False
        self.ticks += 1
        self._in_flight = asyncio.create_task(self._refresh_once(), name=f"refresh-{self.name}")
        return True

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            self.tick()

    async def _refresh_once(self) -> None:
        try:
            await self._refresh()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self.failures += 1
            logger.warning("%s refresh failed: %s", self.name, exc, extra={"loop": self.name})
        finally:
            if self._in_flight is asyncio.current_task():
                self._in_flight = None


class Poller:
    """Owns the open-orders, watched-orders and maintenance loops.

    The three loops are independent of each other: each may have its own
    request outstanding at the same time.
    """

    def __init__(
        self,
        *,
        refresh_open_orders: RefreshFn,
        refresh_watched_orders: RefreshFn,
        refresh_maintenance: RefreshFn,
        open_orders_interval: float,
        watched_orders_interval: float,
        maintenance_interval: float,
    ) -> None:
        self.open_orders = PollLoop("open-orders", open_orders_interval, refresh_open_orders)
        self.watched_orders = PollLoop("watched-orders", watched_orders_interval, refresh_watched_orders)
        self.maintenance = PollLoop("maintenance", maintenance_interval, refresh_maintenance)

    @property
    def loops(self) -> tuple[PollLoop, ...]:
        return (self.open_orders, self.watched_orders, self.maintenance)

    @property
    def running(self) -> bool:
        return any(loop.running for loop in self.loops)

    def start(self) -> None:
        for loop in self.loops:
            loop.start()
        logger.info(
            "Polling started (open orders %.0fs, watched orders %.0fs, maintenance %.0fs)",
            self.open_orders.interval,
            self.watched_orders.interval,
            self.maintenance.interval,
        )

    async def stop(self) -> None:
        for loop in self.loops:
            await loop.stop()
        logger.info("Polling stopped")
