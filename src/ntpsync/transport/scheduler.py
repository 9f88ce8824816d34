"""asyncio-backed scheduler for retries and periodic resync."""

from __future__ import annotations

import asyncio
from typing import Callable, Optional

import structlog

logger = structlog.get_logger(__name__)


class PeriodicHandle:
    """Re-arms itself on the loop after every run until cancelled."""

    def __init__(self, loop: asyncio.AbstractEventLoop, callback: Callable[[], None], interval_ms: int):
        self._loop = loop
        self._callback = callback
        self._interval = interval_ms / 1000.0
        self._timer: Optional[asyncio.TimerHandle] = None
        self.cancelled = False

    def arm(self) -> None:
        self._timer = self._loop.call_later(self._interval, self._run)

    def _run(self) -> None:
        if self.cancelled:
            return
        # Re-arm first so a callback that cancels this handle wins
        self.arm()
        try:
            self._callback()
        except Exception:
            logger.exception("periodic_callback_failed")

    def cancel(self) -> None:
        self.cancelled = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None


class AsyncioScheduler:
    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        # Resolved on first use so the scheduler can be built outside the loop
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def run_once(self, callback: Callable[[], None], delay_ms: int) -> asyncio.TimerHandle:
        return self.loop.call_later(delay_ms / 1000.0, callback)

    def run_periodically(self, callback: Callable[[], None], interval_ms: int) -> PeriodicHandle:
        handle = PeriodicHandle(self.loop, callback, interval_ms)
        handle.arm()
        return handle

    def cancel(self, handle) -> None:
        if handle is not None:
            handle.cancel()
