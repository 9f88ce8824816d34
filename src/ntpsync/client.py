"""High-level asyncio NTP client.

Wires the sync engine to a UDP socket and the event loop's timers:

    async with NTPClient(Settings(destination_host="time.google.com")) as client:
        now = await client.wait_synced(timeout=5)
"""

from __future__ import annotations

import asyncio
from typing import Callable, Optional

import structlog

from ntpsync.config.settings import Settings, settings as default_settings
from ntpsync.engine.events import SyncObservers
from ntpsync.engine.state import SyncStatus
from ntpsync.engine.sync import ClockSyncEngine
from ntpsync.transport.scheduler import AsyncioScheduler
from ntpsync.transport.udp import UdpTransport

logger = structlog.get_logger(__name__)


class NTPClient:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        clock_source: Optional[Callable[[], int]] = None,
        transport: Optional[UdpTransport] = None,
        scheduler: Optional[AsyncioScheduler] = None,
    ):
        self.settings = settings or default_settings
        self.observers = SyncObservers()
        self._transport = transport or UdpTransport(
            local_host=self.settings.local_host, clock_source=clock_source
        )
        self._engine = ClockSyncEngine(
            self._transport,
            scheduler or AsyncioScheduler(),
            settings=self.settings,
            clock_source=clock_source,
            observers=self.observers,
        )

    async def __aenter__(self) -> "NTPClient":
        await self.begin()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.stop()

    @property
    def engine(self) -> ClockSyncEngine:
        return self._engine

    @property
    def local_address(self):
        return self._transport.local_address

    async def begin(self) -> None:
        """Bind on first call, then (re)start periodic sync and sync now.

        A stopped client stays stopped: nothing is bound and no request is sent.
        """
        if self._engine.stopped:
            logger.warning("begin_after_stop")
            return
        if not self._transport.is_open:
            await self._transport.open()
        self._engine.start()

    def force_update(self) -> None:
        self._engine.resync()

    def get_time(self) -> int:
        return self._engine.current_time()

    def get_sync_status(self) -> SyncStatus:
        return self._engine.sync_status()

    def set_time_offset(self, offset: int) -> None:
        self._engine.set_time_offset(offset)

    def set_update_interval(self, interval_ms: int) -> None:
        self._engine.set_resync_interval(interval_ms)

    def stop(self) -> None:
        self._engine.stop()

    def on_error(self, listener):
        return self.observers.on_error(listener)

    def on_sync_complete(self, listener):
        return self.observers.on_sync_complete(listener)

    def on_status_changed(self, listener):
        return self.observers.on_status_changed(listener)

    def on_retry(self, listener):
        return self.observers.on_retry(listener)

    async def wait_synced(self, timeout: Optional[float] = None) -> int:
        """Wait for the next completed sync and return its time.

        Raises the reported error if retries run out first, and
        ``asyncio.TimeoutError`` if nothing happens within ``timeout``.
        """
        future: asyncio.Future = asyncio.get_running_loop().create_future()

        def _done(current_time: int) -> None:
            if not future.done():
                future.set_result(current_time)

        def _failed(error: Exception) -> None:
            if not future.done():
                future.set_exception(error)

        self.observers.on_sync_complete(_done)
        self.observers.on_error(_failed)
        try:
            return await asyncio.wait_for(future, timeout)
        finally:
            self.observers.remove(_done)
            self.observers.remove(_failed)
