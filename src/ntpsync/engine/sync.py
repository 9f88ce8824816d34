"""Clock synchronization engine.

Drives one request/reply exchange at a time against a single NTP server and
keeps the result around for extrapolation between exchanges.

Collaborators are duck-typed:

- transport: ``subscribe(on_datagram, on_send_failed)``, ``send(data, host, port)``,
  ``close()``. Inbound datagrams arrive as ``on_datagram(data, local_receive_now)``;
  failures as ``on_send_failed(error, data)`` with the exact bytes object that
  was passed to ``send``.
- scheduler: ``run_once(callback, delay_ms)``, ``run_periodically(callback, interval_ms)``,
  ``cancel(handle)``.

All entry points must be called from one thread of control (the event loop).

Late replies: only a reply whose echoed originate timestamp matches the send
instant of the request currently outstanding is accepted. Anything else,
including a second reply to an exchange that already completed, is dropped.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Callable, Optional

from ntpsync.config.settings import Settings, settings as default_settings
from ntpsync.engine import clock
from ntpsync.engine.events import SyncObservers
from ntpsync.engine.retry import RetryController
from ntpsync.engine.state import EngineState, SyncStatus
from ntpsync.errors import MaxRetriesExceeded
from ntpsync.protocol.packet import decode_reply, encode_request
from ntpsync.utils.logging_config import get_logger


@dataclass(frozen=True)
class PendingRequest:
    packet: bytes
    send_instant: int


class ClockSyncEngine:
    def __init__(
        self,
        transport,
        scheduler,
        settings: Optional[Settings] = None,
        clock_source: Optional[Callable[[], int]] = None,
        observers: Optional[SyncObservers] = None,
    ):
        cfg = settings or default_settings
        self.destination_host = cfg.destination_host
        self.destination_port = cfg.destination_port
        self.max_retries = cfg.max_retries
        self.observers = observers or SyncObservers()

        self._transport = transport
        self._scheduler = scheduler
        self._clock = clock_source or clock.local_now
        self._retry = RetryController(cfg.max_retries, cfg.retry_backoff_ms)
        self._state = EngineState(
            time_offset=cfg.time_offset,
            resync_interval_ms=cfg.resync_interval_ms,
        )
        self._pending: Optional[PendingRequest] = None
        self._retry_handle: Any = None
        self._periodic_handle: Any = None
        self._stopped = False
        self._logger = get_logger(__name__, self.destination_host, self.destination_port)

        transport.subscribe(self.on_reply_received, self.on_send_failed)

    def __enter__(self) -> "ClockSyncEngine":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    # -- read side -----------------------------------------------------

    @property
    def state(self) -> EngineState:
        """Snapshot of the engine state."""
        return replace(self._state)

    @property
    def round_trip_delay(self) -> int:
        return self._state.round_trip_delay

    @property
    def clock_offset(self) -> int:
        return self._state.clock_offset

    @property
    def time_offset(self) -> int:
        return self._state.time_offset

    @property
    def resync_interval_ms(self) -> int:
        return self._state.resync_interval_ms

    @property
    def is_running(self) -> bool:
        """True while a periodic resync trigger is active."""
        return self._periodic_handle is not None

    @property
    def stopped(self) -> bool:
        return self._stopped

    def current_time(self) -> int:
        return clock.current_time(self._state, self._clock())

    def sync_status(self) -> SyncStatus:
        return clock.sync_status(self._state)

    # -- control -------------------------------------------------------

    def start(self) -> None:
        """Start periodic resynchronization and sync immediately."""
        if self._stopped:
            self._logger.warning("start_after_stop")
            return
        self._restart_periodic()
        self.resync()

    def resync(self) -> None:
        """Send a fresh request, superseding any exchange still in flight."""
        if self._stopped:
            self._logger.warning("resync_after_stop")
            return
        self._cancel_retry()
        now = self._clock()
        self._set_status(SyncStatus.SYNCING)
        packet = encode_request(now)
        self._pending = PendingRequest(packet=packet, send_instant=now)
        self._state.last_send_instant = now
        self._state.retry_count = 0
        self._logger.debug("resync_sent", send_instant=now)
        self._send(packet)

    def on_send_failed(self, error: Optional[BaseException] = None, packet: Optional[bytes] = None) -> None:
        """Handle a failed send.

        ``packet`` is the request the failure belongs to, when the transport
        knows it; a failure tagged with a superseded request is ignored.
        """
        if self._stopped or self._pending is None:
            return
        if packet is not None and packet is not self._pending.packet:
            self._logger.debug("stale_send_failure", error=str(error) if error else None)
            return
        self._logger.warning(
            "send_failed",
            error=str(error) if error else None,
            retry_count=self._state.retry_count,
        )
        decision = self._retry.on_failure(self._state.retry_count)
        if decision.retry:
            self._state.retry_count = decision.attempt
            packet = self._pending.packet
            self._cancel_retry()
            self._retry_handle = self._scheduler.run_once(
                lambda: self._resend(packet), decision.delay_ms
            )
            self._logger.info("retry_scheduled", attempt=decision.attempt, delay_ms=decision.delay_ms)
            self.observers.emit_retry(decision.attempt)
            return

        self._pending = None
        self._logger.error("max_retries_exceeded", attempts=decision.attempt)
        self._state.status = SyncStatus.ERROR
        self._logger.debug("status_changed", status=SyncStatus.ERROR)
        self.observers.emit_error(MaxRetriesExceeded(decision.attempt))
        self.observers.emit_status_changed(SyncStatus.ERROR)

    def on_reply_received(self, data: bytes, local_receive_now: Optional[int] = None) -> None:
        if self._stopped:
            return
        t4 = self._clock() if local_receive_now is None else int(local_receive_now)
        ts = decode_reply(data, t4)
        if ts is None:
            self._logger.debug("reply_too_short", size=len(data) if data is not None else 0)
            return
        pending = self._pending
        if pending is None or ts.originate != pending.send_instant:
            self._logger.debug(
                "reply_discarded",
                originate=ts.originate,
                expected=pending.send_instant if pending else None,
            )
            return

        self._pending = None
        self._cancel_retry()
        offset, delay = clock.calculate_offset(ts, self._state.last_send_instant)
        self._state.clock_offset = offset
        self._state.round_trip_delay = delay
        self._state.synced_instant = t4 + offset + self._state.time_offset
        self._state.synced_at_local = t4
        self._logger.info("sync_complete", offset=offset, delay=delay, synced_instant=self._state.synced_instant)
        self._set_status(SyncStatus.SYNCED)
        self.observers.emit_sync_complete(self.current_time())

    def set_time_offset(self, offset: int) -> None:
        """Change the manual bias; a synced clock shifts by the difference only."""
        offset = int(offset)
        delta = offset - self._state.time_offset
        self._state.time_offset = offset
        if self._state.status is SyncStatus.SYNCED:
            self._state.synced_instant += delta

    def set_resync_interval(self, interval_ms: int) -> None:
        if interval_ms <= 0:
            raise ValueError("resync interval must be positive")
        self._state.resync_interval_ms = int(interval_ms)
        if self._periodic_handle is not None:
            self._restart_periodic()

    def stop(self) -> None:
        """Cancel all timers and release the transport. Safe to call twice."""
        if self._stopped:
            return
        self._stopped = True
        self._pending = None
        try:
            self._cancel_retry()
            self._cancel_periodic()
        finally:
            self._transport.close()
            self._logger.info("engine_stopped")

    # -- internals -----------------------------------------------------

    def _send(self, packet: bytes) -> None:
        try:
            self._transport.send(packet, self.destination_host, self.destination_port)
        except Exception as e:
            self.on_send_failed(e, packet)

    def _resend(self, packet: bytes) -> None:
        self._retry_handle = None
        pending = self._pending
        if self._stopped or pending is None or pending.packet is not packet:
            return
        self._logger.debug("retry_sent", attempt=self._state.retry_count)
        self._send(packet)

    def _set_status(self, status: SyncStatus) -> None:
        self._state.status = status
        self._logger.debug("status_changed", status=status)
        self.observers.emit_status_changed(status)

    def _restart_periodic(self) -> None:
        self._cancel_periodic()
        self._periodic_handle = self._scheduler.run_periodically(
            self.resync, self._state.resync_interval_ms
        )

    def _cancel_periodic(self) -> None:
        if self._periodic_handle is not None:
            self._scheduler.cancel(self._periodic_handle)
            self._periodic_handle = None

    def _cancel_retry(self) -> None:
        if self._retry_handle is not None:
            self._scheduler.cancel(self._retry_handle)
            self._retry_handle = None
