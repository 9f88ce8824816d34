"""Observer registration for engine notifications.

Four channels, each a plain list of callables invoked synchronously and in
registration order. The ``on_*`` methods double as decorators.
"""

from __future__ import annotations

from typing import Callable, Dict, List

import structlog

from ntpsync.engine.state import SyncStatus

logger = structlog.get_logger(__name__)

ErrorListener = Callable[[Exception], None]
SyncListener = Callable[[int], None]
StatusListener = Callable[[SyncStatus], None]
RetryListener = Callable[[int], None]

ERROR = "error"
SYNC_COMPLETE = "sync_complete"
STATUS_CHANGED = "status_changed"
RETRY = "retry"


class SyncObservers:
    def __init__(self):
        self._listeners: Dict[str, List[Callable]] = {
            ERROR: [],
            SYNC_COMPLETE: [],
            STATUS_CHANGED: [],
            RETRY: [],
        }

    def on_error(self, listener: ErrorListener) -> ErrorListener:
        self._listeners[ERROR].append(listener)
        return listener

    def on_sync_complete(self, listener: SyncListener) -> SyncListener:
        self._listeners[SYNC_COMPLETE].append(listener)
        return listener

    def on_status_changed(self, listener: StatusListener) -> StatusListener:
        self._listeners[STATUS_CHANGED].append(listener)
        return listener

    def on_retry(self, listener: RetryListener) -> RetryListener:
        """Called with the attempt number each time a failed send is retried."""
        self._listeners[RETRY].append(listener)
        return listener

    def remove(self, listener: Callable) -> None:
        for listeners in self._listeners.values():
            if listener in listeners:
                listeners.remove(listener)

    def emit_error(self, error: Exception) -> None:
        self._emit(ERROR, error)

    def emit_sync_complete(self, current_time: int) -> None:
        self._emit(SYNC_COMPLETE, current_time)

    def emit_status_changed(self, status: SyncStatus) -> None:
        self._emit(STATUS_CHANGED, status)

    def emit_retry(self, attempt: int) -> None:
        self._emit(RETRY, attempt)

    def _emit(self, channel: str, payload) -> None:
        # Copy so a listener may unsubscribe itself during delivery
        for listener in list(self._listeners[channel]):
            try:
                listener(payload)
            except Exception:
                logger.exception("observer_failed", channel=channel)
