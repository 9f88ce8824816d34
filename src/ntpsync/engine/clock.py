"""Offset/delay math and the read-only view over engine state."""

from __future__ import annotations

import time
from typing import Tuple

from ntpsync.engine.state import EngineState, SyncStatus
from ntpsync.protocol.packet import NtpTimestamps

UNSYNCED_TIME = 0


def local_now() -> int:
    """Local wall clock in whole Unix seconds."""
    return int(time.time())


def calculate_offset(ts: NtpTimestamps, last_send_instant: int) -> Tuple[int, int]:
    """Return (clock_offset, round_trip_delay) for one exchange.

    Delay is measured from our own send instant rather than the echoed
    originate field. Offset uses floor division; at one-second resolution
    the half-second is below what the fields carry anyway.
    """
    t1, t2, t3, t4 = ts.originate, ts.remote_receive, ts.remote_transmit, ts.local_receive
    delay = (t4 - last_send_instant) - (t3 - t2)
    offset = ((t2 - t1) + (t3 - t4)) // 2
    return offset, delay


def current_time(state: EngineState, now_local: int) -> int:
    """Synced instant extrapolated to ``now_local``, or 0 when not synced."""
    if state.status is not SyncStatus.SYNCED:
        return UNSYNCED_TIME
    return state.synced_instant + (now_local - state.synced_at_local)


def sync_status(state: EngineState) -> SyncStatus:
    return state.status
