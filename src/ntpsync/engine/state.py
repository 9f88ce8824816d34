from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SyncStatus(Enum):
    SYNCING = "syncing"
    SYNCED = "synced"
    ERROR = "error"


@dataclass
class EngineState:
    """Mutable synchronization record owned by a single ClockSyncEngine."""
    status: SyncStatus = SyncStatus.SYNCING
    last_send_instant: int = 0
    synced_instant: int = 0
    synced_at_local: int = 0  # local clock reading that synced_instant corresponds to
    round_trip_delay: int = 0
    clock_offset: int = 0
    retry_count: int = 0
    time_offset: int = 0
    resync_interval_ms: int = 60000
