"""Exception types reported through the engine's error channel."""

from __future__ import annotations


class NtpSyncError(Exception):
    """Base class for synchronization failures."""


class MaxRetriesExceeded(NtpSyncError):
    def __init__(self, attempts: int):
        super().__init__("Max retries exceeded")
        self.attempts = attempts


class TransportClosedError(NtpSyncError):
    """Send attempted on a transport that is not open."""
