"""Shared fakes for driving the sync engine without sockets or timers."""

import sys
from pathlib import Path

import pytest

# Ensure src is importable
ROOT = Path(__file__).parent.parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from ntpsync.config.settings import Settings  # noqa: E402
from ntpsync.engine.sync import ClockSyncEngine  # noqa: E402


class FakeClock:
    def __init__(self, now: int = 1000):
        self.now = now

    def __call__(self) -> int:
        return self.now


class FakeTransport:
    def __init__(self):
        self.sent = []
        self.closed = False
        self.on_datagram = None
        self.on_send_failed = None

    def subscribe(self, on_datagram, on_send_failed):
        self.on_datagram = on_datagram
        self.on_send_failed = on_send_failed

    def send(self, data, host, port):
        self.sent.append((data, host, port))

    def close(self):
        self.closed = True


class _Handle:
    def __init__(self, callback, delay_ms, periodic):
        self.callback = callback
        self.delay_ms = delay_ms
        self.periodic = periodic
        self.cancelled = False


class ManualScheduler:
    """Records scheduled callbacks; tests fire them explicitly."""

    def __init__(self):
        self.once = []
        self.periodic = []

    def run_once(self, callback, delay_ms):
        handle = _Handle(callback, delay_ms, periodic=False)
        self.once.append(handle)
        return handle

    def run_periodically(self, callback, interval_ms):
        handle = _Handle(callback, interval_ms, periodic=True)
        self.periodic.append(handle)
        return handle

    def cancel(self, handle):
        handle.cancelled = True

    def active_periodic(self):
        return [h for h in self.periodic if not h.cancelled]

    def pending_once(self):
        return [h for h in self.once if not h.cancelled]

    def fire_once(self):
        """Run every pending one-shot callback once."""
        handles = self.pending_once()
        for handle in handles:
            handle.cancelled = True
            handle.callback()
        return len(handles)

    def tick_periodic(self):
        for handle in self.active_periodic():
            handle.callback()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def settings():
    return Settings(destination_host="ntp.test", destination_port=123)


@pytest.fixture
def engine(transport, scheduler, settings, fake_clock):
    return ClockSyncEngine(transport, scheduler, settings=settings, clock_source=fake_clock)
