"""UDP transport for the sync engine.

Binds an ephemeral IPv4 port, resolves the destination per send without
blocking the loop and hands every inbound datagram to the subscriber together
with the local clock reading taken on arrival.
"""

from __future__ import annotations

import asyncio
import socket
from typing import Callable, Optional, Set, Tuple

import structlog

from ntpsync.engine.clock import local_now
from ntpsync.errors import TransportClosedError

logger = structlog.get_logger(__name__)

DatagramHandler = Callable[[bytes, int], None]
FailureHandler = Callable[[BaseException, Optional[bytes]], None]


class _ClientProtocol(asyncio.DatagramProtocol):
    def __init__(self, owner: "UdpTransport"):
        self._owner = owner

    def datagram_received(self, data: bytes, addr: Tuple[str, int]) -> None:
        self._owner._handle_datagram(data, addr)

    def error_received(self, exc: Exception) -> None:
        # ICMP errors (port unreachable etc.) surface here on most platforms;
        # they carry no payload, so blame the most recent datagram sent
        self._owner._handle_failure(exc, self._owner._last_sent)

    def connection_lost(self, exc: Optional[Exception]) -> None:
        if exc is not None:
            logger.warning("udp_connection_lost", error=str(exc))


class UdpTransport:
    def __init__(
        self,
        local_host: str = "0.0.0.0",
        local_port: int = 0,
        clock_source: Optional[Callable[[], int]] = None,
    ):
        self.local_host = local_host
        self.local_port = local_port
        self._clock = clock_source or local_now
        self._transport: Optional[asyncio.DatagramTransport] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._on_datagram: Optional[DatagramHandler] = None
        self._on_send_failed: Optional[FailureHandler] = None
        self._sends: Set[asyncio.Task] = set()
        self._last_sent: Optional[bytes] = None

    @property
    def is_open(self) -> bool:
        return self._transport is not None

    @property
    def local_address(self) -> Optional[Tuple[str, int]]:
        if self._transport is None:
            return None
        return self._transport.get_extra_info("sockname")

    async def open(self) -> "UdpTransport":
        """Bind the local socket. Opening twice is a no-op."""
        if self._transport is not None:
            return self
        self._loop = asyncio.get_running_loop()
        self._transport, _ = await self._loop.create_datagram_endpoint(
            lambda: _ClientProtocol(self),
            local_addr=(self.local_host, self.local_port),
            family=socket.AF_INET,
        )
        logger.info("udp_bound", local=self.local_address)
        return self

    def subscribe(self, on_datagram: DatagramHandler, on_send_failed: FailureHandler) -> None:
        self._on_datagram = on_datagram
        self._on_send_failed = on_send_failed

    def send(self, data: bytes, host: str, port: int) -> None:
        """Queue ``data`` for ``host:port``; failures go to the subscriber."""
        if self._transport is None or self._loop is None:
            raise TransportClosedError("UDP transport is not open")
        task = self._loop.create_task(self._send(data, host, port))
        self._sends.add(task)
        task.add_done_callback(self._sends.discard)

    async def _send(self, data: bytes, host: str, port: int) -> None:
        try:
            infos = await self._loop.getaddrinfo(
                host, port, family=socket.AF_INET, type=socket.SOCK_DGRAM
            )
            if not infos:
                raise OSError(f"DNS resolution failed for {host}")
            if self._transport is None:
                raise TransportClosedError("UDP transport closed before send")
            self._transport.sendto(data, infos[0][4])
            self._last_sent = data
        except Exception as e:
            self._handle_failure(e, data)

    def close(self) -> None:
        for task in list(self._sends):
            task.cancel()
        self._sends.clear()
        if self._transport is not None:
            self._transport.close()
            self._transport = None
            logger.info("udp_closed")

    def _handle_datagram(self, data: bytes, addr: Tuple[str, int]) -> None:
        now = self._clock()
        logger.debug("datagram_received", size=len(data), peer=f"{addr[0]}:{addr[1]}")
        if self._on_datagram is not None:
            self._on_datagram(data, now)

    def _handle_failure(self, exc: BaseException, data: Optional[bytes] = None) -> None:
        logger.warning("udp_send_failed", error=str(exc))
        if self._on_send_failed is not None:
            self._on_send_failed(exc, data)
