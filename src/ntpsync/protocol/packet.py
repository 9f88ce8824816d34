"""NTP request/reply packet codec.

Only the whole-seconds half of each 64-bit NTP timestamp is written or read;
the fraction words stay zero on the way out and are ignored on the way in.

The 32-bit seconds field wraps in February 2036 (end of NTP era 0). Decoding
assumes era 0 when the top bit is set and era 1 otherwise, so timestamps from
1968 through 2104 round-trip.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Optional

NTP_PACKET_SIZE = 48
NTP_DEFAULT_PORT = 123
NTP_DELTA = 2208988800  # 1900-01-01 -> 1970-01-01
NTP_ERA = 1 << 32

LI_VN_MODE = 0b11100011  # LI=3 (unknown), VN=4, Mode=3 (client)
POLL_INTERVAL = 6
PRECISION = 0xEC
REFERENCE_ID = b"1N14"

ORIGINATE_OFFSET = 24
RECEIVE_OFFSET = 32
TRANSMIT_OFFSET = 40

_WORD = struct.Struct("!I")


@dataclass(frozen=True)
class NtpTimestamps:
    """The four instants of one exchange, as Unix seconds."""
    originate: int         # T1, echoed back by the server
    remote_receive: int    # T2
    remote_transmit: int   # T3
    local_receive: int     # T4, local clock when the reply arrived


def to_ntp_seconds(unix_seconds: int) -> int:
    return (int(unix_seconds) + NTP_DELTA) & 0xFFFFFFFF


def from_ntp_seconds(ntp_seconds: int) -> int:
    if not ntp_seconds & 0x80000000:
        ntp_seconds += NTP_ERA  # era 1, 2036-02-07 onwards
    return ntp_seconds - NTP_DELTA


def encode_request(now_seconds: int) -> bytes:
    """Build a 48-byte client request whose transmit timestamp is ``now_seconds``."""
    packet = bytearray(NTP_PACKET_SIZE)
    packet[0] = LI_VN_MODE
    packet[1] = 0  # stratum, unspecified
    packet[2] = POLL_INTERVAL
    packet[3] = PRECISION
    # bytes 4-11: root delay / root dispersion, left zero
    packet[12:16] = REFERENCE_ID
    _WORD.pack_into(packet, TRANSMIT_OFFSET, to_ntp_seconds(now_seconds))
    return bytes(packet)


def decode_reply(data: bytes, local_receive: int = 0) -> Optional[NtpTimestamps]:
    """Read originate/receive/transmit seconds from a server reply.

    Returns None for anything shorter than a full packet. ``local_receive``
    is not part of the wire format; the caller passes its own clock reading.
    """
    if data is None or len(data) < NTP_PACKET_SIZE:
        return None
    (originate,) = _WORD.unpack_from(data, ORIGINATE_OFFSET)
    (receive,) = _WORD.unpack_from(data, RECEIVE_OFFSET)
    (transmit,) = _WORD.unpack_from(data, TRANSMIT_OFFSET)
    return NtpTimestamps(
        originate=from_ntp_seconds(originate),
        remote_receive=from_ntp_seconds(receive),
        remote_transmit=from_ntp_seconds(transmit),
        local_receive=int(local_receive),
    )


def encode_reply(request: bytes, receive_seconds: int, transmit_seconds: int) -> bytes:
    """Build a server-mode reply to ``request``.

    The request's transmit timestamp is echoed into the originate field, which
    is what real servers do and what the engine uses to match replies.
    """
    packet = bytearray(NTP_PACKET_SIZE)
    packet[0] = 0b00100100  # LI=0, VN=4, Mode=4 (server)
    packet[1] = 1
    packet[2] = POLL_INTERVAL
    packet[3] = PRECISION
    packet[ORIGINATE_OFFSET:ORIGINATE_OFFSET + 8] = request[TRANSMIT_OFFSET:TRANSMIT_OFFSET + 8]
    _WORD.pack_into(packet, RECEIVE_OFFSET, to_ntp_seconds(receive_seconds))
    _WORD.pack_into(packet, TRANSMIT_OFFSET, to_ntp_seconds(transmit_seconds))
    return bytes(packet)
