"""Tests for the NTP packet codec."""

import struct

from ntpsync.protocol.packet import (
    NTP_DELTA,
    NTP_ERA,
    NTP_PACKET_SIZE,
    decode_reply,
    encode_reply,
    encode_request,
    from_ntp_seconds,
    to_ntp_seconds,
)


def _reply(originate: int, receive: int, transmit: int, size: int = NTP_PACKET_SIZE) -> bytes:
    buf = bytearray(max(size, NTP_PACKET_SIZE))
    struct.pack_into("!I", buf, 24, originate + NTP_DELTA)
    struct.pack_into("!I", buf, 32, receive + NTP_DELTA)
    struct.pack_into("!I", buf, 40, transmit + NTP_DELTA)
    return bytes(buf[:size])


class TestEncodeRequest:
    def test_layout(self):
        packet = encode_request(1_700_000_000)

        assert len(packet) == NTP_PACKET_SIZE
        assert packet[0] == 0b11100011
        assert packet[1] == 0
        assert packet[2] == 6
        assert packet[3] == 0xEC
        assert packet[4:12] == bytes(8)
        assert packet[12:16] == b"1N14"
        assert packet[16:40] == bytes(24)
        assert packet[44:48] == bytes(4)

    def test_transmit_timestamp_is_ntp_seconds(self):
        packet = encode_request(1000)
        assert struct.unpack("!I", packet[40:44])[0] == 1000 + 2208988800

    def test_deterministic(self):
        assert encode_request(1234) == encode_request(1234)
        assert encode_request(1234) != encode_request(1235)


class TestDecodeReply:
    def test_reads_three_timestamps(self):
        ts = decode_reply(_reply(1000, 1050, 1060), local_receive=1120)

        assert ts.originate == 1000
        assert ts.remote_receive == 1050
        assert ts.remote_transmit == 1060
        assert ts.local_receive == 1120

    def test_short_reply_is_none(self):
        assert decode_reply(_reply(1000, 1050, 1060, size=47)) is None
        assert decode_reply(b"") is None

    def test_longer_reply_is_accepted(self):
        data = _reply(1000, 1050, 1060) + b"\x00" * 20
        assert decode_reply(data).remote_transmit == 1060

    def test_fraction_words_are_ignored(self):
        buf = bytearray(_reply(1000, 1050, 1060))
        struct.pack_into("!I", buf, 36, 0xFFFFFFFF)
        struct.pack_into("!I", buf, 44, 0x80000000)
        ts = decode_reply(bytes(buf))
        assert ts.remote_receive == 1050
        assert ts.remote_transmit == 1060


def test_server_reply_echoes_request_transmit():
    request = encode_request(5000)
    ts = decode_reply(encode_reply(request, 5003, 5004), local_receive=5008)

    assert ts.originate == 5000
    assert ts.remote_receive == 5003
    assert ts.remote_transmit == 5004


class TestEraRollover:
    def test_timestamps_after_2036_round_trip(self):
        now = NTP_ERA - NTP_DELTA + 100
        request = encode_request(now)
        ts = decode_reply(encode_reply(request, now + 1, now + 2))

        assert struct.unpack("!I", request[40:44])[0] == 100
        assert ts.originate == now
        assert ts.remote_receive == now + 1
        assert ts.remote_transmit == now + 2

    def test_era_boundary(self):
        last = NTP_ERA - NTP_DELTA - 1
        assert from_ntp_seconds(to_ntp_seconds(last)) == last
        assert from_ntp_seconds(to_ntp_seconds(last + 1)) == last + 1

    def test_current_era_unchanged(self):
        ts = decode_reply(_reply(1_700_000_000, 1_700_000_001, 1_700_000_002))
        assert ts.originate == 1_700_000_000
        assert ts.remote_transmit == 1_700_000_002
