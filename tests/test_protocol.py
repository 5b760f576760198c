import struct

import pytest

from kdyflash.crc import crc32
from kdyflash.protocol import (
    PACKET_SIZE,
    PAYLOAD_SIZE,
    BootloaderConfig,
    Packet,
    PacketError,
    build_done_packet,
    build_packet,
    decode_config,
    find_packet,
    parse_packet,
)

TEST_PAYLOAD = b"this is a test string".ljust(1024, b"\0")


def test_packet_size_matches_format():
    assert PACKET_SIZE == 3 + 1 + 1024 + 4
    assert len(build_packet(0, TEST_PAYLOAD)) == PACKET_SIZE


def test_build_packet_header_and_crc():
    packet = build_packet(0, TEST_PAYLOAD)
    assert packet[:3] == b"KDY"
    assert packet[3] == 0
    assert packet[4:4 + PAYLOAD_SIZE] == TEST_PAYLOAD
    assert struct.unpack("<I", packet[-4:])[0] == 0xE160A8BE


def test_build_packet_pads_with_ff():
    packet = build_packet(5, b"abc")
    payload = packet[4:4 + PAYLOAD_SIZE]
    assert payload[:3] == b"abc"
    assert set(payload[3:]) == {0xFF}


def test_build_packet_index_wraps_to_byte():
    assert build_packet(256 + 7, b"x")[3] == 7


def test_build_packet_rejects_oversized_payload():
    with pytest.raises(ValueError):
        build_packet(0, bytes(PAYLOAD_SIZE + 1))


def test_round_trip():
    data = bytes(range(256)) * 4
    packet = parse_packet(build_packet(9, data))
    assert packet.index == 9
    assert packet.payload == data
    assert packet.crc == crc32(data)
    assert packet.crc_ok()
    assert not packet.is_done()


def test_parse_skips_leading_noise():
    raw = b"noise\n" + build_packet(3, TEST_PAYLOAD)
    assert find_packet(raw) == 6
    assert parse_packet(raw).index == 3


def test_done_packet():
    raw = build_done_packet(4)
    assert raw[:4] == b"KDY\x04"
    assert raw[-4:] == b"\xff\xff\xff\xff"
    packet = parse_packet(raw)
    assert packet.is_done()


def test_corrupted_crc_detected():
    raw = bytearray(build_packet(1, TEST_PAYLOAD))
    raw[10] ^= 0x01
    assert not parse_packet(bytes(raw)).crc_ok()


def test_find_packet_needs_byte_after_sync():
    assert find_packet(b"KDY") is None
    assert find_packet(b"KDY\x00") == 0
    assert find_packet(b"") is None


def test_parse_without_sync_raises():
    with pytest.raises(PacketError):
        parse_packet(b"broadcasting\n")


def test_parse_truncated_raises():
    with pytest.raises(PacketError):
        parse_packet(build_packet(0, TEST_PAYLOAD)[:-1])


def test_packet_is_done_only_for_cc():
    assert Packet(0, bytes([0xCC]) * PAYLOAD_SIZE, 0).is_done()
    assert not Packet(0, bytes([0xCC]) * 10 + b"\x00", 0).is_done()


def test_config_round_trip():
    config = BootloaderConfig(fw_size=4096, fw_crc32=0xE160A8BE)
    raw = config.to_bytes()
    assert len(raw) == 8
    assert raw[:4] == struct.pack("<I", 4096)
    assert decode_config(raw) == config
    assert config.exists


def test_config_exists_requires_both_fields():
    assert not BootloaderConfig(0, 0xE160A8BE).exists
    assert not BootloaderConfig(1024, 0).exists


def test_decode_config_short_raises():
    with pytest.raises(ValueError):
        decode_config(b"\x00" * 7)