"""Wire format of firmware packets and the bootloader configuration record.

A packet is ``b"KDY"``, one index byte, a 1024-byte payload and the
little-endian CRC-32 of the payload. A payload made only of ``0xCC`` bytes
marks the end of a transfer.
"""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass

from kdyflash.crc import crc32

SYNC = b"KDY"
SYNC_SIZE = len(SYNC)
INDEX_SIZE = 1
CRC_SIZE = 4
PAYLOAD_SIZE = 1024
PACKET_SIZE = SYNC_SIZE + INDEX_SIZE + PAYLOAD_SIZE + CRC_SIZE

PAD_BYTE = 0xFF
DONE_BYTE = 0xCC

_HEADER_SIZE = SYNC_SIZE + INDEX_SIZE
_CONFIG_FORMAT = struct.Struct("<II")
CONFIG_SIZE = _CONFIG_FORMAT.size


class ParseStatus(enum.Enum):
    """Outcome of handling received data on the bootloader side."""

    NO_ERROR = 0
    WAITING_NEW_PACKET = 1
    TRANSFER_COMPLETE = 2
    ERROR_OCCURRED = 3


class PacketError(ValueError):
    """Raised when a buffer does not hold a whole packet."""


@dataclass(frozen=True)
class Packet:
    """A decoded packet."""

    index: int
    payload: bytes
    crc: int

    def is_done(self) -> bool:
        """True when the payload is the end-of-transfer marker."""
        return all(byte == DONE_BYTE for byte in self.payload)

    def crc_ok(self) -> bool:
        """True when the carried CRC matches the payload."""
        return crc32(self.payload) == self.crc


@dataclass(frozen=True)
class BootloaderConfig:
    """Size and CRC-32 of the stored firmware image."""

    fw_size: int
    fw_crc32: int

    @property
    def exists(self) -> bool:
        """True when the record describes a firmware image at all."""
        return self.fw_size != 0 and self.fw_crc32 != 0

    def to_bytes(self) -> bytes:
        """Encode the record as stored in the EEPROM."""
        return _CONFIG_FORMAT.pack(self.fw_size, self.fw_crc32)


def _header(index: int) -> bytes:
    return SYNC + bytes([index & 0xFF])


def build_packet(index: int, payload: bytes) -> bytes:
    """Build a data packet; short payloads are padded with 0xFF."""
    payload = bytes(payload)
    if len(payload) > PAYLOAD_SIZE:
        raise ValueError(
            f"payload of {len(payload)} bytes exceeds {PAYLOAD_SIZE}"
        )
    body = payload.ljust(PAYLOAD_SIZE, bytes([PAD_BYTE]))
    return _header(index) + body + struct.pack("<I", crc32(body))


def build_done_packet(index: int) -> bytes:
    """Build the packet that tells the bootloader the transfer is over."""
    body = bytes([DONE_BYTE]) * PAYLOAD_SIZE
    return _header(index) + body + bytes([PAD_BYTE]) * CRC_SIZE


def find_packet(buffer: bytes) -> int | None:
    """Return the offset of the first sync marker, or None if there is none."""
    buffer = bytes(buffer)
    start = 0
    while start + SYNC_SIZE < len(buffer):
        if buffer[start:start + SYNC_SIZE] == SYNC:
            return start
        start += 1
    return None


def parse_packet(buffer: bytes) -> Packet:
    """Decode the first packet found in a buffer."""
    buffer = bytes(buffer)
    start = find_packet(buffer)
    if start is None:
        raise PacketError("starting packet cannot be found")
    end = start + PACKET_SIZE
    if end > len(buffer):
        raise PacketError(
            f"truncated packet: {len(buffer) - start} of {PACKET_SIZE} bytes"
        )
    index = buffer[start + SYNC_SIZE]
    payload = buffer[start + _HEADER_SIZE:start + _HEADER_SIZE + PAYLOAD_SIZE]
    (crc,) = struct.unpack_from("<I", buffer, start + _HEADER_SIZE + PAYLOAD_SIZE)
    return Packet(index=index, payload=payload, crc=crc)


def decode_config(data: bytes) -> BootloaderConfig:
    """Decode a bootloader configuration record."""
    data = bytes(data)
    if len(data) < CONFIG_SIZE:
        raise ValueError(
            f"configuration needs {CONFIG_SIZE} bytes, got {len(data)}"
        )
    fw_size, fw_crc32 = _CONFIG_FORMAT.unpack_from(data)
    return BootloaderConfig(fw_size=fw_size, fw_crc32=fw_crc32)