"""CRC-32 (IEEE 802.3, reflected polynomial 0xEDB88320) checksums."""

from __future__ import annotations

from collections.abc import Iterable

_POLYNOMIAL = 0xEDB88320
_INITIAL = 0xFFFFFFFF
_MASK = 0xFFFFFFFF


def _make_table() -> tuple[int, ...]:
    table = []
    for value in range(256):
        crc = value
        for _ in range(8):
            crc = (crc >> 1) ^ _POLYNOMIAL if crc & 1 else crc >> 1
        table.append(crc)
    return tuple(table)


_TABLE = _make_table()


def crc32_step(crc: int, byte: int) -> int:
    """Advance a running (not finalised) CRC-32 value by one byte."""
    if not 0 <= byte <= 0xFF:
        raise ValueError(f"byte out of range: {byte}")
    crc &= _MASK
    return ((crc >> 8) & 0x00FFFFFF) ^ _TABLE[(crc ^ byte) & 0xFF]


def crc32(data: Iterable[int]) -> int:
    """Return the CRC-32 of a whole block of bytes."""
    return Crc32().update(data).digest()


class Crc32:
    """Incremental CRC-32 calculation over one or several blocks."""

    def __init__(self) -> None:
        self._crc = _INITIAL

    def update(self, data: Iterable[int]) -> "Crc32":
        """Feed more bytes into the checksum and return self."""
        crc = self._crc
        for byte in bytes(data):
            crc = ((crc >> 8) & 0x00FFFFFF) ^ _TABLE[(crc ^ byte) & 0xFF]
        self._crc = crc
        return self

    def digest(self) -> int:
        """Return the finished checksum of everything fed so far."""
        return self._crc ^ _MASK