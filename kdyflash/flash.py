"""In-memory model of the microcontroller's internal flash (64 KiB, 1 KiB pages).

Erased flash reads as ``0xFF``. Writes always cover one whole page, which is
erased first and then programmed.
"""

from __future__ import annotations

FLASH_BASE = 0x08000000
PAGE_SIZE = 1024
PAGE_COUNT = 128
WORD_SIZE = 4
ERASED_BYTE = 0xFF


class FlashError(Exception):
    """Raised when a flash operation is given an invalid address or length."""


def page_address(page: int) -> int:
    """Return the base address of a flash page (0 to 127)."""
    if not 0 <= page < PAGE_COUNT:
        raise ValueError(f"page out of range: {page}")
    return FLASH_BASE + page * PAGE_SIZE


# The part in use has 64 KiB of flash, so page 64 is the first address past it.
FLASH_MAX_PAGE_BASE_ADDRESS = page_address(64)
FLASH_SIZE = FLASH_MAX_PAGE_BASE_ADDRESS - FLASH_BASE


class FlashMemory:
    """Simulated internal flash with page erase and whole-page programming."""

    def __init__(self) -> None:
        self._cells = bytearray([ERASED_BYTE]) * FLASH_SIZE

    def _offset(self, address: int, length: int) -> int:
        if address < FLASH_BASE:
            raise FlashError(f"address below flash base: {address:#x}")
        if address + length > FLASH_MAX_PAGE_BASE_ADDRESS:
            raise FlashError(
                f"range {address:#x}+{length} exceeds flash end "
                f"{FLASH_MAX_PAGE_BASE_ADDRESS:#x}"
            )
        return address - FLASH_BASE

    def read(self, address: int, length: int) -> bytes:
        """Return ``length`` bytes starting at ``address``."""
        if length <= 0:
            raise FlashError("length must be positive")
        offset = self._offset(address, length)
        return bytes(self._cells[offset:offset + length])

    def erase_page(self, address: int) -> None:
        """Erase the page that holds ``address``."""
        offset = self._offset(address, 1)
        start = offset - offset % PAGE_SIZE
        self._cells[start:start + PAGE_SIZE] = bytes([ERASED_BYTE]) * PAGE_SIZE

    def write_page(self, address: int, data: bytes) -> None:
        """Erase the page at ``address`` and program it with ``data``."""
        data = bytes(data)
        if len(data) != PAGE_SIZE:
            raise FlashError(
                f"data must be exactly {PAGE_SIZE} bytes, got {len(data)}"
            )
        if address % WORD_SIZE or address % PAGE_SIZE:
            raise FlashError(f"address not page aligned: {address:#x}")
        offset = self._offset(address, len(data))
        self.erase_page(address)
        self._cells[offset:offset + PAGE_SIZE] = data

    def clear(self, starting_address: int) -> int:
        """Erase every page from ``starting_address`` to the end of flash.

        Returns the number of pages erased.
        """
        page_count = max(
            0, (FLASH_MAX_PAGE_BASE_ADDRESS - starting_address) // PAGE_SIZE
        )
        for page in range(page_count):
            self.erase_page(starting_address + page * PAGE_SIZE)
        return page_count