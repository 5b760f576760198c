"""Bootloader side of the firmware transfer.

Received packets are checked and written page by page into flash, starting
at the firmware area. When the end-of-transfer packet arrives, the size and
CRC-32 of the written image are stored in the configuration EEPROM. At start
up the stored record is checked against the flash contents.
"""

from __future__ import annotations

from kdyflash.crc import Crc32
from kdyflash.flash import (
    FLASH_BASE,
    FLASH_MAX_PAGE_BASE_ADDRESS,
    PAGE_SIZE,
    FlashError,
    FlashMemory,
)
from kdyflash.protocol import (
    CONFIG_SIZE,
    BootloaderConfig,
    PacketError,
    ParseStatus,
    decode_config,
    parse_packet,
)

FW_START_OFFSET = 0xC800
FIRMWARE_ADDRESS = FLASH_BASE + FW_START_OFFSET


class Bootloader:
    """Receives firmware packets into flash and keeps the config record."""

    def __init__(self, flash: FlashMemory) -> None:
        self.flash = flash
        self.eeprom = bytes(CONFIG_SIZE)
        self.pages_written = 0
        self.ready_to_jump = False
        self.messages: list[str] = []
        self._expected_index = 0

    def _log(self, message: str) -> None:
        self.messages.append(message)

    def receive(self, buffer: bytes) -> ParseStatus:
        """Handle one received buffer and return what came of it."""
        try:
            packet = parse_packet(buffer)
        except PacketError:
            self._log("starting packet cannot be found\n")
            return ParseStatus.WAITING_NEW_PACKET

        if packet.is_done():
            self._log("transfer complete\n")
            self._log(f"written page number {self.pages_written}\n")
            if self.update_config(self.pages_written) is None:
                self._log("bootloader config update failed\n")
            else:
                self.ready_to_jump = True
            return ParseStatus.TRANSFER_COMPLETE

        if packet.index != self._expected_index:
            self._log("index wrong\n")
            return ParseStatus.ERROR_OCCURRED

        if not packet.crc_ok():
            calculated = Crc32().update(packet.payload).digest()
            self._log(
                f"crc wrong, crc: {packet.crc:x} "
                f"crc_calculated: {calculated:x}\n"
            )
            return ParseStatus.ERROR_OCCURRED

        address = FIRMWARE_ADDRESS + self._expected_index * PAGE_SIZE
        try:
            self.flash.write_page(address, packet.payload)
        except FlashError:
            self._log("flash_write() failed\n")
            return ParseStatus.ERROR_OCCURRED

        self._log(f"OK:{self._expected_index}\n")
        self._expected_index += 1
        self.pages_written = self._expected_index
        return ParseStatus.WAITING_NEW_PACKET

    def firmware_crc(self, size: int) -> int:
        """Return the CRC-32 of the first ``size`` bytes of the firmware area."""
        checksum = Crc32()
        if size > 0:
            checksum.update(self.flash.read(FIRMWARE_ADDRESS, size))
        return checksum.digest()

    def update_config(self, pages: int) -> BootloaderConfig | None:
        """Store size and CRC of ``pages`` written pages; None if it did not stick."""
        size = pages * PAGE_SIZE
        config = BootloaderConfig(fw_size=size, fw_crc32=self.firmware_crc(size))
        self._log(f"calculated crc: {config.fw_crc32:x}\n")
        self._log(f"FW size {config.fw_size:x}\n")

        self.eeprom = config.to_bytes()
        stored = decode_config(self.eeprom)
        if stored != config:
            self._log("eeprom cannot be updated\n")
            return None
        return stored

    def check_firmware(self) -> bool:
        """Check the stored record against flash; True if a valid image is present."""
        config = decode_config(self.eeprom)
        if not config.exists:
            self._log("FW is not exist!\n")
            return False

        valid = False
        if FIRMWARE_ADDRESS + config.fw_size <= FLASH_MAX_PAGE_BASE_ADDRESS:
            crc = self.firmware_crc(config.fw_size)
            self._log(f"calculated CRC: {crc:x}\n")
            self._log(f"found CRC: {config.fw_crc32:x}\n")
            self._log(f"found fw size: {config.fw_size:x}\n")
            valid = crc == config.fw_crc32

        if valid:
            self.ready_to_jump = True
            self._log("Found a valid FW!\n")
        else:
            self._log("FW cannot be validated!\n")
        return valid