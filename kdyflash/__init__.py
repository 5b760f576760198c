"""Serial firmware flasher and in-memory bootloader model for the KDY packet protocol."""

__version__ = "2.0.0"
__all__ = ["crc", "protocol", "flash", "receiver", "flasher"]