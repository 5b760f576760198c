"""Host side of the firmware transfer over a serial line.

Without an image the tool is a plain serial console: bytes typed on stdin go
to the port and bytes from the port go to stdout. With an image it also
answers the bootloader's messages with firmware packets. It starts on the
bootloader's ``broadcasting`` line and moves on with each ``OK:<index>``
reply. A wrong reply makes it resend the last packet, up to a fixed number
of failures.
"""

from __future__ import annotations

import os
import sys
import threading
from pathlib import Path

import serial

from kdyflash.protocol import (
    PACKET_SIZE,
    PAD_BYTE,
    PAYLOAD_SIZE,
    build_done_packet,
    build_packet,
)

VERSION = "2.0.0."
BAUDRATE = 115200
TIMEOUT_S = 5.0
MAX_FAIL_COUNT = 5
_PREFIX = "TOOL    ==> "


class FlashSession:
    """State of one firmware transfer, driven by the bootloader's text replies."""

    def __init__(self, image: bytes) -> None:
        self.image = bytes(image)
        self.index = 0
        self.error_count = 0
        self.sent_packets = 0
        self.max_packets = len(self.image) // PAYLOAD_SIZE + 1
        self.finished = False
        self.messages: list[str] = []
        self._last_packet = bytes(PACKET_SIZE)

    @property
    def gave_up(self) -> bool:
        """True once too many errors have happened and the session stops answering."""
        return self.error_count >= MAX_FAIL_COUNT

    def _log(self, message: str) -> None:
        self.messages.append(_PREFIX + message)

    def _expected_ack(self) -> str:
        # The previous index is formatted as an unsigned 32-bit number.
        return str((self.index - 1) & 0xFFFFFFFF)

    def _advance_index(self) -> int:
        current = self.index
        self.index = (self.index + 1) & 0xFF
        return current

    def _next_packet(self) -> bytes | None:
        offset = self.index * PAYLOAD_SIZE
        chunk = self.image[offset:offset + PAYLOAD_SIZE]
        self._log(f"read bytes {len(chunk)} from file\n")

        if not chunk:
            if self.sent_packets >= self.max_packets:
                packet = build_done_packet(self._advance_index())
                self._last_packet = packet
                self.finished = True
                self.sent_packets = 0
                self._log("sent DONE\n")
                return packet
            self._last_packet = bytes([PAD_BYTE]) * PACKET_SIZE
            self.error_count = MAX_FAIL_COUNT
            return None

        packet = build_packet(self._advance_index(), chunk)
        self._last_packet = packet
        self._log(f"sent packet {packet[3]}\n")
        self.sent_packets += 1
        return packet

    def handle_response(self, text: str) -> bytes | None:
        """Handle one reply from the bootloader; return the bytes to send, if any."""
        if self.gave_up:
            return None

        if "broadcasting" in text and self.index == 0:
            self._log("broadcast received\n")
            return self._next_packet()

        if "OK" in text:
            if self._expected_ack() in text:
                return self._next_packet()
            self._log("send the previous packet again\n")
            self.error_count += 1
            if self.gave_up:
                self._log("too many errors\n")
            return self._last_packet

        return None


def _console(port: serial.Serial) -> None:
    """Copy stdin to the serial port until stdin is closed."""
    fd = sys.stdin.fileno()
    while True:
        try:
            data = os.read(fd, 4096)
        except OSError:
            return
        if not data:
            return
        try:
            port.write(data)
        except serial.SerialException:
            print("write() failed", file=sys.stderr)


def _flush_messages(session: FlashSession, shown: int) -> int:
    for message in session.messages[shown:]:
        sys.stderr.write(message)
    sys.stderr.flush()
    return len(session.messages)


def _serve(port: serial.Serial, image: bytes | None) -> None:
    threading.Thread(target=_console, args=(port,), daemon=True).start()

    if image is None:
        out = sys.stdout.buffer
        while True:
            data = port.read(port.in_waiting or 1)
            if data:
                out.write(data)
                out.flush()

    session = FlashSession(image)
    shown = 0
    while True:
        line = port.readline()
        if not line:
            continue
        text = line.decode("latin-1")
        sys.stderr.write(f"FROM FW ==> {text}")
        reply = session.handle_response(text)
        shown = _flush_messages(session, shown)
        if reply is not None:
            port.write(reply)


def run(port: str, image_path: str | os.PathLike[str] | None = None) -> int:
    """Open the serial port and serve it, flashing ``image_path`` if given."""
    try:
        connection = serial.Serial(port, BAUDRATE, timeout=TIMEOUT_S)
    except (serial.SerialException, OSError, ValueError):
        print("port cannot opened", file=sys.stderr)
        return 1

    with connection:
        image = None
        if image_path is not None:
            try:
                image = Path(image_path).read_bytes()
            except OSError:
                print("open() failed", file=sys.stderr)
                return 1
        try:
            _serve(connection, image)
        except KeyboardInterrupt:
            pass
        except serial.SerialException:
            print("poll() failed", file=sys.stderr)
            return 1
    return 0


def main(argv: list[str] | None = None) -> int:
    """Command entry point: ``kdyflash PORT [IMAGE]``."""
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        print("give port name as argument", file=sys.stderr)
        return 1
    print(f"kdyflash version: {VERSION}", file=sys.stderr)
    image_path = args[1] if len(args) >= 2 else None
    return run(args[0], image_path)


if __name__ == "__main__":
    sys.exit(main())