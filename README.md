# kdyflash

This package holds tools for the KDY serial bootloader protocol. It has a
command-line firmware flasher. It also has an in-memory model of the
bootloader that receives the image on the device side.

## The protocol

The firmware image goes out in fixed-size packets:

| field   | size       | content                                 |
|---------|------------|-----------------------------------------|
| sync    | 3 bytes    | `KDY`                                   |
| index   | 1 byte     | packet number, wrapping at 256          |
| payload | 1024 bytes | one flash page, padded with `0xFF`      |
| crc     | 4 bytes    | CRC-32 of the payload, little-endian    |

A packet whose payload is made up only of `0xCC` bytes ends the transfer.
The bootloader answers each good packet with `OK:<index>`. When the
transfer ends, the bootloader stores the image's size and CRC-32 in a
configuration record. The record is 8 bytes: two little-endian 32-bit
words.

## Installation

```
pip install kdyflash
```

## Flashing firmware

```
kdyflash /dev/ttyUSB0 firmware.bin
```

The flasher opens the port at 115200 baud and waits for the bootloader's
`broadcasting` line. It then sends the first packet. It sends the next
packet each time it receives an `OK` reply that carries the index of the
previous packet. If an `OK` reply carries a different index, it sends the
last packet again. After five failures it gives up.

Once the image has been sent, the flasher sends the end-of-transfer
packet. Progress messages go to standard error, each line of bootloader
output prefixed with `FROM FW ==>`. Whatever you type on standard input
is passed on to the device.

If you give only the port, the program works as a plain serial console.
Bytes received from the device go to standard output, and what you type
on standard input goes to the device:

```
kdyflash /dev/ttyUSB0
```

## Library use

```python
from kdyflash.crc import crc32, Crc32
from kdyflash.protocol import build_packet, parse_packet, ParseStatus
from kdyflash.flash import FlashMemory
from kdyflash.receiver import Bootloader

packet = build_packet(0, b"\x00" * 1024)
parsed = parse_packet(packet)
assert parsed.crc_ok()

loader = Bootloader(FlashMemory())
assert loader.receive(packet) is ParseStatus.WAITING_NEW_PACKET
print(loader.messages)          # ['OK:0\n']
```

The modules are:

- `kdyflash.crc` is the table-driven CRC-32 that both sides use. It offers
  `crc32(data)` for a whole block, the incremental class `Crc32` with
  `update()` and `digest()`, and `crc32_step()` for a single byte.
- `kdyflash.protocol` builds and parses packets and the configuration
  record:
  - `build_packet()`, `build_done_packet()`, `find_packet()` and
    `parse_packet()`;
  - `Packet`, with `is_done()` and `crc_ok()`;
  - `BootloaderConfig`, with `to_bytes()` and `exists`, and
    `decode_config()`;
  - `ParseStatus` and `PacketError`.
- `kdyflash.flash` is an in-memory model of 64 KiB of on-chip flash in
  1 KiB pages, starting at `0x08000000`. `FlashMemory` offers `read()`,
  `erase_page()`, `write_page()` and `clear()`, and raises `FlashError` for
  bad addresses or lengths. `page_address()` gives a page's base address.
- `kdyflash.receiver` holds `Bootloader`, the device side:
  - `receive()` checks one buffer and writes its payload into the
    firmware area at offset `0xC800`.
  - `update_config()` stores the size and CRC-32 record.
  - `firmware_crc()` computes the CRC-32 of the firmware area.
  - `check_firmware()` checks the stored record against flash.

  The log lines it would print go to `messages`. Its `ready_to_jump` flag
  is set once a valid image is present.
- `kdyflash.flasher` holds the host side:
  - `FlashSession` works through a transfer from the bootloader's text
    replies. `handle_response()` returns the bytes to send next.
  - `run(port, image_path)` and `main()` are the entry points of the
    command.

## What it does not do

The bootloader side here is only a model. It runs in memory, and it does
not drive a device:

- It does not talk to real flash or to a real configuration EEPROM.
  `Bootloader.eeprom` is a plain byte string.
- It does not print `broadcasting` on a timer.
- It does not time out, and it does not start the application it has
  received.

A real device is needed to flash firmware for real. Only the `kdyflash`
command talks to one.