"""A bounds-checked byte buffer guarded by a validity flag."""

from __future__ import annotations

import logging
import sys
from http import HTTPStatus
from typing import Sequence

from memlab.errors import MemoryProtectionError

log = logging.getLogger(__name__)

UPLOAD_LIMIT = 1024 * 1024
HEADER_SIZE = 8


class SafeBuffer:
    """Fixed-size buffer that refuses out-of-range or post-release access."""

    def __init__(self, size: int) -> None:
        self.size = size
        self._data = bytearray(size)
        self._valid = True

    def write(self, offset: int, data: bytes) -> None:
        if not self._valid:
            raise MemoryProtectionError("memory protection: write to an invalidated buffer")
        if offset < 0 or offset + len(data) > self.size:
            raise MemoryProtectionError(
                f"memory protection: buffer overflow (offset: {offset}, "
                f"size: {len(data)}, buffer_size: {self.size})"
            )
        self._data[offset:offset + len(data)] = data

    def read(self, offset: int, length: int) -> bytes:
        if not self._valid:
            raise MemoryProtectionError("memory protection: read from an invalidated buffer")
        if offset < 0 or length < 0 or offset + length > self.size:
            raise MemoryProtectionError(
                f"memory protection: read out of range (offset: {offset}, "
                f"length: {length}, buffer_size: {self.size})"
            )
        return bytes(self._data[offset:offset + length])

    def invalidate(self) -> None:
        """Mark the buffer released; every later access fails."""
        self._valid = False
        log.info("Buffer invalidated (memory released)")

    def is_valid(self) -> bool:
        return self._valid


def handle_file_upload(body: bytes) -> tuple[HTTPStatus, str]:
    """Accept an upload body of at most 1 MiB; return status and message."""
    buffer = SafeBuffer(UPLOAD_LIMIT)
    try:
        buffer.write(0, body)
    except MemoryProtectionError as err:
        return HTTPStatus.BAD_REQUEST, f"upload error: {err}"
    buffer.invalidate()
    return HTTPStatus.OK, f"file upload succeeded: {len(body)} bytes"


def parse_protocol_data(raw_data: bytes) -> tuple[bytes, bytes]:
    """Split a frame into its 8-byte header and the payload that follows."""
    buffer = SafeBuffer(len(raw_data))
    try:
        buffer.write(0, raw_data)
    except MemoryProtectionError as err:
        raise MemoryProtectionError(f"data parse error: {err}") from err

    try:
        header = buffer.read(0, HEADER_SIZE)
    except MemoryProtectionError as err:
        raise MemoryProtectionError(f"header read error: {err}") from err
    log.info("Protocol header: %s", header.hex())

    payload = b""
    if len(raw_data) > HEADER_SIZE:
        payload = buffer.read(HEADER_SIZE, len(raw_data) - HEADER_SIZE)
        log.info("Payload size: %d bytes", len(payload))
    return header, payload


def main(argv: Sequence[str] | None = None) -> int:
    print("=== SafeBuffer examples (valid-invalid bit) ===")

    print("\n1. Normal use:")
    buffer = SafeBuffer(100)
    data = b"Hello, World!"
    buffer.write(0, data)
    print("Write succeeded")
    print(f"Read back: {buffer.read(0, len(data)).decode()}")

    print("\n2. Overflow attempt:")
    try:
        buffer.write(0, bytes(200))
    except MemoryProtectionError as err:
        print(f"Expected error: {err}")

    print("\n3. Access after invalidation:")
    buffer.invalidate()
    print("Buffer invalidated (memory released)")
    try:
        buffer.write(0, data)
    except MemoryProtectionError as err:
        print(f"Expected error: {err}")

    print("\n4. Protocol parsing:")
    frame = bytes([0x01, 0x02, 0x03, 0x04, 0x05, 0x06, 0x07, 0x08, 0x41, 0x42, 0x43])
    try:
        header, payload = parse_protocol_data(frame)
    except MemoryProtectionError as err:
        print(f"Parse error: {err}")
    else:
        print(f"Protocol header: {header.hex()}")
        print(f"Payload size: {len(payload)} bytes")
    return 0


if __name__ == "__main__":
    sys.exit(main())