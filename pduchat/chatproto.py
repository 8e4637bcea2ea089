"""Packet layouts of the chat protocol carried inside PDUs.

Every packet starts with a one-byte flag.  Handles are sent as a length
byte followed by the handle's bytes; message text ends with a NUL byte.
"""

from __future__ import annotations

import struct
from collections.abc import Iterable
from enum import IntEnum

MAX_HANDLE = 100
MIN_MULTICAST = 2
MAX_MULTICAST = 9

_COUNT = struct.Struct("!H")


class Flag(IntEnum):
    """Packet types, identified by the first byte of each packet."""

    CONNECT = 1
    CONNECT_OK = 2
    HANDLE_TAKEN = 3
    MESSAGE = 5
    MULTICAST = 6
    NO_SUCH_HANDLE = 7
    EXIT = 8
    EXIT_ACK = 9
    LIST = 10
    HANDLE_COUNT = 11
    HANDLE_ENTRY = 12
    LIST_DONE = 13


class ProtocolError(ValueError):
    """Raised when a packet cannot be built or is malformed."""


def _encode(value: str | bytes) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else bytes(value)


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def _c_string(data: bytes) -> bytes:
    return data.split(b"\0", 1)[0]


def _handle_bytes(handle: str | bytes) -> bytes:
    data = _encode(handle)
    if len(data) > MAX_HANDLE:
        raise ProtocolError(
            f"handle must be at most {MAX_HANDLE} bytes, got {len(data)}"
        )
    return data


def _length_prefixed(handle: str | bytes) -> bytes:
    data = _handle_bytes(handle)
    return bytes([len(data)]) + data


def _byte(buffer: bytes, index: int) -> int:
    if index >= len(buffer):
        raise ProtocolError("packet is truncated")
    return buffer[index]


def _read_handle(buffer: bytes, offset: int) -> tuple[str, int]:
    length = _byte(buffer, offset)
    start = offset + 1
    end = start + length
    if end > len(buffer):
        raise ProtocolError("packet is truncated inside a handle")
    return _decode(buffer[start:end]), end


def pack_connect(handle: str | bytes) -> bytes:
    """Build the packet a client sends to register ``handle``."""
    return bytes([Flag.CONNECT]) + _handle_bytes(handle)


def pack_message(
    flag: int,
    num_handles: int,
    src_handle: str | bytes,
    dest_handle: str | bytes,
    text: str | bytes,
) -> bytes:
    """Build a message packet; the text ends at its first NUL byte."""
    if not 0 <= num_handles <= 0xFF:
        raise ProtocolError(f"handle count out of range: {num_handles}")
    return b"".join(
        [
            bytes([int(flag) & 0xFF]),
            _length_prefixed(src_handle),
            bytes([num_handles]),
            _length_prefixed(dest_handle),
            _c_string(_encode(text)),
            b"\0",
        ]
    )


def extract_src_handle(buffer: bytes) -> tuple[str, int]:
    """Return the sender's handle and the index where the message text starts."""
    buffer = bytes(buffer)
    src, offset = _read_handle(buffer, 1)
    _byte(buffer, offset)
    _, offset = _read_handle(buffer, offset + 1)
    return src, offset


def extract_message(buffer: bytes, offset: int) -> str:
    """Return the NUL-terminated text starting at ``offset``."""
    buffer = bytes(buffer)
    if not 0 <= offset <= len(buffer):
        raise ProtocolError(f"message offset {offset} is outside the packet")
    return _decode(_c_string(buffer[offset:]))


def extract_dest_handle(buffer: bytes) -> str:
    """Return the destination handle of a message packet."""
    buffer = bytes(buffer)
    _, offset = _read_handle(buffer, 1)
    _byte(buffer, offset)
    dest, _ = _read_handle(buffer, offset + 1)
    return dest


def extract_error_handle(buffer: bytes) -> str:
    """Return the handle named by an unknown-handle error packet."""
    return _read_handle(bytes(buffer), 1)[0]


def message_offset(buffer: bytes) -> int:
    """Return the index where a message packet's text starts."""
    return extract_src_handle(buffer)[1]


def pack_error(dest_handle: str | bytes) -> bytes:
    """Build the packet telling a client that ``dest_handle`` does not exist."""
    return bytes([Flag.NO_SUCH_HANDLE]) + _length_prefixed(dest_handle) + b"\0"


def pack_multicast(
    src_handle: str | bytes,
    dest_handles: Iterable[str | bytes],
    text: str | bytes | None = None,
) -> bytes:
    """Build a packet sending ``text`` to between 2 and 9 handles."""
    dests = list(dest_handles)
    if not MIN_MULTICAST <= len(dests) <= MAX_MULTICAST:
        raise ProtocolError(
            f"{MIN_MULTICAST}-{MAX_MULTICAST} handles required, got {len(dests)}"
        )
    parts = [bytes([Flag.MULTICAST]), _length_prefixed(src_handle), bytes([len(dests)])]
    parts.extend(_length_prefixed(dest) for dest in dests)
    if text is not None:
        parts.append(_c_string(_encode(text)))
    parts.append(b"\0")
    return b"".join(parts)


def unpack_multicast(buffer: bytes) -> tuple[str, list[str], str]:
    """Return the sender, the destination handles and the text of a multicast."""
    buffer = bytes(buffer)
    src, offset = _read_handle(buffer, 1)
    count = _byte(buffer, offset)
    offset += 1
    dests = []
    for _ in range(count):
        dest, offset = _read_handle(buffer, offset)
        dests.append(dest)
    return src, dests, _decode(_c_string(buffer[offset:]))


def pack_handle_count(count: int) -> bytes:
    """Build the packet announcing how many handles the server holds.

    The count travels as a 16-bit network-order number padded to four bytes.
    """
    if not 0 <= count <= 0xFFFF:
        raise ProtocolError(f"handle count out of range: {count}")
    return bytes([Flag.HANDLE_COUNT]) + _COUNT.pack(count) + b"\0\0"


def unpack_handle_count(buffer: bytes) -> int:
    """Return the count carried by a handle-count packet."""
    buffer = bytes(buffer)
    if len(buffer) < 1 + _COUNT.size:
        raise ProtocolError("handle count packet is truncated")
    return _COUNT.unpack_from(buffer, 1)[0]


def pack_handle_entry(handle: str | bytes) -> bytes:
    """Build the packet carrying one handle of the server's list."""
    return bytes([Flag.HANDLE_ENTRY]) + _length_prefixed(handle)


def unpack_handle_entry(buffer: bytes) -> str:
    """Return the handle carried by a handle-list entry packet."""
    return _read_handle(bytes(buffer), 1)[0]