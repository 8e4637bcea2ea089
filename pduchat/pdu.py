"""Length-prefixed PDU framing over stream sockets.

Each PDU starts with a two-byte, network-order length that counts the
header itself, followed by the payload.
"""

from __future__ import annotations

import socket
import struct

HEADER = struct.Struct("!H")
HEADER_SIZE = HEADER.size
MAX_PDU_SIZE = 1400
MAX_PAYLOAD = MAX_PDU_SIZE - HEADER_SIZE


class PduError(Exception):
    """Raised when a PDU cannot be built or a received PDU is malformed."""


def encode_pdu(data: bytes, limit: int | None = None) -> bytes:
    """Return the framed PDU for ``data``.

    When ``limit`` is given the payload is cut to at most that many bytes.
    """
    payload = bytes(data)
    if limit is not None:
        if limit < 0:
            raise ValueError(f"limit must not be negative: {limit}")
        payload = payload[:limit]
    total = HEADER_SIZE + len(payload)
    if total > 0xFFFF:
        raise PduError(f"payload of {len(payload)} bytes does not fit in a PDU")
    return HEADER.pack(total) + payload


def send_pdu(sock: socket.socket, data: bytes, limit: int | None = None) -> int:
    """Send ``data`` as one PDU and return the number of payload bytes sent."""
    frame = encode_pdu(data, limit)
    sock.sendall(frame)
    return len(frame) - HEADER_SIZE


def _recv_exact(sock: socket.socket, size: int) -> bytes:
    received = bytearray()
    while len(received) < size:
        chunk = sock.recv(size - len(received))
        if not chunk:
            break
        received += chunk
    return bytes(received)


def recv_pdu(sock: socket.socket, buffer_size: int) -> bytes:
    """Receive one PDU and return its payload.

    An empty result means the peer closed the connection (an empty PDU is
    reported the same way).  Raises :class:`PduError` if the payload is
    larger than ``buffer_size`` or the frame is malformed or cut short.
    """
    header = _recv_exact(sock, HEADER_SIZE)
    if not header:
        return b""
    if len(header) < HEADER_SIZE:
        raise PduError("connection closed inside a PDU header")

    (total,) = HEADER.unpack(header)
    if total < HEADER_SIZE:
        raise PduError(f"invalid PDU length {total}")
    length = total - HEADER_SIZE
    if length > buffer_size:
        raise PduError("Buffer size is too small for the received PDU")
    if length == 0:
        return b""

    payload = _recv_exact(sock, length)
    if not payload:
        return b""
    if len(payload) < length:
        raise PduError(
            f"connection closed after {len(payload)} of {length} payload bytes"
        )
    return payload