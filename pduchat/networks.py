"""TCP and UDP socket setup for clients and servers, plus checked send/recv."""

from __future__ import annotations

import errno
import re
import socket

from pduchat.hostlookup import HostLookupError, ip_to_string6, resolve_ipv6

LISTEN_BACKLOG = 10

_ATOI = re.compile(r"\s*([+-]?\d+)")


class NetworkError(Exception):
    """Raised when a socket cannot be created, bound, connected or used."""


def _atoi(text: str | int) -> int:
    """Read a leading integer the lenient way: anything unparsable is 0."""
    if isinstance(text, int):
        return text
    match = _ATOI.match(text)
    return int(match.group(1)) if match else 0


def _dual_stack(sock: socket.socket) -> None:
    """Let an IPv6 socket also serve IPv4 clients where the platform allows."""
    try:
        sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, 0)
    except (AttributeError, OSError):
        pass


def _new_socket(kind: int) -> socket.socket:
    try:
        return socket.socket(socket.AF_INET6, kind)
    except OSError as exc:
        raise NetworkError(f"socket call: {exc}") from exc


def _bind_any(sock: socket.socket, server_port: int, what: str) -> int:
    _dual_stack(sock)
    try:
        sock.bind(("::", server_port))
    except OSError as exc:
        sock.close()
        raise NetworkError(f"{what}: {exc}") from exc
    return sock.getsockname()[1]


def _resolve(host_name: str) -> bytes:
    try:
        return resolve_ipv6(host_name)
    except HostLookupError as exc:
        raise NetworkError(str(exc)) from exc


def tcp_server_setup(server_port: int = 0) -> socket.socket:
    """Open, bind and listen on a TCP socket; port 0 lets the system pick."""
    sock = _new_socket(socket.SOCK_STREAM)
    port = _bind_any(sock, server_port, "bind call")
    try:
        sock.listen(LISTEN_BACKLOG)
    except OSError as exc:
        sock.close()
        raise NetworkError(f"listen call: {exc}") from exc
    print(f"Server Port Number {port} ")
    return sock


def tcp_accept(server_socket: socket.socket, debug: bool = False) -> socket.socket:
    """Wait for a client on ``server_socket`` and return the connected socket."""
    try:
        client, address = server_socket.accept()
    except OSError as exc:
        raise NetworkError(f"accept call: {exc}") from exc
    if debug:
        host = address[0].split("%", 1)[0]
        print(
            f"Client accepted.  Client IP: {host} "
            f"Client Port Number: {address[1]}"
        )
    return client


def tcp_client_setup(
    server_name: str, server_port: str | int, debug: bool = False
) -> socket.socket:
    """Connect a TCP socket to ``server_name`` on ``server_port``."""
    port = _atoi(server_port)
    sock = _new_socket(socket.SOCK_STREAM)
    try:
        address = _resolve(server_name)
    except NetworkError:
        sock.close()
        raise
    ip_string = ip_to_string6(address)
    try:
        sock.connect((ip_string, port, 0, 0))
    except OSError as exc:
        sock.close()
        raise NetworkError(f"connect call: {exc}") from exc
    if debug:
        print(f"Connecting to {server_name} IP: {ip_string} Port Number: {port}")
    return sock


def udp_server_setup(server_port: int = 0) -> socket.socket:
    """Create and bind a UDP socket on any local address."""
    sock = _new_socket(socket.SOCK_DGRAM)
    port = _bind_any(sock, server_port, "bind() call error")
    print(f"Server using Port #: {port}")
    return sock


def setup_udp_client_to_server(
    host_name: str, server_port: int
) -> tuple[socket.socket, tuple[str, int, int, int]]:
    """Return a UDP socket and the IPv6 address tuple of the server."""
    sock = _new_socket(socket.SOCK_DGRAM)
    try:
        address = _resolve(host_name)
    except NetworkError:
        sock.close()
        raise
    ip_string = ip_to_string6(address)
    print(f"Server info - IP: {ip_string} Port: {server_port} ")
    return sock, (ip_string, server_port, 0, 0)


def safe_recv(sock: socket.socket, buffer_len: int, flags: int = 0) -> bytes:
    """Receive up to ``buffer_len`` bytes; a reset connection reads as closed."""
    try:
        data = sock.recv(buffer_len, flags)
    except ConnectionResetError:
        data = b""
    except OSError as exc:
        if exc.errno == errno.ECONNRESET:
            data = b""
        else:
            print("recv returned: -1")
            raise NetworkError(f"recv call: {exc}") from exc
    print(f"recv returned: {len(data)}")
    return data


def safe_send(sock: socket.socket, data: bytes, flags: int = 0) -> int:
    """Send ``data`` and return the number of bytes the socket accepted."""
    try:
        return sock.send(bytes(data), flags)
    except OSError as exc:
        raise NetworkError(f"send call: {exc}") from exc