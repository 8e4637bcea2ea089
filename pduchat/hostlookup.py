"""Host name lookup returning raw IPv4 or IPv6 (possibly v4-mapped) addresses."""

from __future__ import annotations

import socket

NOT_FOUND = "(IP not found)"


class HostLookupError(Exception):
    """Raised when a host name cannot be resolved."""


def _lookup(host_name: str, family: int, flags: int) -> bytes:
    try:
        infos = socket.getaddrinfo(host_name, None, family, 0, 0, flags)
    except socket.gaierror as exc:
        reason = exc.strerror or str(exc)
        raise HostLookupError(
            f"Error getaddrinfo (host: {host_name}): {reason}"
        ) from exc
    if not infos:
        raise HostLookupError(f"Error getaddrinfo (host: {host_name}): no address")
    address = infos[0][4][0].split("%", 1)[0]
    return socket.inet_pton(family, address)


def resolve_ipv6(host_name: str) -> bytes:
    """Return the first 16-byte IPv6 (or v4-mapped) address of ``host_name``."""
    flags = getattr(socket, "AI_V4MAPPED", 0) | getattr(socket, "AI_ALL", 0)
    return _lookup(host_name, socket.AF_INET6, flags)


def resolve_ipv4(host_name: str) -> bytes:
    """Return the first 4-byte IPv4 address of ``host_name``."""
    return _lookup(host_name, socket.AF_INET, 0)


def ip_to_string4(address: bytes | None) -> str:
    """Format a packed IPv4 address, or a marker when there is none."""
    if address is None:
        return NOT_FOUND
    return socket.inet_ntop(socket.AF_INET, bytes(address))


def ip_to_string6(address: bytes | None) -> str:
    """Format a packed IPv6 address, or a marker when there is none."""
    if address is None:
        return NOT_FOUND
    return socket.inet_ntop(socket.AF_INET6, bytes(address))


def ip_address_to_string(sockaddr: tuple) -> str:
    """Return the printable address of an IPv6 socket address tuple."""
    host = sockaddr[0].split("%", 1)[0]
    return ip_to_string6(socket.inet_pton(socket.AF_INET6, host))


def format_ip_info(sockaddr: tuple) -> str:
    """Return the address and port of an IPv6 socket address tuple."""
    return f"IP: {ip_address_to_string(sockaddr)} Port: {sockaddr[1]}"


def describe_host(host_name: str) -> str:
    """Describe the IPv6 and IPv4 addresses of a host, skipping failed lookups."""
    lines = []
    try:
        lines.append(
            f"IPV6 Host: {host_name} IP: {ip_to_string6(resolve_ipv6(host_name))} \n"
        )
    except HostLookupError:
        pass
    try:
        lines.append(
            f"IPv4 Host: {host_name} IP: {ip_to_string4(resolve_ipv4(host_name))} \n"
        )
    except HostLookupError:
        pass
    lines.append("\n")
    return "".join(lines)