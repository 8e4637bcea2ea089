"""PDU echo server and the interactive client that talks to it."""

from __future__ import annotations

import io
import os
import re
import select
import socket
import sys
from typing import IO, Any

from pduchat.networks import NetworkError, tcp_client_setup, tcp_server_setup
from pduchat.pdu import recv_pdu, send_pdu
from pduchat.pollset import POLL_WAIT_FOREVER, PollSet

MAXBUF = 1024
DEBUG_FLAG = True
PROMPT = "Enter message: "

_ATOI = re.compile(r"\s*([+-]?\d+)")


def _atoi(text: str) -> int:
    match = _ATOI.match(text)
    return int(match.group(1)) if match else 0


def _program_name() -> str:
    return os.path.basename(sys.argv[0]) if sys.argv and sys.argv[0] else "pduchat"


class EchoServer:
    """Accepts clients and sends every PDU back to the client that sent it."""

    def __init__(self, listen_socket: socket.socket, out: IO[str] | None = None) -> None:
        self.listen_socket = listen_socket
        self.out = out if out is not None else sys.stdout
        self.poll_set = PollSet()
        self.poll_set.add(listen_socket)

    def serve_forever(self) -> None:
        """Serve clients until interrupted."""
        while True:
            ready = self.poll_set.poll(POLL_WAIT_FOREVER)
            if ready is None:
                continue
            if ready is self.listen_socket:
                self.accept_client()
            else:
                self.handle_client(ready)

    def accept_client(self) -> socket.socket | None:
        """Accept a waiting client and watch it; None if accepting failed."""
        try:
            client, _ = self.listen_socket.accept()
        except OSError as exc:
            print(f"accept: {exc}", file=sys.stderr)
            return None
        self.out.write(f"New client connected: {client.fileno()}\n")
        self.out.flush()
        self.poll_set.add(client)
        return client

    def handle_client(self, client_socket: socket.socket) -> None:
        """Echo one PDU from ``client_socket``, or drop it if it has gone."""
        number = client_socket.fileno()
        payload = recv_pdu(client_socket, MAXBUF)
        if payload:
            text = payload.split(b"\0", 1)[0].decode("utf-8", errors="replace")
            self.out.write(
                f"Message received on socket {number}, Length: {len(payload)},"
                f" Message: {text}\n"
            )
            self.out.flush()
            send_pdu(client_socket, payload)
        else:
            self.out.write(f"Client {number} disconnected.\n")
            self.out.flush()
            self.poll_set.remove(client_socket)
            client_socket.close()


def _pollable_fd(stream: Any) -> int | None:
    try:
        number = stream.fileno()
    except (AttributeError, OSError, io.UnsupportedOperation):
        return None
    return number if number >= 0 else None


def _show_server_message(sock: socket.socket, out: IO[str]) -> bool:
    """Print one echoed PDU; False once the server has gone."""
    try:
        payload = recv_pdu(sock, MAXBUF - 1)
    except ConnectionResetError:
        out.write("Server closed. Unable to send message.\n")
        return False
    if not payload:
        return False
    out.write(payload.decode("utf-8", errors="replace") + "\n")
    out.write(PROMPT)
    out.flush()
    return True


def echo_client(
    sock: socket.socket, stdin: IO | None = None, out: IO[str] | None = None
) -> None:
    """Send each input line as a PDU and print whatever the server returns.

    Returns when the input ends or the server goes away.
    """
    stdin = stdin if stdin is not None else sys.stdin
    out = out if out is not None else sys.stdout
    stdin_fd = _pollable_fd(stdin)

    while True:
        if stdin_fd is None:
            readable, _, _ = select.select([sock], [], [], 0)
            sock_ready, stdin_ready = bool(readable), True
        else:
            readable, _, _ = select.select([sock, stdin_fd], [], [])
            sock_ready, stdin_ready = sock in readable, stdin_fd in readable

        if sock_ready and not _show_server_message(sock, out):
            out.write("\nServer terminated.\n")
            out.flush()
            return

        if stdin_ready:
            line = stdin.readline(MAXBUF - 1)
            if not line:
                return
            data = line if isinstance(line, bytes) else line.encode("utf-8")
            if data.endswith(b"\n"):
                data = data[:-1]
            send_pdu(sock, data)


def parse_port(argv: list[str]) -> int:
    """Return the optional port argument; 0 when absent."""
    if len(argv) > 1:
        raise ValueError("too many arguments")
    return _atoi(argv[0]) if argv else 0


def server_main(argv: list[str] | None = None) -> int:
    """Run the echo server."""
    args = sys.argv[1:] if argv is None else list(argv)
    try:
        port = parse_port(args)
    except ValueError:
        print(f"Usage {_program_name()} [optional port number]", file=sys.stderr)
        return 1
    try:
        listen_socket = tcp_server_setup(port)
    except NetworkError as exc:
        print(exc, file=sys.stderr)
        return 1
    with listen_socket:
        try:
            EchoServer(listen_socket).serve_forever()
        except KeyboardInterrupt:
            pass
    return 0


def client_main(argv: list[str] | None = None) -> int:
    """Run the interactive echo client."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) != 2:
        print(f"usage: {_program_name()} host-name port-number ")
        return 1
    try:
        sock = tcp_client_setup(args[0], args[1], DEBUG_FLAG)
    except NetworkError as exc:
        print(exc, file=sys.stderr)
        return 1
    with sock:
        sys.stdout.write(PROMPT)
        sys.stdout.flush()
        try:
            echo_client(sock)
        except KeyboardInterrupt:
            pass
    return 0