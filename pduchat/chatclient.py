"""Interactive chat client: registers a handle and exchanges messages."""

from __future__ import annotations

import io
import select
import socket
import sys
from typing import IO, Any

from pduchat.chatproto import (
    MAX_MULTICAST,
    MIN_MULTICAST,
    Flag,
    ProtocolError,
    extract_error_handle,
    extract_message,
    extract_src_handle,
    pack_connect,
    pack_message,
    pack_multicast,
    unpack_handle_count,
    unpack_handle_entry,
)
from pduchat.echo import _program_name
from pduchat.networks import NetworkError, _atoi, tcp_client_setup
from pduchat.pdu import MAX_PAYLOAD, recv_pdu, send_pdu

MAXBUF = 1400
DEBUG_FLAG = True
PROMPT = "$: "


class ClientExit(Exception):
    """Raised when the server tells the client to stop."""

    def __init__(self, status: int, message: str = "") -> None:
        super().__init__(message or f"client exiting with status {status}")
        self.status = status


def _next_token(text: str) -> tuple[str | None, str]:
    """Split off the next space-separated token, like successive strtok calls."""
    stripped = text.lstrip(" ")
    if not stripped:
        return None, ""
    token, _, rest = stripped.partition(" ")
    return token, rest


def _pollable_fd(stream: Any) -> int | None:
    try:
        number = stream.fileno()
    except (AttributeError, OSError, io.UnsupportedOperation):
        return None
    return number if number >= 0 else None


class ChatClient:
    """One connected client identified by its handle."""

    def __init__(self, sock: socket.socket, handle: str, out: IO[str] | None = None) -> None:
        self.sock = sock
        self.handle = handle
        self.out = out if out is not None else sys.stdout

    def _say(self, text: str) -> None:
        self.out.write(text + "\n")
        self.out.flush()

    def _send(self, data: bytes) -> int:
        return send_pdu(self.sock, data, MAX_PAYLOAD)

    def connect(self) -> None:
        """Ask the server to register this client's handle."""
        self._send(pack_connect(self.handle))

    def handle_command(self, line: str) -> None:
        """Carry out one line typed by the user."""
        if line.endswith("\n"):
            line = line[:-1]
        command, rest = _next_token(line)
        if command is None:
            self._say("Invalid command format.")
            return

        kind = command[1:2].lower()
        if kind == "m":
            self._send_message(rest)
        elif kind == "c":
            if not self._send_multicast(rest):
                self._say("Failed to multicast.")
        elif kind == "b":
            pass
        elif kind == "l":
            self._send(bytes([Flag.LIST]))
        elif kind == "e":
            self._send(bytes([Flag.EXIT]))
        else:
            self._say("Invalid command.")

    def _send_message(self, rest: str) -> None:
        dest, rest = _next_token(rest)
        if dest is None:
            self._say("Destination handle is missing. Please try again.")
            return
        text = rest
        if not text:
            self._say("Text is missing or invalid.")
            text = ""
        try:
            packet = pack_message(Flag.MESSAGE, 1, self.handle, dest, text)
        except ProtocolError as exc:
            self._say(str(exc))
            return
        self._send(packet)

    def _send_multicast(self, rest: str) -> bool:
        token, rest = _next_token(rest)
        if token is None:
            self._say("Error parsing number of handles.")
            return False
        count = _atoi(token)
        self._say(f"Num handles: {count}")
        if not MIN_MULTICAST <= count <= MAX_MULTICAST:
            self._say(f"Invalid input. {MIN_MULTICAST}-{MAX_MULTICAST} handles required.")
            return False

        dests = []
        for index in range(1, count + 1):
            dest, rest = _next_token(rest)
            if dest is None:
                self._say(f"Error parsing handle {index}")
                return False
            self._say(f"Destination handle: {dest}")
            dests.append(dest)

        text = rest or None
        if text is not None:
            self._say(f"Message: {text}")
        try:
            packet = pack_multicast(self.handle, dests, text)
        except ProtocolError as exc:
            self._say(str(exc))
            return False
        self._send(packet)
        return True

    def handle_server_message(self, payload: bytes) -> None:
        """Act on one packet from the server.

        Raises :class:`ClientExit` when the handle is refused or the exit
        request has been acknowledged.
        """
        if not payload:
            return
        flag = payload[0]
        if flag == Flag.CONNECT_OK:
            return
        if flag == Flag.HANDLE_TAKEN:
            self._say("Handle name already taken. Please try another handle name.")
            raise ClientExit(1, "handle already taken")
        if flag == Flag.MESSAGE:
            src, offset = extract_src_handle(payload)
            self._say(f"{src}: {extract_message(payload, offset)}")
        elif flag == Flag.NO_SUCH_HANDLE:
            self._say(f"Handle '{extract_error_handle(payload)}' does not exist.")
        elif flag == Flag.EXIT_ACK:
            raise ClientExit(0, "exit acknowledged")
        elif flag == Flag.HANDLE_COUNT:
            self._say(f"There's {unpack_handle_count(payload)} handle(s) in the table.")
        elif flag == Flag.HANDLE_ENTRY:
            self._say(unpack_handle_entry(payload))
        elif flag == Flag.LIST_DONE:
            self._say("Handle table transmission complete.")
        else:
            self._say("Invalid flag")

    def _receive(self) -> bool:
        """Handle one packet from the server; False once the server has gone."""
        try:
            payload = recv_pdu(self.sock, MAXBUF - 1)
        except ConnectionResetError:
            self._say("Server closed. Unable to send message.")
            return False
        if not payload:
            return False
        try:
            self.handle_server_message(payload)
        except ProtocolError as exc:
            self._say(f"Malformed packet from server: {exc}")
        return True

    def run(self, stdin: IO | None = None) -> None:
        """Read commands and server packets until input ends or the server goes."""
        stdin = stdin if stdin is not None else sys.stdin
        stdin_fd = _pollable_fd(stdin)
        show_prompt = False

        while True:
            if show_prompt:
                self.out.write(PROMPT)
                self.out.flush()
            if stdin_fd is None:
                readable, _, _ = select.select([self.sock], [], [], 0)
                sock_ready, stdin_ready = bool(readable), True
            else:
                readable, _, _ = select.select([self.sock, stdin_fd], [], [])
                sock_ready, stdin_ready = self.sock in readable, stdin_fd in readable

            if sock_ready:
                if not self._receive():
                    self._say("\nServer terminated.")
                    return
                show_prompt = True

            if stdin_ready:
                line = stdin.readline(MAXBUF - 1)
                if not line:
                    return
                if isinstance(line, bytes):
                    line = line.decode("utf-8", errors="replace")
                self.handle_command(line)


def format_data_buffer(data: bytes) -> str:
    """Return a hex and character dump of ``data``, eight bytes per line."""
    parts = ["Data Buffer Contents:\n"]
    for index, byte in enumerate(bytes(data), start=1):
        shown = chr(byte) if 0x20 <= byte <= 0x7E else "."
        parts.append(f"{byte:02x} ({shown}) ")
        if index % 8 == 0:
            parts.append("\n")
    parts.append("\n")
    return "".join(parts)


def parse_args(argv: list[str]) -> tuple[str, str, str]:
    """Return host name, port and handle from the command line."""
    if len(argv) != 3:
        raise ValueError("expected host-name, port-number and handle")
    host, port, handle = argv
    return host, port, handle


def main(argv: list[str] | None = None) -> int:
    """Run the interactive chat client."""
    args = sys.argv[1:] if argv is None else list(argv)
    try:
        host, port, handle = parse_args(args)
    except ValueError:
        print(f"usage: {_program_name()} host-name port-number handle ")
        return 1
    try:
        sock = tcp_client_setup(host, port, DEBUG_FLAG)
    except NetworkError as exc:
        print(exc, file=sys.stderr)
        return 1
    with sock:
        client = ChatClient(sock, handle)
        try:
            client.connect()
            client.run()
        except ProtocolError as exc:
            print(exc)
            return 1
        except ClientExit as exc:
            return exc.status
        except OSError as exc:
            print(f"Error sending data: {exc}", file=sys.stderr)
            return 1
        except KeyboardInterrupt:
            pass
    return 0