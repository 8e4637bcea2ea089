"""Chat server routing messages between clients by handle."""

from __future__ import annotations

import socket
import sys
from typing import IO, Callable

from pduchat.chatproto import (
    MAX_HANDLE,
    Flag,
    ProtocolError,
    extract_dest_handle,
    extract_src_handle,
    pack_error,
    pack_handle_count,
    pack_handle_entry,
    pack_message,
    unpack_multicast,
)
from pduchat.echo import _program_name, parse_port
from pduchat.handletable import DuplicateHandleError, HandleTable
from pduchat.networks import NetworkError, tcp_server_setup
from pduchat.pdu import MAX_PAYLOAD, recv_pdu, send_pdu
from pduchat.pollset import POLL_WAIT_FOREVER, PollSet

MAXBUF = 1400
MAX_TEXT = 200
CHUNK_TEXT = MAX_TEXT - 1
INITIAL_TABLE_SIZE = 10


class ChatServer:
    """Registers client handles and forwards messages between clients."""

    def __init__(self, listen_socket: socket.socket, out: IO[str] | None = None) -> None:
        self.listen_socket = listen_socket
        self.out = out if out is not None else sys.stdout
        self.handles = HandleTable(INITIAL_TABLE_SIZE)
        self.poll_set = PollSet()
        self.poll_set.add(listen_socket)
        self._clients: dict[int, socket.socket] = {}
        self._handlers: dict[int, Callable[[socket.socket, int, bytes], None]] = {
            Flag.CONNECT: self._on_connect,
            Flag.MESSAGE: self._on_message,
            Flag.MULTICAST: self._on_multicast,
            Flag.EXIT: self._on_exit,
            Flag.LIST: self._on_list,
        }

    def _say(self, text: str) -> None:
        self.out.write(text + "\n")
        self.out.flush()

    def _send(self, sock: socket.socket, data: bytes) -> None:
        try:
            send_pdu(sock, data, MAX_PAYLOAD)
        except OSError as exc:
            print(f"send call: {exc}", file=sys.stderr)

    def _drop(self, sock: socket.socket, number: int) -> None:
        self.poll_set.remove(sock)
        try:
            self.handles.remove(number)
        except IndexError:
            pass
        self._clients.pop(number, None)
        sock.close()

    def serve_forever(self) -> None:
        """Serve clients until interrupted."""
        while True:
            ready = self.poll_set.poll(POLL_WAIT_FOREVER)
            if ready is None:
                continue
            if ready is self.listen_socket:
                self.accept_client()
            else:
                self.process_client(ready)

    def accept_client(self) -> socket.socket | None:
        """Accept a waiting client and watch it; None if accepting failed."""
        try:
            client, _ = self.listen_socket.accept()
        except OSError as exc:
            print(f"accept: {exc}", file=sys.stderr)
            return None
        number = client.fileno()
        self._say(f"New client socket added: {number}")
        self._clients[number] = client
        self.poll_set.add(client)
        return client

    def process_client(self, client_socket: socket.socket) -> None:
        """Handle one packet from ``client_socket``, or drop it if it has gone."""
        number = client_socket.fileno()
        try:
            payload = recv_pdu(client_socket, MAXBUF)
        except ConnectionResetError:
            payload = b""
        if not payload:
            self._say(f"Client {number} disconnected.")
            self._drop(client_socket, number)
            return

        flag = payload[0]
        handler = self._handlers.get(flag)
        if handler is None:
            self._say("Invalid flag")
            self._say(f"Flag: {flag}")
            return
        try:
            handler(client_socket, number, payload)
        except ProtocolError as exc:
            self._say(f"Malformed packet from client {number}: {exc}")

    def _on_connect(self, sock: socket.socket, number: int, payload: bytes) -> None:
        raw = payload[1:].split(b"\0", 1)[0]
        if len(raw) > MAX_HANDLE:
            raise ProtocolError(f"handle longer than {MAX_HANDLE} bytes")
        handle = raw.decode("utf-8", errors="replace")
        try:
            self.handles.add(number, handle)
        except DuplicateHandleError:
            self._say(f"New connection from: {handle}")
            self._say("Handle name already exists.")
            self._send(sock, bytes([Flag.HANDLE_TAKEN]))
            return
        self._say(f"New connection from: {handle}")
        self._send(sock, bytes([Flag.CONNECT_OK]))

    def _on_message(self, sock: socket.socket, number: int, payload: bytes) -> None:
        self._say("Message received.")
        dest = extract_dest_handle(payload)
        dest_number = self.handles.find_socket(dest)
        dest_socket = self._clients.get(dest_number) if dest_number is not None else None
        if dest_socket is None:
            self._say("Invalid handle supplied.")
            self._send(sock, pack_error(dest))
            return

        src, offset = extract_src_handle(payload)
        text = payload[offset:].split(b"\0", 1)[0]
        if len(text) + 1 > MAX_TEXT:
            for start in range(0, len(text), CHUNK_TEXT):
                chunk = text[start:start + CHUNK_TEXT]
                self._send(dest_socket, pack_message(Flag.MESSAGE, 1, src, dest, chunk))
        else:
            self._send(dest_socket, payload)

    def _on_multicast(self, sock: socket.socket, number: int, payload: bytes) -> None:
        self._say("Received multicast.")
        src, dests, text = unpack_multicast(payload)
        if not text:
            self._say("No message found in packet")
            return
        for dest in dests:
            dest_number = self.handles.find_socket(dest)
            dest_socket = self._clients.get(dest_number) if dest_number is not None else None
            if dest_socket is not None:
                self._send(dest_socket, pack_message(Flag.MESSAGE, 1, src, dest, text))

    def _on_exit(self, sock: socket.socket, number: int, payload: bytes) -> None:
        self._send(sock, bytes([Flag.EXIT_ACK]))
        self._say(f"Client {number} disconnected.")
        self._drop(sock, number)

    def _on_list(self, sock: socket.socket, number: int, payload: bytes) -> None:
        count = len(self.handles)
        self._say(f"There are {count} handles in the table.")
        self._send(sock, pack_handle_count(count))
        for _, handle in self.handles.entries():
            self._send(sock, pack_handle_entry(handle))
        self._send(sock, bytes([Flag.LIST_DONE]))


def check_args(argv: list[str]) -> int:
    """Return the optional port argument; 0 when absent."""
    return parse_port(argv)


def main(argv: list[str] | None = None) -> int:
    """Run the chat server."""
    args = sys.argv[1:] if argv is None else list(argv)
    try:
        port = check_args(args)
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
            ChatServer(listen_socket).serve_forever()
        except KeyboardInterrupt:
            pass
    return 0