import io
import socket

import pytest

from pduchat.chatproto import (
    Flag,
    extract_error_handle,
    extract_message,
    extract_src_handle,
    message_offset,
    pack_connect,
    pack_message,
    pack_multicast,
    unpack_handle_count,
    unpack_handle_entry,
)
from pduchat.chatserver import ChatServer, check_args, main
from pduchat.pdu import recv_pdu, send_pdu


class Harness:
    def __init__(self):
        self.listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.listener.bind(("127.0.0.1", 0))
        self.listener.listen(5)
        self.out = io.StringIO()
        self.server = ChatServer(self.listener, out=self.out)
        self.opened = []

    def connect(self):
        client = socket.create_connection(self.listener.getsockname()[:2], timeout=5)
        self.opened.append(client)
        accepted = self.server.accept_client()
        self.opened.append(accepted)
        return client, accepted

    def register(self, handle):
        client, accepted = self.connect()
        send_pdu(client, pack_connect(handle))
        self.server.process_client(accepted)
        return client, accepted, recv_pdu(client, 1400)

    def close(self):
        for sock in self.opened:
            sock.close()
        self.listener.close()


@pytest.fixture
def harness():
    h = Harness()
    yield h
    h.close()


def test_register_handle(harness):
    client, accepted = harness.connect()
    send_pdu(client, pack_connect("alice"))
    harness.server.process_client(accepted)
    assert recv_pdu(client, 1400) == bytes([Flag.CONNECT_OK])
    assert "New connection from: alice" in harness.out.getvalue()


def test_duplicate_handle_rejected(harness):
    harness.register("alice")
    client, accepted = harness.connect()
    send_pdu(client, pack_connect("alice"))
    harness.server.process_client(accepted)
    assert recv_pdu(client, 1400) == bytes([Flag.HANDLE_TAKEN])
    assert "Handle name already exists." in harness.out.getvalue()


def test_message_forwarded_to_destination(harness):
    alice, alice_srv, _ = harness.register("alice")
    bob, _, _ = harness.register("bob")
    packet = pack_message(Flag.MESSAGE, 1, "alice", "bob", "hello bob")
    send_pdu(alice, packet)
    harness.server.process_client(alice_srv)
    assert recv_pdu(bob, 1400) == packet


def test_message_to_unknown_handle_returns_error(harness):
    alice, alice_srv, _ = harness.register("alice")
    send_pdu(alice, pack_message(Flag.MESSAGE, 1, "alice", "ghost", "anyone?"))
    harness.server.process_client(alice_srv)
    reply = recv_pdu(alice, 1400)
    assert reply[0] == Flag.NO_SUCH_HANDLE
    assert extract_error_handle(reply) == "ghost"
    assert "Invalid handle supplied." in harness.out.getvalue()


def test_long_message_is_split(harness):
    alice, alice_srv, _ = harness.register("alice")
    bob, _, _ = harness.register("bob")
    text = "x" * 450
    send_pdu(alice, pack_message(Flag.MESSAGE, 1, "alice", "bob", text))
    harness.server.process_client(alice_srv)
    pieces = []
    while sum(map(len, pieces)) < len(text):
        packet = recv_pdu(bob, 1400)
        src, offset = extract_src_handle(packet)
        assert src == "alice"
        pieces.append(extract_message(packet, offset))
    assert "".join(pieces) == text
    assert all(len(piece) < 200 for piece in pieces)
    assert len(pieces) > 1


def test_multicast_reaches_every_known_handle(harness):
    alice, alice_srv, _ = harness.register("alice")
    bob, _, _ = harness.register("bob")
    carol, _, _ = harness.register("carol")
    send_pdu(alice, pack_multicast("alice", ["bob", "ghost", "carol"], "hi all"))
    harness.server.process_client(alice_srv)
    for receiver in (bob, carol):
        packet = recv_pdu(receiver, 1400)
        src, offset = extract_src_handle(packet)
        assert (src, extract_message(packet, offset)) == ("alice", "hi all")


def test_multicast_without_text_is_ignored(harness):
    alice, alice_srv, _ = harness.register("alice")
    bob, _, _ = harness.register("bob")
    harness.register("carol")
    send_pdu(alice, pack_multicast("alice", ["bob", "carol"]))
    harness.server.process_client(alice_srv)
    assert "No message found in packet" in harness.out.getvalue()
    follow_up = pack_message(Flag.MESSAGE, 1, "alice", "bob", "after")
    send_pdu(alice, follow_up)
    harness.server.process_client(alice_srv)
    # Nothing from the empty multicast reached bob before the follow-up.
    assert recv_pdu(bob, 1400) == follow_up


def test_list_handles(harness):
    harness.register("alice")
    harness.register("bob")
    carol, carol_srv = harness.connect()
    send_pdu(carol, bytes([Flag.LIST]))
    harness.server.process_client(carol_srv)
    assert unpack_handle_count(recv_pdu(carol, 1400)) == 2
    entries = [unpack_handle_entry(recv_pdu(carol, 1400)) for _ in range(2)]
    assert sorted(entries) == ["alice", "bob"]
    assert recv_pdu(carol, 1400) == bytes([Flag.LIST_DONE])


def test_exit_is_acknowledged_and_closes(harness):
    alice, alice_srv, _ = harness.register("alice")
    number = alice_srv.fileno()
    send_pdu(alice, bytes([Flag.EXIT]))
    harness.server.process_client(alice_srv)
    assert recv_pdu(alice, 1400) == bytes([Flag.EXIT_ACK])
    assert alice_srv.fileno() == -1
    assert harness.server.handles.find_socket("alice") is None
    assert f"Client {number} disconnected." in harness.out.getvalue()


def test_disconnect_frees_handle(harness):
    alice, alice_srv = harness.connect()
    send_pdu(alice, pack_connect("alice"))
    harness.server.process_client(alice_srv)
    assert recv_pdu(alice, 1400) == bytes([Flag.CONNECT_OK])
    number = alice_srv.fileno()
    alice.close()
    harness.server.process_client(alice_srv)
    assert f"Client {number} disconnected." in harness.out.getvalue()
    assert harness.server.handles.find_socket("alice") is None
    again, again_srv = harness.connect()
    send_pdu(again, pack_connect("alice"))
    harness.server.process_client(again_srv)
    assert recv_pdu(again, 1400) == bytes([Flag.CONNECT_OK])


def test_invalid_flag_reported(harness):
    client, accepted = harness.connect()
    send_pdu(client, bytes([42]))
    harness.server.process_client(accepted)
    output = harness.out.getvalue()
    assert "Invalid flag" in output
    assert "Flag: 42" in output
    send_pdu(client, pack_connect("dave"))
    harness.server.process_client(accepted)
    assert recv_pdu(client, 1400) == bytes([Flag.CONNECT_OK])


def test_message_offset_used_by_forwarded_packet(harness):
    alice, alice_srv, _ = harness.register("alice")
    bob, _, _ = harness.register("bob")
    send_pdu(alice, pack_message(Flag.MESSAGE, 1, "alice", "bob", "ok"))
    harness.server.process_client(alice_srv)
    packet = recv_pdu(bob, 1400)
    assert extract_message(packet, message_offset(packet)) == "ok"


@pytest.mark.parametrize("argv, port", [([], 0), (["8080"], 8080)])
def test_check_args(argv, port):
    assert check_args(argv) == port


def test_check_args_too_many():
    with pytest.raises(ValueError):
        check_args(["1", "2"])


def test_main_usage_error():
    assert main(["1", "2"]) == 1