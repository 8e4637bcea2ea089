import os
import socket

import pytest

from pduchat.pollset import POLL_WAIT_FOREVER, PollSet


@pytest.fixture
def pairs():
    created = [socket.socketpair() for _ in range(2)]
    yield created
    for a, b in created:
        a.close()
        b.close()


def test_timeout_returns_none(pairs):
    ps = PollSet()
    ps.add(pairs[0][0])
    assert ps.poll(0) is None


def test_empty_set_times_out():
    assert PollSet().poll(0) is None


def test_ready_socket_is_returned_as_added(pairs):
    ps = PollSet()
    watched, peer = pairs[0]
    ps.add(watched)
    peer.send(b"x")
    assert ps.poll(1000) is watched


def test_lowest_ready_descriptor_wins(pairs):
    ps = PollSet()
    watched = [pairs[0][0], pairs[1][0]]
    for sock in watched:
        ps.add(sock)
    for _, peer in pairs:
        peer.send(b"x")
    ready = ps.poll(1000)
    assert ready.fileno() == min(s.fileno() for s in watched)


def test_removed_member_is_not_reported(pairs):
    ps = PollSet()
    watched, peer = pairs[0]
    ps.add(watched)
    ps.remove(watched)
    peer.send(b"x")
    assert ps.poll(0) is None


def test_remove_unknown_is_ignored(pairs):
    ps = PollSet()
    ps.add(pairs[0][0])
    ps.remove(pairs[1][0])
    pairs[0][1].send(b"x")
    assert ps.poll(1000) is pairs[0][0]


def test_plain_descriptor_numbers():
    read_fd, write_fd = os.pipe()
    try:
        ps = PollSet()
        ps.add(read_fd)
        assert ps.poll(0) is None
        os.write(write_fd, b"x")
        assert ps.poll(1000) == read_fd
        ps.remove(read_fd)
        assert ps.poll(0) is None
    finally:
        os.close(read_fd)
        os.close(write_fd)


def test_negative_descriptor_rejected():
    with pytest.raises(ValueError):
        PollSet().add(-1)


def test_wait_forever_returns_when_ready(pairs):
    ps = PollSet()
    watched, peer = pairs[0]
    ps.add(watched)
    peer.send(b"x")
    assert ps.poll(POLL_WAIT_FOREVER) is watched