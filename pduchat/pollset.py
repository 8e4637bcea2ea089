"""A set of readable file descriptors that reports the lowest one ready."""

from __future__ import annotations

import select
from typing import Any

POLL_SET_SIZE = 10
POLL_WAIT_FOREVER = -1


def _fileno(fd: Any) -> int:
    number = fd if isinstance(fd, int) else fd.fileno()
    if number < 0:
        raise ValueError(f"invalid file descriptor: {number}")
    return number


class PollSet:
    """Descriptors watched for input.

    Members may be plain file descriptor numbers or objects with a
    ``fileno()`` method; :meth:`poll` hands back the member as it was added.
    """

    def __init__(self) -> None:
        self._poller = select.poll()
        self._members: dict[int, Any] = {}

    def add(self, fd: Any) -> None:
        """Watch ``fd`` for input."""
        number = _fileno(fd)
        self._poller.register(number, select.POLLIN)
        self._members[number] = fd

    def remove(self, fd: Any) -> None:
        """Stop watching ``fd``; unknown members are ignored."""
        if isinstance(fd, int):
            number = fd if fd in self._members else None
        else:
            number = next(
                (n for n, member in self._members.items() if member is fd), None
            )
        if number is None:
            return
        try:
            self._poller.unregister(number)
        except KeyError:
            pass
        del self._members[number]

    def poll(self, timeout_ms: int | None = POLL_WAIT_FOREVER) -> Any:
        """Return the lowest-numbered member with an event, or None on timeout.

        A negative or None timeout waits until a member is ready; zero
        returns at once.
        """
        timeout = None if timeout_ms is None or timeout_ms < 0 else timeout_ms
        events = self._poller.poll(timeout)
        ready = [number for number, revents in events if revents and number in self._members]
        if not ready:
            return None
        return self._members[min(ready)]