"""Table mapping client sockets to their chat handles."""

from __future__ import annotations

from collections.abc import Iterator


class DuplicateHandleError(ValueError):
    """Raised when a handle is already registered."""

    def __init__(self, handle: str) -> None:
        super().__init__(f"handle {handle!r} is already in use")
        self.handle = handle


class HandleTable:
    """Handles indexed by socket number, with a capacity that doubles as needed."""

    def __init__(self, initial_size: int = 10) -> None:
        if initial_size < 1:
            raise ValueError(f"initial size must be positive: {initial_size}")
        self.capacity = initial_size
        self._handles: dict[int, str] = {}

    def _check_bounds(self, socket_num: int) -> None:
        if not 0 <= socket_num < self.capacity:
            raise IndexError(f"socket number {socket_num} out of bounds")

    def add(self, socket_num: int, handle: str) -> None:
        """Register ``handle`` for ``socket_num``; it must not be in use already."""
        if socket_num < 0:
            raise ValueError(f"socket number must not be negative: {socket_num}")
        while socket_num >= self.capacity:
            self.capacity *= 2
        if handle in self._handles.values():
            raise DuplicateHandleError(handle)
        self._handles[socket_num] = handle

    def remove(self, socket_num: int) -> None:
        """Forget the handle of ``socket_num``, if it has one."""
        self._check_bounds(socket_num)
        self._handles.pop(socket_num, None)

    def find_socket(self, handle: str) -> int | None:
        """Return the lowest socket registered under ``handle``, or None."""
        return min(
            (sock for sock, name in self._handles.items() if name == handle),
            default=None,
        )

    def find_handle(self, socket_num: int) -> str | None:
        """Return the handle of ``socket_num``, or None if it has none."""
        self._check_bounds(socket_num)
        return self._handles.get(socket_num)

    def entries(self) -> Iterator[tuple[int, str]]:
        """Yield ``(socket, handle)`` pairs in socket order."""
        yield from sorted(self._handles.items())

    def format_table(self) -> str:
        """Return a printable listing of the table."""
        lines = ["Current Handle Table:\n"]
        lines.extend(
            f"Index {sock}: Handle = '{handle}'\n" for sock, handle in self.entries()
        )
        return "".join(lines)

    def __len__(self) -> int:
        return len(self._handles)


def handle_in_hex(handle: str | bytes) -> str:
    """Return the bytes of ``handle`` as upper-case hex, each followed by a space."""
    data = handle.encode() if isinstance(handle, str) else bytes(handle)
    return "".join(f"{byte:02X} " for byte in data)