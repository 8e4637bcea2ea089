import pytest

from pduchat.handletable import DuplicateHandleError, HandleTable, handle_in_hex


@pytest.fixture
def table():
    return HandleTable(10)


def test_add_and_find(table):
    table.add(4, "alice")
    table.add(5, "bob")
    assert table.find_socket("alice") == 4
    assert table.find_handle(5) == "bob"
    assert len(table) == 2


def test_unknown_lookups_return_none(table):
    table.add(4, "alice")
    assert table.find_socket("carol") is None
    assert table.find_handle(7) is None


def test_duplicate_handle_raises(table):
    table.add(4, "alice")
    with pytest.raises(DuplicateHandleError) as info:
        table.add(6, "alice")
    assert info.value.handle == "alice"
    assert table.find_handle(6) is None


def test_same_socket_is_replaced(table):
    table.add(4, "alice")
    table.add(4, "alicia")
    assert table.find_handle(4) == "alicia"
    assert table.find_socket("alice") is None
    assert len(table) == 1


def test_remove(table):
    table.add(4, "alice")
    table.remove(4)
    assert table.find_handle(4) is None
    assert table.find_socket("alice") is None
    assert len(table) == 0
    table.add(5, "alice")
    assert table.find_socket("alice") == 5


def test_remove_unregistered_socket_is_noop(table):
    table.add(4, "alice")
    table.remove(3)
    assert len(table) == 1


def test_capacity_grows(table):
    table.add(50, "dave")
    assert table.capacity > 50
    assert table.find_handle(50) == "dave"


def test_out_of_bounds_raises(table):
    with pytest.raises(IndexError):
        table.find_handle(10)
    with pytest.raises(IndexError):
        table.remove(-1)


def test_negative_socket_rejected(table):
    with pytest.raises(ValueError):
        table.add(-1, "eve")


def test_invalid_initial_size():
    with pytest.raises(ValueError):
        HandleTable(0)


def test_entries_in_socket_order(table):
    table.add(7, "zed")
    table.add(3, "amy")
    table.add(5, "kim")
    assert list(table.entries()) == [(3, "amy"), (5, "kim"), (7, "zed")]


def test_format_table(table):
    table.add(5, "bob")
    table.add(4, "alice")
    assert table.format_table() == (
        "Current Handle Table:\n"
        "Index 4: Handle = 'alice'\n"
        "Index 5: Handle = 'bob'\n"
    )


def test_handle_in_hex():
    assert handle_in_hex("AB") == "41 42 "
    assert handle_in_hex(b"AB") == handle_in_hex("AB")
    assert handle_in_hex("") == ""