# pduchat

A small TCP chat system built on a simple wire format: every message is a
PDU made of a two-byte big-endian length (which counts itself) followed by
the payload. The package contains:

- a handle-based chat server and client (direct messages, multicast to
  several handles, listing connected handles, orderly exit);
- an echo server and client that send lines back and forth as PDUs.

Only the Python standard library is needed. The servers wait on sockets
with `select.poll`, so they run on POSIX systems.

## Installing

```
pip install .
```

## Chat

Start the server, optionally on a fixed port (otherwise the system picks
one and the server prints it):

```
pduchat-server 5000
```

Connect clients with a host, a port and a handle of at most 100 bytes:

```
pduchat-client localhost 5000 alice
pduchat-client localhost 5000 bob
```

A handle that is already in use is refused and the client exits. Once
connected, type commands; a `$:` prompt is shown after each packet from
the server:

| Command | Meaning |
| --- | --- |
| `%M <handle> <text>` | send `text` to one handle |
| `%C <n> <h1> ... <hn> <text>` | send `text` to 2 to 9 handles |
| `%L` | list the handles known to the server |
| `%E` | leave; the server acknowledges and the client exits |

Commands are case-insensitive (`%m` works as well as `%M`). Messages whose
text is longer than 199 bytes are split by the server into pieces of at
most 199 bytes. A message to an unknown handle comes back as an error
naming that handle.

## Echo

```
pduchat-echo-server 6000
pduchat-echo-client localhost 6000
```

Each line typed into the client is sent to the server, printed there and
sent back, and the client prints what it receives.

## Using the pieces

The building blocks can be used on their own:

- `pduchat.pdu` — `encode_pdu`, `send_pdu` and `recv_pdu` for the length-prefixed framing;
- `pduchat.chatproto` — packing and unpacking of the chat packets (`Flag`, `pack_message`, `pack_multicast`, `unpack_multicast`, ...);
- `pduchat.handletable` — `HandleTable`, the map between sockets and handles;
- `pduchat.pollset` — `PollSet`, a set of descriptors to wait on;
- `pduchat.networks` — TCP and UDP setup helpers and `safe_send` / `safe_recv`;
- `pduchat.hostlookup` — IPv4 and IPv6 name resolution and address formatting;
- `pduchat.chatserver` — `ChatServer`; `pduchat.chatclient` — `ChatClient`;
- `pduchat.echo` — `EchoServer` and `echo_client`.

## What it does not do

The package deals only with its own PDU traffic. It has no packet-capture
reader and does not decode Ethernet, ARP, IP, ICMP, UDP or TCP headers
from capture files.

## Running the tests

```
pip install ".[test]"
pytest
```