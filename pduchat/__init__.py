"""Length-prefixed PDU chat over TCP, with an echo server and client."""

__version__ = "0.1.0"