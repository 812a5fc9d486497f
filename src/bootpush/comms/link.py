"""
Link Interfaces
===============

The push protocol talks to the target through two small collaborator
interfaces, so the protocol code can run against a real serial port or a
scripted fake in tests:

- **Link**: byte-oriented duplex channel (see `bootpush.comms.serial.SerialLink`)
- **Terminal**: interactive pass-through run once the image is pushed
  (see `bootpush.comms.terminal.MinitermTerminal`)

Link Contract
-------------
- ``read_available(max_bytes, timeout)`` returns at least one byte and at
  most ``max_bytes``. A ``timeout`` of None blocks until data arrives;
  otherwise ``TimeoutError`` is raised when nothing arrives in time.
- ``read_exact(size)`` returns up to ``size`` bytes; a short result means
  the link's own read timeout expired.
- ``write(data)`` returns the number of bytes the link accepted, which may
  be less than ``len(data)``.
- Every I/O failure surfaces as ``ConnectionError``.
"""

from typing import Optional, Protocol


class Link(Protocol):
    """Duplex byte channel to the target."""

    device: str

    def open(self) -> None:
        ...

    def is_open(self) -> bool:
        ...

    def is_connected(self) -> bool:
        """Return True if the device is present on the host."""
        ...

    def read_available(self, max_bytes: int, timeout: Optional[float] = None) -> bytes:
        ...

    def read_exact(self, size: int) -> bytes:
        ...

    def write(self, data: bytes) -> int:
        ...

    def reset(self) -> None:
        """Close the link and drop any buffered data. Safe to call twice."""
        ...


class Terminal(Protocol):
    """Interactive console bridged onto the link."""

    def run_interactive_session(self, link: Link) -> None:
        """
        Bridge the local console and the link until the operator exits.

        Raises:
            ConnectionError: If the link drops during the session.
        """
        ...
