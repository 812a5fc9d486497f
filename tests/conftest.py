"""
bootpush Test Configuration
===========================

Shared fixtures for the bootpush tests:

- ``FakeLink``: scripted stand-in for a serial link that records every
  byte written, every read timeout and every reset
- ``FakeClock``: manually advanced monotonic clock
- ``RecordingTerminal``: terminal pass-through that records its calls

No serial hardware is needed to run the suite.
"""

from pathlib import Path
from typing import Iterable, List, Optional

import pytest

from bootpush.errors import ConnectionError


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeLink:
    """
    Scripted link.

    Args:
        reads: Results of successive read_available() calls. Exceptions
               are raised instead of returned.
        acks: Results of successive read_exact() calls (default b"OK").
        presence: Results of successive is_connected() calls; once used
                  up, ``present`` is returned.
        write_limit: Largest count a single write accepts.
    """

    def __init__(
        self,
        reads: Iterable = (),
        acks: Iterable = (),
        presence: Iterable[bool] = (),
        present: bool = True,
        write_limit: Optional[int] = None,
        device: str = "/dev/ttyFAKE0",
    ):
        self.device = device
        self.reads = list(reads)
        self.acks = list(acks)
        self.presence = list(presence)
        self.present = present
        self.write_limit = write_limit
        self.writes: List[bytes] = []
        self.requested: List[int] = []
        self.read_timeouts: List[Optional[float]] = []
        self.opens = 0
        self.resets = 0
        self._open = False
        self.on_read = None

    @property
    def wire(self) -> bytes:
        """Every byte written, in order."""
        return b"".join(self.writes)

    def open(self) -> None:
        self.opens += 1
        self._open = True

    def is_open(self) -> bool:
        return self._open

    def is_connected(self) -> bool:
        if self.presence:
            return self.presence.pop(0)
        return self.present

    def read_available(self, max_bytes: int, timeout: Optional[float] = None) -> bytes:
        self.read_timeouts.append(timeout)
        if self.on_read:
            self.on_read()
        if not self.reads:
            raise ConnectionError("read script exhausted")
        item = self.reads.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    def read_exact(self, size: int) -> bytes:
        ack = self.acks.pop(0) if self.acks else b"OK"
        if isinstance(ack, BaseException):
            raise ack
        return ack[:size]

    def write(self, data: bytes) -> int:
        self.requested.append(len(data))
        count = len(data) if self.write_limit is None else min(self.write_limit, len(data))
        self.writes.append(bytes(data[:count]))
        return count

    def reset(self) -> None:
        self.resets += 1
        self._open = False


class RecordingTerminal:
    """Terminal whose sessions end (or fail) as scripted."""

    def __init__(self, outcomes: Iterable = ()):
        self.outcomes = list(outcomes)
        self.calls = 0

    def run_interactive_session(self, link) -> None:
        self.calls += 1
        if self.outcomes:
            outcome = self.outcomes.pop(0)
            if isinstance(outcome, BaseException):
                raise outcome


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def image_file(tmp_path: Path) -> Path:
    """A 1500 byte image with a recognisable byte pattern."""
    path = tmp_path / "kernel8.img"
    path.write_bytes(bytes(i % 251 for i in range(1500)))
    return path
