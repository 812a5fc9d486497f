"""
Chunked Image Transmission
==========================

After the size handshake the image is streamed to the target in segments
of at most 512 bytes with no per-segment acknowledgment. The cursor
advances by what the link reports as accepted, so partial writes are
simply resumed on the next iteration.

A failed transfer is never resumed: link errors propagate to the session
controller, which restarts the whole push from the request token.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Final, Optional

from bootpush.comms.image import BinaryImage
from bootpush.comms.link import Link
from bootpush.errors import ConnectionError

logger = logging.getLogger(__name__)

# Largest segment written per step
CHUNK_SIZE: Final[int] = 512


@dataclass
class TransferProgress:
    """
    Bytes sent so far in one transfer attempt.

    Attributes:
        total: Image length in bytes
        sent: Bytes accepted by the link, 0 <= sent <= total
        started_at: Clock reading when the transfer began
        now: Clock reading at the last update
        last_count: Bytes accepted by the last write
        last_interval: Seconds between the last two updates
    """

    total: int
    sent: int = 0
    started_at: float = 0.0
    now: float = field(default=0.0, repr=False)
    last_count: int = field(default=0, repr=False)
    last_interval: float = field(default=0.0, repr=False)

    @property
    def complete(self) -> bool:
        return self.sent >= self.total

    @property
    def percent(self) -> int:
        if self.total == 0:
            return 100
        return self.sent * 100 // self.total

    @property
    def elapsed(self) -> float:
        return max(self.now - self.started_at, 0.0)

    @property
    def rate(self) -> float:
        """Average throughput since the start, in bytes per second."""
        if self.elapsed <= 0:
            return 0.0
        return self.sent / self.elapsed

    @property
    def current_rate(self) -> float:
        """Throughput of the last write, in bytes per second."""
        if self.last_interval <= 0:
            return 0.0
        return self.last_count / self.last_interval

    def advance(self, count: int, now: float) -> None:
        if count < 0 or self.sent + count > self.total:
            raise ValueError(
                f"Cannot advance {self.sent}/{self.total} by {count} bytes"
            )
        self.last_count = count
        self.last_interval = max(now - self.now, 0.0)
        self.sent += count
        self.now = now


# Type alias for progress callback
ProgressCallback = Callable[[TransferProgress], None]


def send_image(
    link: Link,
    image: BinaryImage,
    progress: Optional[ProgressCallback] = None,
    chunk_size: int = CHUNK_SIZE,
    clock: Callable[[], float] = time.monotonic,
) -> TransferProgress:
    """
    Stream the whole image to the target.

    Args:
        link: Open link, handshake already completed.
        image: Image to send.
        progress: Called after every write with the current progress.
        chunk_size: Largest segment per write.
        clock: Time source for throughput.

    Returns:
        Final TransferProgress (sent == total).

    Raises:
        ConnectionError: If the link fails or stops accepting data.
    """
    if chunk_size <= 0:
        raise ValueError(f"Invalid chunk size: {chunk_size}")

    start = clock()
    state = TransferProgress(total=image.length, started_at=start, now=start)
    logger.info("Sending %d bytes in %d byte chunks", image.length, chunk_size)

    while state.sent < state.total:
        end = state.sent + min(chunk_size, state.total - state.sent)
        part = image.data[state.sent:end]

        written = link.write(part)
        if written <= 0 or written > len(part):
            raise ConnectionError(
                f"Link accepted {written} of {len(part)} bytes at offset {state.sent}"
            )

        state.advance(written, clock())
        if progress:
            progress(state)

    logger.info("Image sent (%d bytes)", state.sent)
    return state
