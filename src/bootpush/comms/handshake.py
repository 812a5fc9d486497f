"""
Push Handshake
==============

Before the image is streamed, host and target exchange a short handshake:

    Target                                    Host
      │  boot log ... 03 03 03                  │   request token
      │ ──────────────────────────────────────▶ │
      │                     size (u32, LE)      │
      │ ◀────────────────────────────────────── │
      │  "OK"                                   │
      │ ──────────────────────────────────────▶ │

The target may print any amount of output (a bootloader banner, say)
before the request token, so the token is only recognised at the *end* of
the byte stream read so far. Everything before it is forwarded to the
operator's console as it arrives.

The size acknowledgment is the only point where the host verifies a
reply; the image bytes that follow are not acknowledged.
"""

import logging
import struct
import time
from typing import Callable, Final, Optional

import click

from bootpush.comms.image import MAX_IMAGE_SIZE
from bootpush.comms.link import Link
from bootpush.errors import (
    CommsError,
    ConnectionError,
    ImageError,
    ProtocolError,
    TimeoutError,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Protocol Constants
# =============================================================================

# Three ETX bytes: "target is ready to receive"
REQUEST_TOKEN: Final[bytes] = bytes([0x03, 0x03, 0x03])

# Seconds allowed for the request token, counted from the first byte received
REQUEST_TIMEOUT: Final[float] = 10.0

# Largest partial read while waiting for the token
DEFAULT_READ_SIZE: Final[int] = 4096

# Target's reply to a valid size header
SIZE_ACK: Final[bytes] = b"OK"

# Type alias for boot output forwarding
OutputCallback = Callable[[bytes], None]


def _echo_raw(data: bytes) -> None:
    click.echo(data, nl=False)


def _partial_token_length(data: bytes) -> int:
    """Length of the longest token prefix that ``data`` ends with."""
    for n in range(len(REQUEST_TOKEN) - 1, 0, -1):
        if data.endswith(REQUEST_TOKEN[:n]):
            return n
    return 0


# =============================================================================
# Readiness Detection
# =============================================================================

def wait_for_request(
    link: Link,
    output: Optional[OutputCallback] = None,
    timeout: float = REQUEST_TIMEOUT,
    clock: Callable[[], float] = time.monotonic,
    read_size: int = DEFAULT_READ_SIZE,
) -> bytes:
    """
    Wait for the target's request token.

    The first read blocks without a deadline, since the operator may
    still be powering the board. Once the first bytes arrive the whole
    token must follow within ``timeout`` seconds.

    Token bytes at the end of a read are held back until the next read
    shows whether they complete the token, so a token split across two
    reads is recognised and never shows up in the forwarded output.
    If the wait fails, held-back bytes are forwarded before the error
    propagates.

    Args:
        link: Open link to the target.
        output: Receives the boot output as it arrives (default: stdout).
        timeout: Budget in seconds, starting after the first read.
        clock: Monotonic time source.
        read_size: Largest partial read.

    Returns:
        Everything the target sent before the token.

    Raises:
        ProtocolError: If a read returns no data.
        TimeoutError: If the budget expires before the token arrives.
        ConnectionError: If the link fails.
    """
    forward = output or _echo_raw
    received = bytearray()
    pending = b""
    deadline: Optional[float] = None

    try:
        while True:
            if deadline is None:
                chunk = link.read_available(read_size)
                deadline = clock() + timeout
            else:
                remaining = deadline - clock()
                if remaining <= 0:
                    raise TimeoutError(
                        f"No request token within {timeout:.0f}s of the first byte"
                    )
                chunk = link.read_available(read_size, timeout=remaining)

            if not chunk:
                raise ProtocolError("Empty read while waiting for the request token")

            data = pending + chunk
            if data.endswith(REQUEST_TOKEN):
                body = data[:-len(REQUEST_TOKEN)]
                if body:
                    forward(body)
                received += body
                logger.info("Request token received after %d bytes", len(received))
                return bytes(received)

            held = _partial_token_length(data)
            body, pending = data[:len(data) - held], data[len(data) - held:]
            if body:
                forward(body)
            received += body
            logger.debug("No token yet (%d bytes so far, %d held)", len(received), held)
    except CommsError:
        # Held-back bytes were not a token after all
        if pending:
            forward(pending)
        raise


# =============================================================================
# Size Negotiation
# =============================================================================

def send_size(link: Link, size: int) -> None:
    """
    Announce the image size and check the target's acknowledgment.

    Sends ``size`` as an unsigned 32-bit little-endian integer, then
    reads exactly two bytes which must be ``b"OK"``.

    Raises:
        ImageError: If size does not fit in 32 bits.
        ProtocolError: On a short or wrong acknowledgment.
        ConnectionError: If the link fails or refuses the header.
    """
    if not 0 <= size <= MAX_IMAGE_SIZE:
        raise ImageError(f"size {size} does not fit the 32-bit length field")

    header = struct.pack("<I", size)
    written = link.write(header)
    if written != len(header):
        raise ConnectionError(
            f"Link accepted {written} of {len(header)} size header bytes"
        )
    logger.debug("Sent size header %s (%d bytes)", header.hex(), size)

    ack = link.read_exact(len(SIZE_ACK))
    if ack != SIZE_ACK:
        raise ProtocolError(f"Expected size acknowledgment {SIZE_ACK!r}, got {ack!r}")

    logger.debug("Size acknowledged")
