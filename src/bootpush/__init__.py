"""
bootpush - Serial Image Pusher for Bare-Metal Targets
=====================================================

bootpush sends a raw binary image (a kernel, say) to a board waiting in
a tiny serial bootloader, then stays on the line as a terminal so the
freshly booted image's console can be used right away.

    $ bootpush /dev/ttyUSB0 kernel8.img

If the link drops or the target misbehaves during the handshake or the
transfer, bootpush asks the operator to power-cycle the board and starts
over once the serial adapter is back.

Main Components
---------------
- **comms**: push protocol, serial link, session state machine, terminal
- **config**: session settings and environment overrides
- **cli**: the ``bootpush`` command
"""

__version__ = "1.0.0"

# =============================================================================
# Public API Exports
# =============================================================================

from bootpush.comms import (
    BinaryImage,
    MinitermTerminal,
    PushSession,
    SerialLink,
    SessionOutcome,
    SessionState,
    TransferProgress,
    send_image,
    send_size,
    wait_for_request,
)
from bootpush.config import PushConfig
from bootpush.errors import (
    BootPushError,
    CommsError,
    ConnectionError as BootPushConnectionError,  # Avoid collision with builtin
    ImageError,
    PortAccessError,
    ProtocolError,
    RetryLimitReached,
    TimeoutError as BootPushTimeoutError,  # Avoid collision with builtin
)

__all__ = [
    "__version__",
    # Session
    "PushSession",
    "SessionState",
    "SessionOutcome",
    "PushConfig",
    # Protocol
    "BinaryImage",
    "TransferProgress",
    "wait_for_request",
    "send_size",
    "send_image",
    # Link and terminal
    "SerialLink",
    "MinitermTerminal",
    # Errors
    "BootPushError",
    "CommsError",
    "BootPushConnectionError",
    "BootPushTimeoutError",
    "ImageError",
    "PortAccessError",
    "ProtocolError",
    "RetryLimitReached",
]
