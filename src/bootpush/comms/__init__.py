"""
bootpush Communication Module
=============================

This module pushes a raw binary image to a bare-metal target over a
serial link and then turns the link into an interactive terminal.

Wire Protocol
-------------
1. Target → Host: any boot output, terminated by ``03 03 03``
2. Host → Target: image length, unsigned 32-bit little-endian
3. Target → Host: ``"OK"``
4. Host → Target: image bytes in segments of at most 512 bytes
5. The link becomes the target's console

Module Structure
----------------
- **link**: Link and Terminal interfaces used by the protocol code
- **serial**: pyserial port handling and ``SerialLink``
- **image**: Binary image loading
- **handshake**: Request token detection and size negotiation
- **transmit**: Chunked image streaming with progress accounting
- **session**: ``PushSession`` state machine with recovery
- **terminal**: Interactive pass-through (pyserial miniterm)

Quick Start
-----------
    from bootpush.comms import MinitermTerminal, PushSession, SerialLink

    session = PushSession(
        SerialLink('/dev/ttyUSB0'),
        'kernel8.img',
        MinitermTerminal(),
    )
    session.run()

Error Handling
--------------
All communication errors inherit from ``CommsError``:

- ``ConnectionError``: Link lost or unusable (recoverable)
- ``ProtocolError``: Unexpected handshake data (recoverable)
- ``TimeoutError``: Request token not received in time (recoverable)
- ``PortAccessError``: Permission denied on the port (fatal)

These exceptions are defined in ``bootpush.errors``.

Thread Safety
-------------
The communication classes are NOT thread-safe. Use only from a single
thread.
"""

# Link interfaces
from bootpush.comms.link import Link, Terminal

# Serial port utilities
from bootpush.comms.serial import (
    DEFAULT_BAUD_RATE,
    SerialLink,
    close_serial_port,
    open_serial_port,
    port_present,
)

# Image
from bootpush.comms.image import MAX_IMAGE_SIZE, BinaryImage

# Handshake
from bootpush.comms.handshake import (
    DEFAULT_READ_SIZE,
    REQUEST_TIMEOUT,
    REQUEST_TOKEN,
    SIZE_ACK,
    OutputCallback,
    send_size,
    wait_for_request,
)

# Transmission
from bootpush.comms.transmit import (
    CHUNK_SIZE,
    ProgressCallback,
    TransferProgress,
    send_image,
)

# Session
from bootpush.comms.session import (
    RECOVERABLE_ERRORS,
    PushSession,
    SessionOutcome,
    SessionState,
    is_recoverable,
)

# Terminal
from bootpush.comms.terminal import EXIT_CHARACTER, MinitermTerminal

__all__ = [
    # Interfaces
    "Link",
    "Terminal",
    # Serial
    "DEFAULT_BAUD_RATE",
    "SerialLink",
    "open_serial_port",
    "close_serial_port",
    "port_present",
    # Image
    "MAX_IMAGE_SIZE",
    "BinaryImage",
    # Handshake
    "DEFAULT_READ_SIZE",
    "REQUEST_TIMEOUT",
    "REQUEST_TOKEN",
    "SIZE_ACK",
    "OutputCallback",
    "wait_for_request",
    "send_size",
    # Transmission
    "CHUNK_SIZE",
    "ProgressCallback",
    "TransferProgress",
    "send_image",
    # Session
    "RECOVERABLE_ERRORS",
    "PushSession",
    "SessionOutcome",
    "SessionState",
    "is_recoverable",
    # Terminal
    "EXIT_CHARACTER",
    "MinitermTerminal",
]
