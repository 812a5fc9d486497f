"""
bootpush Error Hierarchy
========================

This module defines the exception hierarchy for bootpush. All exceptions
inherit from BootPushError, allowing callers to catch every tool-related
error with a single except clause if desired.

Exception Hierarchy
-------------------
BootPushError (base)
├── ImageError - binary image cannot be pushed
├── RetryLimitReached - configured attempt cap exhausted
└── CommsError (serial communication)
    ├── ConnectionError - link lost, I/O failure or end of stream
    ├── PortAccessError - permission denied on the serial port
    ├── ProtocolError - malformed or unexpected handshake data
    └── TimeoutError - readiness token not seen within the budget

Recoverable vs Fatal
--------------------
The push session restarts from scratch on ConnectionError, ProtocolError
and TimeoutError. ImageError, PortAccessError, RetryLimitReached and
anything that is not a BootPushError end the session.
"""

from typing import Optional


# =============================================================================
# Base Exception Class
# =============================================================================

class BootPushError(Exception):
    """
    Base exception for all bootpush errors.

        try:
            session.run()
        except BootPushError as e:
            print(f"Error: {e}")
    """
    pass


# =============================================================================
# Image Exceptions
# =============================================================================

class ImageError(BootPushError):
    """
    The binary image cannot be pushed.

    Raised when:
    - The image is larger than the 32-bit length field can describe
    - The image path is not a regular file
    """

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        if path:
            message = f"{path}: {message}"
        super().__init__(message)


class RetryLimitReached(BootPushError):
    """
    The session gave up after the configured number of attempts.

    Only raised when an attempt cap was requested; by default the
    session retries until the operator stops it.
    """

    def __init__(self, attempts: int, last_error: Optional[BaseException] = None):
        self.attempts = attempts
        self.last_error = last_error
        message = f"Giving up after {attempts} attempt(s)"
        if last_error is not None:
            message += f" (last error: {last_error})"
        super().__init__(message)


# =============================================================================
# Communication Exceptions
# =============================================================================

class CommsError(BootPushError):
    """Base exception for serial communication errors."""
    pass


class ConnectionError(CommsError):
    """
    The serial link was lost or refused to carry data.

    Raised when:
    - Serial port not found or busy
    - The device disappeared during a read or write
    - The link reported end of stream
    """
    pass


class PortAccessError(CommsError):
    """
    The serial port exists but the user may not open it.

    Not recoverable: replugging the device does not fix permissions.
    """
    pass


class ProtocolError(CommsError):
    """
    Handshake protocol violation.

    Raised when the target sends an empty read while we wait for the
    request token, or acknowledges the size with anything but "OK".
    """
    pass


class TimeoutError(CommsError):
    """
    Handshake timeout.

    Raised when the request token does not arrive within the budget
    that starts after the first byte from the target.

    Note:
        This is a bootpush-specific TimeoutError, distinct from the
        Python builtin TimeoutError. It inherits from CommsError for
        consistent handling in the session controller.
    """
    pass
