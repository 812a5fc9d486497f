"""
bootpush - Configuration
========================

Session configuration: serial settings, protocol timing and retry policy.
Configuration can come from:
- Default values (defined here)
- Environment variables
- Command-line options (applied by the CLI on top of the above)
"""

from dataclasses import dataclass
from typing import Optional
import math
import os


# Default serial speed of the target's bootloader UART
DEFAULT_BAUD_RATE = 921600

# Seconds between link presence checks while waiting for the device
DEFAULT_POLL_INTERVAL = 1.0

# Protocol defaults, mirrored by bootpush.comms.handshake and .transmit
DEFAULT_READ_SIZE = 4096
REQUEST_TIMEOUT = 10.0
CHUNK_SIZE = 512


@dataclass
class PushConfig:
    """
    Configuration for a push session.

    Attributes:
        baud_rate: Serial speed (default: 921600)
        read_size: Largest partial read while waiting for the token (default: 4096)
        request_timeout: Seconds allowed for the token after the first byte (default: 10)
        chunk_size: Largest segment written per transmit step (default: 512)
        poll_interval: Seconds between device presence checks (default: 1)
        max_attempts: Attempt cap, None retries until the operator stops it
    """

    # Serial
    baud_rate: int = DEFAULT_BAUD_RATE

    # Protocol
    read_size: int = DEFAULT_READ_SIZE
    request_timeout: float = REQUEST_TIMEOUT
    chunk_size: int = CHUNK_SIZE

    # Recovery
    poll_interval: float = DEFAULT_POLL_INTERVAL
    max_attempts: Optional[int] = None

    @classmethod
    def from_env(cls) -> "PushConfig":
        """
        Create PushConfig from environment variables.

        Environment variables (all optional; unparsable or out-of-range
        values are ignored):
            BOOTPUSH_BAUD: Baud rate (integer, >= 1)
            BOOTPUSH_TIMEOUT: Request token timeout in seconds (> 0)
            BOOTPUSH_POLL_INTERVAL: Presence poll interval in seconds (> 0)
            BOOTPUSH_MAX_ATTEMPTS: Attempt cap (integer, >= 1)

        Returns:
            PushConfig with values from environment variables
        """
        config = cls()

        if baud := os.environ.get("BOOTPUSH_BAUD"):
            try:
                value = int(baud)
                if value >= 1:
                    config.baud_rate = value
            except ValueError:
                pass  # Ignore invalid values

        if timeout := os.environ.get("BOOTPUSH_TIMEOUT"):
            try:
                value = float(timeout)
                if value > 0 and math.isfinite(value):
                    config.request_timeout = value
            except ValueError:
                pass

        if interval := os.environ.get("BOOTPUSH_POLL_INTERVAL"):
            try:
                value = float(interval)
                if value > 0 and math.isfinite(value):
                    config.poll_interval = value
            except ValueError:
                pass

        if attempts := os.environ.get("BOOTPUSH_MAX_ATTEMPTS"):
            try:
                value = int(attempts)
                if value >= 1:
                    config.max_attempts = value
            except ValueError:
                pass

        return config
