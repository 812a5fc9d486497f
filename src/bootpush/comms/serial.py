"""
Serial Port Utilities for bootpush
==================================

This module provides the serial side of the push link. It handles:

- Port configuration for the target's bootloader UART
- Device presence checks (USB-serial adapters come and go with power)
- ``SerialLink``, the pyserial implementation of the ``Link`` interface

Serial Port Settings
--------------------
- Baud Rate: 921600 by default
- Data Bits: 8
- Parity: None
- Stop Bits: 1
- Flow Control: None

Every pyserial failure (including OS errors raised while the adapter is
being unplugged) is translated into ``bootpush.errors.ConnectionError`` so
the session controller sees a single "link lost" error kind.
"""

import logging
import os
from typing import Final, Optional

import serial
import serial.tools.list_ports

from bootpush.errors import ConnectionError, PortAccessError, TimeoutError

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Default baud rate of the target's bootloader UART
DEFAULT_BAUD_RATE: Final[int] = 921600

# Read timeout in seconds for fixed-size reads (size acknowledgment)
DEFAULT_TIMEOUT: Final[float] = 1.0


# =============================================================================
# Port Presence
# =============================================================================

def port_present(device: str) -> bool:
    """
    Return True if the serial device currently exists on the host.

    Device nodes such as /dev/ttyUSB0 vanish when the adapter is
    unplugged, so a path check is enough on POSIX. Ports without a
    filesystem node (e.g. COM3) are looked up in the system port list.
    """
    if os.path.exists(device):
        return True
    return any(port.device == device for port in serial.tools.list_ports.comports())


# =============================================================================
# Port Configuration
# =============================================================================

def open_serial_port(
    device: str,
    baud_rate: int = DEFAULT_BAUD_RATE,
    timeout: Optional[float] = DEFAULT_TIMEOUT,
) -> serial.Serial:
    """
    Open and configure a serial port for pushing an image.

    The port is opened 8N1 with no hardware or software flow control,
    and both buffers are flushed so stale bytes from a previous attempt
    cannot be mistaken for the request token.

    Args:
        device: Serial port device path (e.g., '/dev/ttyUSB0', 'COM3').
        baud_rate: Baud rate. Default is 921600.
        timeout: Read timeout in seconds. Default is 1.0.

    Returns:
        Configured and opened serial.Serial object.

    Raises:
        PortAccessError: If the user may not open the port.
        ConnectionError: If the port cannot be opened or configured.
        ValueError: If baud_rate is not positive.
    """
    if baud_rate <= 0:
        raise ValueError(f"Invalid baud rate: {baud_rate}")

    logger.info("Opening serial port: %s at %d baud", device, baud_rate)

    try:
        port = serial.Serial(
            port=device,
            baudrate=baud_rate,
            bytesize=serial.EIGHTBITS,
            parity=serial.PARITY_NONE,
            stopbits=serial.STOPBITS_ONE,
            timeout=timeout,
            xonxoff=False,      # No software flow control
            rtscts=False,       # No hardware flow control
            dsrdtr=False,       # No DTR/DSR handshaking
        )

        # Flush any pending data
        port.reset_input_buffer()
        port.reset_output_buffer()

        logger.debug("Port opened: %s (timeout=%s)", device, timeout)

        return port

    except serial.SerialException as e:
        # Provide helpful error messages for common issues
        error_msg = str(e)

        if "Permission denied" in error_msg:
            raise PortAccessError(
                f"Permission denied accessing {device}. "
                "You may need to add your user to the 'dialout' group: "
                "sudo usermod -a -G dialout $USER"
            )
        elif "No such file" in error_msg or "not found" in error_msg.lower():
            raise ConnectionError(f"Serial port not found: {device}")
        elif "busy" in error_msg.lower() or "in use" in error_msg.lower():
            raise ConnectionError(
                f"Serial port {device} is busy. "
                "Close any other programs using the port."
            )
        else:
            raise ConnectionError(f"Cannot open {device}: {e}")


def close_serial_port(port: Optional[serial.Serial]) -> None:
    """
    Safely close a serial port.

    Errors during close are logged and ignored: the port is usually
    being closed because the device already went away.
    """
    if port is None:
        return

    try:
        if port.is_open:
            port.reset_input_buffer()
            port.reset_output_buffer()
            port.close()
            logger.debug("Serial port closed")
    except (serial.SerialException, OSError) as e:
        logger.warning("Error closing serial port: %s", e)
        try:
            port.close()
        except (serial.SerialException, OSError):
            pass


# =============================================================================
# Serial Link
# =============================================================================

class SerialLink:
    """
    pyserial implementation of the ``Link`` interface.

    The port is opened lazily by ``open()`` and dropped by ``reset()``,
    so one SerialLink can be reused across session attempts while the
    device is unplugged and reinserted.

    Example:
        link = SerialLink('/dev/ttyUSB0')
        link.open()
        banner = link.read_available(4096)
        link.reset()
    """

    def __init__(
        self,
        device: str,
        baud_rate: int = DEFAULT_BAUD_RATE,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.device = device
        self.baud_rate = baud_rate
        self.timeout = timeout
        self._port: Optional[serial.Serial] = None

    @property
    def port(self) -> Optional[serial.Serial]:
        """The underlying pyserial port, None while closed."""
        return self._port

    def open(self) -> None:
        if self._port is not None:
            self.reset()
        self._port = open_serial_port(self.device, self.baud_rate, self.timeout)

    def is_open(self) -> bool:
        return self._port is not None and self._port.is_open

    def is_connected(self) -> bool:
        return port_present(self.device)

    def read_available(self, max_bytes: int, timeout: Optional[float] = None) -> bytes:
        """
        Read whatever the target has sent, at least one byte.

        Blocks for the first byte (forever if timeout is None), then
        drains the bytes already waiting in the driver, up to max_bytes.

        Raises:
            TimeoutError: If no byte arrives within timeout.
            ConnectionError: If the port fails or reports end of stream.
        """
        port = self._require_port()
        if timeout is not None and timeout <= 0:
            raise TimeoutError("Read deadline already expired")

        try:
            port.timeout = timeout
            data = port.read(1)
            if not data:
                if timeout is None:
                    raise ConnectionError(f"End of stream on {self.device}")
                raise TimeoutError(f"No data received within {timeout:.1f}s")

            waiting = min(port.in_waiting, max_bytes - 1)
            if waiting > 0:
                data += port.read(waiting)
        except (serial.SerialException, OSError) as e:
            raise ConnectionError(f"Read from {self.device} failed: {e}") from e
        finally:
            self._restore_timeout(port)

        logger.debug("Read %d bytes", len(data))
        return data

    def read_exact(self, size: int) -> bytes:
        port = self._require_port()
        try:
            data = port.read(size)
        except (serial.SerialException, OSError) as e:
            raise ConnectionError(f"Read from {self.device} failed: {e}") from e

        logger.debug("Read %d/%d bytes: %s", len(data), size, data.hex())
        return data

    def write(self, data: bytes) -> int:
        port = self._require_port()
        try:
            written = port.write(data)
        except (serial.SerialException, OSError) as e:
            raise ConnectionError(f"Write to {self.device} failed: {e}") from e

        if written is None:
            written = len(data)
        return written

    def reset(self) -> None:
        port, self._port = self._port, None
        close_serial_port(port)

    def _require_port(self) -> serial.Serial:
        if self._port is None:
            raise ConnectionError(f"Serial port {self.device} is not open")
        return self._port

    def _restore_timeout(self, port: serial.Serial) -> None:
        try:
            port.timeout = self.timeout
        except (serial.SerialException, OSError) as e:
            logger.debug("Cannot restore read timeout: %s", e)

    def __repr__(self) -> str:
        state = "open" if self.is_open() else "closed"
        return f"SerialLink({self.device!r}, {self.baud_rate}, {state})"
