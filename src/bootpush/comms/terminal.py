"""
Interactive Terminal
====================

Once the image is pushed, the serial link becomes the target's console.
``MinitermTerminal`` bridges the local console and the link using
pyserial's miniterm: raw keystrokes go to the target, target output is
printed as it arrives, and local echo is off (the target echoes).

Press Ctrl+] to leave the terminal. Ctrl+C is passed to the target.

If the adapter is unplugged while the terminal runs, miniterm's reader
thread dies with a SerialException. The failure is recorded and raised
as ``ConnectionError`` once both threads have stopped, so the session
controller treats it like any other lost link.
"""

import logging
from typing import Optional

import click
import serial
from serial.tools.miniterm import Miniterm, key_description

from bootpush.comms.link import Link
from bootpush.errors import ConnectionError

logger = logging.getLogger(__name__)

# Ctrl+] leaves the terminal
EXIT_CHARACTER = chr(0x1D)

# Ctrl+T opens miniterm's menu
MENU_CHARACTER = chr(0x14)


class _LinkMiniterm(Miniterm):
    """Miniterm that records a lost link instead of dying in a worker thread."""

    link_error: Optional[BaseException] = None

    def reader(self) -> None:
        try:
            super().reader()
        except (serial.SerialException, OSError) as e:
            self._lost(e)

    def writer(self) -> None:
        try:
            super().writer()
        except (serial.SerialException, OSError) as e:
            self._lost(e)

    def _lost(self, error: BaseException) -> None:
        logger.debug("Terminal lost the link: %s", error)
        if self.link_error is None:
            self.link_error = error
        self.alive = False
        self.console.cancel()


class MinitermTerminal:
    """
    Terminal pass-through over a ``SerialLink``.

    Args:
        name_short: Tag printed in front of status lines.
        encoding: Character encoding of the target console.
    """

    def __init__(self, name_short: str = "BP", encoding: str = "UTF-8"):
        self.name_short = name_short
        self.encoding = encoding

    def run_interactive_session(self, link: Link) -> None:
        port = getattr(link, "port", None)
        if port is None:
            raise ConnectionError(f"No open serial port on {link.device}")

        term = _LinkMiniterm(port, echo=False, eol="crlf", filters=["direct"])
        term.exit_character = EXIT_CHARACTER
        term.menu_character = MENU_CHARACTER
        term.raw = False
        term.set_rx_encoding(self.encoding, errors="replace")
        term.set_tx_encoding(self.encoding)

        click.echo(
            f"[{self.name_short}] 📟 Terminal on {link.device} "
            f"(quit: {key_description(EXIT_CHARACTER)})"
        )

        term.start()
        try:
            term.join(True)
        except KeyboardInterrupt:
            pass
        finally:
            term.stop()
            term.console.cancel()
            term.join()
            term.console.cleanup()

        if term.link_error is not None:
            raise ConnectionError(
                f"Link lost during terminal session: {term.link_error}"
            ) from term.link_error

        logger.info("Terminal session closed by operator")
