"""
Tests for the Interactive Terminal
==================================

miniterm needs a real console, so it is mocked; the link-loss handling
of the reader/writer threads is tested on a bare instance.
"""

from unittest.mock import MagicMock, Mock, patch

import pytest
import serial
from serial.tools.miniterm import Miniterm

from bootpush.comms.terminal import (
    EXIT_CHARACTER,
    MinitermTerminal,
    _LinkMiniterm,
)
from bootpush.errors import ConnectionError


def bare_miniterm() -> _LinkMiniterm:
    """A _LinkMiniterm without a console or port behind it."""
    term = _LinkMiniterm.__new__(_LinkMiniterm)
    term.console = Mock()
    term.alive = True
    term.link_error = None
    return term


def make_link(port=None):
    link = Mock()
    link.device = "/dev/ttyUSB0"
    link.port = port
    return link


class TestLinkMiniterm:

    def test_reader_records_lost_link(self):
        term = bare_miniterm()
        error = serial.SerialException("device reports readiness to read but returned no data")

        with patch.object(Miniterm, "reader", side_effect=error):
            term.reader()

        assert term.link_error is error
        assert not term.alive
        term.console.cancel.assert_called_once()

    def test_writer_records_lost_link(self):
        term = bare_miniterm()
        error = OSError(5, "Input/output error")

        with patch.object(Miniterm, "writer", side_effect=error):
            term.writer()

        assert term.link_error is error
        assert not term.alive

    def test_first_error_kept(self):
        term = bare_miniterm()
        first = serial.SerialException("first")
        term._lost(first)
        term._lost(OSError("second"))
        assert term.link_error is first

    def test_clean_exit(self):
        term = bare_miniterm()
        with patch.object(Miniterm, "reader", return_value=None):
            term.reader()
        assert term.link_error is None
        assert term.alive


class TestMinitermTerminal:

    def test_exit_character(self):
        assert EXIT_CHARACTER == "\x1d"

    def test_requires_open_port(self):
        with pytest.raises(ConnectionError, match="No open serial port"):
            MinitermTerminal().run_interactive_session(make_link(port=None))

    def test_session_configures_miniterm(self, capsys):
        port = MagicMock()
        with patch("bootpush.comms.terminal._LinkMiniterm") as term_class:
            term = term_class.return_value
            term.link_error = None
            MinitermTerminal().run_interactive_session(make_link(port))

        term_class.assert_called_once_with(port, echo=False, eol="crlf", filters=["direct"])
        term.set_rx_encoding.assert_called_once_with("UTF-8", errors="replace")
        term.set_tx_encoding.assert_called_once_with("UTF-8")
        term.start.assert_called_once()
        term.stop.assert_called_once()
        term.console.cleanup.assert_called_once()
        assert "[BP] 📟 Terminal on /dev/ttyUSB0" in capsys.readouterr().out

    def test_keyboard_interrupt_ends_session(self):
        with patch("bootpush.comms.terminal._LinkMiniterm") as term_class:
            term = term_class.return_value
            term.link_error = None
            term.join.side_effect = [KeyboardInterrupt, None]
            MinitermTerminal().run_interactive_session(make_link(MagicMock()))

        term.stop.assert_called_once()
        term.console.cleanup.assert_called_once()

    def test_lost_link_raises_connection_error(self):
        with patch("bootpush.comms.terminal._LinkMiniterm") as term_class:
            term = term_class.return_value
            term.link_error = serial.SerialException("device disconnected")
            with pytest.raises(ConnectionError, match="device disconnected"):
                MinitermTerminal().run_interactive_session(make_link(MagicMock()))

        term.console.cleanup.assert_called_once()

    def test_custom_tag_and_encoding(self, capsys):
        with patch("bootpush.comms.terminal._LinkMiniterm") as term_class:
            term = term_class.return_value
            term.link_error = None
            MinitermTerminal(name_short="XX", encoding="latin-1").run_interactive_session(
                make_link(MagicMock())
            )

        term.set_tx_encoding.assert_called_once_with("latin-1")
        assert capsys.readouterr().out.startswith("[XX]")
