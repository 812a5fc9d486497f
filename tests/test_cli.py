"""
Tests for the bootpush Command-Line Interface
=============================================

The push session is mocked; these tests cover argument handling,
configuration overrides, exit codes and the progress bar.
"""

import signal
from unittest.mock import Mock, patch

import click
import pytest
from click.testing import CliRunner

from bootpush import __version__
from bootpush.cli.bootpush import (
    install_signal_handlers,
    main,
    progress_bar,
    restore_signal_handlers,
)
from bootpush.cli.errors import ExitCode, exit_code_for
from bootpush.comms import SessionOutcome, TransferProgress
from bootpush.errors import (
    ConnectionError,
    ImageError,
    PortAccessError,
    RetryLimitReached,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("BOOTPUSH_BAUD", "BOOTPUSH_TIMEOUT", "BOOTPUSH_POLL_INTERVAL", "BOOTPUSH_MAX_ATTEMPTS"):
        monkeypatch.delenv(name, raising=False)


def run_cli(image_file, *options, outcome=SessionOutcome.COMPLETED, error=None):
    """Invoke bootpush with PushSession mocked out."""
    with patch("bootpush.cli.bootpush.PushSession") as session_class:
        session = session_class.return_value
        session.run.return_value = outcome
        session.error = error
        session.attempts = 1
        result = CliRunner().invoke(main, [*options, "/dev/ttyUSB0", str(image_file)])
    return result, session_class


# =============================================================================
# Arguments
# =============================================================================

class TestArguments:

    def test_help(self):
        result = CliRunner().invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "DEVICE" in result.output
        assert "IMAGE" in result.output
        assert "--baud" in result.output

    def test_version(self):
        result = CliRunner().invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_missing_arguments(self):
        result = CliRunner().invoke(main, [])
        assert result.exit_code == 2

    def test_missing_image(self, tmp_path):
        result = CliRunner().invoke(main, ["/dev/ttyUSB0", str(tmp_path / "missing.img")])
        assert result.exit_code == 2
        assert "does not exist" in result.output

    def test_image_is_directory(self, tmp_path):
        result = CliRunner().invoke(main, ["/dev/ttyUSB0", str(tmp_path)])
        assert result.exit_code == 2

    def test_invalid_baud(self, image_file):
        result = CliRunner().invoke(main, ["--baud", "0", "/dev/ttyUSB0", str(image_file)])
        assert result.exit_code == 2

    def test_invalid_timeout(self, image_file):
        result = CliRunner().invoke(main, ["--timeout", "0", "/dev/ttyUSB0", str(image_file)])
        assert result.exit_code == 2


# =============================================================================
# Session Wiring
# =============================================================================

class TestSession:

    def test_success(self, image_file):
        result, session_class = run_cli(image_file)

        assert result.exit_code == 0, result.output
        assert f"bootpush {__version__}" in result.output
        args = session_class.call_args
        link, image = args.args[:2]
        assert link.device == "/dev/ttyUSB0"
        assert link.baud_rate == 921600
        assert image == str(image_file)
        assert args.kwargs["progress"] is progress_bar

    def test_defaults(self, image_file):
        _, session_class = run_cli(image_file)
        config = session_class.call_args.kwargs["config"]
        assert config.baud_rate == 921600
        assert config.request_timeout == 10.0
        assert config.max_attempts is None

    def test_options_override_config(self, image_file):
        _, session_class = run_cli(
            image_file, "-b", "115200", "--timeout", "30", "--max-attempts", "5"
        )
        config = session_class.call_args.kwargs["config"]
        link = session_class.call_args.args[0]
        assert config.baud_rate == 115200
        assert link.baud_rate == 115200
        assert config.request_timeout == 30.0
        assert config.max_attempts == 5

    def test_environment_config(self, image_file, monkeypatch):
        monkeypatch.setenv("BOOTPUSH_BAUD", "230400")
        _, session_class = run_cli(image_file)
        assert session_class.call_args.kwargs["config"].baud_rate == 230400

    def test_option_beats_environment(self, image_file, monkeypatch):
        monkeypatch.setenv("BOOTPUSH_BAUD", "230400")
        _, session_class = run_cli(image_file, "--baud", "57600")
        assert session_class.call_args.kwargs["config"].baud_rate == 57600

    def test_interrupted_is_success(self, image_file):
        result, _ = run_cli(image_file, outcome=SessionOutcome.INTERRUPTED)
        assert result.exit_code == 0

    def test_failed_transfer(self, image_file):
        result, _ = run_cli(
            image_file,
            outcome=SessionOutcome.FAILED,
            error=PortAccessError("Permission denied"),
        )
        assert result.exit_code == ExitCode.TRANSFER_ERROR

    def test_retry_limit(self, image_file):
        result, _ = run_cli(
            image_file,
            "--max-attempts", "2",
            outcome=SessionOutcome.FAILED,
            error=RetryLimitReached(2),
        )
        assert result.exit_code == ExitCode.TRANSFER_ERROR

    def test_failed_internal(self, image_file):
        result, _ = run_cli(image_file, outcome=SessionOutcome.FAILED, error=RuntimeError("bug"))
        assert result.exit_code == ExitCode.INTERNAL_ERROR

    def test_verbose(self, image_file):
        result, _ = run_cli(image_file, "-v")
        assert result.exit_code == 0

    def test_setup_error_reported(self, image_file):
        with patch("bootpush.cli.bootpush.SerialLink", side_effect=RuntimeError("boom")):
            result = CliRunner().invoke(main, ["/dev/ttyUSB0", str(image_file)])
        assert result.exit_code == ExitCode.INTERNAL_ERROR
        assert "Internal error: boom" in result.output


# =============================================================================
# Exit Codes
# =============================================================================

class TestExitCodes:

    @pytest.mark.parametrize("error, code", [
        (ConnectionError("gone"), ExitCode.TRANSFER_ERROR),
        (ImageError("too big"), ExitCode.TRANSFER_ERROR),
        (RetryLimitReached(3), ExitCode.TRANSFER_ERROR),
        (FileNotFoundError("kernel8.img"), ExitCode.INVALID_ARGS),
        (click.BadParameter("bad"), ExitCode.INVALID_ARGS),
        (ValueError("oops"), ExitCode.INTERNAL_ERROR),
    ])
    def test_exit_code_for(self, error, code):
        assert exit_code_for(error) is code


# =============================================================================
# Progress Bar and Signals
# =============================================================================

class TestProgressBar:

    def test_partial(self, capsys):
        progress = TransferProgress(total=2048, started_at=0.0, now=0.0)
        progress.advance(1024, now=1.0)

        progress_bar(progress)

        out = capsys.readouterr().out
        assert out.startswith("\r[BP] ⏩ Pushing 1 KiB [")
        assert " 50%" in out
        assert "1 KiB/s" in out
        assert not out.endswith("\n")

    def test_complete_ends_line(self, capsys):
        progress = TransferProgress(total=1024, started_at=0.0, now=0.0)
        progress.advance(1024, now=2.0)

        progress_bar(progress)

        out = capsys.readouterr().out
        assert "100%" in out
        assert "=" * 40 in out
        assert out.endswith("\n")


class TestSignals:

    def test_sigterm_stops_session(self):
        session = Mock()
        previous = install_signal_handlers(session)
        try:
            handler = signal.getsignal(signal.SIGTERM)
            with pytest.raises(KeyboardInterrupt):
                handler(signal.SIGTERM, None)
            session.stop.assert_called_once()
        finally:
            restore_signal_handlers(previous)

        assert signal.getsignal(signal.SIGTERM) == previous
