"""
bootpush - Serial Image Push Command-Line Interface
===================================================

This module implements the ``bootpush`` command. It waits for a target
board's serial bootloader to ask for an image, pushes the image, and then
stays connected as a terminal.

Usage Examples
--------------
Push a kernel and open a terminal:
    $ bootpush /dev/ttyUSB0 kernel8.img

Use a slower UART and a longer handshake budget:
    $ bootpush --baud 115200 --timeout 30 /dev/ttyUSB0 kernel8.img

Workflow
--------
    $ bootpush /dev/ttyUSB0 kernel8.img
    bootpush 1.0.0

    [BP] ✅ Serial connected
    [BP] 🔌 Please power the target now
    <bootloader banner>
    [BP] ⏩ Pushing 64 KiB [========================================] 100% 88 KiB/s 0.7s
    [BP] 📟 Terminal on /dev/ttyUSB0 (quit: Ctrl+])
    <kernel console>

On a link or protocol error, bootpush asks you to remove power and the
USB serial adapter, reinsert the adapter first and then power, and starts
over. Press Ctrl+C at any time to quit.

Exit Codes
----------
0 - Success, or stopped by the operator
1 - Fatal transfer error (permissions, image, attempt limit)
2 - Invalid arguments
3 - Unexpected internal error
"""

import logging
import signal
import sys
from typing import Optional

import click

from bootpush import __version__
from bootpush.cli.errors import ExitCode, exit_code_for, handle_cli_exception
from bootpush.comms import (
    MinitermTerminal,
    PushSession,
    SerialLink,
    SessionOutcome,
    TransferProgress,
)
from bootpush.comms.session import NAME_SHORT
from bootpush.config import PushConfig

# Configure logging
logger = logging.getLogger(__name__)

# Width of the progress bar in characters
BAR_WIDTH = 40


# =============================================================================
# CLI Context and Utilities
# =============================================================================

class Context:
    """
    Shared context for the CLI.

    Stores the session configuration and verbosity.
    """

    def __init__(self) -> None:
        self.config: PushConfig = PushConfig.from_env()
        self.verbose: bool = False

    def setup_logging(self) -> None:
        """Configure logging based on verbosity."""
        level = logging.DEBUG if self.verbose else logging.WARNING
        logging.basicConfig(
            level=level,
            format="%(levelname)s: %(message)s" if self.verbose else "%(message)s",
        )


pass_context = click.make_pass_decorator(Context, ensure=True)


def progress_bar(progress: TransferProgress) -> None:
    """Single-line progress bar for the image transfer."""
    filled = progress.percent * BAR_WIDTH // 100
    bar = "=" * filled + "-" * (BAR_WIDTH - filled)
    click.echo(
        f"\r[{NAME_SHORT}] ⏩ Pushing {progress.sent // 1024} KiB [{bar}] "
        f"{progress.percent:3d}% {progress.rate / 1024:.0f} KiB/s "
        f"{progress.elapsed:.1f}s",
        nl=False,
    )
    if progress.complete:
        click.echo()  # Newline at end


def install_signal_handlers(session: PushSession):
    """
    Route SIGTERM through the same teardown as Ctrl+C.

    Returns:
        The previous SIGTERM handler, for restore_signal_handlers().
    """
    def handle_sigterm(signum, frame):
        session.stop()
        raise KeyboardInterrupt

    return signal.signal(signal.SIGTERM, handle_sigterm)


def restore_signal_handlers(previous) -> None:
    if previous is not None:
        signal.signal(signal.SIGTERM, previous)


# =============================================================================
# Main Command
# =============================================================================

@click.command()
@click.argument("device", type=str)
@click.argument("image", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "-b", "--baud",
    type=click.IntRange(min=1),
    default=None,
    help="Baud rate (default: 921600, or $BOOTPUSH_BAUD)",
)
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Seconds allowed for the request token after the first byte (default: 10)",
)
@click.option(
    "--max-attempts",
    type=click.IntRange(min=1),
    default=None,
    help="Give up after this many attempts (default: retry until stopped)",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Enable verbose output",
)
@click.version_option(version=__version__, prog_name="bootpush")
@pass_context
def main(
    ctx: Context,
    device: str,
    image: str,
    baud: Optional[int],
    timeout: Optional[float],
    max_attempts: Optional[int],
    verbose: bool,
) -> None:
    """
    Push a binary IMAGE to a target board over serial DEVICE, then open
    a terminal on it.

    The target's bootloader signals it is ready with three 0x03 bytes;
    bootpush answers with the image size, waits for "OK", and streams
    the image. Quit the terminal with Ctrl+].

    Example:
        bootpush /dev/ttyUSB0 kernel8.img
    """
    ctx.verbose = verbose
    ctx.setup_logging()

    config = ctx.config
    if baud is not None:
        config.baud_rate = baud
    if timeout is not None:
        config.request_timeout = timeout
    if max_attempts is not None:
        config.max_attempts = max_attempts

    try:
        click.echo(click.style(f"bootpush {__version__}", fg="cyan"))
        click.echo()

        link = SerialLink(device, baud_rate=config.baud_rate)
        session = PushSession(
            link,
            image,
            MinitermTerminal(name_short=NAME_SHORT),
            config=config,
            progress=progress_bar,
        )

        previous = install_signal_handlers(session)
        try:
            outcome = session.run()
        finally:
            restore_signal_handlers(previous)

    except Exception as e:
        handle_cli_exception(e, verbose=verbose)

    logger.debug("Session ended: %s after %d attempt(s)", outcome.name, session.attempts)
    if outcome is SessionOutcome.FAILED and session.error is not None:
        sys.exit(exit_code_for(session.error))
    sys.exit(ExitCode.SUCCESS)


# =============================================================================
# Entry Point
# =============================================================================

if __name__ == "__main__":
    main()
