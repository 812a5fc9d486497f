"""
Unified CLI Error Handling
==========================

Provides consistent error handling and exit codes for the bootpush CLI.
"""

import sys
import traceback
from enum import IntEnum
from typing import NoReturn

import click


class ExitCode(IntEnum):
    """Standard exit codes for the CLI."""
    SUCCESS = 0
    TRANSFER_ERROR = 1   # Fatal link, image or retry-limit error
    INVALID_ARGS = 2     # Invalid arguments or missing files
    INTERNAL_ERROR = 3   # Unexpected internal error


def exit_code_for(error: BaseException) -> ExitCode:
    """Map an exception to the exit code the CLI reports for it."""
    from bootpush.errors import BootPushError

    if isinstance(error, BootPushError):
        return ExitCode.TRANSFER_ERROR
    if isinstance(error, (click.BadParameter, FileNotFoundError, PermissionError)):
        return ExitCode.INVALID_ARGS
    return ExitCode.INTERNAL_ERROR


def handle_cli_exception(error: Exception, verbose: bool = False) -> NoReturn:
    """
    Unified exception handler for the CLI.

    Prints the error, optionally the traceback for internal errors in
    verbose mode, and exits with the matching exit code.

    Raises:
        SystemExit: Always exits with an appropriate exit code
    """
    code = exit_code_for(error)

    if code is ExitCode.INTERNAL_ERROR:
        click.echo(f"Internal error: {error}", err=True)
        if verbose:
            traceback.print_exception(type(error), error, error.__traceback__)
    else:
        click.echo(f"Error: {error}", err=True)

    sys.exit(code)
