"""
Push Session Controller
=======================

``PushSession`` drives one bootpush invocation through the push protocol
and into the interactive terminal:

    CONNECTING ─▶ AWAITING_READINESS ─▶ NEGOTIATING_SIZE ─▶ TRANSMITTING
        ▲                 │                    │                  │
        │                 ▼                    ▼                  ▼
        └──────────── RECOVERING ◀─────────────┴──────────────────┤
                          ▲                                       ▼
                          └─────────────────── INTERACTIVE_PASSTHROUGH
                                                                  │
                                                                  ▼
                                                             TERMINATED

Any recoverable failure (lost link, protocol violation, handshake timeout)
sends the session to RECOVERING, which resets the link, asks the operator
to power-cycle the target and waits for the adapter to be unplugged.
CONNECTING then waits for it to come back and the push starts again from
the request token, reloading the image from disk. Nothing carries over
between attempts.

Any other error ends the session. Whatever the exit path (transfer and
terminal done, fatal error, Ctrl+C, stop request), the link is reset and
a farewell line is printed.
"""

import errno
import logging
import time
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Optional, Union

import click

from bootpush.comms.handshake import OutputCallback, send_size, wait_for_request
from bootpush.comms.image import BinaryImage
from bootpush.comms.link import Link, Terminal
from bootpush.comms.transmit import ProgressCallback, send_image
from bootpush.config import PushConfig
from bootpush.errors import (
    ConnectionError,
    ProtocolError,
    RetryLimitReached,
    TimeoutError,
)

logger = logging.getLogger(__name__)

# Tag printed in front of operator messages
NAME_SHORT = "BP"

# Errors that restart the push instead of ending the session
RECOVERABLE_ERRORS = (ConnectionError, ProtocolError, TimeoutError, EOFError)


class SessionState(Enum):
    """States of a push session."""

    CONNECTING = "connecting"
    AWAITING_READINESS = "awaiting_readiness"
    NEGOTIATING_SIZE = "negotiating_size"
    TRANSMITTING = "transmitting"
    INTERACTIVE_PASSTHROUGH = "interactive_passthrough"
    RECOVERING = "recovering"
    TERMINATED = "terminated"


class SessionOutcome(Enum):
    """How a session ended."""

    COMPLETED = "completed"      # Image pushed, terminal closed by operator
    INTERRUPTED = "interrupted"  # Ctrl+C or stop request
    FAILED = "failed"            # Fatal error


def is_recoverable(error: BaseException) -> bool:
    """
    Return True if ``error`` should restart the push.

    Covers the bootpush link/protocol errors, end of stream, and raw
    EIO from the OS (the usual symptom of a USB adapter losing power).
    """
    if isinstance(error, RECOVERABLE_ERRORS):
        return True
    return isinstance(error, OSError) and error.errno == errno.EIO


class PushSession:
    """
    Push an image over a link, then run a terminal on it.

    Args:
        link: Link to the target; opened and reset by the session.
        image_path: Binary image, read from disk on every attempt.
        terminal: Interactive pass-through run after a successful push.
        config: Timing and retry settings.
        output: Receives the target's boot output (default: stdout).
        progress: Called after every chunk written.
        echo: Prints operator messages.
        sleep: Waits between presence polls.
        clock: Monotonic time source for timeouts and throughput.
        on_state: Called with every state entered.

    Example:
        session = PushSession(SerialLink('/dev/ttyUSB0'), 'kernel8.img',
                              MinitermTerminal())
        outcome = session.run()
    """

    def __init__(
        self,
        link: Link,
        image_path: Union[str, Path],
        terminal: Terminal,
        config: Optional[PushConfig] = None,
        output: Optional[OutputCallback] = None,
        progress: Optional[ProgressCallback] = None,
        echo: Callable[[str], None] = click.echo,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        on_state: Optional[Callable[[SessionState], None]] = None,
    ):
        self.link = link
        self.image_path = Path(image_path)
        self.terminal = terminal
        self.config = config or PushConfig()
        self._output = output
        self._progress = progress
        self._echo = echo
        self._sleep = sleep
        self._clock = clock
        self._on_state = on_state

        self._state = SessionState.CONNECTING
        self._image: Optional[BinaryImage] = None
        self._stop_requested = False
        self._attempts = 0
        self._outcome: Optional[SessionOutcome] = None
        self.error: Optional[BaseException] = None

        self._handlers: Dict[SessionState, Callable[[], SessionState]] = {
            SessionState.CONNECTING: self._connect,
            SessionState.AWAITING_READINESS: self._await_readiness,
            SessionState.NEGOTIATING_SIZE: self._negotiate_size,
            SessionState.TRANSMITTING: self._transmit,
            SessionState.INTERACTIVE_PASSTHROUGH: self._passthrough,
            SessionState.RECOVERING: self._recover,
        }

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def attempts(self) -> int:
        """Number of push attempts started so far."""
        return self._attempts

    @property
    def outcome(self) -> Optional[SessionOutcome]:
        return self._outcome

    def stop(self) -> None:
        """Ask the session to terminate at the next poll."""
        logger.debug("Stop requested")
        self._stop_requested = True

    # -------------------------------------------------------------------------
    # Main Loop
    # -------------------------------------------------------------------------

    def run(self) -> SessionOutcome:
        """
        Run the session until it terminates.

        Returns:
            The session outcome. On FAILED, ``self.error`` holds the cause.
        """
        self._transition(SessionState.CONNECTING)
        try:
            while self._state is not SessionState.TERMINATED:
                if self._stop_requested:
                    self._finish(SessionOutcome.INTERRUPTED)
                    break
                self._step()
        except KeyboardInterrupt:
            logger.debug("Interrupted in state %s", self._state.name)
            self._finish(SessionOutcome.INTERRUPTED)
        finally:
            self._cleanup()

        return self._outcome

    def _step(self) -> None:
        handler = self._handlers[self._state]
        try:
            next_state = handler()
        except Exception as e:
            if not is_recoverable(e):
                self._fail(e)
                return
            logger.info("Recoverable error in %s: %s", self._state.name, e)
            limit = self.config.max_attempts
            if limit is not None and self._attempts >= limit:
                self._fail(RetryLimitReached(self._attempts, e))
                return
            next_state = SessionState.RECOVERING

        if self._state is not SessionState.TERMINATED:
            self._transition(next_state)

    def _transition(self, state: SessionState) -> None:
        logger.debug("State %s -> %s", self._state.name, state.name)
        self._state = state
        if self._on_state:
            self._on_state(state)

    def _finish(self, outcome: SessionOutcome) -> None:
        if self._outcome is None:
            self._outcome = outcome
        if self._state is not SessionState.TERMINATED:
            self._transition(SessionState.TERMINATED)

    def _fail(self, error: BaseException) -> None:
        self.error = error
        self._echo("")
        if isinstance(error, RetryLimitReached):
            message = str(error)
        else:
            message = f"Unexpected error: {error!r}"
        self._echo(f"[{NAME_SHORT}] ⚡ " + click.style(message, fg="bright_red"))
        logger.debug("Session failed", exc_info=error)
        self._finish(SessionOutcome.FAILED)

    def _cleanup(self) -> None:
        self._image = None
        try:
            self.link.reset()
        finally:
            self._echo("")
            self._echo(f"[{NAME_SHORT}] Bye 👋")

    def _pause(self) -> bool:
        """Sleep one poll interval; False if a stop was requested."""
        if self._stop_requested:
            return False
        self._sleep(self.config.poll_interval)
        return not self._stop_requested

    # -------------------------------------------------------------------------
    # State Handlers
    # -------------------------------------------------------------------------

    def _connect(self) -> SessionState:
        self._attempts += 1
        self._image = None

        if not self.link.is_connected():
            self._echo(f"[{NAME_SHORT}] ⏳ Waiting for {self.link.device}")
            while not self.link.is_connected():
                if not self._pause():
                    self._finish(SessionOutcome.INTERRUPTED)
                    return SessionState.TERMINATED

        self.link.open()
        self._echo(f"[{NAME_SHORT}] ✅ Serial connected")
        return SessionState.AWAITING_READINESS

    def _await_readiness(self) -> SessionState:
        self._echo(f"[{NAME_SHORT}] 🔌 Please power the target now")
        wait_for_request(
            self.link,
            output=self._output,
            timeout=self.config.request_timeout,
            clock=self._clock,
            read_size=self.config.read_size,
        )
        return SessionState.NEGOTIATING_SIZE

    def _negotiate_size(self) -> SessionState:
        self._image = BinaryImage.load(self.image_path)
        send_size(self.link, self._image.length)
        return SessionState.TRANSMITTING

    def _transmit(self) -> SessionState:
        send_image(
            self.link,
            self._image,
            progress=self._progress,
            chunk_size=self.config.chunk_size,
            clock=self._clock,
        )
        self._image = None
        return SessionState.INTERACTIVE_PASSTHROUGH

    def _passthrough(self) -> SessionState:
        self.terminal.run_interactive_session(self.link)
        self._finish(SessionOutcome.COMPLETED)
        return SessionState.TERMINATED

    def _recover(self) -> SessionState:
        self.link.reset()
        self._image = None

        self._echo("")
        self._echo(
            f"[{NAME_SHORT}] ⚡ "
            + click.style("Connection or protocol Error: ", fg="bright_red")
            + click.style(
                "Remove power and USB serial. Reinsert serial first, then power",
                fg="bright_red",
            )
        )

        while self.link.is_connected():
            if not self._pause():
                self._finish(SessionOutcome.INTERRUPTED)
                return SessionState.TERMINATED

        return SessionState.CONNECTING
