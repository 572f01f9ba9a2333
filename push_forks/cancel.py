"""
Cancellation support for a push-forks run.

A CancellationToken is shared between the signal handlers and the
orchestrator. The handlers set the token and raise OperationCancelled into
whatever is running, which unwinds any in-flight git command; GitPython
terminates its child process when the command handle is released. The
orchestrator also polls the token between repositories and branches.
"""

import signal
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from .errors import OperationCancelled

# Exit status reserved for an interrupted run (128 + SIGINT)
EXIT_INTERRUPTED = 130

CANCEL_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class CancellationToken:
    """Thread-safe flag recording that the run should stop."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "interrupted") -> None:
        if not self._event.is_set():
            self.reason = reason
        self._event.set()

    def raise_if_cancelled(self) -> None:
        """Raise OperationCancelled if the token has been set."""
        if self._event.is_set():
            raise OperationCancelled(self.reason or "interrupted")


@contextmanager
def install_signal_handlers(token: CancellationToken) -> Iterator[CancellationToken]:
    """
    Route SIGINT and SIGTERM to the token for the duration of the block.

    The previous handlers are restored on exit. Only usable from the main
    thread, like signal.signal itself.
    """

    def _handler(signum: int, frame) -> None:
        name = signal.Signals(signum).name
        token.cancel(f"received {name}")
        raise OperationCancelled(token.reason)

    previous = {sig: signal.getsignal(sig) for sig in CANCEL_SIGNALS}
    for sig in CANCEL_SIGNALS:
        signal.signal(sig, _handler)
    try:
        yield token
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
