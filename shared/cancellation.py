"""
Cooperative cancellation for long-running batch loops.

Loops call `raise_if_cancelled()` once per iteration. Cancellation aborts the
whole batch; callers never receive a partial result.
"""

import threading
from typing import Optional


class OperationCancelledError(RuntimeError):
    """Raised when a batch loop observes a cancelled token."""


class CancellationToken:
    """
    Thread-safe cancellation flag.

    Usage:
        token = CancellationToken()
        trainer.train(..., cancellation=token)

        # from another thread
        token.cancel()
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError("Operation was cancelled")


def check_cancelled(token: Optional[CancellationToken]) -> None:
    """No-op when token is None."""
    if token is not None:
        token.raise_if_cancelled()
