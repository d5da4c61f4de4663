"""
Cooperative cancellation for long-running lifecycle steps.

A single CancellationToken is created by the driver and passed explicitly
into every suspension point: RPC calls, poll loops, backoff sleeps and the
inter-account delay.
"""
import threading
import time
from typing import Optional

from .exceptions import OperationCancelledError


class CancellationToken:
    """Thread-safe cancellation signal backed by ``threading.Event``."""

    def __init__(self):
        self._event = threading.Event()
        self._reason: Optional[str] = None
        self._lock = threading.Lock()

    def cancel(self, reason: str = "cancelled") -> None:
        """Fire the signal. Subsequent calls keep the first reason."""
        with self._lock:
            if self._reason is None:
                self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def sleep(self, seconds: float) -> bool:
        """
        Block for up to ``seconds``, waking early on cancellation.

        Returns:
            True if the full interval elapsed, False if cancelled
        """
        if seconds <= 0:
            return not self.cancelled
        return not self._event.wait(seconds)

    def monotonic(self) -> float:
        """Clock used for deadlines; overridable for simulated time."""
        return time.monotonic()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError(self._reason or "cancelled")
