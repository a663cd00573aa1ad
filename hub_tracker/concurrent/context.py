"""
Cancellable execution context shared by every tracker of a run.
"""

import threading
import time
from typing import Optional

from hub_tracker.utils.errors import TrackingCancelledError


class TrackingContext:
    """
    Run-wide cancellation signal with an optional deadline.

    The orchestrator (or a signal handler) cancels the context to abort all
    in-flight trackers; trackers and collaborators check it before starting
    new work.
    """

    def __init__(self, timeout: Optional[float] = None):
        """
        Args:
            timeout: Seconds after which the context is considered cancelled
        """
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._reason: Optional[str] = None
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self, reason: str = "context cancelled") -> None:
        """Cancel the context. Only the first reason is kept."""
        with self._lock:
            if self._reason is None:
                self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self.cancel("context deadline exceeded")
            return True
        return False

    @property
    def reason(self) -> Optional[str]:
        with self._lock:
            return self._reason

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None without deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def raise_if_cancelled(self) -> None:
        """
        Raises:
            TrackingCancelledError: If the context has been cancelled
        """
        if self.cancelled:
            raise TrackingCancelledError(self.reason or "context cancelled")

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the context is cancelled or timeout elapses.

        Returns:
            True if the context is cancelled
        """
        remaining = self.remaining()
        if remaining is not None and (timeout is None or remaining < timeout):
            timeout = remaining
        self._event.wait(timeout)
        return self.cancelled

    def __repr__(self) -> str:
        return f"TrackingContext(cancelled={self.cancelled}, reason={self.reason!r})"
