"""
Thread-safe primitives for concurrent repository tracking.
"""

import threading
import time
from typing import Optional


class ThreadSafeCounter:
    """Thread-safe counter with atomic operations."""

    def __init__(self, initial_value: int = 0):
        """
        Initialize counter with initial value.

        Args:
            initial_value: Starting value for the counter
        """
        self._value = initial_value
        self._lock = threading.Lock()

    def increment(self, amount: int = 1) -> int:
        """
        Atomically increment counter and return new value.

        Args:
            amount: Amount to increment by (default: 1)

        Returns:
            New counter value after increment
        """
        with self._lock:
            self._value += amount
            return self._value

    def decrement(self, amount: int = 1) -> int:
        """
        Atomically decrement counter and return new value.

        Args:
            amount: Amount to decrement by (default: 1)

        Returns:
            New counter value after decrement
        """
        with self._lock:
            self._value -= amount
            return self._value

    def get_value(self) -> int:
        """Get current counter value."""
        with self._lock:
            return self._value

    def update_max(self, candidate: int) -> int:
        """
        Atomically raise the counter to candidate if it is larger.

        Returns:
            Counter value after the update
        """
        with self._lock:
            if candidate > self._value:
                self._value = candidate
            return self._value

    def reset(self) -> int:
        """
        Reset counter to zero and return previous value.

        Returns:
            Previous value before reset
        """
        with self._lock:
            old_value = self._value
            self._value = 0
            return old_value

    def __repr__(self) -> str:
        return f"ThreadSafeCounter(value={self.get_value()})"


class WaitGroup:
    """
    Countdown used by trackers to report completion.

    The orchestrator calls add() once per launched tracker; each tracker
    calls done() exactly once when its pass ends, and wait() blocks until the
    counter drops back to zero.
    """

    def __init__(self):
        self._count = 0
        self._cond = threading.Condition(threading.Lock())

    def add(self, delta: int = 1) -> int:
        """
        Add delta to the counter.

        Returns:
            New counter value

        Raises:
            ValueError: If the counter would become negative
        """
        with self._cond:
            if self._count + delta < 0:
                raise ValueError("negative WaitGroup counter")
            self._count += delta
            if self._count == 0:
                self._cond.notify_all()
            return self._count

    def done(self) -> int:
        """Decrement the counter by one."""
        return self.add(-1)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the counter reaches zero.

        Args:
            timeout: Maximum time to wait in seconds (None waits forever)

        Returns:
            True if the counter reached zero, False on timeout
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while self._count > 0:
                if deadline is None:
                    self._cond.wait()
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._cond.wait(remaining)
            return True

    def get_count(self) -> int:
        """Current counter value."""
        with self._cond:
            return self._count

    def __repr__(self) -> str:
        return f"WaitGroup(count={self.get_count()})"
