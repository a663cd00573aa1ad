"""
Unit tests for WaitGroup, ThreadSafeCounter and TrackingContext.
"""

import threading
import time

import pytest

from hub_tracker.concurrent import ThreadSafeCounter, TrackingContext, WaitGroup
from hub_tracker.utils.errors import TrackingCancelledError


class TestWaitGroup:

    def test_wait_returns_immediately_when_empty(self):
        assert WaitGroup().wait(timeout=0.1) is True

    def test_wait_blocks_until_done(self):
        wg = WaitGroup()
        wg.add(2)
        released = threading.Event()

        def waiter():
            wg.wait()
            released.set()

        t = threading.Thread(target=waiter)
        t.start()

        wg.done()
        assert not released.wait(0.1)

        wg.done()
        assert released.wait(2.0)
        t.join()

    def test_wait_times_out(self):
        wg = WaitGroup()
        wg.add(1)

        assert wg.wait(timeout=0.05) is False
        assert wg.get_count() == 1

    def test_negative_counter_rejected(self):
        wg = WaitGroup()
        with pytest.raises(ValueError):
            wg.done()
        assert wg.get_count() == 0

    def test_concurrent_done(self):
        wg = WaitGroup()
        wg.add(50)
        threads = [threading.Thread(target=wg.done) for _ in range(50)]
        for t in threads:
            t.start()

        assert wg.wait(timeout=5.0) is True
        assert wg.get_count() == 0


class TestThreadSafeCounter:

    def test_increment_and_decrement(self):
        counter = ThreadSafeCounter()
        assert counter.increment() == 1
        assert counter.increment(2) == 3
        assert counter.decrement() == 2
        assert counter.get_value() == 2

    def test_update_max(self):
        counter = ThreadSafeCounter()
        counter.update_max(3)
        counter.update_max(1)
        assert counter.get_value() == 3

    def test_reset(self):
        counter = ThreadSafeCounter(5)
        assert counter.reset() == 5
        assert counter.get_value() == 0


class TestTrackingContext:

    def test_new_context_not_cancelled(self):
        ctx = TrackingContext()
        assert ctx.cancelled is False
        assert ctx.remaining() is None
        ctx.raise_if_cancelled()

    def test_cancel_keeps_first_reason(self):
        ctx = TrackingContext()
        ctx.cancel("shutdown")
        ctx.cancel("again")

        assert ctx.cancelled is True
        assert ctx.reason == "shutdown"
        with pytest.raises(TrackingCancelledError, match="shutdown"):
            ctx.raise_if_cancelled()

    def test_deadline_cancels_context(self):
        ctx = TrackingContext(timeout=0.05)
        assert ctx.cancelled is False

        time.sleep(0.1)

        assert ctx.cancelled is True
        assert ctx.reason == "context deadline exceeded"
        assert ctx.remaining() == 0.0

    def test_wait_wakes_on_cancel(self):
        ctx = TrackingContext()
        threading.Timer(0.05, ctx.cancel).start()

        assert ctx.wait(timeout=5.0) is True

    def test_wait_times_out(self):
        assert TrackingContext().wait(timeout=0.05) is False
