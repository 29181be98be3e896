"""Tests for clocks, debouncers and tickers."""

import threading

from dwellmap.clock import Debouncer, ManualClock, Ticker


class TestDebouncer:
    """Test the quiet-interval gate."""

    def test_not_ready_at_start(self):
        """A fresh debouncer waits a full interval."""
        clock = ManualClock(0)
        debounce = Debouncer(clock, 400)
        assert not debounce.ready()
        clock.advance(400)
        assert debounce.ready()

    def test_ready_at_start(self):
        """ready_at_start lets the first event through."""
        debounce = Debouncer(ManualClock(0), 1000, ready_at_start=True)
        assert debounce.try_acquire()
        assert not debounce.try_acquire()

    def test_mark_resets(self):
        """mark() restarts the interval."""
        clock = ManualClock(0)
        debounce = Debouncer(clock, 400)
        clock.advance(300)
        debounce.mark()
        clock.advance(300)
        assert not debounce.ready()
        assert debounce.elapsed_ms() == 300

    def test_failed_acquire_keeps_mark(self):
        """A refused try_acquire does not push the deadline back."""
        clock = ManualClock(0)
        debounce = Debouncer(clock, 400)
        clock.advance(300)
        assert not debounce.try_acquire()
        clock.advance(100)
        assert debounce.try_acquire()
        assert debounce.last_mark_ms == 400


class TestTicker:
    """Test the periodic worker thread."""

    def test_runs_until_stopped(self):
        """The callback runs repeatedly, stop() ends the thread."""
        fired = threading.Event()
        calls = []

        def callback():
            calls.append(1)
            if len(calls) >= 2:
                fired.set()

        ticker = Ticker("test", 0.01, callback)
        ticker.start()
        assert fired.wait(5)
        ticker.stop()
        assert not ticker.running

    def test_callback_errors_do_not_kill_ticker(self):
        """An exception in one tick is logged and the next tick still runs."""
        fired = threading.Event()
        calls = []

        def callback():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("boom")
            fired.set()

        ticker = Ticker("flaky", 0.01, callback)
        ticker.start()
        assert fired.wait(5)
        ticker.stop()

    def test_stop_without_start(self):
        """Stopping a ticker that never ran is harmless."""
        ticker = Ticker("idle", 1.0, lambda: None)
        ticker.stop()
        assert not ticker.running
