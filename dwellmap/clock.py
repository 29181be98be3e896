"""
dwellmap.clock - Time sources, debounce gates and periodic tickers

Everything in the engine that asks "has enough time passed?" goes through a
Debouncer bound to an injectable Clock, so tests can drive time by hand with
ManualClock instead of sleeping.

Ticker runs a callback on a fixed period in a daemon thread and is stopped
through a threading.Event, so shutdown never waits longer than one join.
"""

import logging
import threading
import time
from collections.abc import Callable
from typing import Protocol

logger = logging.getLogger(__name__)


class Clock(Protocol):
    def now_ms(self) -> float:
        ...


class SystemClock:
    """Monotonic wall-independent clock in milliseconds."""

    def now_ms(self) -> float:
        return time.monotonic() * 1000.0


class ManualClock:
    """Clock that only moves when told to. Used by tests and replays."""

    def __init__(self, start_ms: float = 0.0):
        self._now = float(start_ms)

    def now_ms(self) -> float:
        return self._now

    def advance(self, ms: float) -> float:
        self._now += ms
        return self._now

    def set(self, ms: float) -> None:
        self._now = float(ms)


class Debouncer:
    """
    Minimum-quiet-interval gate.

    ready() is true once interval_ms has passed since the last mark().
    A fresh Debouncer counts as marked at construction time unless
    ready_at_start is set.
    """

    def __init__(self, clock: Clock, interval_ms: float, ready_at_start: bool = False):
        self.clock = clock
        self.interval_ms = interval_ms
        self._last = clock.now_ms()
        if ready_at_start:
            self._last -= interval_ms

    @property
    def last_mark_ms(self) -> float:
        return self._last

    def elapsed_ms(self) -> float:
        return self.clock.now_ms() - self._last

    def ready(self) -> bool:
        return self.elapsed_ms() >= self.interval_ms

    def mark(self) -> float:
        self._last = self.clock.now_ms()
        return self._last

    def try_acquire(self) -> bool:
        """Mark and return True if ready, else leave the mark untouched."""
        if not self.ready():
            return False
        self.mark()
        return True


class Ticker:
    """Runs callback every interval_s seconds until stopped."""

    def __init__(self, name: str, interval_s: float, callback: Callable[[], None]):
        self.name = name
        self.interval_s = interval_s
        self.callback = callback
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._loop, name=f"dwellmap-{self.name}", daemon=True
        )
        self._thread.start()
        logger.debug("ticker %s started (%.2fs)", self.name, self.interval_s)

    def stop(self, timeout: float = 5.0) -> None:
        self._stop_event.set()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
            logger.debug("ticker %s stopped", self.name)

    def _loop(self) -> None:
        # Event.wait doubles as the sleep and the cancellation check
        while not self._stop_event.wait(self.interval_s):
            try:
                self.callback()
            except Exception:
                logger.exception("ticker %s callback failed", self.name)
