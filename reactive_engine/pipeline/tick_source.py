"""
Tick Sources.

The engine never owns a timer or a thread. An external clock (render loop,
fixed-rate loop, or a test) delivers ticks through a TickSource; consumers
hold a PollingHandle and release it to stop receiving ticks.
"""

from __future__ import annotations

import time
from typing import Callable, List, Optional
from loguru import logger

from reactive_engine.core.errors import InvalidConfiguration

TickCallback = Callable[[float], None]


class PollingHandle:
    """
    Subscription to a TickSource.

    release() is synchronous: no tick is delivered after it returns.
    Releasing twice is a no-op.
    """

    def __init__(self, source: TickSource, callback: TickCallback):
        self._source = source
        self._callback = callback
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def release(self):
        if not self._active:
            return
        self._active = False
        self._source._remove(self)

    def _deliver(self, now: float):
        if self._active:
            self._callback(now)


class TickSource:
    """Fan-out of external ticks to subscribed callbacks."""

    def __init__(self):
        self._handles: List[PollingHandle] = []

    def subscribe(self, callback: TickCallback) -> PollingHandle:
        handle = PollingHandle(self, callback)
        self._handles.append(handle)
        return handle

    def _remove(self, handle: PollingHandle):
        if handle in self._handles:
            self._handles.remove(handle)

    @property
    def subscriber_count(self) -> int:
        return len(self._handles)

    def fire(self, now: float) -> int:
        """
        Deliver one tick.

        Returns:
            Number of callbacks that received the tick
        """
        delivered = 0
        for handle in list(self._handles):
            if handle.active:
                handle._deliver(now)
                delivered += 1
        return delivered


class ManualTickSource(TickSource):
    """Tick source advanced explicitly, for offline runs and tests."""

    def __init__(self, start: float = 0.0):
        super().__init__()
        self.now = start
        self.ticks_fired = 0

    def advance(self, dt: float) -> int:
        self.now += dt
        self.ticks_fired += 1
        return self.fire(self.now)


class IntervalTickSource(TickSource):
    """
    Fixed-rate tick loop run on the caller's thread.

    run() returns once every subscriber has released its handle, the
    optional `should_stop` predicate turns true, or `duration` elapses.
    """

    def __init__(
        self,
        rate_hz: float = 60.0,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        super().__init__()
        if rate_hz <= 0:
            raise InvalidConfiguration(f"rate_hz must be positive, got {rate_hz}")
        self.rate_hz = rate_hz
        self.period = 1.0 / rate_hz
        self._clock = clock or time.perf_counter
        self._sleep = sleep or time.sleep
        self._stop_requested = False

    def stop(self):
        """Ask run() to return after the current tick."""
        self._stop_requested = True

    def run(
        self,
        duration: Optional[float] = None,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> int:
        """
        Run the loop.

        Returns:
            Number of ticks fired
        """
        self._stop_requested = False
        start = self._clock()
        next_tick = start
        ticks = 0
        logger.debug(f"Tick loop started at {self.rate_hz:.1f}Hz")

        while self._handles and not self._stop_requested:
            if should_stop is not None and should_stop():
                break
            now = self._clock()
            if duration is not None and now - start >= duration:
                break
            if now < next_tick:
                self._sleep(next_tick - now)
                now = self._clock()

            self.fire(now)
            ticks += 1

            next_tick += self.period
            if now - next_tick > self.period:
                # Fell behind; skip missed ticks rather than bursting
                next_tick = now + self.period

        logger.debug(f"Tick loop finished after {ticks} ticks")
        return ticks
