"""
Scalar Moving-Average Event Detector.

Turns one noisy scalar per tick into single-tick event pulses, used to
trigger discrete visual transitions (e.g. a cube roll).

Algorithm:
    w   = alpha ** (dt_ms / window_ms)          # frame-rate independent
    fire  if sample > avg + threshold_delta and refractory elapsed
    avg = w * avg + (1 - w) * sample
"""

from __future__ import annotations

import math
import time
from typing import Callable, Optional
from loguru import logger

from reactive_engine.core.easing import clip, ease_in_out
from reactive_engine.core.errors import InvalidConfiguration


class ScalarEventDetector:
    """
    Moving-average / threshold onset detector with a refractory period.

    Guarantees:
    - Two consecutive events are at least `refractory_ms` apart
    - Non-finite samples are treated as 0, never reach the average
    - step() returns True on exactly the tick an event fires
    """

    def __init__(
        self,
        alpha: float = 0.65,
        window_ms: float = 150.0,
        threshold_delta: float = 0.1,
        refractory_ms: float = 500.0,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize detector.

        Args:
            alpha: Weight kept by the average after `window_ms` (0 < alpha < 1)
            window_ms: Reference interval the smoothing is normalized against
            threshold_delta: How far above the average a sample must be to fire
            refractory_ms: Minimum time between two events
            clock: Seconds clock used when step() is not given a time (default: time.monotonic)
        """
        if not (0.0 < alpha < 1.0):
            raise InvalidConfiguration(f"alpha must be in (0, 1), got {alpha}")
        if not math.isfinite(window_ms) or window_ms <= 0:
            raise InvalidConfiguration(f"window_ms must be positive, got {window_ms}")
        if not math.isfinite(threshold_delta) or threshold_delta < 0:
            raise InvalidConfiguration(f"threshold_delta must be non-negative, got {threshold_delta}")
        if not math.isfinite(refractory_ms) or refractory_ms < 0:
            raise InvalidConfiguration(f"refractory_ms must be non-negative, got {refractory_ms}")

        self.alpha = alpha
        self.window_ms = window_ms
        self.threshold_delta = threshold_delta
        self.refractory_ms = refractory_ms
        self._clock = clock or time.monotonic

        # State
        self._avg: float = 0.0
        self._last_step_ms: Optional[float] = None
        self._last_event_ms: Optional[float] = None
        self._now_ms: Optional[float] = None
        self._fired: bool = False

        self.event_count: int = 0

    def _clock_ms(self) -> float:
        return self._clock() * 1000.0

    def step(self, sample: float, now_ms: Optional[float] = None) -> bool:
        """
        Feed one sample.

        Args:
            sample: Scalar for this tick
            now_ms: Tick time in milliseconds (default: the detector's clock)

        Returns:
            True if an event fired on this tick
        """
        if now_ms is None or not math.isfinite(now_ms):
            now_ms = self._clock_ms()
        if not math.isfinite(sample):
            sample = 0.0

        # Time never runs backwards for the detector
        if self._now_ms is not None and now_ms < self._now_ms:
            now_ms = self._now_ms
        self._now_ms = now_ms

        refractory_elapsed = (
            self._last_event_ms is None
            or now_ms - self._last_event_ms >= self.refractory_ms
        )
        fired = refractory_elapsed and sample > self._avg + self.threshold_delta

        if self._last_step_ms is None:
            weight = 0.0
        else:
            dt_ms = now_ms - self._last_step_ms
            weight = self.alpha ** (dt_ms / self.window_ms)
        self._avg = weight * self._avg + (1.0 - weight) * sample
        self._last_step_ms = now_ms

        if fired:
            self._last_event_ms = now_ms
            self.event_count += 1
            logger.debug(f"Event #{self.event_count} at {now_ms:.1f}ms (sample={sample:.3f})")

        self._fired = fired
        return fired

    @property
    def fired(self) -> bool:
        """Whether the most recent step() fired."""
        return self._fired

    @property
    def average(self) -> float:
        return self._avg

    @property
    def time_since_last_event_ms(self) -> float:
        """Milliseconds from the last event to the latest step (inf before the first event)."""
        if self._last_event_ms is None or self._now_ms is None:
            return math.inf
        return self._now_ms - self._last_event_ms

    def transition_progress(self, duration_ms: Optional[float] = None) -> float:
        """
        Eased progress of the transition started by the last event.

        Args:
            duration_ms: Transition length (default: half the refractory period)

        Returns:
            Value in [0, 1]; 1 once the transition is over (or before any event)
        """
        if duration_ms is None:
            duration_ms = self.refractory_ms / 2.0
        if duration_ms <= 0:
            return 1.0
        return ease_in_out(clip(self.time_since_last_event_ms / duration_ms))

    def reset(self):
        """Forget average and event history."""
        self._avg = 0.0
        self._last_step_ms = None
        self._last_event_ms = None
        self._now_ms = None
        self._fired = False
