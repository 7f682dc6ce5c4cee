"""
Error taxonomy for the Reactive Cue Engine.

Only construction and configuration may raise. Per-tick operations sanitize
their inputs (clamping, substituting 0) and log instead of raising.
"""

from __future__ import annotations


class ReactiveEngineError(Exception):
    """Base class for all engine errors."""


class InvalidConfiguration(ReactiveEngineError):
    """Bad constructor parameters or configuration file contents."""


class NoDefaultCue(InvalidConfiguration):
    """Cue table has no entry at or before time zero."""


class ValueOutOfRange(ReactiveEngineError):
    """Amplitude outside [-max_amplitude, max_amplitude] beyond tolerance."""

    def __init__(self, value: float, max_amplitude: float):
        self.value = value
        self.max_amplitude = max_amplitude
        super().__init__(
            f"Value {value!r} exceeds max amplitude {max_amplitude!r}"
        )


class NonFiniteSample(ReactiveEngineError):
    """NaN or infinite sample passed to a strict encode."""

    def __init__(self, value: float):
        self.value = value
        super().__init__(f"Non-finite sample: {value!r}")
