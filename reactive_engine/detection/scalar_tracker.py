"""
Scalar Trackers.

Reduce a SampleBuffer to the single scalar fed to the event detector.
"""

from __future__ import annotations

import numpy as np

from reactive_engine.core.contracts import SampleBuffer
from reactive_engine.core.errors import InvalidConfiguration


class EnergyTracker:
    """
    Mean absolute amplitude over a band of the sample buffer.

    The band is given as fractions of the buffer length so it survives
    buffer size changes; [0.0, 0.1) is roughly the bass end of an FFT view.
    The result is normalized by `max_amplitude` into [0, 1].
    """

    def __init__(
        self,
        low_fraction: float = 0.0,
        high_fraction: float = 0.1,
        max_amplitude: float = 1.0,
    ):
        if not (0.0 <= low_fraction < high_fraction <= 1.0):
            raise InvalidConfiguration(
                f"Band must satisfy 0 <= low < high <= 1, got [{low_fraction}, {high_fraction})"
            )
        if max_amplitude <= 0:
            raise InvalidConfiguration(f"max_amplitude must be positive, got {max_amplitude}")

        self.low_fraction = low_fraction
        self.high_fraction = high_fraction
        self.max_amplitude = max_amplitude
        self._value = 0.0

    def update(self, samples: SampleBuffer) -> float:
        n = len(samples)
        if n == 0:
            self._value = 0.0
            return self._value

        lo = int(self.low_fraction * n)
        hi = max(lo + 1, int(np.ceil(self.high_fraction * n)))
        band = samples[lo:hi]
        value = float(np.mean(np.abs(band))) / self.max_amplitude
        self._value = value if np.isfinite(value) else 0.0
        return self._value

    def get(self) -> float:
        """Last computed value."""
        return self._value
