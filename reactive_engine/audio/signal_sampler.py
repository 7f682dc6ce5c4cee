"""
Signal Sampler.

Reads the analysis node once per tick and fills a fixed-length,
amplitude-bounded SampleBuffer in place.
"""

from __future__ import annotations

import numpy as np
from loguru import logger

from reactive_engine.audio.analyser import AudioAnalyser, _is_power_of_two
from reactive_engine.core.contracts import AnalyzerMode, SampleBuffer
from reactive_engine.core.errors import InvalidConfiguration


class SignalSampler:
    """
    Per-tick sampler over an AudioAnalyser.

    FFT mode reads `buffer_size` frequency bins in [0, 1]; waveform mode
    reads `buffer_size` time-domain samples in [-1, 1]. Both are clipped to
    [-1, 1] and scaled by `max_amplitude`.

    Guarantees:
    - sample() never blocks and never raises
    - No data yet means every slot is 0
    - The buffer is allocated once and refilled in place
    """

    def __init__(
        self,
        analyser: AudioAnalyser,
        buffer_size: int = 512,
        max_amplitude: float = 1.0,
        mode: AnalyzerMode = AnalyzerMode.FFT,
    ):
        """
        Initialize sampler.

        Args:
            analyser: Analysis node fed by the transport
            buffer_size: Number of samples per tick (power of two)
            max_amplitude: Output bound, must be positive
            mode: FFT (frequency bins) or WAVEFORM (time domain)
        """
        if not _is_power_of_two(buffer_size):
            raise InvalidConfiguration(f"buffer_size must be a power of two, got {buffer_size}")
        if not np.isfinite(max_amplitude) or max_amplitude <= 0:
            raise InvalidConfiguration(f"max_amplitude must be positive, got {max_amplitude}")
        if not isinstance(mode, AnalyzerMode):
            raise InvalidConfiguration(f"Unknown analyzer mode: {mode!r}")

        if mode == AnalyzerMode.FFT:
            capacity = analyser.frequency_bin_count
        elif mode == AnalyzerMode.WAVEFORM:
            capacity = analyser.fft_size
        else:
            raise InvalidConfiguration(f"Unhandled analyzer mode: {mode!r}")

        if buffer_size > capacity:
            raise InvalidConfiguration(
                f"buffer_size {buffer_size} exceeds analyser capacity {capacity} in {mode.value} mode"
            )

        self.analyser = analyser
        self.buffer_size = buffer_size
        self.max_amplitude = float(max_amplitude)
        self.mode = mode

        self._buffer = np.zeros(buffer_size, dtype=np.float32)
        self._view = self._buffer.view()
        self._view.flags.writeable = False

        logger.debug(
            f"Signal sampler ready: {buffer_size} samples, mode={mode.value}, "
            f"max_amplitude={self.max_amplitude}"
        )

    def sample(self) -> SampleBuffer:
        """
        Refill and return the sample buffer.

        Returns:
            Read-only view, valid until the next call
        """
        if self.mode == AnalyzerMode.FFT:
            self.analyser.get_frequency_data(self._buffer)
        elif self.mode == AnalyzerMode.WAVEFORM:
            self.analyser.get_time_domain_data(self._buffer)

        np.nan_to_num(self._buffer, copy=False, nan=0.0, posinf=1.0, neginf=-1.0)
        np.clip(self._buffer, -1.0, 1.0, out=self._buffer)
        self._buffer *= self.max_amplitude
        return self._view

    @property
    def buffer(self) -> SampleBuffer:
        """Last sampled buffer (read-only)."""
        return self._view
