"""
Audio Analysis Node.

Handles:
- Buffering raw mono samples pushed by the transport
- Windowed FFT with temporal smoothing (decibel-normalized bins)
- Time-domain snapshots for scope/waveform views
"""

from __future__ import annotations

import threading
import numpy as np
from numpy.typing import NDArray
from scipy import signal
from loguru import logger

from reactive_engine.core.errors import InvalidConfiguration


def _is_power_of_two(n: int) -> bool:
    return n >= 2 and (n & (n - 1)) == 0


class AudioAnalyser:
    """
    Frequency / time-domain analysis over the most recent samples.

    Mirrors a browser AnalyserNode: `fft_size` samples are windowed
    (Blackman), transformed, smoothed across calls and mapped from
    [min_decibels, max_decibels] to [0, 1].

    Guarantees:
    - Reads never block on the audio thread for longer than a copy
    - Silence (nothing pushed yet) yields all-zero data
    - Thread-safe push from a capture callback
    """

    def __init__(
        self,
        fft_size: int = 1024,
        smoothing_time_constant: float = 0.8,
        min_decibels: float = -100.0,
        max_decibels: float = -30.0,
    ):
        """
        Initialize analyser.

        Args:
            fft_size: Window length in samples (power of two)
            smoothing_time_constant: Weight of the previous spectrum (0-1)
            min_decibels: Level mapped to 0
            max_decibels: Level mapped to 1
        """
        if not _is_power_of_two(fft_size):
            raise InvalidConfiguration(f"fft_size must be a power of two, got {fft_size}")
        if not (0.0 <= smoothing_time_constant < 1.0):
            raise InvalidConfiguration(
                f"smoothing_time_constant must be in [0, 1), got {smoothing_time_constant}"
            )
        if min_decibels >= max_decibels:
            raise InvalidConfiguration(
                f"min_decibels ({min_decibels}) must be below max_decibels ({max_decibels})"
            )

        self.fft_size = fft_size
        self.smoothing_time_constant = smoothing_time_constant
        self.min_decibels = min_decibels
        self.max_decibels = max_decibels

        # Ring buffer of the latest fft_size samples
        self._ring = np.zeros(fft_size, dtype=np.float32)
        self._write_index = 0
        self._samples_seen = 0
        self._lock = threading.Lock()

        # Precomputed analysis state
        self._window = signal.get_window("blackman", fft_size, fftbins=False).astype(np.float32)
        self._frame = np.zeros(fft_size, dtype=np.float32)
        self._smoothed = np.zeros(fft_size // 2, dtype=np.float64)

    @property
    def frequency_bin_count(self) -> int:
        return self.fft_size // 2

    @property
    def has_data(self) -> bool:
        return self._samples_seen > 0

    def push(self, samples: NDArray[np.float32]):
        """
        Append raw samples (mono, or samples x channels mixed down).

        Called by the transport / capture callback.
        """
        data = np.asarray(samples, dtype=np.float32)
        if data.ndim > 1:
            data = data.mean(axis=1)
        if data.size == 0:
            return
        data = np.nan_to_num(data, nan=0.0, posinf=0.0, neginf=0.0)

        if data.size >= self.fft_size:
            data = data[-self.fft_size:]

        with self._lock:
            n = data.size
            end = self._write_index + n
            if end <= self.fft_size:
                self._ring[self._write_index:end] = data
            else:
                split = self.fft_size - self._write_index
                self._ring[self._write_index:] = data[:split]
                self._ring[:n - split] = data[split:]
            self._write_index = end % self.fft_size
            self._samples_seen += n

    def reset(self):
        """Forget buffered samples and smoothing history."""
        with self._lock:
            self._ring.fill(0.0)
            self._write_index = 0
            self._samples_seen = 0
        self._smoothed.fill(0.0)
        logger.debug("Analyser reset")

    def _copy_latest(self, out: NDArray[np.float32]):
        """Copy the ring buffer into `out` in chronological order."""
        with self._lock:
            head = self.fft_size - self._write_index
            out[:head] = self._ring[self._write_index:]
            out[head:] = self._ring[:self._write_index]

    def get_time_domain_data(self, out: NDArray[np.float32]) -> NDArray[np.float32]:
        """
        Write the latest len(out) samples into `out`.

        Returns:
            `out`, values nominally in [-1, 1]
        """
        n = len(out)
        if n > self.fft_size:
            raise InvalidConfiguration(
                f"Requested {n} time-domain samples, analyser holds {self.fft_size}"
            )
        if not self.has_data:
            out.fill(0.0)
            return out

        self._copy_latest(self._frame)
        out[:] = self._frame[self.fft_size - n:]
        return out

    def get_frequency_data(self, out: NDArray[np.float32]) -> NDArray[np.float32]:
        """
        Write len(out) normalized frequency bins into `out`.

        Returns:
            `out`, values in [0, 1]
        """
        n = len(out)
        if n > self.frequency_bin_count:
            raise InvalidConfiguration(
                f"Requested {n} bins, analyser provides {self.frequency_bin_count}"
            )
        if not self.has_data:
            out.fill(0.0)
            return out

        self._copy_latest(self._frame)
        self._frame *= self._window
        magnitude = np.abs(np.fft.rfft(self._frame))[:self.frequency_bin_count] / self.fft_size

        tau = self.smoothing_time_constant
        self._smoothed *= tau
        self._smoothed += (1.0 - tau) * magnitude

        with np.errstate(divide="ignore"):
            decibels = 20.0 * np.log10(self._smoothed[:n])
        scaled = (decibels - self.min_decibels) / (self.max_decibels - self.min_decibels)
        scaled = np.nan_to_num(scaled, nan=0.0, neginf=0.0, posinf=1.0)
        np.clip(scaled, 0.0, 1.0, out=scaled)
        out[:] = scaled
        return out

