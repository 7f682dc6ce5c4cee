"""
WAV File Playback.

File-based transport: decodes a PCM WAV into memory and exposes a
read-only playback clock plus the sample window at the current position.
"""

from __future__ import annotations

import time
import wave
from pathlib import Path
from typing import Callable, Optional, Union
import numpy as np
from numpy.typing import NDArray
from loguru import logger

from reactive_engine.audio.analyser import AudioAnalyser
from reactive_engine.core.errors import InvalidConfiguration
from reactive_engine.pipeline.transport import PlaybackTransport

_PCM_DTYPES = {1: np.uint8, 2: np.int16, 4: np.int32}


def load_wav(path: Union[str, Path]) -> tuple[NDArray[np.float32], int]:
    """
    Load a PCM WAV file as mono float32 in [-1, 1].

    Returns:
        (samples, sample_rate)
    """
    path = Path(path)
    if not path.exists():
        raise InvalidConfiguration(f"WAV file not found: {path}")

    try:
        with wave.open(str(path), "rb") as wav_file:
            channels = wav_file.getnchannels()
            sample_width = wav_file.getsampwidth()
            sample_rate = wav_file.getframerate()
            raw = wav_file.readframes(wav_file.getnframes())
    except (wave.Error, EOFError) as e:
        raise InvalidConfiguration(f"Unreadable WAV file {path}: {e}") from e

    dtype = _PCM_DTYPES.get(sample_width)
    if dtype is None:
        raise InvalidConfiguration(f"Unsupported sample width {sample_width * 8} bits in {path}")

    data = np.frombuffer(raw, dtype=dtype).astype(np.float32)
    if sample_width == 1:
        data = (data - 128.0) / 128.0
    else:
        data /= float(np.iinfo(dtype).max) + 1.0

    if channels > 1:
        data = data.reshape(-1, channels).mean(axis=1)

    logger.info(
        f"Loaded {path.name}: {len(data) / sample_rate:.1f}s, {sample_rate}Hz, {channels}ch"
    )
    return data.astype(np.float32), sample_rate


class WaveFilePlayback(PlaybackTransport):
    """
    In-memory WAV playback clock.

    Time advances with the wall clock once started (`realtime=True`), or
    only through advance() for offline, faster-than-realtime analysis.
    """

    def __init__(
        self,
        samples: NDArray[np.float32],
        sample_rate: int,
        realtime: bool = False,
        clock: Optional[Callable[[], float]] = None,
    ):
        if sample_rate <= 0:
            raise InvalidConfiguration(f"sample_rate must be positive, got {sample_rate}")
        self.samples = np.asarray(samples, dtype=np.float32)
        self.sample_rate = sample_rate
        self.realtime = realtime
        self._clock = clock or time.monotonic

        self._position = 0.0
        self._started_at: Optional[float] = None

    @classmethod
    def from_file(cls, path: Union[str, Path], realtime: bool = False) -> WaveFilePlayback:
        samples, sample_rate = load_wav(path)
        return cls(samples, sample_rate, realtime=realtime)

    @property
    def duration_seconds(self) -> float:
        return len(self.samples) / self.sample_rate

    def start(self):
        if self.realtime:
            self._started_at = self._clock() - self._position

    def advance(self, dt: float):
        """Move the offline playhead forward by `dt` seconds."""
        if not self.realtime:
            self._position = min(self.duration_seconds, self._position + max(0.0, dt))

    def seek(self, position_seconds: float):
        self._position = min(self.duration_seconds, max(0.0, position_seconds))
        if self.realtime and self._started_at is not None:
            self._started_at = self._clock() - self._position

    def current_time_seconds(self) -> float:
        if self.realtime and self._started_at is not None:
            return min(self.duration_seconds, self._clock() - self._started_at)
        return self._position

    def is_ended(self) -> bool:
        return self.current_time_seconds() >= self.duration_seconds

    def feed(self, analyser: AudioAnalyser):
        """Push the fft_size samples ending at the playhead."""
        end = int(self.current_time_seconds() * self.sample_rate)
        start = max(0, end - analyser.fft_size)
        if end > start:
            analyser.push(self.samples[start:end])
