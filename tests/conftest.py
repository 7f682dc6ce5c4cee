"""Shared fixtures: fake clocks, a scriptable transport, WAV writer, log capture."""

from __future__ import annotations

import wave
from pathlib import Path
from typing import List, Optional

import numpy as np
import pytest
from loguru import logger

from reactive_engine.audio.analyser import AudioAnalyser
from reactive_engine.pipeline.transport import PlaybackTransport


class FakeClock:
    """Seconds clock that only moves when told to."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float):
        self.now += seconds


class FakeTransport(PlaybackTransport):
    """Scriptable playback collaborator that records how the engine reads it."""

    def __init__(self, time_seconds: float = 0.0):
        self.time_seconds = time_seconds
        self.ended = False
        self.level: Optional[float] = None
        self.calls: List[str] = []

    def current_time_seconds(self) -> float:
        self.calls.append("current_time")
        return self.time_seconds

    def is_ended(self) -> bool:
        self.calls.append("is_ended")
        return self.ended

    def feed(self, analyser: AudioAnalyser) -> None:
        self.calls.append("feed")
        if self.level is not None:
            analyser.push(np.full(analyser.fft_size, self.level, dtype=np.float32))


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def log_messages():
    """Collect '<LEVEL> <message>' lines emitted through loguru."""
    messages: List[str] = []
    handler_id = logger.add(lambda m: messages.append(m.rstrip("\n")), level="DEBUG", format="{level} {message}")
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def make_wav(tmp_path: Path):
    """Write integer PCM frames to a WAV file and return its path."""

    def _make(
        frames: np.ndarray,
        sample_rate: int = 8000,
        sample_width: int = 2,
        name: str = "track.wav",
    ) -> Path:
        frames = np.asarray(frames)
        channels = 1 if frames.ndim == 1 else frames.shape[1]
        path = tmp_path / name
        with wave.open(str(path), "wb") as wav_file:
            wav_file.setnchannels(channels)
            wav_file.setsampwidth(sample_width)
            wav_file.setframerate(sample_rate)
            wav_file.writeframes(frames.tobytes())
        return path

    return _make
