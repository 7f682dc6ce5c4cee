"""
Live Audio Capture.

Handles:
- Microphone / line-in stream capture
- Feeding captured blocks into the analyser
- Elapsed-time playback clock for live sessions
"""

from __future__ import annotations

import time
from typing import Callable, Optional
import numpy as np
from numpy.typing import NDArray
from loguru import logger

from reactive_engine.audio.analyser import AudioAnalyser
from reactive_engine.pipeline.transport import PlaybackTransport

try:
    import sounddevice as sd
except (ImportError, OSError):
    sd = None
    logger.warning("sounddevice not available, live capture disabled")


class LiveAudioInput(PlaybackTransport):
    """
    Live capture transport.

    The capture callback runs on the audio thread and only pushes into the
    analyser (which locks). Playback time is the wall-clock time since
    start(); the session ends when stop() is called.
    """

    def __init__(
        self,
        analyser: AudioAnalyser,
        sample_rate: int = 48000,
        chunk_size: int = 1024,
        device_index: Optional[int] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize live input.

        Args:
            analyser: Analyser receiving captured samples
            sample_rate: Capture sample rate in Hz
            chunk_size: Samples per capture block
            device_index: Input device index (None for default)
        """
        self.analyser = analyser
        self.sample_rate = sample_rate
        self.chunk_size = chunk_size
        self.device_index = device_index
        self._clock = clock or time.monotonic

        self._stream = None
        self._is_running = False
        self._started_at: Optional[float] = None
        self._stopped_at: Optional[float] = None
        self._overflows = 0

    def start(self) -> bool:
        """
        Start capture.

        Returns:
            True if started successfully
        """
        if sd is None:
            logger.error("sounddevice not available")
            return False

        if self._is_running:
            return True

        try:
            self._stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=1,
                blocksize=self.chunk_size,
                device=self.device_index,
                dtype=np.float32,
                callback=self._audio_callback,
            )
            self._stream.start()
        except Exception as e:
            logger.error(f"Failed to start audio capture: {e}")
            self._stream = None
            return False

        self._is_running = True
        self._started_at = self._clock()
        self._stopped_at = None
        logger.info(f"Audio capture started: {self.sample_rate}Hz")
        return True

    def stop(self):
        """Stop capture; ends the live session."""
        if self._stream is not None:
            self._stream.stop()
            self._stream.close()
            self._stream = None
        if self._is_running:
            self._stopped_at = self._clock()
            logger.info(f"Audio capture stopped ({self._overflows} overflows)")
        self._is_running = False

    def _audio_callback(
        self,
        indata: NDArray[np.float32],
        frames: int,
        time_info,
        status,
    ):
        """Callback for audio stream."""
        if status:
            self._overflows += 1
            logger.warning(f"Audio stream status: {status}")
        self.analyser.push(indata[:frames])

    @property
    def is_running(self) -> bool:
        return self._is_running

    def current_time_seconds(self) -> float:
        if self._started_at is None:
            return 0.0
        end = self._stopped_at if self._stopped_at is not None else self._clock()
        return end - self._started_at

    def is_ended(self) -> bool:
        return self._stopped_at is not None
