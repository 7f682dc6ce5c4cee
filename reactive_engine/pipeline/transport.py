"""
Base class for playback transports.

The transport owns playback; the engine only reads it. To add a transport:
1. Inherit from PlaybackTransport
2. Implement current_time_seconds() and is_ended()
3. Optionally override feed() to push fresh samples into the analyser

Example implementation:
    class FixedTimeTransport(PlaybackTransport):
        def __init__(self, t):
            self.t = t

        def current_time_seconds(self) -> float:
            return self.t

        def is_ended(self) -> bool:
            return False
"""
from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

from reactive_engine.audio.analyser import AudioAnalyser


class PlaybackTransport(ABC):
    """Read-only view of the playback collaborator.

    current_time_seconds() is monotonic while playing but may jump backward
    on a seek.
    """

    @abstractmethod
    def current_time_seconds(self) -> float:
        """Current playback position in seconds."""
        pass

    @abstractmethod
    def is_ended(self) -> bool:
        """True once playback reached its end."""
        pass

    def feed(self, analyser: AudioAnalyser) -> None:
        """Push the samples for the current position into `analyser`.

        Transports whose samples arrive on their own (e.g. a capture
        callback) leave this as a no-op.
        """
        return None


class ElapsedTimeClock(PlaybackTransport):
    """Wall-clock elapsed time since start().

    Used when the audio source cannot report its own position (live input,
    streams): reveals and cues then follow time since playback started.
    """

    def __init__(
        self,
        duration_seconds: Optional[float] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.duration_seconds = duration_seconds
        self._clock = clock or time.monotonic
        self._start: Optional[float] = None

    def start(self):
        self._start = self._clock()

    def current_time_seconds(self) -> float:
        if self._start is None:
            return 0.0
        return self._clock() - self._start

    def is_ended(self) -> bool:
        if self.duration_seconds is None or self._start is None:
            return False
        return self.current_time_seconds() >= self.duration_seconds
