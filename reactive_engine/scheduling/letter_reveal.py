"""
Letter-by-letter text reveal driven by playback time.
"""

from __future__ import annotations

import math

from reactive_engine.core.errors import InvalidConfiguration


class LetterReveal:
    """Progressively reveals `text` after `trigger_time_seconds`.

    Every `interval_seconds` a fixed number of letters is added, chosen so
    the whole text is shown after roughly `reveal_duration_seconds`. The
    revealed length only grows; a backward seek does not hide letters again.
    """

    def __init__(
        self,
        trigger_time_seconds: float,
        text: str,
        reveal_duration_seconds: float,
        interval_seconds: float = 0.1,
    ):
        if not math.isfinite(trigger_time_seconds):
            raise InvalidConfiguration(f"Non-finite trigger time {trigger_time_seconds!r}")
        if not math.isfinite(reveal_duration_seconds) or reveal_duration_seconds <= 0:
            raise InvalidConfiguration(
                f"reveal_duration_seconds must be positive, got {reveal_duration_seconds}"
            )
        if not math.isfinite(interval_seconds) or interval_seconds <= 0:
            raise InvalidConfiguration(f"interval_seconds must be positive, got {interval_seconds}")

        self.trigger_time_seconds = trigger_time_seconds
        self.text = text
        self.reveal_duration_seconds = reveal_duration_seconds
        self.interval_seconds = interval_seconds

        intervals = reveal_duration_seconds / interval_seconds
        self.letters_per_interval = max(1, int(len(text) // intervals))
        self._revealed_length = 0

    def revealed_length(self, current_time_seconds: float) -> int:
        if math.isfinite(current_time_seconds) and current_time_seconds >= self.trigger_time_seconds:
            elapsed = current_time_seconds - self.trigger_time_seconds
            # round() absorbs float error on exact interval boundaries
            ticks = int(math.floor(round(elapsed / self.interval_seconds, 9)))
            length = min(len(self.text), ticks * self.letters_per_interval)
            self._revealed_length = max(self._revealed_length, length)
        return self._revealed_length

    def revealed_text(self, current_time_seconds: float) -> str:
        return self.text[:self.revealed_length(current_time_seconds)]

    @property
    def current_text(self) -> str:
        """Latched prefix as of the last evaluation."""
        return self.text[:self._revealed_length]

    @property
    def complete(self) -> bool:
        return self._revealed_length >= len(self.text)

    def reset(self):
        self._revealed_length = 0
