"""
Palette Cycler.

Chooses the active color palette from a fixed, ordered list and exposes a
blend weight for cross-fading into the next one.
"""

from __future__ import annotations

import math
from typing import List, Optional, Sequence
from loguru import logger

from reactive_engine.core.contracts import PaletteState
from reactive_engine.core.errors import InvalidConfiguration


class PaletteCycler:
    """
    Time- or event-driven palette index.

    active_index  = (floor(t / interval) + offset) mod count
    blend_to_next = frac(t / interval)      (always 0 with a single palette)

    `offset` is bumped by advance() for event-driven cycling.
    """

    def __init__(
        self,
        palettes: Sequence[str],
        interval_seconds: float = 15.0,
    ):
        """
        Initialize cycler.

        Args:
            palettes: Ordered palette names
            interval_seconds: Time each palette stays active
        """
        if not palettes:
            raise InvalidConfiguration("Palette list is empty")
        if not math.isfinite(interval_seconds) or interval_seconds <= 0:
            raise InvalidConfiguration(f"interval_seconds must be positive, got {interval_seconds}")

        self.palettes: List[str] = list(palettes)
        self.interval_seconds = float(interval_seconds)
        self._offset = 0
        self._state = PaletteState(
            active_index=0,
            blend_to_next=0.0,
            active_palette=self.palettes[0],
            next_palette=self.palettes[1 % len(self.palettes)],
        )

    @property
    def palette_count(self) -> int:
        return len(self.palettes)

    def tick(
        self,
        elapsed_seconds: float,
        interval_seconds: Optional[float] = None,
    ) -> PaletteState:
        """
        Compute the palette state at `elapsed_seconds`.

        Args:
            elapsed_seconds: Playback (or wall-clock) time; non-finite or negative means 0
            interval_seconds: Override of the configured interval; ignored unless positive
        """
        interval = self.interval_seconds
        if interval_seconds is not None and math.isfinite(interval_seconds) and interval_seconds > 0:
            interval = interval_seconds

        if not math.isfinite(elapsed_seconds) or elapsed_seconds < 0:
            elapsed_seconds = 0.0

        count = self.palette_count
        ratio = elapsed_seconds / interval
        cycle = math.floor(ratio)

        state = self._state
        previous_index = state.active_index
        state.active_index = (cycle + self._offset) % count
        state.blend_to_next = 0.0 if count == 1 else ratio - cycle
        state.active_palette = self.palettes[state.active_index]
        state.next_palette = self.palettes[(state.active_index + 1) % count]

        if state.active_index != previous_index:
            logger.debug(f"Palette -> {state.active_palette} at {elapsed_seconds:.2f}s")
        return state

    def advance(self, steps: int = 1):
        """Shift the cycle by `steps` palettes (event-driven cycling)."""
        self._offset = (self._offset + steps) % self.palette_count

    @property
    def state(self) -> PaletteState:
        """Last computed state."""
        return self._state

    def reset(self):
        self._offset = 0
        self.tick(0.0)
