"""
Playback Phase Controller.

    IDLE --begin()--> ENGAGED --mark_ended() / ended flag--> FINISHED

FINISHED is terminal. Polling is subscribed on entering ENGAGED and
released synchronously on leaving it; a new session needs a new controller.
"""

from __future__ import annotations

from typing import Optional
from loguru import logger

from reactive_engine.core.contracts import PlaybackPhase
from reactive_engine.pipeline.tick_source import PollingHandle, TickCallback, TickSource


class PlaybackPhaseController:
    """
    Gates analysis/scheduling on the playback phase.

    Guarantees:
    - At most one polling handle, owned while ENGAGED only
    - No tick reaches `on_tick` after FINISHED is entered
    - Every call after FINISHED is a no-op
    """

    def __init__(self, tick_source: TickSource, on_tick: TickCallback):
        """
        Initialize controller.

        Args:
            tick_source: External clock delivering ticks
            on_tick: Callback run on every tick while ENGAGED
        """
        self._tick_source = tick_source
        self._on_tick = on_tick
        self._phase = PlaybackPhase.IDLE
        self._handle: Optional[PollingHandle] = None

    @property
    def phase(self) -> PlaybackPhase:
        return self._phase

    @property
    def is_engaged(self) -> bool:
        return self._phase == PlaybackPhase.ENGAGED

    @property
    def is_polling(self) -> bool:
        return self._handle is not None and self._handle.active

    def begin(self) -> bool:
        """
        IDLE -> ENGAGED, start polling.

        Returns:
            True if the transition happened
        """
        if self._phase != PlaybackPhase.IDLE:
            logger.debug(f"begin() ignored in phase {self._phase.value}")
            return False

        self._phase = PlaybackPhase.ENGAGED
        self._handle = self._tick_source.subscribe(self._deliver)
        logger.info("Playback engaged, polling started")
        return True

    def mark_ended(self) -> bool:
        """
        ENGAGED -> FINISHED, stop polling.

        Returns:
            True if the transition happened
        """
        if self._phase != PlaybackPhase.ENGAGED:
            logger.debug(f"mark_ended() ignored in phase {self._phase.value}")
            return False

        self._phase = PlaybackPhase.FINISHED
        self._release()
        logger.info("Playback finished, polling stopped")
        return True

    def observe_ended(self, ended: bool) -> bool:
        """Feed the transport's ended flag."""
        if ended:
            return self.mark_ended()
        return False

    def teardown(self):
        """External teardown from any phase; releases polling."""
        if self._phase == PlaybackPhase.FINISHED:
            return
        self._phase = PlaybackPhase.FINISHED
        self._release()
        logger.info("Playback torn down")

    def _release(self):
        if self._handle is not None:
            self._handle.release()
            self._handle = None

    def _deliver(self, now: float):
        if self._phase == PlaybackPhase.ENGAGED:
            self._on_tick(now)
