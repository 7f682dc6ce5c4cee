"""
Engine Orchestrator.

Executes one tick of the analysis / scheduling pipeline in strict order:

1. Read the transport's ended flag (may finish the session)
2. Let the transport refresh the analyser, then sample it
3. Encode the sample buffer into the texture
4. Reduce to a scalar and step the event detector
5. Take ONE playback time snapshot; resolve cue, reveals, letter reveals
6. Tick the palette cycler with the same snapshot
"""

from __future__ import annotations

import dataclasses
import math
import time
from collections import deque
from typing import Dict, Optional
from loguru import logger

from reactive_engine.audio.analyser import AudioAnalyser
from reactive_engine.audio.signal_sampler import SignalSampler
from reactive_engine.audio.texture_encoder import TextureEncoder
from reactive_engine.config import EngineConfig
from reactive_engine.core.contracts import (
    EncodedTexture,
    EngineStats,
    FrameOutput,
    PaletteMode,
    PaletteState,
    PlaybackPhase,
    SampleBuffer,
)
from reactive_engine.detection.event_detector import ScalarEventDetector
from reactive_engine.detection.scalar_tracker import EnergyTracker
from reactive_engine.pipeline.phase_controller import PlaybackPhaseController
from reactive_engine.pipeline.tick_source import TickSource
from reactive_engine.pipeline.transport import PlaybackTransport
from reactive_engine.scheduling.cue_scheduler import CueScheduler, CueTable
from reactive_engine.scheduling.letter_reveal import LetterReveal
from reactive_engine.scheduling.palette_cycler import PaletteCycler


class ReactiveEngine:
    """
    Main engine.

    Coordinates all components on a single external tick.

    Guarantees:
    - Tick order is NEVER reordered
    - Cue, reveals and palette observe the same playback time snapshot
    - Configuration errors surface here, at construction, never in tick()
    - No tick is processed outside the ENGAGED phase
    """

    def __init__(
        self,
        transport: PlaybackTransport,
        tick_source: TickSource,
        config: Optional[EngineConfig] = None,
        analyser: Optional[AudioAnalyser] = None,
    ):
        """
        Initialize engine.

        Args:
            transport: Read-only playback clock (and sample feeder)
            tick_source: External clock delivering ticks
            config: Engine configuration
            analyser: Analysis node (built from config if None)
        """
        self.config = config or EngineConfig()
        self.transport = transport
        sampler_cfg = self.config.sampler
        detector_cfg = self.config.detector
        palette_cfg = self.config.palette

        # Audio
        self.analyser = analyser or AudioAnalyser(
            fft_size=sampler_cfg.fft_size,
            smoothing_time_constant=sampler_cfg.smoothing_time_constant,
            min_decibels=sampler_cfg.min_decibels,
            max_decibels=sampler_cfg.max_decibels,
        )
        self._sampler = SignalSampler(
            self.analyser,
            buffer_size=sampler_cfg.buffer_size,
            max_amplitude=sampler_cfg.max_amplitude,
            mode=sampler_cfg.analyzer_mode,
        )
        self._encoder = TextureEncoder(
            buffer_size=sampler_cfg.buffer_size,
            max_amplitude=sampler_cfg.max_amplitude,
        )

        # Detection
        self._tracker = EnergyTracker(
            low_fraction=detector_cfg.band_low,
            high_fraction=detector_cfg.band_high,
            max_amplitude=sampler_cfg.max_amplitude,
        )
        self._detector = ScalarEventDetector(
            alpha=detector_cfg.alpha,
            window_ms=detector_cfg.window_ms,
            threshold_delta=detector_cfg.threshold_delta,
            refractory_ms=detector_cfg.refractory_ms,
        )

        # Scheduling
        reveals = self.config.reveal_cues()
        self._scheduler = CueScheduler(
            CueTable.from_records(self.config.cues, allowed_ids=self.config.allowed_cue_ids),
            reveals=reveals,
        )
        self._letter_reveals: Dict[str, LetterReveal] = {
            reveal.reveal_id: LetterReveal(
                reveal.trigger_time_seconds,
                reveal.text,
                reveal.reveal_duration_seconds,
            )
            for reveal in reveals
            if reveal.text and reveal.reveal_duration_seconds > 0
        }
        self._palette_mode = palette_cfg.palette_mode
        self._palette = PaletteCycler(
            palette_cfg.palettes,
            interval_seconds=palette_cfg.interval_seconds,
        )

        # Phase
        self._phase = PlaybackPhaseController(tick_source, self._on_tick)

        # State
        self._tick_id = 0
        self._last_output: Optional[FrameOutput] = None
        self._event_pulse = False
        self._stats = EngineStats()
        self._latencies: deque = deque(maxlen=300)

        logger.info(
            f"Engine initialized: {len(self._scheduler.table)} cues, "
            f"{len(reveals)} reveals, {self._palette.palette_count} palettes"
        )

    # ============================================================
    # PHASE CONTROL
    # ============================================================

    @property
    def phase(self) -> PlaybackPhase:
        return self._phase.phase

    @property
    def is_polling(self) -> bool:
        return self._phase.is_polling

    def begin(self) -> bool:
        """Enter ENGAGED and start receiving ticks."""
        return self._phase.begin()

    def mark_ended(self) -> bool:
        """Enter FINISHED and stop receiving ticks."""
        finished = self._phase.mark_ended()
        if finished:
            self._log_summary()
        return finished

    def teardown(self):
        """Stop polling from any phase."""
        was_finished = self.phase == PlaybackPhase.FINISHED
        self._phase.teardown()
        if not was_finished:
            self._log_summary()

    def _on_tick(self, now: float):
        self.tick(now)

    # ============================================================
    # TICK
    # ============================================================

    def tick(self, now: Optional[float] = None) -> Optional[FrameOutput]:
        """
        Process a single tick.

        Args:
            now: External tick clock in seconds (default: time.perf_counter())

        Returns:
            FrameOutput, or None if the engine is not ENGAGED
        """
        if not self._phase.is_engaged:
            self._stats.ticks_ignored += 1
            return None

        tick_start = time.perf_counter()
        if now is None or not math.isfinite(now):
            now = tick_start

        # ============================================================
        # STEP 1: Transport ended?
        # ============================================================
        if self.transport.is_ended():
            self._event_pulse = False
            self.mark_ended()
            return None

        # ============================================================
        # STEP 2: Sample
        # ============================================================
        self.transport.feed(self.analyser)
        samples = self._sampler.sample()

        # ============================================================
        # STEP 3: Encode texture
        # ============================================================
        self._encoder.update(samples)

        # ============================================================
        # STEP 4: Event detection
        # ============================================================
        scalar = self._tracker.update(samples)
        pulse = self._detector.step(scalar, now_ms=now * 1000.0)
        self._event_pulse = pulse
        if pulse:
            self._stats.events_fired += 1
            if self._palette_mode == PaletteMode.EVENT:
                self._palette.advance()

        # ============================================================
        # STEP 5: Cues and reveals (single time snapshot)
        # ============================================================
        current_time = self.transport.current_time_seconds()
        cue_changed = self._scheduler.poll(current_time) is not None
        if cue_changed:
            self._stats.cue_changes += 1
        revealed = self._scheduler.update_reveals(current_time)
        revealed_text = {
            reveal_id: letters.revealed_text(current_time)
            for reveal_id, letters in self._letter_reveals.items()
        }

        # ============================================================
        # STEP 6: Palette (same snapshot)
        # ============================================================
        palette = self._palette.tick(current_time)

        latency_ms = (time.perf_counter() - tick_start) * 1000.0
        self._record_latency(latency_ms)
        self._tick_id += 1

        output = FrameOutput(
            tick_id=self._tick_id,
            timestamp=now,
            current_time_seconds=current_time,
            cue_id=self._scheduler.last_cue,
            cue_changed=cue_changed,
            event_pulse=pulse,
            time_since_last_event_ms=self._detector.time_since_last_event_ms,
            palette=dataclasses.replace(palette),
            revealed=revealed,
            revealed_text=revealed_text,
            latency_ms=latency_ms,
        )
        self._last_output = output
        return output

    def _record_latency(self, latency_ms: float):
        self._latencies.append(latency_ms)
        stats = self._stats
        stats.ticks_processed += 1
        stats.last_tick_latency_ms = latency_ms
        stats.mean_tick_latency_ms = sum(self._latencies) / len(self._latencies)
        stats.max_tick_latency_ms = max(stats.max_tick_latency_ms, latency_ms)

    def _log_summary(self):
        stats = self._stats
        logger.info(
            f"Session summary: {stats.ticks_processed} ticks, {stats.events_fired} events, "
            f"{stats.cue_changes} cue changes, mean tick {stats.mean_tick_latency_ms:.2f}ms, "
            f"max {stats.max_tick_latency_ms:.2f}ms"
        )

    # ============================================================
    # RENDER COLLABORATOR INTERFACE
    # ============================================================

    def get_encoded_texture(self) -> EncodedTexture:
        return self._encoder.texture

    def samples(self) -> SampleBuffer:
        return self._sampler.buffer

    @property
    def max_amplitude(self) -> float:
        return self._encoder.max_amplitude

    @property
    def detector(self) -> ScalarEventDetector:
        return self._detector

    def active_cue_id(self, current_time_seconds: Optional[float] = None) -> str:
        if current_time_seconds is None:
            current_time_seconds = self.transport.current_time_seconds()
        return self._scheduler.resolve_active(current_time_seconds)

    def is_revealed(self, reveal_id: str) -> bool:
        return self._scheduler.is_revealed_id(reveal_id)

    def revealed_text(self, reveal_id: str) -> str:
        letters = self._letter_reveals.get(reveal_id)
        if letters is None:
            return ""
        return letters.current_text

    def palette_state(self) -> PaletteState:
        return dataclasses.replace(self._palette.state)

    def event_pulse(self) -> bool:
        return self._event_pulse

    @property
    def last_output(self) -> Optional[FrameOutput]:
        return self._last_output

    @property
    def stats(self) -> EngineStats:
        return self._stats
