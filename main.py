#!/usr/bin/env python3
"""
Reactive Cue Engine

Command-line runner: analyzes a WAV file or live input and logs the cue,
reveal, palette and event stream the render collaborator would receive.

Usage:
    python main.py --wav TRACK.wav [--config CONFIG_PATH] [--realtime]
    python main.py --live [--device DEVICE_INDEX] [--duration SECONDS]

Examples:
    python main.py --wav song.wav                  # offline, as fast as possible
    python main.py --wav song.wav --realtime       # wall-clock paced
    python main.py --live --duration 60            # microphone for one minute
"""

from __future__ import annotations

import argparse
import math
import sys
from pathlib import Path
from typing import Optional, Set

from loguru import logger

from reactive_engine.audio.analyser import AudioAnalyser
from reactive_engine.audio.capture import LiveAudioInput
from reactive_engine.audio.wave_file import WaveFilePlayback
from reactive_engine.config import EngineConfig, load_config
from reactive_engine.core.contracts import FrameOutput
from reactive_engine.core.errors import InvalidConfiguration
from reactive_engine.pipeline.orchestrator import ReactiveEngine
from reactive_engine.pipeline.tick_source import IntervalTickSource, ManualTickSource


# ============================================================
# LOGGING CONFIGURATION
# ============================================================

def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None):
    """Configure logging."""
    logger.remove()  # Remove default handler

    # Console output with colors
    logger.add(
        sys.stderr,
        level=log_level,
        format="<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{module}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>",
        colorize=True,
    )

    # File output
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            level="DEBUG",
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {module}:{line} | {message}",
            rotation="10 MB",
            retention="7 days",
        )


# ============================================================
# FRAME REPORTER
# ============================================================

class FrameReporter:
    """Logs what the render collaborator would act on."""

    def __init__(self):
        self._announced: Set[str] = set()
        self._last_palette: Optional[str] = None

    def report(self, output: Optional[FrameOutput]):
        if output is None:
            return

        t = output.current_time_seconds
        if output.event_pulse:
            logger.debug(f"[{t:7.2f}s] event pulse")

        for reveal_id, revealed in output.revealed.items():
            if revealed and reveal_id not in self._announced:
                self._announced.add(reveal_id)
                logger.info(f"[{t:7.2f}s] reveal '{reveal_id}'")

        palette = output.palette.active_palette
        if palette != self._last_palette:
            self._last_palette = palette
            logger.info(f"[{t:7.2f}s] palette {palette}")


# ============================================================
# RUNNERS
# ============================================================

def run_wav(config: EngineConfig, wav_path: str, realtime: bool) -> int:
    """Analyze a WAV file; offline runs are stepped, not slept."""
    playback = WaveFilePlayback.from_file(wav_path, realtime=realtime)
    reporter = FrameReporter()

    if realtime:
        ticks = IntervalTickSource(rate_hz=config.tick_rate_hz)
        engine = ReactiveEngine(playback, ticks, config)
        engine.begin()
        ticks.subscribe(lambda now: reporter.report(engine.last_output))
        playback.start()
        try:
            ticks.run(should_stop=lambda: not engine.is_polling)
        except KeyboardInterrupt:
            logger.info("Interrupted")
        finally:
            engine.teardown()
        return 0

    manual = ManualTickSource()
    engine = ReactiveEngine(playback, manual, config)
    engine.begin()
    dt = 1.0 / config.tick_rate_hz
    while engine.is_polling:
        playback.advance(dt)
        manual.advance(dt)
        reporter.report(engine.last_output)
    engine.teardown()
    return 0


def run_live(
    config: EngineConfig,
    device_index: Optional[int],
    duration: Optional[float],
) -> int:
    """Analyze live input until interrupted or `duration` elapses."""
    analyser = AudioAnalyser(
        fft_size=config.sampler.fft_size,
        smoothing_time_constant=config.sampler.smoothing_time_constant,
        min_decibels=config.sampler.min_decibels,
        max_decibels=config.sampler.max_decibels,
    )
    live = LiveAudioInput(analyser, device_index=device_index)
    ticks = IntervalTickSource(rate_hz=config.tick_rate_hz)
    engine = ReactiveEngine(live, ticks, config, analyser=analyser)
    reporter = FrameReporter()

    if not live.start():
        logger.error("Could not start live input")
        return 1

    engine.begin()
    ticks.subscribe(lambda now: reporter.report(engine.last_output))
    try:
        ticks.run(duration=duration, should_stop=lambda: not engine.is_polling)
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        live.stop()
        engine.teardown()
    return 0


# ============================================================
# ENTRY POINT
# ============================================================

def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Reactive Cue Engine - audio analysis and cue scheduling",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--wav", "-w",
        type=str,
        help="PCM WAV file to analyze",
    )
    source.add_argument(
        "--live",
        action="store_true",
        help="Analyze live input (microphone / line-in)",
    )

    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to configuration file (default: config/settings.yaml)",
    )

    parser.add_argument(
        "--realtime",
        action="store_true",
        help="Pace WAV analysis with the wall clock",
    )

    parser.add_argument(
        "--device", "-d",
        type=int,
        default=None,
        help="Input device index for --live (default: system default)",
    )

    parser.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Stop live analysis after this many seconds",
    )

    parser.add_argument(
        "--fps",
        type=float,
        default=None,
        help="Tick rate in Hz (overrides the config file)",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Optional log file path",
    )

    args = parser.parse_args()

    # Setup logging
    setup_logging(args.log_level, args.log_file)

    try:
        config = load_config(args.config)
        if args.fps is not None:
            if not math.isfinite(args.fps) or args.fps <= 0:
                raise InvalidConfiguration(f"--fps must be positive, got {args.fps}")
            config.tick_rate_hz = args.fps

        if args.live:
            return run_live(config, args.device, args.duration)
        return run_wav(config, args.wav, args.realtime)

    except InvalidConfiguration as e:
        logger.error(f"Configuration error: {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
