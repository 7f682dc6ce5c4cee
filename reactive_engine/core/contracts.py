"""
Core data contracts for the Reactive Cue Engine.

All components must adhere to these contracts for:
- Deterministic behavior
- Read-only snapshots handed to the render collaborator
- Temporal consistency across one tick
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Dict
import numpy as np
from numpy.typing import NDArray


# ============================================================
# ENUMERATIONS
# ============================================================

class AnalyzerMode(Enum):
    """Which view of the analysis node the sampler reads."""
    FFT = "fft"
    WAVEFORM = "waveform"


class PlaybackPhase(Enum):
    """Session phase, owned by PlaybackPhaseController."""
    IDLE = "idle"
    ENGAGED = "engaged"
    FINISHED = "finished"


class PaletteMode(Enum):
    """What drives palette changes."""
    TIME = "time"    # playback time / interval
    EVENT = "event"  # every detected event advances one palette


# ============================================================
# TYPE ALIASES
# ============================================================

# Fixed-length float32 buffer, values in [-max_amplitude, max_amplitude].
SampleBuffer = NDArray[np.float32]

# float32 buffer of length N * 4: (x_hi, x_lo, y_hi, y_lo) per sample, each in [0, 1].
EncodedTexture = NDArray[np.float32]


# ============================================================
# CORE DATA STRUCTURES
# ============================================================

@dataclass(frozen=True)
class CueEntry:
    """
    A single entry of a cue table.

    `order` is the declaration index and breaks ties between entries that
    share a trigger time (last declared wins).
    """
    trigger_time_seconds: float
    cue_id: str
    order: int = 0


@dataclass(frozen=True)
class RevealCue:
    """A one-shot text/image reveal keyed to playback time."""
    reveal_id: str
    trigger_time_seconds: float

    # Optional letter-by-letter text reveal
    text: Optional[str] = None
    reveal_duration_seconds: float = 0.0


@dataclass
class PaletteState:
    """
    Currently active palette and cross-fade weight.

    Mutated only by PaletteCycler, read by the render collaborator.
    """
    active_index: int = 0
    blend_to_next: float = 0.0  # [0, 1)
    active_palette: str = ""
    next_palette: str = ""


@dataclass
class EngineStats:
    """Tick performance counters."""
    ticks_processed: int = 0
    ticks_ignored: int = 0
    last_tick_latency_ms: float = 0.0
    mean_tick_latency_ms: float = 0.0
    max_tick_latency_ms: float = 0.0
    events_fired: int = 0
    cue_changes: int = 0


# ============================================================
# RESULT TYPES
# ============================================================

@dataclass
class FrameOutput:
    """
    Output of a single engine tick, consumed by the render collaborator.
    """
    tick_id: int
    timestamp: float              # external tick clock value
    current_time_seconds: float   # playback time snapshot used by every stage

    # Cue scheduling
    cue_id: str
    cue_changed: bool = False

    # Event detection
    event_pulse: bool = False
    time_since_last_event_ms: float = float('inf')

    # Palette
    palette: PaletteState = field(default_factory=PaletteState)

    # Reveals
    revealed: Dict[str, bool] = field(default_factory=dict)
    revealed_text: Dict[str, str] = field(default_factory=dict)

    # Performance
    latency_ms: float = 0.0
