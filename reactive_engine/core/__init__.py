"""
Core contracts for the Reactive Cue Engine.

Tick execution order (NEVER REORDER):
1. Read the transport's ended flag
2. Sample the analysis node
3. Encode the sample buffer into the texture
4. Step the scalar event detector
5. Resolve cues and reveals from one playback time snapshot
6. Tick the palette cycler with the same snapshot
"""

from .contracts import (
    AnalyzerMode,
    PlaybackPhase,
    PaletteMode,
    CueEntry,
    RevealCue,
    PaletteState,
    FrameOutput,
)
from .errors import (
    ReactiveEngineError,
    InvalidConfiguration,
    NoDefaultCue,
    ValueOutOfRange,
    NonFiniteSample,
)
