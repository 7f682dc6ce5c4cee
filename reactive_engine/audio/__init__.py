"""
Audio Processing Module.

Responsibilities:
- Frequency / time-domain analysis of pushed samples
- Per-tick sampling into a bounded buffer
- Fixed-point texture encoding for the render collaborator
- Live capture and WAV file playback adapters
"""

from .analyser import AudioAnalyser
from .signal_sampler import SignalSampler
from .texture_encoder import TextureEncoder
