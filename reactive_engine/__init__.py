"""
Reactive Cue Engine

Audio analysis and cue scheduling core for audio-reactive presentations.
Turns a live or file-based audio signal into GPU-ready texture data,
discrete onset events and audio-clock-driven cues (visual effect, text
reveals, palette cycling).

Top Priorities (strict order):
1. Deterministic, clock-driven behavior
2. Total, allocation-free per-tick operations
3. Failing loudly at startup, never silently at tick time
4. No stray timers after a session ends
"""

__version__ = "0.1.0"
__author__ = "Reactive Cue Engine Team"
