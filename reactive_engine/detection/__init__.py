"""
Event Detection Module.

Responsibilities:
- Reduce sample buffers to a scalar
- Turn the scalar series into single-tick event pulses
"""

from .event_detector import ScalarEventDetector
from .scalar_tracker import EnergyTracker
