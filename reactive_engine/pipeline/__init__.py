"""
Main Pipeline Module.

Phase gating, tick sources, transports and the engine that sequences one
tick of analysis and scheduling.
"""

from .orchestrator import ReactiveEngine
from .phase_controller import PlaybackPhaseController
from .tick_source import TickSource, ManualTickSource, IntervalTickSource, PollingHandle
from .transport import PlaybackTransport, ElapsedTimeClock
