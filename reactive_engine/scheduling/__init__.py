"""
Scheduling Module.

Responsibilities:
- Cue table validation and time-based cue resolution
- One-shot reveal latches and letter-by-letter text reveals
- Palette cycling
"""

from .cue_scheduler import CueTable, CueScheduler
from .letter_reveal import LetterReveal
from .palette_cycler import PaletteCycler
