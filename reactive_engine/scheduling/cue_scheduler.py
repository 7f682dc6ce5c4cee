"""
Cue Scheduler.

Resolves which cue is active for a given playback time and latches
one-shot reveals.

Cue table rules:
- Sorted once at load, queried by binary search
- Must contain an entry at or before t = 0 (the default cue)
- Entries sharing a trigger time resolve to the last declared one
"""

from __future__ import annotations

import bisect
import math
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence
from loguru import logger

from reactive_engine.core.contracts import CueEntry, RevealCue
from reactive_engine.core.errors import InvalidConfiguration, NoDefaultCue


class CueTable:
    """
    Immutable, time-sorted cue table.
    """

    def __init__(self, entries: Sequence[CueEntry]):
        if not entries:
            raise NoDefaultCue("Cue table is empty")

        for entry in entries:
            if not math.isfinite(entry.trigger_time_seconds):
                raise InvalidConfiguration(
                    f"Cue '{entry.cue_id}' has non-finite trigger time {entry.trigger_time_seconds!r}"
                )
            if not isinstance(entry.cue_id, str) or not entry.cue_id:
                raise InvalidConfiguration(f"Cue id must be a non-empty string, got {entry.cue_id!r}")

        # sorted() is stable, so ties keep declaration order
        self._entries: List[CueEntry] = sorted(
            entries, key=lambda e: (e.trigger_time_seconds, e.order)
        )
        self._times: List[float] = [e.trigger_time_seconds for e in self._entries]

        if self._times[0] > 0:
            raise NoDefaultCue(
                f"Cue table needs an entry at or before 0s, earliest is {self._times[0]}s "
                f"('{self._entries[0].cue_id}')"
            )

    @classmethod
    def from_records(
        cls,
        records: Iterable[Mapping[str, Any]],
        allowed_ids: Optional[Iterable[str]] = None,
    ) -> CueTable:
        """
        Build a table from `{time, id}` records.

        Args:
            records: Declaration-ordered records
            allowed_ids: If given, the closed set of valid cue ids

        Raises:
            InvalidConfiguration: Malformed record or unknown id
            NoDefaultCue: No record at or before 0s
        """
        allowed = set(allowed_ids) if allowed_ids is not None else None
        entries: List[CueEntry] = []

        for order, record in enumerate(records):
            if not isinstance(record, Mapping) or "time" not in record or "id" not in record:
                raise InvalidConfiguration(f"Cue record #{order} must have 'time' and 'id': {record!r}")
            try:
                trigger = float(record["time"])
            except (TypeError, ValueError) as e:
                raise InvalidConfiguration(
                    f"Cue record #{order} has invalid time {record['time']!r}"
                ) from e
            cue_id = record["id"]
            if allowed is not None and cue_id not in allowed:
                raise InvalidConfiguration(
                    f"Cue record #{order} has unknown id {cue_id!r}; allowed: {sorted(allowed)}"
                )
            entries.append(CueEntry(trigger_time_seconds=trigger, cue_id=cue_id, order=order))

        return cls(entries)

    @property
    def entries(self) -> List[CueEntry]:
        return list(self._entries)

    @property
    def default(self) -> CueEntry:
        return self._entries[0]

    def __len__(self) -> int:
        return len(self._entries)

    def resolve_entry(self, current_time_seconds: float) -> CueEntry:
        """Entry with the greatest trigger time <= current time."""
        if not math.isfinite(current_time_seconds):
            return self._entries[0]
        idx = bisect.bisect_right(self._times, current_time_seconds) - 1
        if idx < 0:
            return self._entries[0]
        return self._entries[idx]

    def resolve(self, current_time_seconds: float) -> str:
        return self.resolve_entry(current_time_seconds).cue_id


class CueScheduler:
    """
    Resolves the active cue and latches reveals from playback time.

    Guarantees:
    - resolve_active() is a pure function of the time and the table
    - A latched reveal stays revealed until reset(), even across backward seeks
    """

    def __init__(
        self,
        table: CueTable,
        reveals: Optional[Sequence[RevealCue]] = None,
    ):
        """
        Initialize scheduler.

        Args:
            table: Validated cue table
            reveals: Named one-shot reveal cues
        """
        self.table = table
        self._reveals: Dict[str, RevealCue] = {}
        for reveal in reveals or []:
            if reveal.reveal_id in self._reveals:
                raise InvalidConfiguration(f"Duplicate reveal id '{reveal.reveal_id}'")
            if not math.isfinite(reveal.trigger_time_seconds):
                raise InvalidConfiguration(
                    f"Reveal '{reveal.reveal_id}' has non-finite trigger time"
                )
            self._reveals[reveal.reveal_id] = reveal

        # Latches
        self._latched_triggers: set = set()
        self._last_cue: Optional[str] = None

    @property
    def reveals(self) -> List[RevealCue]:
        return list(self._reveals.values())

    def resolve_active(self, current_time_seconds: float) -> str:
        return self.table.resolve(current_time_seconds)

    def poll(self, current_time_seconds: float) -> Optional[str]:
        """
        Resolve and report only changes.

        Returns:
            The new cue id if it differs from the previous poll, else None
        """
        cue_id = self.table.resolve(current_time_seconds)
        if cue_id == self._last_cue:
            return None
        self._last_cue = cue_id
        logger.info(f"Cue changed to {cue_id} at {current_time_seconds:.2f}s")
        return cue_id

    @property
    def last_cue(self) -> Optional[str]:
        return self._last_cue

    def is_revealed(self, current_time_seconds: float, trigger_time_seconds: float) -> bool:
        """
        One-way latch: True from the trigger time on, and stays True.
        """
        if trigger_time_seconds in self._latched_triggers:
            return True
        if math.isfinite(current_time_seconds) and current_time_seconds >= trigger_time_seconds:
            self._latched_triggers.add(trigger_time_seconds)
            return True
        return False

    def update_reveals(self, current_time_seconds: float) -> Dict[str, bool]:
        """Evaluate every named reveal at `current_time_seconds`."""
        return {
            reveal_id: self.is_revealed(current_time_seconds, reveal.trigger_time_seconds)
            for reveal_id, reveal in self._reveals.items()
        }

    def is_revealed_id(self, reveal_id: str) -> bool:
        """Latched state of a named reveal (no time evaluation)."""
        reveal = self._reveals.get(reveal_id)
        if reveal is None:
            return False
        return reveal.trigger_time_seconds in self._latched_triggers

    def reset(self):
        """Clear latches for a new session."""
        self._latched_triggers.clear()
        self._last_cue = None
