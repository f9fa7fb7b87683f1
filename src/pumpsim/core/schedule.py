from __future__ import annotations

from bisect import bisect_right
from datetime import datetime, time
from typing import Dict, List, Union

from pumpsim.core.errors import EmptyTableError

MINUTES_PER_DAY = 24 * 60


def minutes_since_midnight(hour: int, minute: int) -> int:
    if not (0 <= hour < 24 and 0 <= minute < 60):
        raise ValueError(f"Invalid time of day {hour:02d}:{minute:02d}")
    return hour * 60 + minute


class ScheduleTable:
    """
    Time-of-day keyed parameter table.

    Keys are segment starts in minutes since midnight. A lookup returns the
    value of the latest segment that started at or before the requested time;
    times before the first segment fall into the last segment of the day.
    """

    def __init__(self, label: str = "schedule") -> None:
        self.label = label
        self._entries: Dict[int, float] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ScheduleTable):
            return NotImplemented
        return self._entries == other._entries

    def set(self, minutes: int, value: float) -> None:
        if minutes != int(minutes):
            raise ValueError(f"{self.label}: segment start {minutes!r} is not a whole minute")
        if not (0 <= minutes < MINUTES_PER_DAY):
            raise ValueError(f"{self.label}: segment start {minutes} is outside [0, {MINUTES_PER_DAY})")
        self._entries[int(minutes)] = float(value)

    def set_time(self, hour: int, minute: int, value: float) -> None:
        self.set(minutes_since_midnight(hour, minute), value)

    def value_at(self, minutes: int) -> float:
        if not self._entries:
            raise EmptyTableError(f"{self.label} has no entries")
        keys = sorted(self._entries)
        # wraps to the last key when minutes precede the first segment
        idx = bisect_right(keys, minutes % MINUTES_PER_DAY) - 1
        return self._entries[keys[idx]]

    def get(self, hour: int, minute: int) -> float:
        return self.value_at(minutes_since_midnight(hour, minute))

    def value_for(self, when: Union[datetime, time]) -> float:
        return self.get(when.hour, when.minute)

    def all_entries(self) -> Dict[int, float]:
        return {key: self._entries[key] for key in sorted(self._entries)}

    def segments(self) -> List[str]:
        """Human-readable ``HH:MM -> value`` lines, in segment order."""
        return [f"{key // 60:02d}:{key % 60:02d} -> {value:g}" for key, value in self.all_entries().items()]

    def copy(self) -> "ScheduleTable":
        clone = ScheduleTable(self.label)
        clone._entries = dict(self._entries)
        return clone
