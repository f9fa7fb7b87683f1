from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, fields
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Dict, Iterator, List, Optional

import pandas as pd

from pumpsim.core.errors import NoActiveBolusError


class EventKind(Enum):
    BOLUS = "bolus"
    BASAL_CHANGE = "basal_change"
    PROFILE_CHANGE = "profile_change"
    SUSPEND = "suspend"
    RESUME = "resume"
    CGM_READING = "cgm_reading"
    ALARM = "alarm"
    ERROR = "error"


class BolusType(Enum):
    MANUAL = "manual"
    EXTENDED = "extended"
    QUICK = "quick"
    CORRECTION = "correction"


class AlarmType(Enum):
    LOW_GLUCOSE = "low_glucose"
    HIGH_GLUCOSE = "high_glucose"
    LOW_INSULIN = "low_insulin"
    LOW_BATTERY = "low_battery"
    OCCLUSION = "occlusion"
    CGM_DISCONNECTION = "cgm_disconnection"


class Event(ABC):
    """Common interface of every logged pump event."""
    kind: ClassVar[EventKind]
    timestamp: datetime

    @abstractmethod
    def description(self) -> str:
        ...

    def payload(self) -> Dict[str, Any]:
        return {
            item.name: getattr(self, item.name)
            for item in fields(self)  # type: ignore[arg-type]
            if item.name != "timestamp"
        }


@dataclass
class BolusEvent(Event):
    kind: ClassVar[EventKind] = EventKind.BOLUS
    timestamp: datetime
    bolus_type: BolusType
    units: float
    duration_minutes: int = 0
    cancelled: bool = False

    def cancel(self) -> None:
        if self.cancelled:
            raise ValueError("Bolus already cancelled")
        self.cancelled = True

    def description(self) -> str:
        text = f"{self.bolus_type.value.capitalize()} bolus: {self.units:.2f} U"
        if self.bolus_type is BolusType.EXTENDED:
            text += f" over {self.duration_minutes} min"
        if self.cancelled:
            text += " (cancelled)"
        return text


@dataclass(frozen=True)
class BasalChangeEvent(Event):
    kind: ClassVar[EventKind] = EventKind.BASAL_CHANGE
    timestamp: datetime
    old_rate: float
    new_rate: float
    reason: str

    def description(self) -> str:
        return f"Basal rate changed from {self.old_rate:.2f} to {self.new_rate:.2f} U/h ({self.reason})"


@dataclass(frozen=True)
class ProfileChangeEvent(Event):
    kind: ClassVar[EventKind] = EventKind.PROFILE_CHANGE
    timestamp: datetime
    old_profile: str
    new_profile: str

    def description(self) -> str:
        if self.old_profile == self.new_profile:
            return f"Profile '{self.new_profile}' updated"
        return f"Profile changed from '{self.old_profile}' to '{self.new_profile}'"


@dataclass(frozen=True)
class SuspendEvent(Event):
    kind: ClassVar[EventKind] = EventKind.SUSPEND
    timestamp: datetime
    reason: str

    def description(self) -> str:
        return f"Insulin delivery suspended: {self.reason}"


@dataclass(frozen=True)
class ResumeEvent(Event):
    kind: ClassVar[EventKind] = EventKind.RESUME
    timestamp: datetime
    reason: str

    def description(self) -> str:
        return f"Insulin delivery resumed: {self.reason}"


@dataclass(frozen=True)
class CGMReadingEvent(Event):
    kind: ClassVar[EventKind] = EventKind.CGM_READING
    timestamp: datetime
    glucose_value: float

    def description(self) -> str:
        return f"CGM reading: {self.glucose_value:.1f} mmol/L"


@dataclass(frozen=True)
class AlarmEvent(Event):
    kind: ClassVar[EventKind] = EventKind.ALARM
    timestamp: datetime
    alarm_type: AlarmType
    details: str

    def description(self) -> str:
        label = self.alarm_type.value.replace("_", " ")
        return f"Alarm ({label}): {self.details}"


@dataclass(frozen=True)
class ErrorEvent(Event):
    kind: ClassVar[EventKind] = EventKind.ERROR
    timestamp: datetime
    error_code: str
    error_message: str

    def description(self) -> str:
        return f"Error {self.error_code}: {self.error_message}"


class EventLog:
    """
    Append-only pump history. Order is call order; timestamps are not re-checked.
    """

    def __init__(self) -> None:
        self._events: List[Event] = []

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[Event]:
        return iter(list(self._events))

    def append(self, event: Event) -> Event:
        self._events.append(event)
        return event

    def range(self, start: datetime, end: datetime) -> List[Event]:
        return [event for event in self._events if start <= event.timestamp <= end]

    def most_recent(self, count: int) -> List[Event]:
        """Up to ``count`` latest events, newest first."""
        if count <= 0:
            return []
        return list(reversed(self._events[-count:]))

    def of_kind(self, kind: EventKind) -> List[Event]:
        return [event for event in self._events if event.kind is kind]

    def find_latest_uncancelled_bolus(self) -> Optional[BolusEvent]:
        for event in reversed(self._events):
            if event.kind is EventKind.BOLUS and not event.cancelled:  # type: ignore[attr-defined]
                return event  # type: ignore[return-value]
        return None

    def require_latest_uncancelled_bolus(self) -> BolusEvent:
        bolus = self.find_latest_uncancelled_bolus()
        if bolus is None:
            raise NoActiveBolusError("No uncancelled bolus in history")
        return bolus

    def to_dataframe(self) -> pd.DataFrame:
        rows = [
            {
                "timestamp": event.timestamp,
                "kind": event.kind.value,
                "description": event.description(),
            }
            for event in self._events
        ]
        return pd.DataFrame(rows, columns=["timestamp", "kind", "description"])
