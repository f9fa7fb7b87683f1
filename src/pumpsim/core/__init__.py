from .errors import (
    PumpDataError,
    NoDataError,
    InsufficientDataError,
    EmptyTableError,
    NoActiveBolusError,
)
from .schedule import ScheduleTable, minutes_since_midnight
from .profile import DosingProfile
from .glucose import GlucoseReading, GlucoseSeries, GlucoseWindow
from .events import (
    EventKind,
    BolusType,
    AlarmType,
    Event,
    BolusEvent,
    BasalChangeEvent,
    ProfileChangeEvent,
    SuspendEvent,
    ResumeEvent,
    CGMReadingEvent,
    AlarmEvent,
    ErrorEvent,
    EventLog,
)
from .control_iq import ControlIQAdvice, ControlIQAdvisor
from .controller import PumpController, PumpState, ErrorKind, DEFAULT_PROFILE_NAME

__all__ = [
    "PumpDataError", "NoDataError", "InsufficientDataError", "EmptyTableError", "NoActiveBolusError",
    "ScheduleTable", "minutes_since_midnight",
    "DosingProfile",
    "GlucoseReading", "GlucoseSeries", "GlucoseWindow",
    "EventKind", "BolusType", "AlarmType", "Event", "BolusEvent", "BasalChangeEvent",
    "ProfileChangeEvent", "SuspendEvent", "ResumeEvent", "CGMReadingEvent", "AlarmEvent",
    "ErrorEvent", "EventLog",
    "ControlIQAdvice", "ControlIQAdvisor",
    "PumpController", "PumpState", "ErrorKind", "DEFAULT_PROFILE_NAME",
]
