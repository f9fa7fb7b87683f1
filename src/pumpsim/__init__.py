# src/pumpsim/__init__.py

__version__ = "0.1.0"

# Controller and its state
from .core.controller import PumpController, PumpState, ErrorKind, DEFAULT_PROFILE_NAME
from .core.safety import PumpSafetyConfig, InputValidator
from .core.control_iq import ControlIQAdvice, ControlIQAdvisor

# Profiles and schedules
from .core.schedule import ScheduleTable
from .core.profile import DosingProfile

# CGM and history
from .core.glucose import GlucoseReading, GlucoseSeries
from .core.events import (
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
from .core.errors import (
    PumpDataError,
    NoDataError,
    InsufficientDataError,
    EmptyTableError,
    NoActiveBolusError,
)

# Configuration loading
from .validation import (
    load_default_profile,
    load_profile,
    load_pump_config,
    format_validation_error,
)

__all__ = [
    # Controller
    "PumpController", "PumpState", "ErrorKind", "DEFAULT_PROFILE_NAME",
    "PumpSafetyConfig", "InputValidator",
    "ControlIQAdvice", "ControlIQAdvisor",
    # Profiles
    "ScheduleTable", "DosingProfile",
    # CGM and history
    "GlucoseReading", "GlucoseSeries",
    "EventKind", "BolusType", "AlarmType", "Event", "BolusEvent", "BasalChangeEvent",
    "ProfileChangeEvent", "SuspendEvent", "ResumeEvent", "CGMReadingEvent", "AlarmEvent",
    "ErrorEvent", "EventLog",
    # Errors
    "PumpDataError", "NoDataError", "InsufficientDataError", "EmptyTableError", "NoActiveBolusError",
    # Configuration
    "load_default_profile", "load_profile", "load_pump_config", "format_validation_error",
]
