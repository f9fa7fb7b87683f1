import logging
import math
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from pumpsim.core.control_iq import ControlIQAdvice, ControlIQAdvisor
from pumpsim.core.errors import EmptyTableError
from pumpsim.core.events import (
    AlarmEvent,
    AlarmType,
    BasalChangeEvent,
    BolusEvent,
    BolusType,
    CGMReadingEvent,
    ErrorEvent,
    Event,
    EventLog,
    ProfileChangeEvent,
    ResumeEvent,
    SuspendEvent,
)
from pumpsim.core.glucose import GlucoseSeries
from pumpsim.core.profile import DosingProfile
from pumpsim.core.safety.config import PumpSafetyConfig
from pumpsim.core.safety.input_validator import InputValidator

logger = logging.getLogger("pumpsim.controller")

DEFAULT_PROFILE_NAME = "Default"


class PumpState(Enum):
    OFF = "off"
    ON = "on"
    SLEEP = "sleep"
    DELIVERING_BOLUS = "delivering_bolus"
    DELIVERING_BASAL = "delivering_basal"
    SUSPENDED = "suspended"
    ERROR = "error"


class ErrorKind(Enum):
    NONE = "none"
    LOW_BATTERY = "low_battery"
    LOW_INSULIN = "low_insulin"
    OCCLUSION = "occlusion"
    CGM_DISCONNECTION = "cgm_disconnection"
    CRITICAL_ERROR = "critical_error"


# States in which no insulin may be delivered or started
_INACTIVE_STATES = (PumpState.OFF, PumpState.SLEEP, PumpState.ERROR)
_DELIVERING_STATES = (PumpState.DELIVERING_BOLUS, PumpState.DELIVERING_BASAL)

_FAULT_ALARMS = {
    ErrorKind.LOW_BATTERY: AlarmType.LOW_BATTERY,
    ErrorKind.LOW_INSULIN: AlarmType.LOW_INSULIN,
    ErrorKind.OCCLUSION: AlarmType.OCCLUSION,
    ErrorKind.CGM_DISCONNECTION: AlarmType.CGM_DISCONNECTION,
}
# Faults that stop the pump until the error is cleared
_HALTING_FAULTS = (ErrorKind.OCCLUSION, ErrorKind.CRITICAL_ERROR)


class PumpController:
    """
    Behavioral model of a t:slim X2 style insulin pump.

    Owns operating state, battery and reservoir levels, insulin on board,
    the profile registry, the event history and the CGM series. State-changing
    operations return ``True``/``False`` and never raise for rejected requests;
    the reason for some rejections is kept in ``error_kind``/``error_message``
    until cleared.

    Every time-dependent operation takes an optional ``now``; when omitted the
    injected ``clock`` is read.
    """

    def __init__(self,
                 safety_config: Optional[PumpSafetyConfig] = None,
                 default_profile: Optional[DosingProfile] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        if safety_config is None:
            safety_config = PumpSafetyConfig()
        if default_profile is None:
            from pumpsim.validation import load_default_profile

            default_profile = load_default_profile()

        self.safety_config = safety_config
        self.input_validator = InputValidator(safety_config=safety_config)
        self.control_iq_advisor = ControlIQAdvisor(safety_config=safety_config)
        self._clock = clock or datetime.now

        self._state = PumpState.OFF
        self._error_kind = ErrorKind.NONE
        self._error_message = ""

        self._battery_level = safety_config.initial_battery_percent
        self._insulin_level = safety_config.initial_reservoir_units
        self._insulin_on_board = 0.0
        self._last_bolus_time: Optional[datetime] = None
        self._last_bolus_amount = 0.0

        self._control_iq_enabled = False
        self._cgm_connected = False
        self._current_glucose = 0.0

        self._profiles: Dict[str, DosingProfile] = {
            DEFAULT_PROFILE_NAME: default_profile.copy(name=DEFAULT_PROFILE_NAME)
        }
        self._active_profile_name = DEFAULT_PROFILE_NAME

        self.event_log = EventLog()
        self.glucose_series = GlucoseSeries()

    # ------------------------------------------------------------------
    # helpers

    def _now(self, now: Optional[datetime]) -> datetime:
        return now if now is not None else self._clock()

    def _log_event(self, event: Event) -> None:
        self.event_log.append(event)

    def _set_state(self, state: PumpState) -> None:
        if state is not self._state:
            logger.info("Pump state %s -> %s", self._state.value, state.value)
        self._state = state

    def _set_error(self, kind: ErrorKind, message: str) -> None:
        logger.warning("Pump error %s: %s", kind.value, message)
        self._error_kind = kind
        self._error_message = message

    def _reset_error(self) -> None:
        self._error_kind = ErrorKind.NONE
        self._error_message = ""

    def _reject(self, operation: str, reason: str) -> bool:
        logger.debug("%s rejected: %s", operation, reason)
        return False

    @staticmethod
    def _basal_rate_at(profile: DosingProfile, when: datetime) -> float:
        try:
            return profile.basal_rates.value_for(when)
        except EmptyTableError:
            return 0.0

    # ------------------------------------------------------------------
    # power

    @property
    def state(self) -> PumpState:
        return self._state

    def power_on(self, now: Optional[datetime] = None) -> bool:
        if self._state is not PumpState.OFF:
            return self._reject("power_on", "pump already on")
        if self._battery_level <= 0:
            self._set_error(ErrorKind.LOW_BATTERY, "Cannot power on: Battery depleted")
            return False
        if self._error_kind in _HALTING_FAULTS:
            # A halting fault survives a power cycle
            self._set_state(PumpState.ERROR)
            logger.warning("Power on blocked by %s: %s", self._error_kind.value, self._error_message)
            return False

        self._set_state(PumpState.ON)
        self._log_event(ResumeEvent(self._now(now), "Power on"))
        return True

    def power_off(self, now: Optional[datetime] = None) -> bool:
        if self._state is PumpState.OFF:
            return self._reject("power_off", "pump already off")
        if self._state in _DELIVERING_STATES:
            self._log_event(SuspendEvent(self._now(now), "Power off"))
        self._set_state(PumpState.OFF)
        return True

    def sleep(self) -> bool:
        if self._state not in (PumpState.ON, PumpState.DELIVERING_BASAL):
            return self._reject("sleep", f"not allowed in state {self._state.value}")
        self._set_state(PumpState.SLEEP)
        return True

    def wake(self) -> bool:
        if self._state is not PumpState.SLEEP:
            return self._reject("wake", "pump is not asleep")
        self._set_state(PumpState.ON)
        return True

    # ------------------------------------------------------------------
    # battery and reservoir

    @property
    def battery_level(self) -> float:
        return self._battery_level

    @property
    def insulin_level(self) -> float:
        return self._insulin_level

    def charge_battery(self, amount: float) -> bool:
        if not math.isfinite(amount) or amount <= 0:
            return self._reject("charge_battery", f"invalid amount {amount!r}")

        capacity = self.safety_config.battery_capacity_percent
        self._battery_level = max(0.0, min(capacity, self._battery_level + amount))

        if (self._error_kind is ErrorKind.LOW_BATTERY
                and self._battery_level > self.safety_config.low_battery_clear_percent):
            logger.info("Low battery cleared at %.1f%%", self._battery_level)
            self._reset_error()
        return True

    def drain_battery(self, amount: float) -> bool:
        """Consume battery charge; raises the low battery error at or below the clear threshold."""
        if not math.isfinite(amount) or amount <= 0:
            return self._reject("drain_battery", f"invalid amount {amount!r}")

        self._battery_level = max(0.0, self._battery_level - amount)
        if (self._battery_level <= self.safety_config.low_battery_clear_percent
                and self._error_kind is ErrorKind.NONE):
            self._set_error(ErrorKind.LOW_BATTERY, "Low battery")
        return True

    def refill_insulin(self, amount: float) -> bool:
        if not math.isfinite(amount) or amount <= 0:
            return self._reject("refill_insulin", f"invalid amount {amount!r}")
        if self._state is PumpState.OFF:
            return self._reject("refill_insulin", "pump is off")

        capacity = self.safety_config.reservoir_capacity_units
        self._insulin_level = max(0.0, min(capacity, self._insulin_level + amount))

        if (self._error_kind is ErrorKind.LOW_INSULIN
                and self._insulin_level > self.safety_config.low_insulin_threshold_units):
            logger.info("Low insulin cleared at %.1f U", self._insulin_level)
            self._reset_error()
        return True

    # ------------------------------------------------------------------
    # profile registry

    def create_profile(self, name: str) -> bool:
        if not name or name in self._profiles:
            return self._reject("create_profile", f"invalid or duplicate name {name!r}")
        self._profiles[name] = DosingProfile(name=name)
        return True

    def get_profile(self, name: str) -> Optional[DosingProfile]:
        """Return a copy of the named profile; edits go back through ``update_profile``."""
        profile = self._profiles.get(name)
        return profile.copy() if profile is not None else None

    def get_all_profile_names(self) -> List[str]:
        return sorted(self._profiles)

    def update_profile(self, name: str, profile: Optional[DosingProfile], now: Optional[datetime] = None) -> bool:
        if not name or name not in self._profiles or profile is None:
            return self._reject("update_profile", f"unknown profile {name!r}")

        self._profiles[name] = profile.copy(name=name)
        if name == self._active_profile_name:
            self._log_event(ProfileChangeEvent(self._now(now), name, name))
        return True

    def delete_profile(self, name: str, now: Optional[datetime] = None) -> bool:
        if name == DEFAULT_PROFILE_NAME or name not in self._profiles:
            return self._reject("delete_profile", f"cannot delete {name!r}")

        if name == self._active_profile_name:
            self.activate_profile(DEFAULT_PROFILE_NAME, now=now)
        del self._profiles[name]
        return True

    def activate_profile(self, name: str, now: Optional[datetime] = None) -> bool:
        if not name or name not in self._profiles:
            return self._reject("activate_profile", f"unknown profile {name!r}")

        timestamp = self._now(now)
        old_name = self._active_profile_name
        self._log_event(ProfileChangeEvent(timestamp, old_name, name))
        self._active_profile_name = name
        logger.info("Activated profile '%s' (was '%s')", name, old_name)

        if self._state is PumpState.DELIVERING_BASAL:
            old_rate = self._basal_rate_at(self._profiles[old_name], timestamp)
            new_rate = self._basal_rate_at(self._profiles[name], timestamp)
            if old_rate != new_rate:
                self._log_event(BasalChangeEvent(timestamp, old_rate, new_rate, "Profile change"))
        return True

    def get_active_profile_name(self) -> str:
        return self._active_profile_name

    def get_active_profile(self) -> DosingProfile:
        return self._profiles[self._active_profile_name].copy()

    # ------------------------------------------------------------------
    # insulin delivery

    @property
    def insulin_on_board(self) -> float:
        return self._insulin_on_board

    @property
    def last_bolus_amount(self) -> float:
        return self._last_bolus_amount

    @property
    def last_bolus_time(self) -> Optional[datetime]:
        return self._last_bolus_time

    def deliver_bolus(self,
                      units: float,
                      extended: bool = False,
                      duration_minutes: int = 0,
                      now: Optional[datetime] = None,
                      bolus_type: Optional[BolusType] = None) -> bool:
        """
        Deliver a bolus from the reservoir.

        Standard boluses complete immediately and the pump returns to basal
        delivery; extended boluses leave the pump in DELIVERING_BOLUS until
        cancelled or another transition happens. ``bolus_type`` labels a
        standard bolus as QUICK or CORRECTION.
        """
        if self._state in _INACTIVE_STATES:
            return self._reject("deliver_bolus", f"not allowed in state {self._state.value}")
        try:
            self.input_validator.validate_insulin(units)
        except ValueError as exc:
            return self._reject("deliver_bolus", str(exc))
        if units <= 0 or self._insulin_level < units:
            return self._reject("deliver_bolus", f"{units} U requested, {self._insulin_level} U available")
        if extended and duration_minutes <= 0:
            return self._reject("deliver_bolus", "extended bolus needs a positive duration")

        if extended:
            bolus_type = BolusType.EXTENDED
        elif bolus_type is None or bolus_type is BolusType.EXTENDED:
            bolus_type = BolusType.MANUAL

        timestamp = self._now(now)
        self._log_event(BolusEvent(timestamp, bolus_type, float(units), duration_minutes if extended else 0))

        self._set_state(PumpState.DELIVERING_BOLUS)
        self._insulin_level -= units
        self._insulin_on_board += units
        self._last_bolus_time = timestamp
        self._last_bolus_amount = float(units)

        if (self._insulin_level < self.safety_config.low_insulin_threshold_units
                and self._error_kind is ErrorKind.NONE):
            self._set_error(ErrorKind.LOW_INSULIN, "Low insulin reservoir")

        # Standard delivery is modeled as completing at once
        if not extended:
            self._set_state(PumpState.DELIVERING_BASAL)
        return True

    def cancel_bolus(self, now: Optional[datetime] = None) -> bool:
        if self._state is not PumpState.DELIVERING_BOLUS:
            return self._reject("cancel_bolus", "no bolus in progress")

        bolus = self.event_log.find_latest_uncancelled_bolus()
        if bolus is None:
            return self._reject("cancel_bolus", "no uncancelled bolus in history")

        bolus.cancel()
        # Half of a cancelled bolus counts as undelivered
        undelivered = bolus.units / 2.0
        capacity = self.safety_config.reservoir_capacity_units
        self._insulin_level = min(capacity, self._insulin_level + undelivered)
        self._insulin_on_board = max(0.0, self._insulin_on_board - undelivered)

        self._log_event(SuspendEvent(self._now(now), "Bolus cancelled"))
        self._set_state(PumpState.DELIVERING_BASAL)
        return True

    def start_basal(self, now: Optional[datetime] = None) -> bool:
        if self._state in _INACTIVE_STATES:
            return self._reject("start_basal", f"not allowed in state {self._state.value}")
        if self._insulin_level <= 0:
            self._set_error(ErrorKind.LOW_INSULIN, "Cannot start basal: No insulin")
            return False

        self._set_state(PumpState.DELIVERING_BASAL)
        timestamp = self._now(now)
        rate = self._basal_rate_at(self._profiles[self._active_profile_name], timestamp)
        self._log_event(BasalChangeEvent(timestamp, 0.0, rate, "Basal started"))
        return True

    def stop_basal(self, now: Optional[datetime] = None) -> bool:
        if self._state not in _DELIVERING_STATES:
            return self._reject("stop_basal", "not delivering insulin")

        self._set_state(PumpState.SUSPENDED)
        self._log_event(SuspendEvent(self._now(now), "User stopped insulin"))
        return True

    def resume_basal(self, now: Optional[datetime] = None) -> bool:
        if self._state is not PumpState.SUSPENDED:
            return self._reject("resume_basal", "pump is not suspended")
        if self._insulin_level <= 0:
            self._set_error(ErrorKind.LOW_INSULIN, "Cannot resume basal: No insulin")
            return False

        self._set_state(PumpState.DELIVERING_BASAL)
        timestamp = self._now(now)
        rate = self._basal_rate_at(self._profiles[self._active_profile_name], timestamp)
        self._log_event(ResumeEvent(timestamp, "User resumed insulin"))
        self._log_event(BasalChangeEvent(timestamp, 0.0, rate, "Basal resumed"))
        return True

    def simulate_insulin_absorption(self, elapsed_minutes: float) -> float:
        """
        Decay insulin on board over the active profile's insulin duration.

        The share absorbed is ``elapsed / duration`` of what is currently on
        board, capped at all of it. Returns the new insulin on board.
        """
        duration_minutes = self._profiles[self._active_profile_name].insulin_action_duration_hours * 60.0
        if elapsed_minutes <= 0 or duration_minutes <= 0:
            return self._insulin_on_board

        fraction = min(1.0, elapsed_minutes / duration_minutes)
        self._insulin_on_board = max(0.0, self._insulin_on_board * (1.0 - fraction))
        return self._insulin_on_board

    # ------------------------------------------------------------------
    # Control-IQ

    @property
    def is_control_iq_enabled(self) -> bool:
        return self._control_iq_enabled

    def enable_control_iq(self) -> bool:
        if self._state in (PumpState.OFF, PumpState.ERROR):
            return self._reject("enable_control_iq", f"not allowed in state {self._state.value}")
        if not self._cgm_connected:
            return self._reject("enable_control_iq", "Control-IQ requires a connected CGM")
        self._control_iq_enabled = True
        logger.info("Control-IQ enabled")
        return True

    def disable_control_iq(self) -> bool:
        self._control_iq_enabled = False
        return True

    def calculate_suggested_bolus(self, current_glucose: float, carb_intake: float,
                                  now: Optional[datetime] = None) -> float:
        """
        Suggested bolus in units: carbs / carb ratio plus any correction above
        target divided by the correction factor, less insulin on board, floored at 0.
        """
        profile = self._profiles.get(self._active_profile_name)
        if profile is None:
            return 0.0

        when = self._now(now)
        try:
            carb_ratio = profile.carb_ratios.value_for(when)
            correction_factor = profile.correction_factors.value_for(when)
            target = profile.target_glucoses.value_for(when)
        except EmptyTableError as exc:
            logger.debug("No suggestion, profile '%s' incomplete: %s", profile.name, exc)
            return 0.0

        food_bolus = carb_intake / carb_ratio if carb_ratio > 0 else 0.0
        correction_bolus = 0.0
        if correction_factor > 0:
            correction_bolus = max(0.0, current_glucose - target) / correction_factor

        return max(0.0, food_bolus + correction_bolus - self._insulin_on_board)

    def control_iq_advice(self, now: Optional[datetime] = None) -> ControlIQAdvice:
        if not self._control_iq_enabled:
            return ControlIQAdvice(action="none", reasoning=["Control-IQ is disabled"])

        profile = self._profiles[self._active_profile_name]
        when = self._now(now)
        try:
            target = profile.target_glucoses.value_for(when)
            correction_factor = profile.correction_factors.value_for(when)
        except EmptyTableError as exc:
            return ControlIQAdvice(action="none", reasoning=[f"Profile incomplete: {exc}"])

        return self.control_iq_advisor.advise(
            self.glucose_series,
            target_glucose=target,
            correction_factor=correction_factor,
            insulin_on_board=self._insulin_on_board,
        )

    # ------------------------------------------------------------------
    # CGM

    @property
    def is_cgm_connected(self) -> bool:
        return self._cgm_connected

    @property
    def current_glucose(self) -> float:
        return self._current_glucose

    def connect_cgm(self) -> bool:
        if self._cgm_connected:
            return self._reject("connect_cgm", "CGM already connected")
        self._cgm_connected = True
        logger.info("CGM connected")
        return True

    def disconnect_cgm(self) -> bool:
        if not self._cgm_connected:
            return self._reject("disconnect_cgm", "CGM not connected")
        self._cgm_connected = False
        if self._control_iq_enabled:
            logger.info("Control-IQ disabled: CGM disconnected")
            self._control_iq_enabled = False
        return True

    def update_cgm_data(self, glucose_value: float, now: Optional[datetime] = None) -> bool:
        try:
            self.input_validator.validate_glucose(glucose_value)
        except ValueError as exc:
            return self._reject("update_cgm_data", str(exc))

        timestamp = self._now(now)
        self._current_glucose = float(glucose_value)
        self.glucose_series.append(glucose_value, timestamp)
        self._log_event(CGMReadingEvent(timestamp, float(glucose_value)))
        return True

    def check_glucose_alarms(self, now: Optional[datetime] = None) -> Optional[AlarmEvent]:
        """Log a low/high glucose alarm for the latest reading, if it is out of bounds."""
        if len(self.glucose_series) == 0:
            return None

        value = self.glucose_series.current().value
        if self.glucose_series.is_low(self.safety_config.low_glucose_threshold):
            return self.raise_alarm(AlarmType.LOW_GLUCOSE, f"Glucose {value:.1f} mmol/L", now=now)
        if self.glucose_series.is_high(self.safety_config.high_glucose_threshold):
            return self.raise_alarm(AlarmType.HIGH_GLUCOSE, f"Glucose {value:.1f} mmol/L", now=now)
        return None

    # ------------------------------------------------------------------
    # history

    def get_history(self, start: datetime, end: datetime) -> List[Event]:
        return self.event_log.range(start, end)

    def get_recent_events(self, count: int) -> List[Event]:
        return self.event_log.most_recent(count)

    # ------------------------------------------------------------------
    # errors and alarms

    @property
    def error_kind(self) -> ErrorKind:
        return self._error_kind

    @property
    def error_message(self) -> str:
        return self._error_message

    def clear_error(self) -> bool:
        if self._error_kind is ErrorKind.NONE:
            return False
        logger.info("Error %s cleared", self._error_kind.value)
        self._reset_error()
        if self._state is PumpState.ERROR:
            self._set_state(PumpState.ON)
        return True

    def raise_alarm(self, alarm_type: AlarmType, details: str, now: Optional[datetime] = None) -> AlarmEvent:
        event = AlarmEvent(self._now(now), alarm_type, details)
        self._log_event(event)
        logger.warning("Alarm %s: %s", alarm_type.value, details)
        return event

    def report_fault(self, kind: ErrorKind, message: str, now: Optional[datetime] = None) -> bool:
        """
        Raise an error from outside the controller, e.g. a simulated occlusion.

        Logs an Error event (plus an Alarm for alarm-backed kinds). Occlusion
        and critical errors move the pump into ERROR until ``clear_error``.
        """
        if kind is ErrorKind.NONE:
            return self._reject("report_fault", "NONE is not a fault")

        timestamp = self._now(now)
        self._set_error(kind, message)
        self._log_event(ErrorEvent(timestamp, kind.name, message))
        if kind in _FAULT_ALARMS:
            self._log_event(AlarmEvent(timestamp, _FAULT_ALARMS[kind], message))
        if kind in _HALTING_FAULTS and self._state is not PumpState.OFF:
            if self._state in _DELIVERING_STATES:
                self._log_event(SuspendEvent(timestamp, message))
            self._set_state(PumpState.ERROR)
        return True

    def snapshot(self) -> Dict[str, Any]:
        """Current status for display."""
        return {
            "state": self._state.value,
            "error_kind": self._error_kind.value,
            "error_message": self._error_message,
            "battery_level": self._battery_level,
            "insulin_level": self._insulin_level,
            "insulin_on_board": self._insulin_on_board,
            "last_bolus_amount": self._last_bolus_amount,
            "last_bolus_time": self._last_bolus_time,
            "control_iq_enabled": self._control_iq_enabled,
            "cgm_connected": self._cgm_connected,
            "current_glucose": self._current_glucose,
            "active_profile": self._active_profile_name,
        }
