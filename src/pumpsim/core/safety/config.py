from __future__ import annotations

from dataclasses import dataclass


@dataclass
class PumpSafetyConfig:
    """
    Central limits for the pump controller, glucose validation and Control-IQ advice.
    """
    # Hardware capacities
    battery_capacity_percent: float = 100.0
    reservoir_capacity_units: float = 300.0
    initial_battery_percent: float = 100.0
    initial_reservoir_units: float = 0.0

    # Error clearing / raising thresholds
    low_battery_clear_percent: float = 15.0
    low_insulin_threshold_units: float = 50.0

    # Input validation limits (mmol/L)
    min_glucose: float = 1.0
    max_glucose: float = 35.0

    # Glucose alarm thresholds (mmol/L)
    low_glucose_threshold: float = 3.9
    high_glucose_threshold: float = 10.0

    # Control-IQ advice
    control_iq_horizon_minutes: int = 30
    control_iq_low_limit: float = 3.9
    control_iq_high_limit: float = 10.0
