import math
from typing import Optional

from pumpsim.core.safety.config import PumpSafetyConfig


class InputValidator:
    """
    Plausibility filter for values entering the pump: CGM readings and
    requested insulin amounts. Rejections raise ``ValueError``.
    """
    def __init__(self,
                 min_glucose: float = 1.0,
                 max_glucose: float = 35.0,
                 safety_config: Optional[PumpSafetyConfig] = None):
        """
        Args:
            min_glucose (float): Lowest plausible sensor value (mmol/L).
            max_glucose (float): Highest plausible sensor value (mmol/L).
        """
        if safety_config is not None:
            min_glucose = safety_config.min_glucose
            max_glucose = safety_config.max_glucose

        self.min_glucose = min_glucose
        self.max_glucose = max_glucose

    def validate_glucose(self, glucose_value: float) -> float:
        if not math.isfinite(glucose_value):
            raise ValueError(f"NON_FINITE_GLUCOSE: {glucose_value!r} is not a finite reading.")
        if not (self.min_glucose <= glucose_value <= self.max_glucose):
            raise ValueError(
                f"BIOLOGICAL_PLAUSIBILITY_ERROR: Glucose {glucose_value} mmol/L is outside the "
                f"valid range [{self.min_glucose}, {self.max_glucose}]."
            )
        return glucose_value

    def validate_insulin(self, dose: float) -> float:
        """Validates that a requested insulin amount is finite and non-negative."""
        if not math.isfinite(dose) or dose < 0:
            raise ValueError(f"INVALID_DOSE_ERROR: Insulin amount {dose} U must be a finite, non-negative number.")
        return dose
