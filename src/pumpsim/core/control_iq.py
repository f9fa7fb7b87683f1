"""
Control-IQ advisory model.

Looks at the CGM trend and tells the caller what the closed loop would do
next: suspend on a predicted low, ask for a correction on a predicted high,
or keep the programmed basal. The advisor never changes pump state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pumpsim.core.errors import PumpDataError
from pumpsim.core.glucose import GlucoseSeries
from pumpsim.core.safety.config import PumpSafetyConfig


@dataclass
class ControlIQAdvice:
    action: str  # 'suspend', 'increase', 'maintain' or 'none'
    predicted_glucose: Optional[float] = None
    correction_units: float = 0.0
    reasoning: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action,
            "predicted_glucose": self.predicted_glucose,
            "correction_units": self.correction_units,
            "reasoning": list(self.reasoning),
        }


class ControlIQAdvisor:
    def __init__(self, safety_config: Optional[PumpSafetyConfig] = None):
        if safety_config is None:
            safety_config = PumpSafetyConfig()
        self.horizon_minutes = safety_config.control_iq_horizon_minutes
        self.low_limit = safety_config.control_iq_low_limit
        self.high_limit = safety_config.control_iq_high_limit

    def advise(self,
               series: GlucoseSeries,
               target_glucose: float,
               correction_factor: float,
               insulin_on_board: float = 0.0) -> ControlIQAdvice:
        """
        Args:
            series: CGM history; needs two readings for a trend.
            target_glucose: Profile target at the current time (mmol/L).
            correction_factor: Profile correction factor (mmol/L per U).
            insulin_on_board: Active insulin subtracted from any correction.
        """
        try:
            current = series.current().value
            velocity = series.trend()
        except PumpDataError as exc:
            return ControlIQAdvice(action="none", reasoning=[f"Not enough CGM data: {exc}"])

        predicted = current + velocity * self.horizon_minutes
        reasoning = [
            f"Predicted {predicted:.1f} mmol/L in {self.horizon_minutes} min "
            f"(trend {velocity:+.3f} mmol/L/min)"
        ]

        # Predictive low glucose suspend only applies while falling
        if predicted < self.low_limit and velocity < 0:
            reasoning.append(f"Predicted low below {self.low_limit:.1f} mmol/L: suspend basal")
            return ControlIQAdvice(action="suspend", predicted_glucose=predicted, reasoning=reasoning)

        if predicted > self.high_limit and predicted > current:
            correction = 0.0
            if correction_factor > 0:
                correction = max(0.0, (predicted - target_glucose) / correction_factor - insulin_on_board)
            reasoning.append(
                f"Predicted high above {self.high_limit:.1f} mmol/L: increase delivery, correction {correction:.2f} U"
            )
            return ControlIQAdvice(
                action="increase",
                predicted_glucose=predicted,
                correction_units=correction,
                reasoning=reasoning,
            )

        reasoning.append("Within limits: keep programmed basal")
        return ControlIQAdvice(action="maintain", predicted_glucose=predicted, reasoning=reasoning)
