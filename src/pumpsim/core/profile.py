from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict

from pumpsim.core.schedule import ScheduleTable


@dataclass
class DosingProfile:
    """
    Named set of insulin delivery settings.

    Each table is keyed by segment start (minutes since midnight):
    basal rate (U/h), carb ratio (g/U), correction factor (mmol/L per U)
    and target glucose (mmol/L).
    """
    name: str
    basal_rates: ScheduleTable = field(default_factory=lambda: ScheduleTable("basal rate"))
    carb_ratios: ScheduleTable = field(default_factory=lambda: ScheduleTable("carb ratio"))
    correction_factors: ScheduleTable = field(default_factory=lambda: ScheduleTable("correction factor"))
    target_glucoses: ScheduleTable = field(default_factory=lambda: ScheduleTable("target glucose"))
    insulin_action_duration_hours: float = 0.0

    def add_basal_rate(self, hour: int, minute: int, rate: float) -> None:
        self.basal_rates.set_time(hour, minute, rate)

    def add_carb_ratio(self, hour: int, minute: int, ratio: float) -> None:
        self.carb_ratios.set_time(hour, minute, ratio)

    def add_correction_factor(self, hour: int, minute: int, factor: float) -> None:
        self.correction_factors.set_time(hour, minute, factor)

    def add_target_glucose(self, hour: int, minute: int, target: float) -> None:
        self.target_glucoses.set_time(hour, minute, target)

    def basal_rate(self, hour: int, minute: int) -> float:
        return self.basal_rates.get(hour, minute)

    def carb_ratio(self, hour: int, minute: int) -> float:
        return self.carb_ratios.get(hour, minute)

    def correction_factor(self, hour: int, minute: int) -> float:
        return self.correction_factors.get(hour, minute)

    def target_glucose(self, hour: int, minute: int) -> float:
        return self.target_glucoses.get(hour, minute)

    def validation_message(self) -> str:
        """Describe the first unmet requirement, or return an empty string."""
        for table in (self.basal_rates, self.carb_ratios, self.correction_factors, self.target_glucoses):
            if not table:
                return f"Profile '{self.name}' has no {table.label} settings"
        if self.insulin_action_duration_hours <= 0:
            return f"Profile '{self.name}' insulin duration must be greater than zero"
        return ""

    def is_valid(self) -> bool:
        return self.validation_message() == ""

    def copy(self, name: str = "") -> "DosingProfile":
        return DosingProfile(
            name=name or self.name,
            basal_rates=self.basal_rates.copy(),
            carb_ratios=self.carb_ratios.copy(),
            correction_factors=self.correction_factors.copy(),
            target_glucoses=self.target_glucoses.copy(),
            insulin_action_duration_hours=self.insulin_action_duration_hours,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "basal_rates": self.basal_rates.all_entries(),
            "carb_ratios": self.carb_ratios.all_entries(),
            "correction_factors": self.correction_factors.all_entries(),
            "target_glucoses": self.target_glucoses.all_entries(),
            "insulin_action_duration_hours": self.insulin_action_duration_hours,
        }
