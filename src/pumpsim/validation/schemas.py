from __future__ import annotations

import math
import re
from typing import Any, Dict, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_SEGMENT_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")


def parse_segment_start(key: Union[str, int]) -> int:
    """Turn ``"HH:MM"`` (or minutes since midnight) into minutes since midnight."""
    if isinstance(key, int):
        minutes = key
    else:
        match = _SEGMENT_PATTERN.match(str(key).strip())
        if match is None:
            raise ValueError(f"segment start {key!r} must look like HH:MM")
        hour, minute = int(match.group(1)), int(match.group(2))
        if hour > 23 or minute > 59:
            raise ValueError(f"segment start {key!r} is not a time of day")
        minutes = hour * 60 + minute
    if not (0 <= minutes < 1440):
        raise ValueError(f"segment start {key!r} is outside the day")
    return minutes


def _normalize_table(value: Any, positive: bool) -> Dict[int, float]:
    if not isinstance(value, dict):
        raise ValueError("schedule must be a mapping of HH:MM to a number")
    table: Dict[int, float] = {}
    for key, raw in value.items():
        minutes = parse_segment_start(key)
        try:
            number = float(raw)
        except (TypeError, ValueError):
            raise ValueError(f"value {raw!r} at {key} is not a number") from None
        if not math.isfinite(number):
            raise ValueError(f"value {raw!r} at {key} must be finite")
        if number < 0 or (positive and number == 0):
            raise ValueError(f"value {raw!r} at {key} must be {'> 0' if positive else '>= 0'}")
        table[minutes] = number
    return table


class ProfileModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    insulin_action_duration_hours: float = Field(gt=0.0, le=12.0)
    basal_rates: Dict[int, float]
    carb_ratios: Dict[int, float]
    correction_factors: Dict[int, float]
    target_glucoses: Dict[int, float]

    @field_validator("basal_rates", mode="before")
    @classmethod
    def _check_basal(cls, value: Any) -> Dict[int, float]:
        return _normalize_table(value, positive=False)

    @field_validator("carb_ratios", "correction_factors", "target_glucoses", mode="before")
    @classmethod
    def _check_positive(cls, value: Any) -> Dict[int, float]:
        return _normalize_table(value, positive=True)

    @model_validator(mode="after")
    def _check_tables_present(self) -> "ProfileModel":
        for label in ("basal_rates", "carb_ratios", "correction_factors", "target_glucoses"):
            if not getattr(self, label):
                raise ValueError(f"{label} needs at least one segment")
        return self


class PumpConfigModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    battery_capacity_percent: float = Field(default=100.0, gt=0.0)
    reservoir_capacity_units: float = Field(default=300.0, gt=0.0)
    initial_battery_percent: float = Field(default=100.0, ge=0.0)
    initial_reservoir_units: float = Field(default=0.0, ge=0.0)
    low_battery_clear_percent: float = Field(default=15.0, ge=0.0)
    low_insulin_threshold_units: float = Field(default=50.0, ge=0.0)
    min_glucose: float = Field(default=1.0, gt=0.0)
    max_glucose: float = Field(default=35.0, gt=0.0)
    low_glucose_threshold: float = Field(default=3.9, gt=0.0)
    high_glucose_threshold: float = Field(default=10.0, gt=0.0)
    control_iq_horizon_minutes: int = Field(default=30, gt=0, le=120)
    control_iq_low_limit: float = Field(default=3.9, gt=0.0)
    control_iq_high_limit: float = Field(default=10.0, gt=0.0)

    @model_validator(mode="after")
    def _check_consistency(self) -> "PumpConfigModel":
        if self.initial_battery_percent > self.battery_capacity_percent:
            raise ValueError("initial_battery_percent exceeds battery_capacity_percent")
        if self.initial_reservoir_units > self.reservoir_capacity_units:
            raise ValueError("initial_reservoir_units exceeds reservoir_capacity_units")
        if self.min_glucose >= self.max_glucose:
            raise ValueError("min_glucose must be below max_glucose")
        if self.low_glucose_threshold >= self.high_glucose_threshold:
            raise ValueError("low_glucose_threshold must be below high_glucose_threshold")
        if self.control_iq_low_limit >= self.control_iq_high_limit:
            raise ValueError("control_iq_low_limit must be below control_iq_high_limit")
        return self
