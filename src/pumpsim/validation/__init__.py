from __future__ import annotations

from dataclasses import asdict
from importlib.resources import files
from pathlib import Path
from typing import Any, Dict, List, Union

import yaml
from pydantic import ValidationError

from pumpsim.core.profile import DosingProfile
from pumpsim.core.safety.config import PumpSafetyConfig
from pumpsim.validation.schemas import ProfileModel, PumpConfigModel, parse_segment_start

DEFAULT_PROFILE_RESOURCE = "default_profile.yaml"


def validate_profile_dict(data: Dict[str, Any]) -> ProfileModel:
    return ProfileModel.model_validate(data)


def profile_from_model(model: ProfileModel) -> DosingProfile:
    profile = DosingProfile(name=model.name, insulin_action_duration_hours=model.insulin_action_duration_hours)
    for minutes, rate in model.basal_rates.items():
        profile.basal_rates.set(minutes, rate)
    for minutes, ratio in model.carb_ratios.items():
        profile.carb_ratios.set(minutes, ratio)
    for minutes, factor in model.correction_factors.items():
        profile.correction_factors.set(minutes, factor)
    for minutes, target in model.target_glucoses.items():
        profile.target_glucoses.set(minutes, target)
    return profile


def load_profile(path: Union[str, Path]) -> DosingProfile:
    data = yaml.safe_load(Path(path).read_text())
    return profile_from_model(validate_profile_dict(data))


def load_default_profile() -> DosingProfile:
    content = files("pumpsim.presets").joinpath(DEFAULT_PROFILE_RESOURCE).read_text()
    return profile_from_model(validate_profile_dict(yaml.safe_load(content)))


def validate_pump_config_dict(data: Dict[str, Any]) -> PumpSafetyConfig:
    model = PumpConfigModel.model_validate(data or {})
    return PumpSafetyConfig(**model.model_dump())


def load_pump_config(path: Union[str, Path]) -> PumpSafetyConfig:
    data = yaml.safe_load(Path(path).read_text())
    return validate_pump_config_dict(data)


def pump_config_to_dict(config: PumpSafetyConfig) -> Dict[str, Any]:
    return asdict(config)


def format_validation_error(error: ValidationError) -> List[str]:
    lines: List[str] = []
    for entry in error.errors():
        loc = ".".join(str(item) for item in entry.get("loc", []))
        msg = entry.get("msg", "Invalid value")
        lines.append(f"{loc}: {msg}" if loc else msg)
    return lines


__all__ = [
    "ProfileModel",
    "PumpConfigModel",
    "parse_segment_start",
    "validate_profile_dict",
    "profile_from_model",
    "load_profile",
    "load_default_profile",
    "validate_pump_config_dict",
    "load_pump_config",
    "pump_config_to_dict",
    "format_validation_error",
]
