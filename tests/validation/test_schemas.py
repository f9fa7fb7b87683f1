import pytest
from pydantic import ValidationError

from pumpsim.validation import (
    format_validation_error,
    load_default_profile,
    load_profile,
    load_pump_config,
    validate_profile_dict,
    validate_pump_config_dict,
)
from pumpsim.validation.schemas import parse_segment_start


def profile_payload(**overrides):
    payload = {
        "name": "Weekend",
        "insulin_action_duration_hours": 4.5,
        "basal_rates": {"00:00": 0.4, "06:30": 0.9},
        "carb_ratios": {"00:00": 12},
        "correction_factors": {"00:00": 2.5},
        "target_glucoses": {"00:00": 6.0},
    }
    payload.update(overrides)
    return payload


def test_parse_segment_start():
    assert parse_segment_start("00:00") == 0
    assert parse_segment_start("6:30") == 390
    assert parse_segment_start(1320) == 1320
    for bad in ("24:00", "12:60", "noon", 1440):
        with pytest.raises(ValueError):
            parse_segment_start(bad)


def test_profile_model_normalizes_segments():
    model = validate_profile_dict(profile_payload())

    assert model.basal_rates == {0: 0.4, 390: 0.9}
    assert model.carb_ratios == {0: 12.0}


def test_profile_model_rejects_bad_values():
    with pytest.raises(ValidationError):
        validate_profile_dict(profile_payload(carb_ratios={"00:00": 0}))
    with pytest.raises(ValidationError):
        validate_profile_dict(profile_payload(basal_rates={}))
    with pytest.raises(ValidationError):
        validate_profile_dict(profile_payload(insulin_action_duration_hours=0))
    with pytest.raises(ValidationError):
        validate_profile_dict(profile_payload(unexpected=True))
    with pytest.raises(ValidationError):
        validate_profile_dict(profile_payload(basal_rates={"00:00": None}))
    with pytest.raises(ValidationError):
        validate_profile_dict(profile_payload(basal_rates={"00:00": [0.5]}))
    with pytest.raises(ValidationError):
        validate_profile_dict(profile_payload(basal_rates={"00:00": float("nan")}))
    with pytest.raises(ValidationError):
        validate_profile_dict(profile_payload(carb_ratios={"00:00": float("inf")}))


def test_format_validation_error_lists_locations():
    with pytest.raises(ValidationError) as excinfo:
        validate_profile_dict(profile_payload(name=""))

    lines = format_validation_error(excinfo.value)
    assert any(line.startswith("name:") for line in lines)


def test_load_profile_from_yaml(tmp_path):
    path = tmp_path / "weekend.yaml"
    path.write_text(
        "name: Weekend\n"
        "insulin_action_duration_hours: 4\n"
        "basal_rates:\n"
        "  \"00:00\": 0.4\n"
        "  \"22:00\": 0.6\n"
        "carb_ratios:\n"
        "  \"00:00\": 12\n"
        "correction_factors:\n"
        "  \"00:00\": 2.5\n"
        "target_glucoses:\n"
        "  \"00:00\": 6.0\n"
    )

    profile = load_profile(path)
    assert profile.is_valid()
    assert profile.basal_rate(23, 0) == 0.6
    assert profile.basal_rate(1, 0) == 0.4


def test_default_profile_preset():
    profile = load_default_profile()

    assert profile.name == "Default"
    assert profile.is_valid()
    assert set(profile.carb_ratios.all_entries().values()) == {15.0}
    assert len(profile.target_glucoses) == 24


def test_pump_config_defaults_and_overrides(tmp_path):
    assert validate_pump_config_dict({}).reservoir_capacity_units == 300.0

    path = tmp_path / "pump.yaml"
    path.write_text("reservoir_capacity_units: 200\nlow_insulin_threshold_units: 20\n")
    config = load_pump_config(path)
    assert config.reservoir_capacity_units == 200.0
    assert config.low_insulin_threshold_units == 20.0
    assert config.low_battery_clear_percent == 15.0


def test_pump_config_rejects_inconsistent_limits():
    with pytest.raises(ValidationError):
        validate_pump_config_dict({"initial_reservoir_units": 400})
    with pytest.raises(ValidationError):
        validate_pump_config_dict({"low_glucose_threshold": 12.0})
    with pytest.raises(ValidationError):
        validate_pump_config_dict({"unknown_key": 1})
