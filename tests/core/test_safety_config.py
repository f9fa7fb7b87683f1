from pumpsim.core.controller import PumpController
from pumpsim.core.safety import PumpSafetyConfig
from pumpsim.core.safety.input_validator import InputValidator


def test_input_validator_uses_safety_config():
    config = PumpSafetyConfig(min_glucose=2.0, max_glucose=25.0)
    validator = InputValidator(safety_config=config)

    assert validator.min_glucose == 2.0
    assert validator.max_glucose == 25.0


def test_controller_uses_capacities_from_config():
    config = PumpSafetyConfig(reservoir_capacity_units=200.0, initial_battery_percent=40.0)
    pump = PumpController(safety_config=config)

    assert pump.battery_level == 40.0
    pump.power_on()
    pump.refill_insulin(500.0)
    assert pump.insulin_level == 200.0


def test_controller_uses_low_insulin_threshold_from_config():
    pump = PumpController(safety_config=PumpSafetyConfig(low_insulin_threshold_units=10.0))
    pump.power_on()
    pump.refill_insulin(30.0)
    pump.start_basal()

    pump.deliver_bolus(15.0)
    assert pump.error_kind.value == "none"
    pump.deliver_bolus(6.0)
    assert pump.error_kind.value == "low_insulin"
