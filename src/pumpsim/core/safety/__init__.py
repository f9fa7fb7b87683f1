from .config import PumpSafetyConfig
from .input_validator import InputValidator

__all__ = ["PumpSafetyConfig", "InputValidator"]
