from datetime import datetime
from pathlib import Path
import sys

import pytest

project_root = Path(__file__).resolve().parents[1]
src_path = project_root / "src"

if src_path.exists():
    sys.path.insert(0, str(src_path))

from pumpsim.core.controller import PumpController  # noqa: E402


class FixedClock:
    """Settable wall clock for deterministic controller tests."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 3, 1, 12, 0))


@pytest.fixture
def pump(clock):
    return PumpController(clock=clock)


@pytest.fixture
def running_pump(pump):
    """Powered-on pump with a full reservoir, delivering basal."""
    assert pump.power_on()
    assert pump.refill_insulin(300.0)
    assert pump.start_basal()
    return pump
