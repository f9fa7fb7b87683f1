from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Iterator, List

import numpy as np
import pandas as pd

from pumpsim.core.errors import InsufficientDataError, NoDataError


@dataclass(frozen=True)
class GlucoseReading:
    timestamp: datetime
    value: float  # mmol/L
    is_valid: bool = True


class GlucoseWindow:
    """
    Read-only view over the readings of a series whose timestamps fall in
    ``[start, end]``. Iterating re-scans the series, so the view can be
    consumed any number of times.
    """

    def __init__(self, readings: List[GlucoseReading], start: datetime, end: datetime) -> None:
        self._readings = readings
        self.start = start
        self.end = end

    def __iter__(self) -> Iterator[GlucoseReading]:
        for reading in self._readings:
            if self.start <= reading.timestamp <= self.end:
                yield reading

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def values(self) -> np.ndarray:
        return np.array([reading.value for reading in self], dtype=float)


class GlucoseSeries:
    """
    Append-only CGM reading log.

    Readings are kept in insertion order; callers append in non-decreasing
    time order and the series never re-sorts.
    """

    def __init__(self) -> None:
        self._readings: List[GlucoseReading] = []

    def __len__(self) -> int:
        return len(self._readings)

    def append(self, value: float, timestamp: datetime) -> GlucoseReading:
        if not math.isfinite(value):
            raise ValueError(f"Glucose value must be finite, got {value!r}")
        reading = GlucoseReading(timestamp=timestamp, value=float(value), is_valid=True)
        self._readings.append(reading)
        return reading

    @property
    def readings(self) -> List[GlucoseReading]:
        return list(self._readings)

    def current(self) -> GlucoseReading:
        if not self._readings:
            raise NoDataError("No glucose readings recorded")
        return self._readings[-1]

    def range(self, start: datetime, end: datetime) -> GlucoseWindow:
        return GlucoseWindow(self._readings, start, end)

    def _window_values(self, start: datetime, end: datetime) -> np.ndarray:
        values = self.range(start, end).values()
        if values.size == 0:
            raise InsufficientDataError(f"No glucose readings between {start} and {end}")
        return values

    def average(self, start: datetime, end: datetime) -> float:
        return float(np.mean(self._window_values(start, end)))

    def standard_deviation(self, start: datetime, end: datetime) -> float:
        # Population form: divisor is the reading count
        return float(np.std(self._window_values(start, end), ddof=0))

    def time_in_range(self, low: float, high: float, start: datetime, end: datetime) -> float:
        """Fraction (0-1) of readings in the window within ``[low, high]``."""
        values = self._window_values(start, end)
        in_range = np.count_nonzero((values >= low) & (values <= high))
        return float(in_range) / float(values.size)

    def trend(self) -> float:
        """Rate of change in mmol/L per minute over the two most recent readings."""
        if len(self._readings) < 2:
            raise InsufficientDataError("Trend needs at least two readings")
        previous, latest = self._readings[-2], self._readings[-1]
        elapsed_minutes = (latest.timestamp - previous.timestamp).total_seconds() / 60.0
        if elapsed_minutes <= 0:
            return 0.0
        return (latest.value - previous.value) / elapsed_minutes

    def predict(self, minutes_ahead: float) -> float:
        """Linear extrapolation of the current value. Not clamped."""
        return self.current().value + self.trend() * minutes_ahead

    def is_low(self, threshold: float = 3.9) -> bool:
        return self.current().value < threshold

    def is_high(self, threshold: float = 10.0) -> bool:
        return self.current().value > threshold

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(
            [
                {"timestamp": r.timestamp, "glucose_mmol": r.value, "is_valid": r.is_valid}
                for r in self._readings
            ],
            columns=["timestamp", "glucose_mmol", "is_valid"],
        )
