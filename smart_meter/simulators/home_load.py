"""Home consumption simulator with morning and evening peaks."""

from datetime import datetime
from typing import Optional

from .base import BaseSimulator


class HomeLoadSimulator(BaseSimulator):
    """
    Simulates household consumption for the auto generation mode.

    Models:
    - A random base load redrawn every tick
    - A morning peak (07:00-09:59)
    - A larger evening peak (17:00-21:59)
    """

    def __init__(
        self,
        base_min_kw: float = 4.0,
        base_max_kw: float = 7.0,
        *,
        morning_peak_kw: float = 2.0,
        evening_peak_kw: float = 3.0,
        morning_hours: tuple[int, int] = (7, 9),
        evening_hours: tuple[int, int] = (17, 21),
        seed: Optional[int] = None,
    ) -> None:
        """
        Initialize home load simulator.

        Args:
            base_min_kw: Lower bound of the random base load
            base_max_kw: Upper bound of the random base load
            morning_peak_kw: Load added during the morning hours
            evening_peak_kw: Load added during the evening hours
            morning_hours: Inclusive (first, last) hour of the morning peak
            evening_hours: Inclusive (first, last) hour of the evening peak
            seed: Random seed for reproducibility
        """
        super().__init__(seed)
        if base_min_kw < 0 or base_max_kw < base_min_kw:
            raise ValueError("base bounds must satisfy 0 <= base_min_kw <= base_max_kw")
        self.base_min_kw = base_min_kw
        self.base_max_kw = base_max_kw
        self.morning_peak_kw = morning_peak_kw
        self.evening_peak_kw = evening_peak_kw
        self.morning_hours = morning_hours
        self.evening_hours = evening_hours

    def peak_load(self, timestamp: datetime) -> float:
        """Time-of-day addition on top of the base load."""
        hour = timestamp.hour
        first, last = self.morning_hours
        if first <= hour <= last:
            return self.morning_peak_kw
        first, last = self.evening_hours
        if first <= hour <= last:
            return self.evening_peak_kw
        return 0.0

    def generate(self, timestamp: datetime) -> float:
        """
        Generate household consumption in kW for the given timestamp.

        Args:
            timestamp: The timestamp for which to generate data

        Returns:
            Consumption in kW
        """
        return self._uniform(self.base_min_kw, self.base_max_kw) + self.peak_load(timestamp)
