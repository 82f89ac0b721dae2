"""Solar generation simulator following a daytime sinusoidal envelope."""

import math
from datetime import datetime
from typing import Optional

from .base import BaseSimulator


class SolarSimulator(BaseSimulator):
    """
    Simulates solar array output for the auto generation mode.

    Models:
    - Zero output outside the daylight window (06:00-20:00)
    - A sine arc that rises from 06:00 and peaks at midday
    - A random base level redrawn every tick
    """

    def __init__(
        self,
        base_min_kw: float = 2.0,
        base_max_kw: float = 10.0,
        swing_kw: float = 4.0,  # Amplitude of the daily arc
        sunrise_hour: float = 6.0,
        sunset_hour: float = 20.0,
        seed: Optional[int] = None,
    ):
        """
        Initialize solar simulator.

        Args:
            base_min_kw: Lower bound of the random daytime base level
            base_max_kw: Upper bound of the random daytime base level
            swing_kw: Amplitude of the time-of-day sine arc
            sunrise_hour: Start of the daylight window (exclusive)
            sunset_hour: End of the daylight window (exclusive)
            seed: Random seed for reproducibility
        """
        super().__init__(seed)
        if base_min_kw < 0 or base_max_kw < base_min_kw:
            raise ValueError("base bounds must satisfy 0 <= base_min_kw <= base_max_kw")
        if not 0 <= sunrise_hour < sunset_hour <= 24:
            raise ValueError("daylight window must satisfy 0 <= sunrise_hour < sunset_hour <= 24")
        self.base_min_kw = base_min_kw
        self.base_max_kw = base_max_kw
        self.swing_kw = swing_kw
        self.sunrise_hour = sunrise_hour
        self.sunset_hour = sunset_hour

    def is_daytime(self, timestamp: datetime) -> bool:
        hour = self._decimal_hour(timestamp)
        return self.sunrise_hour < hour < self.sunset_hour

    def _arc(self, hour: float) -> float:
        """Sine arc with zero at sunrise and its crest six hours later."""
        return math.sin((hour - self.sunrise_hour) * math.pi / 12)

    def generate(self, timestamp: datetime) -> float:
        """
        Generate solar output in kW for the given timestamp.

        Args:
            timestamp: The timestamp for which to generate data

        Returns:
            Output in kW, zero at night
        """
        if not self.is_daytime(timestamp):
            return 0.0

        base = self._uniform(self.base_min_kw, self.base_max_kw)
        variation = self._arc(self._decimal_hour(timestamp)) * self.swing_kw
        return max(0.0, base + variation)
