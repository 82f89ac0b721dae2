"""Uniform random reading generator used by manual mode and as feed fallback."""

from datetime import datetime
from typing import Optional

from smart_meter.models import FeedSample
from .base import BaseSimulator

# (low, high) bounds in kW / percent
SOLAR_RANGE_KW = (2.0, 10.0)
WIND_RANGE_KW = (0.0, 4.0)
CONSUMPTION_RANGE_KW = (3.0, 8.0)
EFFICIENCY_RANGE_PCT = (85.0, 95.0)


class ManualSimulator(BaseSimulator):
    """Draws every value uniformly from a fixed range, ignoring time of day."""

    def __init__(
        self,
        solar_range_kw: tuple[float, float] = SOLAR_RANGE_KW,
        wind_range_kw: tuple[float, float] = WIND_RANGE_KW,
        consumption_range_kw: tuple[float, float] = CONSUMPTION_RANGE_KW,
        efficiency_range_pct: tuple[float, float] = EFFICIENCY_RANGE_PCT,
        seed: Optional[int] = None,
    ):
        super().__init__(seed)
        for name, (low, high) in (
            ("solar_range_kw", solar_range_kw),
            ("wind_range_kw", wind_range_kw),
            ("consumption_range_kw", consumption_range_kw),
            ("efficiency_range_pct", efficiency_range_pct),
        ):
            if low < 0 or high < low:
                raise ValueError(f"{name} must satisfy 0 <= low <= high")
        self.solar_range_kw = solar_range_kw
        self.wind_range_kw = wind_range_kw
        self.consumption_range_kw = consumption_range_kw
        self.efficiency_range_pct = efficiency_range_pct

    def efficiency(self) -> float:
        return self._uniform(*self.efficiency_range_pct)

    def generate(self, timestamp: datetime) -> FeedSample:
        return FeedSample(
            solar_kw=self._uniform(*self.solar_range_kw),
            wind_kw=self._uniform(*self.wind_range_kw),
            consumption_kw=self._uniform(*self.consumption_range_kw),
            efficiency_pct=self.efficiency(),
        )
