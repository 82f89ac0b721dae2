"""Wind generation simulator with random gusts."""

from datetime import datetime
from typing import Optional

from .base import BaseSimulator


class WindSimulator(BaseSimulator):
    """Base wind output plus an occasional gust spike, independent of time of day."""

    def __init__(
        self,
        base_min_kw: float = 1.0,
        base_max_kw: float = 4.0,
        gust_probability: float = 0.3,
        gust_max_kw: float = 4.0,
        seed: Optional[int] = None,
    ):
        super().__init__(seed)
        if not 0 <= gust_probability <= 1:
            raise ValueError("gust_probability must be within [0, 1]")
        self.base_min_kw = base_min_kw
        self.base_max_kw = base_max_kw
        self.gust_probability = gust_probability
        self.gust_max_kw = gust_max_kw

    def _gust(self) -> float:
        if self._random.random() < self.gust_probability:
            return self._uniform(0, self.gust_max_kw)
        return 0.0

    def generate(self, timestamp: datetime) -> float:
        base = self._uniform(self.base_min_kw, self.base_max_kw)
        return base + self._gust()
