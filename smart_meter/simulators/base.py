"""Base simulator class with common functionality."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any
import random


class BaseSimulator(ABC):
    """Abstract base class for all reading generators."""

    def __init__(self, seed: int | None = None):
        """
        Initialize the simulator.

        Args:
            seed: Random seed for reproducibility. If None, results will vary.
        """
        self._random = random.Random(seed)

    def _uniform(self, low: float, high: float) -> float:
        """Draw a uniform value in [low, high]."""
        return self._random.uniform(low, high)

    @staticmethod
    def _decimal_hour(timestamp: datetime) -> float:
        """Hour of day including the minute fraction."""
        return timestamp.hour + timestamp.minute / 60

    @abstractmethod
    def generate(self, timestamp: datetime) -> Any:
        """
        Generate simulated data for the given timestamp.

        Args:
            timestamp: The timestamp for which to generate data

        Returns:
            Simulated data appropriate for this simulator
        """
        pass
