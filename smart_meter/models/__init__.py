"""Data models for smart meter telemetry."""

from .telemetry import (
    BatteryMode,
    BatteryState,
    BatteryUpdate,
    FeedSample,
    Reading,
    SimulationMode,
)
from .query import Filter, Page, QueryResult
from .site import AmbientConditions, GenerationAssetConfig, PowerEstimate, SiteLocation

__all__ = [
    "AmbientConditions",
    "BatteryMode",
    "BatteryState",
    "BatteryUpdate",
    "FeedSample",
    "Filter",
    "GenerationAssetConfig",
    "Page",
    "PowerEstimate",
    "QueryResult",
    "Reading",
    "SimulationMode",
    "SiteLocation",
]
