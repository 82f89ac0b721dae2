"""Data models for smart meter telemetry and battery state."""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
import json


class SimulationMode(str, Enum):
    """Where a tick's candidate reading comes from."""

    AUTO = "auto"  # Time-of-day aware synthetic model
    MANUAL = "manual"  # Uniform random values
    EXTERNAL = "external"  # External metering feed

    @classmethod
    def parse(cls, value: "str | SimulationMode") -> "SimulationMode":
        """Parse a mode name, accepting the legacy "api" alias for external."""
        if isinstance(value, SimulationMode):
            return value
        normalized = str(value).strip().lower()
        if normalized == "api":
            return cls.EXTERNAL
        return cls(normalized)


class BatteryMode(str, Enum):
    """Direction of the most recent battery energy transfer."""

    CHARGING = "charging"
    DISCHARGING = "discharging"


@dataclass(frozen=True)
class Reading:
    """One telemetry observation, immutable once recorded."""

    timestamp: datetime
    solar_kw: float
    wind_kw: float
    consumption_kw: float
    grid_import_kw: float  # Positive = import, negative = export
    battery_level_pct: float  # 0-100
    efficiency_pct: float

    def __post_init__(self) -> None:
        if self.timestamp.tzinfo is None or self.timestamp.utcoffset() is None:
            raise ValueError("Reading timestamp must be timezone-aware")

    @property
    def net_power_kw(self) -> float:
        """Generation minus consumption."""
        return self.solar_kw + self.wind_kw - self.consumption_kw

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "solar_kw": self.solar_kw,
            "wind_kw": self.wind_kw,
            "consumption_kw": self.consumption_kw,
            "grid_import_kw": self.grid_import_kw,
            "battery_level_pct": self.battery_level_pct,
            "efficiency_pct": self.efficiency_pct,
        }

    def to_json(self, indent: Optional[int] = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: dict) -> "Reading":
        """Create a Reading from dictionary.

        Naive timestamps are read as UTC.

        Raises:
            KeyError: If a field is missing
            ValueError: If a field cannot be converted
        """
        timestamp = datetime.fromisoformat(data["timestamp"])
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return cls(
            timestamp=timestamp,
            solar_kw=float(data["solar_kw"]),
            wind_kw=float(data["wind_kw"]),
            consumption_kw=float(data["consumption_kw"]),
            grid_import_kw=float(data["grid_import_kw"]),
            battery_level_pct=float(data["battery_level_pct"]),
            efficiency_pct=float(data["efficiency_pct"]),
        )


@dataclass(frozen=True)
class FeedSample:
    """Power values reported by an external metering feed."""

    solar_kw: float
    wind_kw: float
    consumption_kw: float
    efficiency_pct: Optional[float] = None


@dataclass
class BatteryState:
    """Battery state owned and mutated by BatteryModel."""

    level_pct: float
    mode: BatteryMode
    capacity_kwh: float = 10.0
    round_trip_efficiency: float = 0.9

    @property
    def is_charging(self) -> bool:
        return self.mode is BatteryMode.CHARGING


@dataclass(frozen=True)
class BatteryUpdate:
    """Outcome of applying one tick of net power to the battery."""

    level_pct: float
    mode: BatteryMode
    delta_pct: float
    grid_support_required: bool = False  # Deficit left for the grid at the reserve floor
