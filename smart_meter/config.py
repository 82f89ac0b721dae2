"""Configuration management for the smart meter simulator."""

import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from smart_meter.errors import ConfigurationInvalid
from smart_meter.models import SimulationMode
from smart_meter.storage import InfluxDBConfig


@dataclass
class SimulationConfig:
    """Simulation loop configuration."""

    mode: str = SimulationMode.AUTO.value
    tick_interval_ms: int = 5000
    device_id: str = "smart-meter-001"
    output_file: Optional[str] = None
    seed: Optional[int] = None
    timezone: Optional[str] = None  # IANA name for time-of-day patterns; None = UTC timestamps


@dataclass
class BatteryConfig:
    """Battery storage configuration."""

    capacity_kwh: float = 10.0
    round_trip_efficiency: float = 0.9
    reserve_floor_pct: float = 5.0
    initial_level_pct: float = 78.0
    tick_hours: float = 5 / 60  # Energy-per-tick: each tick moves 5 minutes of power


@dataclass
class HistoryConfig:
    """History retention configuration."""

    max_in_memory: int = 1000
    max_persisted: int = 100
    state_dir: str = ".smart_meter"


@dataclass
class ProviderConfig:
    """External data provider configuration.

    Supports environment variable overrides:
    - EMONCMS_URL: Metering feed base URL
    - EMONCMS_API_KEY: Metering feed API key
    - WEATHER_API_KEY: Weather provider key

    Keys are opaque and are masked in repr() so they never reach a log line.
    """

    emoncms_url: str = "https://emoncms.org"
    emoncms_api_key: str = field(default="demo", repr=False)
    weather_url: str = "https://api.open-meteo.com/v1/forecast"
    weather_api_key: Optional[str] = field(default=None, repr=False)
    timeout_seconds: float = 5.0

    def __post_init__(self) -> None:
        """Apply environment variable overrides only when values are at defaults."""
        if self.emoncms_url == "https://emoncms.org":
            self.emoncms_url = os.environ.get("EMONCMS_URL", self.emoncms_url)
        if self.emoncms_api_key == "demo":
            self.emoncms_api_key = os.environ.get("EMONCMS_API_KEY", self.emoncms_api_key)
        if self.weather_api_key is None:
            self.weather_api_key = os.environ.get("WEATHER_API_KEY")


@dataclass
class MonitorConfig:
    """Main configuration."""

    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    battery: BatteryConfig = field(default_factory=BatteryConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    providers: ProviderConfig = field(default_factory=ProviderConfig)
    influxdb: InfluxDBConfig = field(default_factory=InfluxDBConfig)

    @property
    def mode(self) -> SimulationMode:
        return SimulationMode.parse(self.simulation.mode)

    @property
    def tick_interval_seconds(self) -> float:
        return self.simulation.tick_interval_ms / 1000

    def validate(self) -> "MonitorConfig":
        """Check numeric types and ranges.

        Raises:
            ConfigurationInvalid: If any value is mistyped or out of range
        """
        try:
            SimulationMode.parse(self.simulation.mode)
        except ValueError as exc:
            raise ConfigurationInvalid(f"Unknown simulation mode: {self.simulation.mode!r}") from exc

        if self.simulation.timezone:
            try:
                ZoneInfo(self.simulation.timezone)
            except (ZoneInfoNotFoundError, ValueError) as exc:
                raise ConfigurationInvalid(f"Unknown timezone: {self.simulation.timezone!r}") from exc

        numbers = {
            "tick_interval_ms": self.simulation.tick_interval_ms,
            "capacity_kwh": self.battery.capacity_kwh,
            "round_trip_efficiency": self.battery.round_trip_efficiency,
            "reserve_floor_pct": self.battery.reserve_floor_pct,
            "initial_level_pct": self.battery.initial_level_pct,
            "tick_hours": self.battery.tick_hours,
            "max_in_memory": self.history.max_in_memory,
            "max_persisted": self.history.max_persisted,
            "timeout_seconds": self.providers.timeout_seconds,
        }
        for name, value in numbers.items():
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigurationInvalid(f"{name} must be a number, got {value!r}")
        if not isinstance(self.history.max_in_memory, int) or not isinstance(self.history.max_persisted, int):
            raise ConfigurationInvalid("max_in_memory and max_persisted must be whole numbers")

        if self.simulation.tick_interval_ms <= 0:
            raise ConfigurationInvalid("tick_interval_ms must be positive")
        if self.battery.capacity_kwh <= 0:
            raise ConfigurationInvalid("capacity_kwh must be positive")
        if not 0 < self.battery.round_trip_efficiency <= 1:
            raise ConfigurationInvalid("round_trip_efficiency must be in the range (0, 1]")
        if not 0 <= self.battery.reserve_floor_pct <= 100:
            raise ConfigurationInvalid("reserve_floor_pct must be within [0, 100]")
        if not 0 <= self.battery.initial_level_pct <= 100:
            raise ConfigurationInvalid("initial_level_pct must be within [0, 100]")
        if self.battery.tick_hours <= 0:
            raise ConfigurationInvalid("tick_hours must be positive")
        if self.history.max_in_memory <= 0 or self.history.max_persisted <= 0:
            raise ConfigurationInvalid("max_in_memory and max_persisted must be positive")
        if self.history.max_persisted > self.history.max_in_memory:
            raise ConfigurationInvalid("max_persisted cannot exceed max_in_memory")
        if self.providers.timeout_seconds <= 0:
            raise ConfigurationInvalid("timeout_seconds must be positive")
        return self

    @classmethod
    def from_dict(cls, data: dict) -> "MonitorConfig":
        """Create config from dictionary."""
        try:
            return cls(
                simulation=SimulationConfig(**data.get("simulation", {})),
                battery=BatteryConfig(**data.get("battery", {})),
                history=HistoryConfig(**data.get("history", {})),
                providers=ProviderConfig(**data.get("providers", {})),
                influxdb=InfluxDBConfig(**data.get("influxdb", {})),
            )
        except TypeError as e:
            raise ConfigurationInvalid(f"Invalid configuration format: {e}") from e

    @classmethod
    def from_file(cls, path: Path) -> "MonitorConfig":
        """Load config from JSON file."""
        try:
            with open(path) as f:
                data = json.load(f)
        except FileNotFoundError as exc:
            raise FileNotFoundError(
                f"Configuration file not found: {path}",
            ) from exc
        except json.JSONDecodeError as exc:
            raise ConfigurationInvalid(f"Invalid JSON in configuration file {path}: {exc}") from exc
        except OSError as exc:
            raise RuntimeError(
                f"Failed to load configuration from {path}: {exc}",
            ) from exc
        return cls.from_dict(data)

    def to_dict(self, include_secrets: bool = False) -> dict:
        """Convert config to dictionary.

        Provider keys and the InfluxDB token are blanked unless include_secrets is set.
        """
        data = asdict(self)
        if not include_secrets:
            data["providers"]["emoncms_api_key"] = "demo"
            data["providers"]["weather_api_key"] = None
            data["influxdb"]["token"] = ""
        return data

    def to_file(self, path: Path) -> None:
        """Save config to JSON file."""
        try:
            with open(path, "w") as f:
                json.dump(self.to_dict(), f, indent=2)
        except OSError as exc:
            raise RuntimeError(
                f"Failed to save configuration to {path}: {exc}",
            ) from exc


# Default configuration template
DEFAULT_CONFIG = MonitorConfig()
