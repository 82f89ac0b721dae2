"""Simulators for the smart meter's assets and loads."""

from .battery import BatteryModel
from .home_load import HomeLoadSimulator
from .manual import ManualSimulator
from .power_model import estimate_output, estimate_solar_kw, estimate_wind_kw
from .solar import SolarSimulator
from .wind import WindSimulator

__all__ = [
    "BatteryModel",
    "HomeLoadSimulator",
    "ManualSimulator",
    "SolarSimulator",
    "WindSimulator",
    "estimate_output",
    "estimate_solar_kw",
    "estimate_wind_kw",
]
