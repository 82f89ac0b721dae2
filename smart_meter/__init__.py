"""
Smart Meter - Simulated telemetry for a distributed energy asset

This package provides:
- Solar, wind, consumption and battery simulation on a fixed tick
- Weather-driven solar/wind output estimation
- A bounded telemetry history with persistence, filtering and export

Supports optional mirroring of readings to a local InfluxDB instance.
"""

__all__ = ["__version__"]
__version__ = "0.3.0"
