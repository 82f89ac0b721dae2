"""Shared fixtures for smart meter tests."""

from datetime import datetime, timedelta, timezone

import pytest

from smart_meter.models import Reading


def _make_reading(timestamp: datetime, **overrides) -> Reading:
    values = {
        "solar_kw": 5.0,
        "wind_kw": 2.0,
        "consumption_kw": 6.0,
        "grid_import_kw": 0.0,
        "battery_level_pct": 78.0,
        "efficiency_pct": 90.0,
    }
    values.update(overrides)
    return Reading(timestamp=timestamp, **values)


@pytest.fixture
def make_reading():
    """Factory building a Reading at a timestamp with overridable values."""
    return _make_reading


@pytest.fixture
def base_time() -> datetime:
    return datetime(2024, 6, 15, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def hourly_readings(base_time):
    """48 readings one hour apart, starting 2024-06-15 00:00 UTC."""
    return [
        _make_reading(base_time + timedelta(hours=i), solar_kw=float(i % 12))
        for i in range(48)
    ]
