"""Ports for external metering feeds and weather data."""

from typing import Optional, Protocol

from smart_meter.models import AmbientConditions, FeedSample


class FeedProvider(Protocol):
    """Source of live readings for the external simulation mode.

    Implementations raise ProviderUnavailable with a human-readable cause
    on any failure, including timeouts.
    """

    name: str

    def fetch_reading(self, timeout: Optional[float] = None) -> FeedSample: ...


class WeatherProvider(Protocol):
    """Source of ambient conditions for the estimation flow."""

    name: str

    def fetch_ambient(self, latitude: float, longitude: float) -> AmbientConditions: ...
