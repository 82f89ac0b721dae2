"""External data providers behind the feed and weather ports."""

from .base import FeedProvider, WeatherProvider
from .emoncms import EmoncmsFeedProvider
from .open_meteo import OpenMeteoWeatherProvider

__all__ = [
    "EmoncmsFeedProvider",
    "FeedProvider",
    "OpenMeteoWeatherProvider",
    "WeatherProvider",
]
