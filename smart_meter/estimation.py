"""Weather-driven output estimation for a generation site."""

import logging

from smart_meter.models import AmbientConditions, GenerationAssetConfig, PowerEstimate, SiteLocation
from smart_meter.providers import WeatherProvider
from smart_meter.simulators import estimate_output

logger = logging.getLogger(__name__)


class OutputEstimator:
    """Combines a weather provider with the power model."""

    def __init__(self, weather: WeatherProvider) -> None:
        self.weather = weather

    def estimate(self, site: SiteLocation, assets: GenerationAssetConfig) -> PowerEstimate:
        """
        Estimate current site output from live weather.

        Raises:
            ProviderUnavailable: If the weather fetch fails
        """
        ambient = self.weather.fetch_ambient(site.latitude, site.longitude)
        estimate = self.estimate_for(ambient, assets)
        logger.info(
            "Estimated output at (%.4f, %.4f): solar=%.2fkW wind=%.2fkW",
            site.latitude,
            site.longitude,
            estimate.solar_kw,
            estimate.wind_kw,
        )
        return estimate

    @staticmethod
    def estimate_for(ambient: AmbientConditions, assets: GenerationAssetConfig) -> PowerEstimate:
        """Estimate output for known ambient conditions without fetching weather."""
        return estimate_output(ambient, assets)
