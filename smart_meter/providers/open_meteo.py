"""Client for the Open-Meteo forecast API (no API key required)."""

import logging
from typing import Any, Optional

import requests

from smart_meter.errors import ProviderUnavailable
from smart_meter.models import AmbientConditions

logger = logging.getLogger(__name__)

# Used when the forecast omits a variable
DEFAULT_IRRADIANCE_W_M2 = 0.0
DEFAULT_TEMPERATURE_C = 25.0
DEFAULT_WIND_SPEED_MS = 3.0


class OpenMeteoWeatherProvider:
    """Fetches irradiance, air temperature and wind speed for a location.

    Uses the first hourly slot of the forecast. Wind speed is requested in
    m/s so it can feed the turbine power curve directly.
    """

    name = "open-meteo"

    HOURLY_VARIABLES = "shortwave_radiation,temperature_2m,windspeed_10m"

    def __init__(
        self,
        base_url: str = "https://api.open-meteo.com/v1/forecast",
        timeout_seconds: float = 5.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url
        self.timeout_seconds = timeout_seconds
        self._session = session or requests.Session()

    @staticmethod
    def _first_value(hourly: dict[str, Any], key: str, default: float) -> float:
        values = hourly.get(key) or []
        if not values or values[0] is None:
            return default
        try:
            return float(values[0])
        except (TypeError, ValueError):
            return default

    def fetch_ambient(self, latitude: float, longitude: float) -> AmbientConditions:
        """Fetch current ambient conditions.

        Raises:
            ProviderUnavailable: If the request fails or the response is unusable
        """
        params = {
            "latitude": latitude,
            "longitude": longitude,
            "hourly": self.HOURLY_VARIABLES,
            "windspeed_unit": "ms",
            "timezone": "auto",
        }
        try:
            response = self._session.get(self.base_url, params=params, timeout=self.timeout_seconds)
            response.raise_for_status()
            payload = response.json()
        except requests.Timeout as e:
            raise ProviderUnavailable(self.name, f"request timed out after {self.timeout_seconds}s") from e
        except requests.HTTPError as e:
            raise ProviderUnavailable(self.name, f"HTTP {e.response.status_code}") from e
        except requests.JSONDecodeError as e:
            raise ProviderUnavailable(self.name, "response was not valid JSON") from e
        except requests.RequestException as e:
            raise ProviderUnavailable(self.name, str(e)) from e
        except ValueError as e:
            raise ProviderUnavailable(self.name, "response was not valid JSON") from e

        if not isinstance(payload, dict):
            raise ProviderUnavailable(self.name, "unexpected response shape")
        hourly = payload.get("hourly") or {}

        ambient = AmbientConditions(
            irradiance_w_m2=self._first_value(hourly, "shortwave_radiation", DEFAULT_IRRADIANCE_W_M2),
            temperature_c=self._first_value(hourly, "temperature_2m", DEFAULT_TEMPERATURE_C),
            wind_speed_ms=self._first_value(hourly, "windspeed_10m", DEFAULT_WIND_SPEED_MS),
        )
        logger.debug("Ambient at (%.4f, %.4f): %s", latitude, longitude, ambient)
        return ambient

    def close(self) -> None:
        self._session.close()
