"""Client for the Emoncms feed list API."""

import logging
from typing import Any, Optional

import requests

from smart_meter.errors import ProviderUnavailable
from smart_meter.models import FeedSample

logger = logging.getLogger(__name__)


class EmoncmsFeedProvider:
    """Reads solar, wind and consumption values from an Emoncms feed list.

    Feeds are matched by a case-insensitive substring of their name. A feed
    that is missing or has no value keeps the last value seen for it.
    """

    name = "emoncms"

    FEED_NAMES = {
        "solar_kw": "solar",
        "wind_kw": "wind",
        "consumption_kw": "consumption",
    }

    def __init__(
        self,
        api_key: str = "demo",
        base_url: str = "https://emoncms.org",
        timeout_seconds: float = 5.0,
        session: Optional[requests.Session] = None,
        initial_values: Optional[dict[str, float]] = None,
    ) -> None:
        """
        Initialize the feed provider.

        Args:
            api_key: Emoncms read API key
            base_url: Emoncms server root
            timeout_seconds: Default request timeout
            session: Optional requests session (a new one is created if None)
            initial_values: Values used before a feed has reported anything
        """
        self._api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._session = session or requests.Session()
        self._last_values: dict[str, float] = {
            "solar_kw": 4.2,
            "wind_kw": 1.8,
            "consumption_kw": 6.5,
        }
        if initial_values:
            self._last_values.update(initial_values)

    def __repr__(self) -> str:
        return f"EmoncmsFeedProvider(base_url={self.base_url!r})"

    def set_api_key(self, api_key: str) -> None:
        self._api_key = api_key

    def _fetch_feed_list(self, timeout: float) -> list[dict[str, Any]]:
        url = f"{self.base_url}/feed/list.json"
        try:
            response = self._session.get(url, params={"apikey": self._api_key}, timeout=timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.Timeout as e:
            raise ProviderUnavailable(self.name, f"request timed out after {timeout}s") from e
        except requests.HTTPError as e:
            raise ProviderUnavailable(self.name, f"HTTP {e.response.status_code}") from e
        except requests.JSONDecodeError as e:
            raise ProviderUnavailable(self.name, "response was not valid JSON") from e
        except requests.RequestException as e:
            # Exception text can echo the request URL, which carries the API key
            raise ProviderUnavailable(self.name, type(e).__name__) from e
        except ValueError as e:
            raise ProviderUnavailable(self.name, "response was not valid JSON") from e

        if not isinstance(payload, list):
            raise ProviderUnavailable(self.name, "unexpected response shape")
        return [feed for feed in payload if isinstance(feed, dict)]

    @staticmethod
    def _feed_value(feeds: list[dict[str, Any]], needle: str) -> Optional[float]:
        for feed in feeds:
            name = str(feed.get("name") or "").lower()
            if needle in name:
                try:
                    return float(feed["value"])
                except (KeyError, TypeError, ValueError):
                    return None
        return None

    def fetch_reading(self, timeout: Optional[float] = None) -> FeedSample:
        """Fetch the current feed values.

        Raises:
            ProviderUnavailable: If the request fails or the response is unusable
        """
        feeds = self._fetch_feed_list(timeout or self.timeout_seconds)
        for field_name, needle in self.FEED_NAMES.items():
            value = self._feed_value(feeds, needle)
            if value is not None:
                self._last_values[field_name] = value

        logger.debug("Fetched %d feeds from %s", len(feeds), self.base_url)
        return FeedSample(
            solar_kw=max(0.0, self._last_values["solar_kw"]),
            wind_kw=max(0.0, self._last_values["wind_kw"]),
            consumption_kw=max(0.0, self._last_values["consumption_kw"]),
        )

    def close(self) -> None:
        self._session.close()
