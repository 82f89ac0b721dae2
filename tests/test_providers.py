"""Tests for the Emoncms and Open-Meteo clients."""

from unittest.mock import Mock

import pytest
import requests

from smart_meter.errors import ProviderUnavailable
from smart_meter.providers import EmoncmsFeedProvider, OpenMeteoWeatherProvider


def mock_session(payload=None, **get_kwargs) -> Mock:
    session = Mock(spec=requests.Session)
    response = Mock()
    response.json.return_value = payload
    session.get.return_value = response
    if get_kwargs:
        session.get.configure_mock(**get_kwargs)
    return session


class TestEmoncmsFeedProvider:
    """Tests for EmoncmsFeedProvider."""

    FEEDS = [
        {"id": 1, "name": "Solar PV", "value": "3.25"},
        {"id": 2, "name": "wind_turbine", "value": 1.5},
        {"id": 3, "name": "House consumption", "value": 5.75},
    ]

    def test_fetch_reading(self):
        session = mock_session(self.FEEDS)
        provider = EmoncmsFeedProvider(api_key="abc", session=session)

        sample = provider.fetch_reading()

        assert sample.solar_kw == 3.25
        assert sample.wind_kw == 1.5
        assert sample.consumption_kw == 5.75
        assert sample.efficiency_pct is None
        session.get.assert_called_once_with(
            "https://emoncms.org/feed/list.json",
            params={"apikey": "abc"},
            timeout=5.0,
        )

    def test_timeout_argument_passed_through(self):
        session = mock_session(self.FEEDS)
        EmoncmsFeedProvider(session=session).fetch_reading(timeout=1.5)
        assert session.get.call_args.kwargs["timeout"] == 1.5

    def test_missing_feeds_keep_last_values(self):
        provider = EmoncmsFeedProvider(session=mock_session([{"name": "solar", "value": 2.0}]))

        sample = provider.fetch_reading()

        assert sample.solar_kw == 2.0
        assert sample.wind_kw == 1.8
        assert sample.consumption_kw == 6.5

    def test_null_value_keeps_last_value(self):
        provider = EmoncmsFeedProvider(
            session=mock_session([{"name": "wind", "value": None}]),
            initial_values={"wind_kw": 0.7},
        )
        assert provider.fetch_reading().wind_kw == 0.7

    def test_negative_values_clamped(self):
        provider = EmoncmsFeedProvider(session=mock_session([{"name": "solar", "value": -0.2}]))
        assert provider.fetch_reading().solar_kw == 0.0

    def test_timeout_raises_provider_unavailable(self):
        session = mock_session(side_effect=requests.Timeout())
        provider = EmoncmsFeedProvider(session=session)

        with pytest.raises(ProviderUnavailable) as exc_info:
            provider.fetch_reading()

        assert exc_info.value.provider == "emoncms"
        assert "timed out" in exc_info.value.cause

    def test_http_error(self):
        session = mock_session(self.FEEDS)
        session.get.return_value.raise_for_status.side_effect = requests.HTTPError(response=Mock(status_code=503))

        with pytest.raises(ProviderUnavailable, match="HTTP 503"):
            EmoncmsFeedProvider(session=session).fetch_reading()

    def test_connection_error_does_not_leak_key(self):
        session = mock_session(
            side_effect=requests.ConnectionError("https://emoncms.org/feed/list.json?apikey=s3cret"),
        )

        with pytest.raises(ProviderUnavailable) as exc_info:
            EmoncmsFeedProvider(api_key="s3cret", session=session).fetch_reading()

        assert "s3cret" not in str(exc_info.value)

    def test_invalid_json(self):
        session = mock_session()
        session.get.return_value.json.side_effect = ValueError("Expecting value")

        with pytest.raises(ProviderUnavailable, match="not valid JSON"):
            EmoncmsFeedProvider(session=session).fetch_reading()

    def test_unexpected_shape(self):
        with pytest.raises(ProviderUnavailable, match="unexpected response shape"):
            EmoncmsFeedProvider(session=mock_session({"success": False})).fetch_reading()

    def test_repr_hides_key(self):
        assert "s3cret" not in repr(EmoncmsFeedProvider(api_key="s3cret", session=mock_session()))

    def test_set_api_key(self):
        session = mock_session(self.FEEDS)
        provider = EmoncmsFeedProvider(session=session)

        provider.set_api_key("new-key")
        provider.fetch_reading()

        assert session.get.call_args.kwargs["params"] == {"apikey": "new-key"}


class TestOpenMeteoWeatherProvider:
    """Tests for OpenMeteoWeatherProvider."""

    PAYLOAD = {
        "hourly": {
            "time": ["2024-06-15T00:00", "2024-06-15T01:00"],
            "shortwave_radiation": [650.0, 700.0],
            "temperature_2m": [31.5, 30.0],
            "windspeed_10m": [6.2, 5.0],
        }
    }

    def test_fetch_ambient(self):
        session = mock_session(self.PAYLOAD)
        provider = OpenMeteoWeatherProvider(session=session)

        ambient = provider.fetch_ambient(26.9124, 75.7873)

        assert ambient.irradiance_w_m2 == 650.0
        assert ambient.temperature_c == 31.5
        assert ambient.wind_speed_ms == 6.2
        params = session.get.call_args.kwargs["params"]
        assert params["latitude"] == 26.9124
        assert params["windspeed_unit"] == "ms"
        assert "shortwave_radiation" in params["hourly"]

    def test_missing_variables_use_defaults(self):
        provider = OpenMeteoWeatherProvider(session=mock_session({"hourly": {"temperature_2m": [None]}}))

        ambient = provider.fetch_ambient(0, 0)

        assert ambient.irradiance_w_m2 == 0.0
        assert ambient.temperature_c == 25.0
        assert ambient.wind_speed_ms == 3.0

    def test_timeout(self):
        provider = OpenMeteoWeatherProvider(session=mock_session(side_effect=requests.Timeout()))
        with pytest.raises(ProviderUnavailable) as exc_info:
            provider.fetch_ambient(0, 0)
        assert exc_info.value.provider == "open-meteo"

    def test_unexpected_shape(self):
        provider = OpenMeteoWeatherProvider(session=mock_session([1, 2, 3]))
        with pytest.raises(ProviderUnavailable):
            provider.fetch_ambient(0, 0)
