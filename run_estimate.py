"""
Output estimator - predict solar and wind output from weather.

Usage:
    # Live weather from Open-Meteo (Jaipur by default)
    python run_estimate.py --solar-kw 5 --wind-kw 3

    # Another site
    python run_estimate.py --lat 52.52 --lon 13.41 --solar-kw 10

    # Known conditions, no network access
    python run_estimate.py --solar-kw 5 --wind-kw 3 --irradiance 800 --temperature 30 --wind-speed 7.5
"""

import argparse
import json
import logging
import sys

from dotenv import load_dotenv

load_dotenv()

from smart_meter.config import ProviderConfig  # noqa: E402
from smart_meter.errors import ProviderUnavailable  # noqa: E402
from smart_meter.estimation import OutputEstimator  # noqa: E402
from smart_meter.models import AmbientConditions, GenerationAssetConfig, SiteLocation  # noqa: E402
from smart_meter.providers import OpenMeteoWeatherProvider  # noqa: E402

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stderr)],
)
logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(
        description="Estimate solar and wind output for a site",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--lat", type=float, default=26.9124, help="Site latitude (default: 26.9124)")
    parser.add_argument("--lon", type=float, default=75.7873, help="Site longitude (default: 75.7873)")
    parser.add_argument("--solar-kw", type=float, default=0.0, help="Rated solar array size in kW")
    parser.add_argument("--wind-kw", type=float, default=0.0, help="Rated wind turbine output in kW")
    parser.add_argument("--irradiance", type=float, help="Irradiance in W/m2 (skips weather fetch)")
    parser.add_argument("--temperature", type=float, default=25.0, help="Air temperature in C (with --irradiance)")
    parser.add_argument("--wind-speed", type=float, default=0.0, help="Wind speed in m/s (with --irradiance)")
    parser.add_argument("--quiet", action="store_true", help="Suppress log output")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    args = parser.parse_args()

    if args.quiet:
        logging.getLogger().setLevel(logging.WARNING)
    elif args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    assets = GenerationAssetConfig(solar_rated_kw=args.solar_kw, wind_rated_kw=args.wind_kw)

    if args.irradiance is not None:
        ambient = AmbientConditions(
            irradiance_w_m2=args.irradiance,
            temperature_c=args.temperature,
            wind_speed_ms=args.wind_speed,
        )
        estimate = OutputEstimator.estimate_for(ambient, assets)
    else:
        try:
            site = SiteLocation(latitude=args.lat, longitude=args.lon)
        except ValueError as e:
            parser.error(str(e))

        providers = ProviderConfig()
        weather = OpenMeteoWeatherProvider(
            base_url=providers.weather_url,
            timeout_seconds=providers.timeout_seconds,
        )
        try:
            estimate = OutputEstimator(weather).estimate(site, assets)
        except ProviderUnavailable as e:
            logger.error("Weather lookup failed: %s", e.cause)
            raise SystemExit(1) from e
        finally:
            weather.close()

    print(json.dumps(estimate.to_dict(), indent=2))


if __name__ == "__main__":
    main()
