"""InfluxDB client for mirroring telemetry readings to a time series database.

The in-process HistoryStore keeps only a bounded window; this sink lets a
deployment retain the full series in a local InfluxDB instance.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Optional

from influxdb_client import InfluxDBClient, Point
from influxdb_client.client.write_api import SYNCHRONOUS

from smart_meter.models import Reading

logger = logging.getLogger(__name__)


@dataclass
class InfluxDBConfig:
    """Configuration for InfluxDB connection.

    Supports environment variable overrides:
    - INFLUXDB_URL: Server URL
    - INFLUXDB_TOKEN: Authentication token
    - INFLUXDB_ORG: Organization name
    - INFLUXDB_BUCKET: Bucket name

    Attributes:
        url: InfluxDB server URL (e.g., "http://localhost:8086")
        token: Authentication token for InfluxDB
        org: Organization name in InfluxDB
        bucket: Bucket name for storing data
        enabled: Whether InfluxDB storage is enabled
    """

    url: str = "http://localhost:8086"
    token: str = field(default="", repr=False)
    org: str = "smart-meter"
    bucket: str = "telemetry"
    enabled: bool = False

    def __post_init__(self) -> None:
        """Apply environment variable overrides only when values are at defaults.

        Precedence: explicit args > env vars > defaults
        """
        if self.url == "http://localhost:8086":
            self.url = os.environ.get("INFLUXDB_URL", self.url)
        if self.token == "":
            self.token = os.environ.get("INFLUXDB_TOKEN", self.token)
        if self.org == "smart-meter":
            self.org = os.environ.get("INFLUXDB_ORG", self.org)
        if self.bucket == "telemetry":
            self.bucket = os.environ.get("INFLUXDB_BUCKET", self.bucket)


class InfluxDBStorage:
    """InfluxDB sink for telemetry readings.

    Each Reading becomes one point of the "telemetry" measurement tagged
    with the device id.

    Example:
        >>> config = InfluxDBConfig(token="my-token", enabled=True)
        >>> with InfluxDBStorage(config, device_id="smart-meter-001") as storage:
        ...     storage.write(reading)
    """

    MEASUREMENT = "telemetry"

    def __init__(self, config: InfluxDBConfig, device_id: str = "smart-meter-001") -> None:
        """Initialize InfluxDB storage.

        Args:
            config: InfluxDB configuration
            device_id: Tag value attached to every point

        Raises:
            ValueError: If storage is enabled without a token
        """
        self.config = config
        self.device_id = device_id
        self._client: Optional[InfluxDBClient] = None
        self._write_api = None

        if not config.enabled:
            logger.info("InfluxDB storage is disabled")
            return

        if not config.token:
            raise ValueError("InfluxDB token is required when storage is enabled")

        self._connect()

    def _connect(self) -> None:
        """Establish connection to InfluxDB."""
        try:
            self._client = InfluxDBClient(
                url=self.config.url,
                token=self.config.token,
                org=self.config.org,
            )
            self._write_api = self._client.write_api(write_options=SYNCHRONOUS)
            logger.info(
                "Connected to InfluxDB at %s (org=%s, bucket=%s)",
                self.config.url,
                self.config.org,
                self.config.bucket,
            )
        except Exception as e:
            logger.exception("Failed to connect to InfluxDB: %s", e)
            raise

    def is_connected(self) -> bool:
        """Check if connected to InfluxDB.

        Returns:
            True if connected and ready to write
        """
        if not self.config.enabled:
            return False
        return self._client is not None and self._write_api is not None

    def _reading_to_point(self, reading: Reading) -> Point:
        return (
            Point(self.MEASUREMENT)
            .tag("device_id", self.device_id)
            .field("solar_kw", reading.solar_kw)
            .field("wind_kw", reading.wind_kw)
            .field("consumption_kw", reading.consumption_kw)
            .field("grid_import_kw", reading.grid_import_kw)
            .field("battery_level_pct", reading.battery_level_pct)
            .field("efficiency_pct", reading.efficiency_pct)
            .field("net_power_kw", reading.net_power_kw)
            .time(reading.timestamp)
        )

    def write(self, reading: Reading) -> bool:
        """Write one reading.

        Returns:
            True if write was successful (or storage is disabled), False otherwise
        """
        return self.write_batch([reading])

    def write_batch(self, readings: list[Reading]) -> bool:
        """Write several readings in one request.

        Returns:
            True if the write was successful (or storage is disabled), False otherwise
        """
        if not self.config.enabled:
            return True  # Silently succeed when disabled

        if not self.is_connected():
            logger.warning("Not connected to InfluxDB, skipping write")
            return False

        try:
            points = [self._reading_to_point(r) for r in readings]
            self._write_api.write(
                bucket=self.config.bucket,
                org=self.config.org,
                record=points,
            )
            logger.debug("Wrote %d points to InfluxDB for device %s", len(points), self.device_id)
            return True
        except Exception as e:
            logger.exception("Failed to write to InfluxDB: %s", e)
            return False

    def close(self) -> None:
        """Close the InfluxDB connection."""
        if self._write_api:
            try:
                self._write_api.close()
            except Exception as e:
                logger.debug("Error closing InfluxDB write API: %s", e)
            self._write_api = None

        if self._client:
            try:
                self._client.close()
            except Exception as e:
                logger.debug("Error closing InfluxDB client: %s", e)
            self._client = None

        logger.info("Closed InfluxDB connection")

    def __enter__(self) -> "InfluxDBStorage":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()
