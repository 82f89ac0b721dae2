"""
Simulation engine - produces one telemetry reading per tick.

Supports auto, manual and external-feed generation, continuous scheduling
and historical back-fill.
"""

import logging
import random
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import datetime, timedelta, timezone, tzinfo
from pathlib import Path
from typing import Any, Callable, Optional
from zoneinfo import ZoneInfo

from smart_meter.config import MonitorConfig
from smart_meter.errors import ProviderUnavailable
from smart_meter.models import FeedSample, Reading, SimulationMode
from smart_meter.providers import FeedProvider
from smart_meter.simulators import (
    BatteryModel,
    HomeLoadSimulator,
    ManualSimulator,
    SolarSimulator,
    WindSimulator,
)
from smart_meter.storage import HistoryStore, InfluxDBStorage, PersistencePort

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SimulationEngine:
    """
    Orchestrates the simulators, the battery model and the history store.

    Each tick produces exactly one Reading. Ticks are serialized by an
    internal lock; readers should use history.snapshot().
    """

    def __init__(
        self,
        mode: SimulationMode | str = SimulationMode.AUTO,
        battery: Optional[BatteryModel] = None,
        history: Optional[HistoryStore] = None,
        feed: Optional[FeedProvider] = None,
        *,
        feed_timeout_seconds: float = 5.0,
        emoncms_api_key: str = "demo",
        weather_api_key: Optional[str] = None,
        local_tz: Optional[tzinfo] = None,
        seed: Optional[int] = None,
        clock: Callable[[], datetime] = _utcnow,
        on_warning: Optional[Callable[[str], None]] = None,
    ):
        """
        Initialize the simulation engine.

        Args:
            mode: Initial generation mode
            battery: Battery model (defaults to a 10 kWh battery)
            history: History store (defaults to an unpersisted 1000-reading store)
            feed: External feed used in external mode
            feed_timeout_seconds: Upper bound on a single feed fetch
            emoncms_api_key: Feed key persisted with the engine settings
            weather_api_key: Weather key persisted with the engine settings
            local_tz: Timezone used for time-of-day patterns (None = timestamp's own)
            seed: Random seed for reproducibility
            clock: Source of the current time for ticks without a timestamp
            on_warning: Called with a message when a tick degrades to fallback
        """
        if feed_timeout_seconds <= 0:
            raise ValueError("feed_timeout_seconds must be positive")

        self.mode = SimulationMode.parse(mode)
        self.battery = battery if battery is not None else BatteryModel()
        self.history = history if history is not None else HistoryStore()
        self.feed = feed
        self.feed_timeout_seconds = feed_timeout_seconds
        self.local_tz = local_tz
        self.on_warning = on_warning
        self.last_warning: Optional[str] = None
        self._clock = clock
        self._api_keys: dict[str, Optional[str]] = {
            "emoncms_api_key": emoncms_api_key,
            "weather_api_key": weather_api_key,
        }

        # Initialize simulators
        self.solar = SolarSimulator(seed=seed)
        self.wind = WindSimulator(seed=seed + 1 if seed is not None else None)
        self.home_load = HomeLoadSimulator(seed=seed + 2 if seed is not None else None)
        self.manual = ManualSimulator(seed=seed + 3 if seed is not None else None)
        self._random = random.Random(seed + 4 if seed is not None else None)

        self._lock = threading.Lock()
        self._executor: Optional[ThreadPoolExecutor] = None

    @classmethod
    def from_config(
        cls,
        config: MonitorConfig,
        persistence: Optional[PersistencePort] = None,
        feed: Optional[FeedProvider] = None,
        **kwargs: Any,
    ) -> "SimulationEngine":
        """Build an engine from validated configuration.

        Raises:
            ConfigurationInvalid: If the configuration is out of range
        """
        config.validate()
        battery = BatteryModel(
            capacity_kwh=config.battery.capacity_kwh,
            round_trip_efficiency=config.battery.round_trip_efficiency,
            reserve_floor_pct=config.battery.reserve_floor_pct,
            initial_level_pct=config.battery.initial_level_pct,
            tick_hours=config.battery.tick_hours,
        )
        history = HistoryStore(
            max_in_memory=config.history.max_in_memory,
            max_persisted=config.history.max_persisted,
            persistence=persistence,
        )
        local_tz = ZoneInfo(config.simulation.timezone) if config.simulation.timezone else None
        return cls(
            mode=config.mode,
            battery=battery,
            history=history,
            feed=feed,
            feed_timeout_seconds=config.providers.timeout_seconds,
            emoncms_api_key=config.providers.emoncms_api_key,
            weather_api_key=config.providers.weather_api_key,
            local_tz=local_tz,
            seed=config.simulation.seed,
            **kwargs,
        )

    # Settings

    def settings(self) -> dict[str, Any]:
        """Settings persisted alongside the history."""
        return {"mode": self.mode.value, **self._api_keys}

    def start(self) -> int:
        """Restore history and settings from the persistence port.

        Returns:
            Number of readings restored
        """
        with self._lock:
            settings = self.history.restore()
            if "mode" in settings:
                try:
                    self.mode = SimulationMode.parse(settings["mode"])
                except ValueError:
                    logger.warning("Ignoring unknown persisted mode %r", settings["mode"])
            for key in self._api_keys:
                if settings.get(key):
                    self._api_keys[key] = settings[key]
            self._apply_feed_key()
        logger.info("Engine started in %s mode with %d readings", self.mode.value, len(self.history))
        return len(self.history)

    def set_mode(self, mode: SimulationMode | str) -> None:
        """Switch generation mode and persist the change."""
        with self._lock:
            self.mode = SimulationMode.parse(mode)
            self.history.persist(self.settings())
        logger.info("Simulation mode set to %s", self.mode.value)

    def set_api_keys(self, emoncms_api_key: Optional[str] = None, weather_api_key: Optional[str] = None) -> None:
        """Replace provider keys and persist them."""
        with self._lock:
            self._api_keys["emoncms_api_key"] = emoncms_api_key or "demo"
            self._api_keys["weather_api_key"] = weather_api_key
            self._apply_feed_key()
            self.history.persist(self.settings())
        logger.info("Provider keys updated")

    def _apply_feed_key(self) -> None:
        set_key = getattr(self.feed, "set_api_key", None)
        if callable(set_key):
            set_key(self._api_keys["emoncms_api_key"])

    # Candidate generation

    def _local(self, timestamp: datetime) -> datetime:
        if self.local_tz is None:
            return timestamp
        return timestamp.astimezone(self.local_tz)

    def _generate_auto(self, timestamp: datetime) -> FeedSample:
        local = self._local(timestamp)
        return FeedSample(
            solar_kw=self.solar.generate(local),
            wind_kw=self.wind.generate(local),
            consumption_kw=self.home_load.generate(local),
            efficiency_pct=self._random.uniform(85, 95),
        )

    def _fetch_external(self) -> FeedSample:
        """Fetch from the feed with a hard upper bound on the wait.

        Raises:
            ProviderUnavailable: On any failure or timeout
        """
        if self.feed is None:
            raise ProviderUnavailable("feed", "no feed provider configured")

        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="feed-fetch")
        future = self._executor.submit(self.feed.fetch_reading, self.feed_timeout_seconds)
        try:
            return future.result(timeout=self.feed_timeout_seconds)
        except FutureTimeoutError as e:
            future.cancel()
            # The stuck worker keeps the old pool busy; later ticks get a fresh one
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None
            raise ProviderUnavailable(
                getattr(self.feed, "name", "feed"),
                f"no response within {self.feed_timeout_seconds}s",
            ) from e
        except ProviderUnavailable:
            raise
        except Exception as e:
            raise ProviderUnavailable(getattr(self.feed, "name", "feed"), str(e) or type(e).__name__) from e

    def _warn(self, message: str) -> None:
        self.last_warning = message
        logger.warning(message)
        if self.on_warning:
            try:
                self.on_warning(message)
            except Exception:
                logger.exception("Warning callback failed")

    def _candidate(self, timestamp: datetime) -> FeedSample:
        if self.mode is SimulationMode.AUTO:
            return self._generate_auto(timestamp)
        if self.mode is SimulationMode.MANUAL:
            return self.manual.generate(timestamp)

        try:
            return self._fetch_external()
        except ProviderUnavailable as e:
            self._warn(f"External feed failed, using manual values for this tick: {e}")
            return self.manual.generate(timestamp)

    @staticmethod
    def _aware(timestamp: datetime) -> datetime:
        """Treat naive timestamps as UTC."""
        if timestamp.tzinfo is None:
            return timestamp.replace(tzinfo=timezone.utc)
        return timestamp

    def _next_timestamp(self, timestamp: Optional[datetime]) -> datetime:
        latest = self.history.latest()
        if timestamp is not None:
            timestamp = self._aware(timestamp)
            if latest is not None and timestamp < latest.timestamp:
                raise ValueError(
                    f"Timestamp {timestamp.isoformat()} is before the latest reading "
                    f"{latest.timestamp.isoformat()}"
                )
            return timestamp

        now = self._aware(self._clock())
        if latest is not None and now < latest.timestamp:
            # Clock stepped backwards; keep the history ordered
            return latest.timestamp
        return now

    # Ticking

    def tick(self, timestamp: Optional[datetime] = None) -> Reading:
        """
        Produce, record and persist one reading.

        Args:
            timestamp: Timestamp for the reading. Defaults to the engine clock.

        Returns:
            The recorded Reading

        Raises:
            ValueError: If an explicit timestamp is older than the latest reading
        """
        with self._lock:
            stamp = self._next_timestamp(timestamp)
            self.last_warning = None
            sample = self._candidate(stamp)

            net_power = sample.solar_kw + sample.wind_kw - sample.consumption_kw
            update = self.battery.update(net_power)
            grid_import = abs(net_power) if net_power < 0 and update.grid_support_required else 0.0

            efficiency = sample.efficiency_pct
            if efficiency is None:
                efficiency = self.manual.efficiency()

            reading = Reading(
                timestamp=stamp,
                solar_kw=round(sample.solar_kw, 2),
                wind_kw=round(sample.wind_kw, 2),
                consumption_kw=round(sample.consumption_kw, 2),
                grid_import_kw=round(grid_import, 2),
                battery_level_pct=round(update.level_pct, 1),
                efficiency_pct=round(efficiency, 1),
            )
            self.history.append(reading)
            self.history.persist(self.settings())

        logger.debug("Tick at %s (%s mode)", stamp.isoformat(), self.mode.value)
        return reading

    def generate_historical(
        self,
        start: datetime,
        end: datetime,
        interval_minutes: int = 5,
    ) -> list[Reading]:
        """
        Back-fill the history by ticking at fixed intervals.

        Args:
            start: Start timestamp
            end: End timestamp (inclusive)
            interval_minutes: Interval between readings

        Returns:
            List of recorded readings
        """
        if interval_minutes <= 0:
            raise ValueError("interval_minutes must be positive")

        readings = []
        current = start
        interval = timedelta(minutes=interval_minutes)

        while current <= end:
            readings.append(self.tick(current))
            current += interval

        return readings

    def get_recent(self, hours: float = 24) -> list[Reading]:
        """Readings from the last given hours of the history."""
        cutoff = self._clock() - timedelta(hours=hours)
        return [r for r in self.history.snapshot() if r.timestamp >= cutoff]

    def test_feed_connection(self) -> bool:
        """Try the external feed once without recording a reading."""
        try:
            self._fetch_external()
        except ProviderUnavailable as e:
            logger.warning("Feed connection test failed: %s", e)
            return False
        logger.info("Feed connection test succeeded")
        return True

    def close(self) -> None:
        """Release the feed worker thread."""
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None


class EngineRunner:
    """
    Runner for single-shot or continuous ticking.
    """

    def __init__(
        self,
        engine: SimulationEngine,
        output_callback: Optional[Callable[[Reading], None]] = None,
        output_file: Optional[Path] = None,
        influxdb: Optional[InfluxDBStorage] = None,
    ):
        """
        Initialize the runner.

        Args:
            engine: The simulation engine
            output_callback: Optional callback function for each reading
            output_file: Optional file path to append JSON lines
            influxdb: Optional InfluxDB sink mirroring every reading
        """
        self.engine = engine
        self.output_callback = output_callback
        self.output_file = output_file
        self.influxdb = influxdb
        self._stop_event = threading.Event()
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def _output_reading(self, reading: Reading) -> None:
        """Output reading to configured destinations."""
        logger.info(
            "Reading: Solar=%.2fkW, Wind=%.2fkW, Load=%.2fkW, Battery=%.1f%%, Grid=%.2fkW",
            reading.solar_kw,
            reading.wind_kw,
            reading.consumption_kw,
            reading.battery_level_pct,
            reading.grid_import_kw,
        )

        if self.output_callback:
            self.output_callback(reading)

        if self.influxdb:
            self.influxdb.write(reading)

        if self.output_file:
            try:
                with open(self.output_file, "a") as f:
                    f.write(reading.to_json(indent=None) + "\n")
            except OSError as e:
                logger.error("Failed to write to %s: %s", self.output_file, e)

    def run_once(self) -> Reading:
        """Tick once and output the reading."""
        reading = self.engine.tick()
        self._output_reading(reading)
        return reading

    def run_continuous(
        self,
        interval_seconds: float = 5.0,
        duration_seconds: Optional[float] = None,
        max_ticks: Optional[int] = None,
    ) -> int:
        """
        Tick on a fixed period until stopped.

        Args:
            interval_seconds: Seconds between ticks
            duration_seconds: Optional total duration. None = run until stopped.
            max_ticks: Optional number of ticks after which to stop

        Returns:
            Number of ticks performed
        """
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")

        self._stop_event.clear()
        deadline = None
        if duration_seconds is not None:
            deadline = datetime.now(timezone.utc) + timedelta(seconds=duration_seconds)
        ticks = 0

        logger.info("Starting continuous simulation every %ss", interval_seconds)
        self._running = True

        try:
            while not self._stop_event.is_set():
                self.run_once()
                ticks += 1

                if max_ticks is not None and ticks >= max_ticks:
                    break
                if deadline is not None and datetime.now(timezone.utc) >= deadline:
                    logger.info("Duration reached, stopping")
                    break

                # Returns early when stop() is called
                self._stop_event.wait(interval_seconds)

        except KeyboardInterrupt:
            logger.info("Interrupted by user")
        finally:
            self._running = False
            self._stop_event.set()

        return ticks

    def stop(self) -> None:
        """Stop the runner after the current tick."""
        self._stop_event.set()
