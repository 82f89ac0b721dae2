"""
Smart Meter Simulator - Command Line Interface

Simulates telemetry for a solar/wind/battery/grid site:
- Solar and wind generation
- Household consumption
- Battery level
- Grid import

Usage:
    # Tick once
    python run_simulator.py --once

    # Tick continuously every 5 seconds
    python run_simulator.py --continuous --interval 5

    # Back-fill history for a time range
    python run_simulator.py --historical --start 2024-01-01 --end 2024-01-02

    # Use an external metering feed (falls back to random values on failure)
    python run_simulator.py --continuous --mode external

    # Use custom config file
    python run_simulator.py --config config.json --continuous
"""

import argparse
import logging
import signal
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file
# Must happen before building configs that read env vars
load_dotenv()

from smart_meter.config import DEFAULT_CONFIG, MonitorConfig  # noqa: E402
from smart_meter.engine import EngineRunner, SimulationEngine  # noqa: E402
from smart_meter.errors import ConfigurationInvalid  # noqa: E402
from smart_meter.models import Reading, SimulationMode  # noqa: E402
from smart_meter.providers import EmoncmsFeedProvider  # noqa: E402
from smart_meter.storage import FilePersistence, InfluxDBStorage  # noqa: E402

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)


def create_engine_from_config(config: MonitorConfig, force_mode: bool = False) -> SimulationEngine:
    """Create a SimulationEngine, with file persistence and the Emoncms feed, from configuration.

    Persisted settings replace the configured mode unless force_mode is set.
    """
    feed = EmoncmsFeedProvider(
        api_key=config.providers.emoncms_api_key,
        base_url=config.providers.emoncms_url,
        timeout_seconds=config.providers.timeout_seconds,
    )
    engine = SimulationEngine.from_config(
        config,
        persistence=FilePersistence(config.history.state_dir),
        feed=feed,
    )
    engine.start()
    if force_mode and engine.mode is not config.mode:
        engine.set_mode(config.mode)
    return engine


def print_reading(reading: Reading) -> None:
    """Print reading as formatted JSON to stdout."""
    print(reading.to_json())


def create_runner(config: MonitorConfig, engine: SimulationEngine) -> EngineRunner:
    output_file = Path(config.simulation.output_file) if config.simulation.output_file else None
    influxdb = InfluxDBStorage(config.influxdb, device_id=config.simulation.device_id) if config.influxdb.enabled else None
    return EngineRunner(
        engine=engine,
        output_callback=print_reading,
        output_file=output_file,
        influxdb=influxdb,
    )


def run_once(config: MonitorConfig, force_mode: bool = False) -> None:
    """Tick a single time."""
    engine = create_engine_from_config(config, force_mode)
    runner = create_runner(config, engine)
    try:
        runner.run_once()
    finally:
        engine.close()
        if runner.influxdb:
            runner.influxdb.close()


def run_continuous(config: MonitorConfig, duration: int | None = None, force_mode: bool = False) -> None:
    """Tick continuously until interrupted or the duration elapses."""
    engine = create_engine_from_config(config, force_mode)
    runner = create_runner(config, engine)

    def handle_signal(signum, frame) -> None:
        logger.info("Received signal %d, stopping after current tick...", signum)
        runner.stop()

    signal.signal(signal.SIGTERM, handle_signal)

    try:
        ticks = runner.run_continuous(
            interval_seconds=config.tick_interval_seconds,
            duration_seconds=duration,
        )
        logger.info("Stopped after %d ticks", ticks)
    finally:
        engine.close()
        if runner.influxdb:
            runner.influxdb.close()


def generate_historical(
    config: MonitorConfig,
    start: datetime,
    end: datetime,
    interval_minutes: int = 5,
    force_mode: bool = False,
) -> None:
    """Back-fill history for a time range."""
    engine = create_engine_from_config(config, force_mode)
    try:
        data = engine.generate_historical(start, end, interval_minutes)
    finally:
        engine.close()

    logger.info("Generated %d readings from %s to %s", len(data), start, end)

    if config.simulation.output_file:
        output_path = Path(config.simulation.output_file)
        with open(output_path, "w") as f:
            for reading in data:
                f.write(reading.to_json(indent=None) + "\n")
        logger.info("Data written to %s", output_path)


def generate_sample_config(output_path: Path) -> None:
    """Generate a sample configuration file."""
    DEFAULT_CONFIG.to_file(output_path)
    logger.info("Sample config written to %s", output_path)


def main():
    parser = argparse.ArgumentParser(
        description="Smart Meter Simulator - Generate telemetry for a distributed energy asset",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    # Run selection
    run_group = parser.add_mutually_exclusive_group(required=True)
    run_group.add_argument(
        "--once",
        action="store_true",
        help="Produce a single reading and exit",
    )
    run_group.add_argument(
        "--continuous",
        action="store_true",
        help="Tick continuously at the configured interval",
    )
    run_group.add_argument(
        "--historical",
        action="store_true",
        help="Back-fill readings for a time range",
    )
    run_group.add_argument(
        "--generate-config",
        action="store_true",
        help="Generate a sample configuration file",
    )

    # Configuration options
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to configuration JSON file",
    )
    parser.add_argument(
        "--mode",
        choices=[m.value for m in SimulationMode],
        help="Generation mode (default: auto)",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between ticks (default: 5)",
    )
    parser.add_argument(
        "--duration",
        type=int,
        help="Duration in seconds for continuous mode (default: run forever)",
    )
    parser.add_argument(
        "--output",
        type=Path,
        help="Output file path (JSON lines format)",
    )
    parser.add_argument(
        "--state-dir",
        type=Path,
        help="Directory holding persisted history (default: .smart_meter)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        help="Random seed for reproducibility",
    )

    # Historical mode options
    parser.add_argument(
        "--start",
        type=str,
        help="Start of back-fill (YYYY-MM-DD or YYYY-MM-DD HH:MM, UTC)",
    )
    parser.add_argument(
        "--end",
        type=str,
        help="End of back-fill (YYYY-MM-DD is exclusive, YYYY-MM-DD HH:MM is inclusive)",
    )

    # Verbosity
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress log output",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args()

    # Configure logging level
    if args.quiet:
        logging.getLogger().setLevel(logging.WARNING)
    elif args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.generate_config:
        output_path = args.config or Path("config.json")
        generate_sample_config(output_path)
        return

    # Load or create configuration
    if args.config:
        if not args.config.exists():
            parser.error(f"Configuration file not found: {args.config}")
        config = MonitorConfig.from_file(args.config)
        logger.info("Loaded config from %s", args.config)
    else:
        config = MonitorConfig()

    # Apply command line overrides (only if explicitly provided)
    if args.mode is not None:
        config.simulation.mode = args.mode
    if args.interval is not None:
        config.simulation.tick_interval_ms = int(args.interval * 1000)
    if args.output is not None:
        config.simulation.output_file = str(args.output)
    if args.state_dir is not None:
        config.history.state_dir = str(args.state_dir)
    if args.seed is not None:
        config.simulation.seed = args.seed

    try:
        config.validate()
    except ConfigurationInvalid as e:
        parser.error(f"Invalid configuration: {e}")

    if args.once:
        run_once(config, force_mode=args.mode is not None)

    elif args.continuous:
        run_continuous(config, args.duration, force_mode=args.mode is not None)

    elif args.historical:
        if not args.start or not args.end:
            parser.error("--historical requires --start and --end dates")

        interval_seconds = args.interval if args.interval is not None else 300
        if interval_seconds < 60 or interval_seconds % 60 != 0:
            parser.error("--interval must be at least 60 seconds and a multiple of 60 for historical mode")

        def parse_date(date_str: str) -> datetime:
            """Parse a date string in YYYY-MM-DD or YYYY-MM-DD HH:MM[:SS] format (UTC)."""
            try:
                dt = datetime.fromisoformat(date_str)
            except ValueError:
                parser.error(f"Invalid date format {date_str!r}. Use YYYY-MM-DD or YYYY-MM-DD HH:MM")
                raise  # pragma: no cover - parser.error exits

            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=timezone.utc)
            return dt

        start = parse_date(args.start)
        end = parse_date(args.end)

        # A date-only end is exclusive: stop one interval before midnight
        if " " not in args.end and "T" not in args.end:
            end = end - timedelta(seconds=interval_seconds)

        if end < start:
            parser.error("--end must be after --start for historical mode")

        try:
            generate_historical(config, start, end, int(interval_seconds / 60), force_mode=args.mode is not None)
        except ValueError as e:
            parser.error(str(e))


if __name__ == "__main__":
    main()
