"""
Telemetry history browser - query, page and export persisted readings.

Usage:
    # Show the first page of the last 24 hours
    python run_history.py --hours 24

    # Page through a date range
    python run_history.py --start-date 2024-06-01 --end-date 2024-06-07 --page 2

    # Export a date range as CSV (default file name energy_data_YYYY-MM-DD.csv)
    python run_history.py --start-date 2024-06-01 --export tabular

    # Print a printable table to stdout
    python run_history.py --export printable --output -

    # Drop persisted readings older than 7 days
    python run_history.py --clear-older-than 7
"""

import argparse
import logging
import sys
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

from smart_meter.config import MonitorConfig  # noqa: E402
from smart_meter.models import Filter  # noqa: E402
from smart_meter.query import ExportFormat, QueryEngine  # noqa: E402
from smart_meter.storage import FilePersistence, HistoryStore  # noqa: E402

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stderr)],
)
logger = logging.getLogger(__name__)


def load_history(config: MonitorConfig) -> tuple[HistoryStore, dict]:
    """Open the persisted history described by the configuration."""
    store = HistoryStore(
        max_in_memory=config.history.max_in_memory,
        max_persisted=config.history.max_persisted,
        persistence=FilePersistence(config.history.state_dir),
    )
    settings = store.restore()
    return store, settings


def print_page(engine: QueryEngine, store: HistoryStore, criteria: Filter, page: int, page_size: int) -> None:
    """Print one page of filtered readings as a table."""
    result = engine.query(store.snapshot(), criteria, page, page_size)
    if result.error:
        print(f"Invalid filter: {result.error}")

    table = engine.export(result.page.items, ExportFormat.PRINTABLE)
    print(table if table else "No readings match the filter.")
    print(
        f"Page {result.page.page_number} of {result.page.total_pages} "
        f"({result.page.total_items} records)"
    )


def write_export(payload: str, output: str) -> None:
    """Deliver an export payload to a file or stdout ("-")."""
    if output == "-":
        sys.stdout.write(payload)
        return
    path = Path(output)
    try:
        path.write_text(payload)
    except OSError as e:
        logger.error("Failed to write export to %s: %s", path, e)
        raise SystemExit(1) from e
    logger.info("Export written to %s", path)


def main():
    parser = argparse.ArgumentParser(
        description="Browse and export smart meter telemetry history",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--config", type=Path, help="Path to configuration JSON file")
    parser.add_argument("--state-dir", type=Path, help="Directory holding persisted history")

    # Filter
    parser.add_argument("--start-date", type=date.fromisoformat, help="Inclusive start date (YYYY-MM-DD)")
    parser.add_argument("--end-date", type=date.fromisoformat, help="Inclusive end date (YYYY-MM-DD)")
    parser.add_argument("--hours", type=float, help="Only readings from the last N hours")
    parser.add_argument(
        "--asset-type",
        default="all",
        choices=["all", "solar", "wind", "battery", "grid"],
        help="Asset filter (reserved, every reading covers all assets)",
    )

    # Output
    parser.add_argument("--page", type=int, default=1, help="Page number (default: 1)")
    parser.add_argument("--page-size", type=int, default=20, help="Readings per page (default: 20)")
    parser.add_argument(
        "--export",
        choices=[f.value for f in ExportFormat],
        help="Export all filtered readings instead of showing a page",
    )
    parser.add_argument("--output", help="Export destination file, or - for stdout")
    parser.add_argument(
        "--clear-older-than",
        type=float,
        metavar="DAYS",
        help="Remove readings older than DAYS from the persisted history",
    )
    parser.add_argument("--quiet", action="store_true", help="Suppress log output")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    args = parser.parse_args()

    if args.quiet:
        logging.getLogger().setLevel(logging.WARNING)
    elif args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    config = MonitorConfig.from_file(args.config) if args.config else MonitorConfig()
    if args.state_dir is not None:
        config.history.state_dir = str(args.state_dir)

    if args.page_size <= 0:
        parser.error("--page-size must be positive")

    store, settings = load_history(config)
    engine = QueryEngine()

    if args.clear_older_than is not None:
        cutoff = datetime.now(timezone.utc) - timedelta(days=args.clear_older_than)
        removed = store.prune_older_than(cutoff)
        if not store.persist(settings):
            raise SystemExit(1)
        print(f"Removed {removed} readings older than {args.clear_older_than:g} days")
        return

    try:
        criteria = Filter(
            start_date=args.start_date,
            end_date=args.end_date,
            window_hours=args.hours,
            asset_type=args.asset_type,
        )
    except ValueError as e:
        parser.error(str(e))

    if args.export:
        filtered = engine.filter(store.snapshot(), criteria)
        payload = engine.export(filtered, args.export)
        if payload is None:
            print("No data to export")
            return
        write_export(payload, args.output or engine.default_export_filename(args.export))
        return

    print_page(engine, store, criteria, args.page, args.page_size)


if __name__ == "__main__":
    main()
