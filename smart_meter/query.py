"""Read-side filtering, pagination and export over history snapshots."""

import logging
import math
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from enum import Enum
from typing import Callable, Optional, Sequence

import pandas as pd

from smart_meter.errors import InvalidFilterRange
from smart_meter.models import Filter, Page, QueryResult, Reading

logger = logging.getLogger(__name__)

END_OF_DAY = time(23, 59, 59, 999000)

# Fixed export column order
EXPORT_COLUMNS = [
    "Date",
    "Time",
    "Solar (kW)",
    "Wind (kW)",
    "Consumption (kW)",
    "Grid Import (kW)",
    "Battery Level (%)",
    "Efficiency (%)",
]


class ExportFormat(str, Enum):
    TABULAR = "tabular"  # Comma-separated values
    PRINTABLE = "printable"  # Aligned text table

    @property
    def extension(self) -> str:
        return "csv" if self is ExportFormat.TABULAR else "txt"


class QueryEngine:
    """Filters, pages and exports readings without touching the store.

    Calendar dates in filters and export columns are interpreted in the
    engine's timezone (UTC unless given).
    """

    def __init__(
        self,
        tz: tzinfo = timezone.utc,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.tz = tz
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _aware(self, value: datetime) -> datetime:
        return value if value.tzinfo is not None else value.replace(tzinfo=self.tz)

    def _start_bound(self, value: date | datetime) -> datetime:
        if isinstance(value, datetime):
            return self._aware(value)
        return datetime.combine(value, time.min, tzinfo=self.tz)

    def _end_bound(self, value: date | datetime) -> datetime:
        if isinstance(value, datetime):
            value = self._aware(value)
            return datetime.combine(value.date(), END_OF_DAY, tzinfo=value.tzinfo)
        return datetime.combine(value, END_OF_DAY, tzinfo=self.tz)

    def check_range(self, criteria: Filter) -> None:
        """Validate the date range of a filter.

        Raises:
            InvalidFilterRange: If the end bound falls before the start bound
        """
        if criteria.start_date is None or criteria.end_date is None:
            return
        start = self._start_bound(criteria.start_date)
        end = self._end_bound(criteria.end_date)
        if end < start:
            raise InvalidFilterRange(
                f"End date {criteria.end_date.isoformat()} is before start date {criteria.start_date.isoformat()}"
            )

    def filter(self, history: Sequence[Reading], criteria: Filter) -> list[Reading]:
        """
        Apply start date, end date and relative window, AND-combined.

        An inverted date range yields an empty list.

        Args:
            history: Readings in chronological order
            criteria: Filter to apply

        Returns:
            Matching readings, order preserved
        """
        try:
            self.check_range(criteria)
        except InvalidFilterRange as e:
            logger.warning("%s; returning no readings", e)
            return []

        results = list(history)

        if criteria.start_date is not None:
            start = self._start_bound(criteria.start_date)
            results = [r for r in results if r.timestamp >= start]

        if criteria.end_date is not None:
            end = self._end_bound(criteria.end_date)
            results = [r for r in results if r.timestamp <= end]

        if criteria.window_hours is not None:
            cutoff = self._clock() - timedelta(hours=criteria.window_hours)
            results = [r for r in results if r.timestamp >= cutoff]

        # asset_type is reserved: every reading carries all assets

        return results

    @staticmethod
    def total_pages(total_items: int, page_size: int) -> int:
        return math.ceil(total_items / page_size) if total_items else 0

    def paginate(self, items: Sequence[Reading], page_number: int, page_size: int = 20) -> Page:
        """
        Slice one 1-indexed page out of items.

        Pages outside 1..total_pages are returned empty.

        Raises:
            ValueError: If page_size is not positive
        """
        if page_size <= 0:
            raise ValueError("page_size must be positive")

        total = len(items)
        if page_number < 1:
            page_items: tuple[Reading, ...] = ()
        else:
            start = (page_number - 1) * page_size
            page_items = tuple(items[start : start + page_size])

        return Page(
            items=page_items,
            page_number=page_number,
            page_size=page_size,
            total_items=total,
            total_pages=self.total_pages(total, page_size),
        )

    def query(
        self,
        history: Sequence[Reading],
        criteria: Filter,
        page_number: int = 1,
        page_size: int = 20,
    ) -> QueryResult:
        """Filter then paginate, reporting an invalid range instead of raising."""
        error = None
        try:
            self.check_range(criteria)
        except InvalidFilterRange as e:
            error = str(e)

        filtered = tuple(self.filter(history, criteria)) if error is None else ()
        return QueryResult(
            page=self.paginate(filtered, page_number, page_size),
            error=error,
            filtered=filtered,
        )

    def to_dataframe(self, items: Sequence[Reading]) -> pd.DataFrame:
        """Readings as a DataFrame with the export columns."""
        rows = []
        for r in items:
            local = r.timestamp.astimezone(self.tz)
            rows.append(
                [
                    local.strftime("%Y-%m-%d"),
                    local.strftime("%H:%M:%S"),
                    r.solar_kw,
                    r.wind_kw,
                    r.consumption_kw,
                    r.grid_import_kw,
                    r.battery_level_pct,
                    r.efficiency_pct,
                ]
            )
        return pd.DataFrame(rows, columns=EXPORT_COLUMNS)

    def export(self, items: Sequence[Reading], export_format: ExportFormat | str = ExportFormat.TABULAR) -> Optional[str]:
        """
        Render readings as text.

        Args:
            items: Readings to export, in the order given
            export_format: "tabular" (CSV) or "printable" (aligned table)

        Returns:
            The rendered payload, or None when there is nothing to export
        """
        export_format = ExportFormat(export_format)
        if not items:
            logger.info("No data to export")
            return None

        df = self.to_dataframe(items)
        if export_format is ExportFormat.TABULAR:
            return df.to_csv(index=False, lineterminator="\n")

        return "Energy Data Export\n\n" + df.to_string(index=False) + "\n"

    @staticmethod
    def default_export_filename(export_format: ExportFormat | str, today: Optional[date] = None) -> str:
        """File name in the form energy_data_YYYY-MM-DD.<ext>."""
        export_format = ExportFormat(export_format)
        today = today or datetime.now(timezone.utc).date()
        return f"energy_data_{today.isoformat()}.{export_format.extension}"
