"""Query-side value objects for filtering and paging telemetry history."""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from .telemetry import Reading

ASSET_TYPES = ("all", "solar", "wind", "battery", "grid")


@dataclass(frozen=True)
class Filter:
    """History filter. All present criteria are AND-combined.

    Attributes:
        start_date: Inclusive lower bound (a date means 00:00 of that day)
        end_date: Inclusive upper bound, normalized to the end of that day
        window_hours: Relative cutoff, keep readings newer than now - hours
        asset_type: Reserved for per-asset segregation; currently a no-op
    """

    start_date: Optional[date | datetime] = None
    end_date: Optional[date | datetime] = None
    window_hours: Optional[float] = None
    asset_type: str = "all"

    def __post_init__(self) -> None:
        if self.window_hours is not None and self.window_hours <= 0:
            raise ValueError("window_hours must be positive")
        if self.asset_type not in ASSET_TYPES:
            raise ValueError(f"asset_type must be one of {', '.join(ASSET_TYPES)}")


@dataclass(frozen=True)
class Page:
    """One page of an ordered result set (1-indexed)."""

    items: tuple[Reading, ...]
    page_number: int
    page_size: int
    total_items: int
    total_pages: int

    @property
    def has_next(self) -> bool:
        return self.page_number < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.page_number > 1

    def __len__(self) -> int:
        return len(self.items)


@dataclass(frozen=True)
class QueryResult:
    """Filtered, paginated view plus any recoverable query error."""

    page: Page
    error: Optional[str] = None
    filtered: tuple[Reading, ...] = field(default=(), repr=False)
