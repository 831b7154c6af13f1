"""Date windows and timestamp parsing helpers.

All windows are whole calendar days in UTC. A window covers ``start_date``
through ``end_date`` inclusive; as instants it spans ``[start, end)`` where
``end`` is midnight after the last day.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from .errors import InvalidArgumentError

TRAILING_WINDOW_DAYS = 30

MONTH_ABBREVIATIONS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}

_COMPACT_OFFSET = re.compile(r"([+-]\d{2})(\d{2})$")


@dataclass(frozen=True)
class DateWindow:
    """Inclusive range of calendar days."""

    start_date: date
    end_date: date

    def __post_init__(self) -> None:
        if self.start_date > self.end_date:
            raise ValueError(
                f"DateWindow start {self.start_date} is after end {self.end_date}."
            )

    @property
    def start(self) -> datetime:
        return datetime.combine(self.start_date, time.min, tzinfo=timezone.utc)

    @property
    def end(self) -> datetime:
        """Exclusive upper bound: midnight UTC after ``end_date``."""
        return datetime.combine(self.end_date + timedelta(days=1), time.min, tzinfo=timezone.utc)

    @property
    def days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    @property
    def period_seconds(self) -> int:
        return int((self.end - self.start).total_seconds())

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant < self.end


def trailing_window(reference_date: date, days: int = TRAILING_WINDOW_DAYS) -> DateWindow:
    """Return the ``days``-long window ending on ``reference_date``."""
    return DateWindow(reference_date - timedelta(days=days - 1), reference_date)


def month_window(year: int, month: int) -> DateWindow:
    """Return the window covering the whole calendar month."""
    last_day = calendar.monthrange(year, month)[1]
    return DateWindow(date(year, month, 1), date(year, month, last_day))


def month_from_abbreviation(abbreviation: str) -> int:
    """Map a three-letter English month abbreviation to its 1-based number.

    Raises:
        InvalidArgumentError: If the abbreviation is not recognized.
    """
    month = MONTH_ABBREVIATIONS.get(abbreviation.strip().lower())
    if month is None:
        raise InvalidArgumentError(f"Invalid month abbreviation provided: '{abbreviation}'.")
    return month


def parse_reference_date(value: str) -> date:
    """Parse an ISO ``YYYY-MM-DD`` reference date."""
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise InvalidArgumentError(
            f"Invalid reference date '{value}': expected YYYY-MM-DD."
        ) from exc


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse source ISO8601 timestamps into timezone-aware UTC datetimes.

    Accepts a trailing ``Z`` and Jira's compact ``+0000`` offsets. Naive
    timestamps are assumed to be UTC.
    """
    if not value:
        return None

    normalized = value[:-1] + "+00:00" if value.endswith("Z") else value
    normalized = _COMPACT_OFFSET.sub(r"\1:\2", normalized)
    parsed = datetime.fromisoformat(normalized)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
