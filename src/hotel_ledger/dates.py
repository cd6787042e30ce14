"""Calendar-day helpers used to bucket ledger records.

All records carry a calendar day (``YYYY-MM-DD``) without a time component.
Such strings are bucketed exactly as written. Full timestamps, and the notion
of "today", are resolved in one timezone taken from ``LEDGER_TIMEZONE``
(UTC unless configured). Near midnight the chosen zone decides which day a
timestamp lands on, so storage and display must both go through this module.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog

from hotel_ledger.config import get_settings

logger = structlog.get_logger(__name__)

MONTH_NAMES: tuple[str, ...] = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


@dataclass(frozen=True)
class DateBucket:
    """A calendar day split into grouping keys. ``month`` is 0-indexed."""

    day: int
    month: int
    year: int

    @property
    def month_key(self) -> tuple[int, int]:
        return (self.year, self.month)

    @property
    def day_key(self) -> str:
        return f"{self.year:04d}-{self.month + 1:02d}-{self.day:02d}"


def ledger_timezone(name: str | None = None) -> ZoneInfo:
    """Return the configured ledger timezone, falling back to UTC."""
    zone = name or get_settings().timezone
    try:
        return ZoneInfo(zone)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("unknown_timezone", timezone=zone)
        return ZoneInfo("UTC")


def parse_date(value: object, tz: str | None = None) -> date | None:
    """Resolve a stored date value to a calendar day.

    Returns None for empty or unparseable input instead of raising.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return _localize(value, tz)
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    if len(text) == 10:
        try:
            return date.fromisoformat(text)
        except ValueError:
            return None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    return _localize(parsed, tz)


def _localize(moment: datetime, tz: str | None) -> date:
    if moment.tzinfo is None:
        return moment.date()
    return moment.astimezone(ledger_timezone(tz)).date()


def bucket(value: object, tz: str | None = None) -> DateBucket | None:
    """Split a date value into day, 0-indexed month and year."""
    parsed = parse_date(value, tz)
    if parsed is None:
        return None
    return DateBucket(day=parsed.day, month=parsed.month - 1, year=parsed.year)


def month_name(index: object) -> str:
    """Full month name for a 0-indexed month, or "" when out of range."""
    if not isinstance(index, int) or isinstance(index, bool) or not 0 <= index < 12:
        return ""
    return MONTH_NAMES[index]


def month_label(index: object) -> str:
    """Three letter month label, e.g. ``Jan``."""
    return month_name(index)[:3]


def format_date(value: object, tz: str | None = None) -> str:
    """Display form used across reports: ``05 Mar 2024``."""
    parsed = parse_date(value, tz)
    if parsed is None:
        return ""
    return f"{parsed.day:02d} {month_label(parsed.month - 1)} {parsed.year}"


def today(tz: str | None = None) -> str:
    """Current calendar day in the ledger timezone as ``YYYY-MM-DD``."""
    return datetime.now(ledger_timezone(tz)).date().isoformat()


def shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    """Move a (year, 0-indexed month) pair by ``delta`` months."""
    absolute = year * 12 + month + delta
    return absolute // 12, absolute % 12


def shift_days(day: str, delta: int) -> str:
    """ISO day ``delta`` days away from ``day``."""
    parsed = parse_date(day)
    if parsed is None:
        return ""
    return date.fromordinal(parsed.toordinal() + delta).isoformat()
