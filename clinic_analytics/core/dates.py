"""Calendar helpers shared by the adapter, classifier and bucketer."""

from datetime import UTC, date, datetime, timedelta
from typing import Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from clinic_analytics.core.logging import get_logger

logger = get_logger(__name__)

Clock = Callable[[], datetime]

MONTH_ABBREVIATIONS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


def utc_now() -> datetime:
    return datetime.now(UTC)


def load_timezone(name: str) -> ZoneInfo:
    """Resolve a timezone name, falling back to UTC for unknown names."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown clinic timezone, using UTC", timezone=name)
        return ZoneInfo("UTC")


def to_local(moment: datetime, tz: ZoneInfo) -> datetime:
    """Convert to naive clinic-local wall time. Naive input is taken as local."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(tz).replace(tzinfo=None)


def local_today(clock: Clock, tz: ZoneInfo) -> date:
    """Current calendar day in the clinic timezone."""
    return to_local(clock(), tz).date()


def parse_timestamp(value: object, tz: ZoneInfo) -> Optional[datetime]:
    """Parse an ISO-8601 string into naive clinic-local time.

    Returns None for missing or unparsable input instead of raising.
    """
    if isinstance(value, datetime):
        return to_local(value, tz)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return to_local(parsed, tz)


def as_day(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def days_between(start: date | datetime, end: date | datetime) -> int:
    """Whole calendar days from ``start`` to ``end``."""
    return (as_day(end) - as_day(start)).days


def month_start(day: date) -> date:
    return day.replace(day=1)


def add_months(day: date, months: int) -> date:
    """First day of the month ``months`` after the month containing ``day``."""
    index = day.year * 12 + (day.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def week_start(day: date) -> date:
    """Monday of the week containing ``day``."""
    return day - timedelta(days=day.weekday())
