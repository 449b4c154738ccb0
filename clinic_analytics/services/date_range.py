"""Resolution of symbolic dashboard windows into concrete date ranges."""

from datetime import date, timedelta
from typing import Optional, Union

from clinic_analytics.core.config import settings
from clinic_analytics.core.dates import Clock, days_between, load_timezone, local_today, utc_now
from clinic_analytics.core.exceptions import InvalidDateRangeOptionError
from clinic_analytics.core.logging import get_logger
from clinic_analytics.schemas.analytics import CustomDateRange, DateRange
from clinic_analytics.schemas.enums import DateRangeOption, Granularity

logger = get_logger(__name__)

FIXED_WINDOW_DAYS = {
    DateRangeOption.LAST_7_DAYS: 7,
    DateRangeOption.LAST_30_DAYS: 30,
    DateRangeOption.LAST_90_DAYS: 90,
}

# Upper bound (inclusive, in days) of the window served by each granularity.
# Keeps a chart between roughly 7 and 40 buckets whatever the window.
GRANULARITY_THRESHOLDS = (
    (8, Granularity.DAY),
    (34, Granularity.WEEK),
    (100, Granularity.BIWEEK),
)


def select_granularity(days: int) -> Granularity:
    """Pick the bucket width for a window of ``days`` days."""
    for upper_bound, granularity in GRANULARITY_THRESHOLDS:
        if days <= upper_bound:
            return granularity
    return Granularity.MONTH


def parse_range_option(value: Union[str, DateRangeOption]) -> DateRangeOption:
    """Validate a symbolic option, raising for anything outside the set."""
    if isinstance(value, DateRangeOption):
        option = value
    else:
        try:
            option = DateRangeOption(str(value).strip().lower())
        except ValueError:
            raise InvalidDateRangeOptionError(value, [o.value for o in DateRangeOption]) from None
    if option == DateRangeOption.CUSTOM:
        # "custom" is a label for explicit ranges, not something to resolve
        raise InvalidDateRangeOptionError(value, [o.value for o in DateRangeOption if o != DateRangeOption.CUSTOM])
    return option


class DateRangeResolver:
    """Turns a range option or explicit window into a ``DateRange``."""

    def __init__(self, clock: Optional[Clock] = None, timezone: Optional[str] = None):
        self.clock = clock or utc_now
        self.tz = load_timezone(timezone or settings.clinic_timezone)

    def today(self) -> date:
        return local_today(self.clock, self.tz)

    def resolve(
        self,
        selection: Union[str, DateRangeOption, CustomDateRange],
        earliest_record: Optional[date] = None,
    ) -> DateRange:
        """
        Resolve ``selection`` into a concrete window.

        Args:
            selection: Symbolic option (``7d``, ``30d``, ``90d``, ``ytd``,
                ``all``) or an explicit ``CustomDateRange``.
            earliest_record: Earliest valid record date, used by ``all``.

        Returns:
            DateRange with granularity chosen from the window length. If the
            resolved start falls after the end the bounds are swapped and
            ``was_corrected`` is set.
        """
        today = self.today()

        if isinstance(selection, CustomDateRange):
            option = DateRangeOption.CUSTOM
            start = selection.start
            end = selection.end or today
        else:
            option = parse_range_option(selection)
            end = today
            if option in FIXED_WINDOW_DAYS:
                start = end - timedelta(days=FIXED_WINDOW_DAYS[option])
            elif option == DateRangeOption.YEAR_TO_DATE:
                start = date(end.year, 1, 1)
            else:
                # records dated after today do not push the window forward
                start = min(earliest_record, end) if earliest_record else end

        was_corrected = False
        if start > end:
            logger.warning(
                "Resolved range start after end, swapping bounds",
                option=option.value,
                start=start.isoformat(),
                end=end.isoformat(),
            )
            start, end = end, start
            was_corrected = True

        granularity = select_granularity(days_between(start, end))
        return DateRange(
            start=start,
            end=end,
            granularity=granularity,
            option=option,
            was_corrected=was_corrected,
        )
