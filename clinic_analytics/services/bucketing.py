"""Zero-filled time buckets and folding of records into them.

Bucket generation and record lookup go through the same ``bucket_start``
function. If they ever diverged, records would silently miss their bucket.
"""

from datetime import date, timedelta
from typing import Iterable, Optional, Union

from clinic_analytics.core.cache import BoundedCache
from clinic_analytics.core.config import settings
from clinic_analytics.core.dates import MONTH_ABBREVIATIONS, add_months, as_day, week_start
from clinic_analytics.core.exceptions import InvalidGranularityError
from clinic_analytics.core.logging import get_logger
from clinic_analytics.schemas.analytics import Bucket, BucketCounts, DateRange
from clinic_analytics.schemas.enums import AppointmentStatus, Granularity, PatientStatus
from clinic_analytics.schemas.records import AdaptedAppointment, AdaptedPatient

logger = get_logger(__name__)

# Last day of the first half-month bucket; the 16th opens the second one.
BIWEEK_SPLIT_DAY = 15


def coerce_granularity(value: Union[str, Granularity]) -> Granularity:
    if isinstance(value, Granularity):
        return value
    try:
        return Granularity(value)
    except ValueError:
        raise InvalidGranularityError(value) from None


def bucket_start(day: date, granularity: Union[str, Granularity]) -> date:
    """First calendar day of the bucket containing ``day``."""
    granularity = coerce_granularity(granularity)
    day = as_day(day)
    if granularity == Granularity.DAY:
        return day
    if granularity == Granularity.WEEK:
        return week_start(day)
    if granularity == Granularity.BIWEEK:
        return day.replace(day=1 if day.day <= BIWEEK_SPLIT_DAY else BIWEEK_SPLIT_DAY + 1)
    return day.replace(day=1)


def next_bucket_start(start: date, granularity: Union[str, Granularity]) -> date:
    """Start of the bucket following the one that begins at ``start``."""
    granularity = coerce_granularity(granularity)
    if granularity == Granularity.DAY:
        return start + timedelta(days=1)
    if granularity == Granularity.WEEK:
        return start + timedelta(weeks=1)
    if granularity == Granularity.BIWEEK:
        if start.day <= BIWEEK_SPLIT_DAY:
            return start.replace(day=BIWEEK_SPLIT_DAY + 1)
        return add_months(start, 1)
    return add_months(start, 1)


def bucket_key(start: date, granularity: Union[str, Granularity]) -> str:
    """Canonical key; lexicographic order equals chronological order."""
    granularity = coerce_granularity(granularity)
    if granularity in (Granularity.DAY, Granularity.WEEK):
        return start.isoformat()
    if granularity == Granularity.BIWEEK:
        half = 1 if start.day <= BIWEEK_SPLIT_DAY else 2
        return f"{start:%Y-%m}-{half}"
    return f"{start:%Y-%m}"


def bucket_label(start: date, granularity: Union[str, Granularity]) -> str:
    granularity = coerce_granularity(granularity)
    month = MONTH_ABBREVIATIONS[start.month - 1]
    if granularity in (Granularity.DAY, Granularity.WEEK):
        return f"{start:%d/%m}"
    if granularity == Granularity.BIWEEK:
        end = bucket_end(start, granularity)
        return f"{start.day:02d}-{end.day:02d} {month}"
    return f"{month} {start:%y}"


def bucket_end(start: date, granularity: Union[str, Granularity]) -> date:
    """Last calendar day (inclusive) of the bucket beginning at ``start``."""
    return next_bucket_start(start, granularity) - timedelta(days=1)


def key_for(day: date, granularity: Union[str, Granularity]) -> str:
    """Key of the bucket a record dated ``day`` falls into."""
    return bucket_key(bucket_start(day, granularity), granularity)


class Bucketer:
    """Builds the bucket sequence for a range and folds records into it."""

    def __init__(self, capacity: Optional[int] = None, thread_safe: Optional[bool] = None):
        capacity = settings.bucket_cache_capacity if capacity is None else capacity
        thread_safe = settings.cache_thread_safe if thread_safe is None else thread_safe
        self._skeletons: BoundedCache = BoundedCache(capacity, name="bucket_skeleton", thread_safe=thread_safe)

    def skeleton(self, date_range: DateRange) -> tuple:
        """(key, label, start, end) for every bucket tiling the range."""
        granularity = coerce_granularity(date_range.granularity)
        cache_key = (date_range.start, date_range.end, granularity)
        return self._skeletons.get_or_set(cache_key, lambda: self._walk(date_range.start, date_range.end, granularity))

    def build_buckets(self, date_range: DateRange) -> list[Bucket]:
        """Fresh zero-filled buckets; callers may mutate them freely."""
        return [
            Bucket(key=key, label=label, start=start, end=end, counts=BucketCounts())
            for key, label, start, end in self.skeleton(date_range)
        ]

    def fold(
        self,
        date_range: DateRange,
        appointments: Iterable[AdaptedAppointment],
        patients: Iterable[AdaptedPatient],
    ) -> list[Bucket]:
        """
        Count records into the zero-filled buckets of ``date_range``.

        Args:
            date_range: Resolved window and granularity.
            appointments: Adapted appointments, already filtered to the window.
            patients: Adapted patients, already filtered.

        Returns:
            Buckets sorted chronologically by key.
        """
        granularity = coerce_granularity(date_range.granularity)
        buckets = self.build_buckets(date_range)
        by_key = {bucket.key: bucket for bucket in buckets}

        def find(moment) -> Optional[Bucket]:
            if moment is None:
                return None
            day = as_day(moment)
            if not date_range.contains(day):
                return None
            return by_key.get(key_for(day, granularity))

        for appointment in appointments:
            if appointment.status == AppointmentStatus.CANCELLED:
                continue
            bucket = find(appointment.scheduled_at)
            if bucket is not None:
                bucket.counts.consultations += 1

        for patient in patients:
            bucket = find(patient.registered_at)
            if bucket is not None:
                bucket.counts.new_patients += 1
            if patient.status == PatientStatus.OPERATED:
                bucket = find(patient.decision_at)
                if bucket is not None:
                    bucket.counts.operated += 1
            elif patient.status == PatientStatus.FOLLOW_UP:
                bucket = find(patient.status_changed_at)
                if bucket is not None:
                    bucket.counts.follow_up += 1

        return sorted(buckets, key=lambda bucket: bucket.key)

    def clear(self) -> None:
        self._skeletons.clear()

    def get_stats(self) -> dict:
        return self._skeletons.get_stats()

    @staticmethod
    def _walk(start: date, end: date, granularity: Granularity) -> tuple:
        entries = []
        current = bucket_start(start, granularity)
        while current <= end:
            entries.append((
                bucket_key(current, granularity),
                bucket_label(current, granularity),
                current,
                bucket_end(current, granularity),
            ))
            current = next_bucket_start(current, granularity)
        logger.debug(
            "Built bucket skeleton",
            granularity=granularity.value,
            start=start.isoformat(),
            end=end.isoformat(),
            buckets=len(entries),
        )
        return tuple(entries)
