"""Today / future / past classification of appointment dates."""

from datetime import date, datetime
from typing import Optional

from clinic_analytics.core.cache import BoundedCache
from clinic_analytics.core.config import settings
from clinic_analytics.core.dates import Clock, as_day, load_timezone, local_today, parse_timestamp, utc_now
from clinic_analytics.core.logging import get_logger
from clinic_analytics.schemas.enums import Classification
from clinic_analytics.schemas.records import AdaptedAppointment, ClassifiedAppointment

logger = get_logger(__name__)


def classify_date(moment: date | datetime, reference_today: date) -> Classification:
    """Compare calendar days only; the time of day is ignored."""
    day = as_day(moment)
    if day == reference_today:
        return Classification.TODAY
    if day > reference_today:
        return Classification.FUTURE
    return Classification.PAST


class DateClassifier:
    """Cached classifier keyed by the current day and the raw date string.

    The day is part of every key and the cache is emptied when it changes, so
    an entry computed yesterday can never answer for today.
    """

    def __init__(
        self,
        capacity: Optional[int] = None,
        clock: Optional[Clock] = None,
        timezone: Optional[str] = None,
        thread_safe: Optional[bool] = None,
    ):
        capacity = settings.classification_cache_capacity if capacity is None else capacity
        thread_safe = settings.cache_thread_safe if thread_safe is None else thread_safe
        self.clock = clock or utc_now
        self.tz = load_timezone(timezone or settings.clinic_timezone)
        self._cache: BoundedCache = BoundedCache(capacity, name="date_classification", thread_safe=thread_safe)
        self._epoch: Optional[date] = None

    def today(self) -> date:
        """Current clinic day, rolling the cache over when it changed."""
        today = local_today(self.clock, self.tz)
        if today != self._epoch:
            if self._epoch is not None:
                logger.info(
                    "Day changed, clearing classification cache",
                    previous=self._epoch.isoformat(),
                    current=today.isoformat(),
                    entries=self._cache.size(),
                )
            self._cache.clear()
            self._epoch = today
        return today

    def classify(self, date_string: Optional[str]) -> Optional[Classification]:
        """Classify an ISO date string, or return None if it cannot be parsed."""
        today = self.today()
        key = (today, date_string)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        parsed = parse_timestamp(date_string, self.tz)
        if parsed is None:
            return None
        classification = classify_date(parsed, today)
        self._cache.set(key, classification)
        return classification

    def classify_appointment(self, appointment: AdaptedAppointment) -> Optional[ClassifiedAppointment]:
        """Attach a classification to an adapted appointment with a valid date."""
        if not appointment.has_valid_date:
            return None
        classification = self.classify(appointment.raw_timestamp)
        if classification is None:
            # raw string unavailable or unparsable while the adapter had a date
            classification = classify_date(appointment.scheduled_at, self.today())
        return ClassifiedAppointment(**appointment.model_dump(), classification=classification)

    def clear(self) -> None:
        self._cache.clear()
        self._epoch = None

    def get_stats(self) -> dict:
        return {**self._cache.get_stats(), "epoch": self._epoch.isoformat() if self._epoch else None}
