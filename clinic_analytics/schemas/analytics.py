"""Pydantic v2 schemas for the aggregation query and its results."""

from datetime import date, datetime
from typing import Optional, Union

from pydantic import Field, field_validator

from clinic_analytics.schemas.enums import DateRangeOption, Granularity
from clinic_analytics.schemas.records import (
    BaseSchema,
    ClassificationCounts,
    ClassifiedAppointment,
    FilteredRecords,
)


# Query schemas
class CustomDateRange(BaseSchema):
    """Explicit window. A missing end means clinic-local today."""
    start: date
    end: Optional[date] = None

    @field_validator("start", "end", mode="before")
    @classmethod
    def truncate_datetimes(cls, value):
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, str) and "T" in value:
            return datetime.fromisoformat(value).date()
        return value


class AnalyticsQuery(BaseSchema):
    """Caller-supplied narrowing filters, AND-combined."""
    date_range: Union[DateRangeOption, CustomDateRange] = DateRangeOption.LAST_30_DAYS
    patient_id: Optional[str] = None
    doctor_id: Optional[str] = None
    status: Optional[str] = None
    refresh_interval_ms: Optional[int] = Field(default=None, ge=0)


# Range schemas
class DateRange(BaseSchema):
    """Concrete calendar window with its bucket granularity."""
    start: date
    end: date
    granularity: Granularity
    option: DateRangeOption = DateRangeOption.CUSTOM
    was_corrected: bool = False

    @property
    def days(self) -> int:
        return (self.end - self.start).days

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


# Bucket schemas
class BucketCounts(BaseSchema):
    consultations: int = 0
    operated: int = 0
    new_patients: int = 0
    follow_up: int = 0


class Bucket(BaseSchema):
    """One chart slice. ``start`` and ``end`` are inclusive calendar days."""
    key: str
    label: str
    start: date
    end: date
    counts: BucketCounts = Field(default_factory=BucketCounts)


# Metric schemas
class DiagnosisCount(BaseSchema):
    diagnosis: str
    count: int


class WeekdayStat(BaseSchema):
    weekday: str
    count: int = 0
    attended: int = 0
    attendance_rate: float = 0.0


class ClinicMetrics(BaseSchema):
    """Aggregate statistics over the filtered record set."""
    total_appointments: int = 0
    total_patients: int = 0
    unique_patients: int = 0
    status_breakdown: dict[str, int] = Field(default_factory=dict)
    attendance_rate: float = 0.0
    cancellation_rate: float = 0.0
    no_show_rate: float = 0.0
    first_visit_appointments: int = 0
    patient_status_breakdown: dict[str, int] = Field(default_factory=dict)
    operated_patients: int = 0
    not_operated_patients: int = 0
    follow_up_patients: int = 0
    new_patients_this_month: int = 0
    conversion_rate: float = 0.0
    average_decision_days: float = 0.0
    decision_sample_size: int = 0
    top_diagnoses: list[DiagnosisCount] = Field(default_factory=list)
    top_source: Optional[str] = None
    average_surgery_probability: float = 0.0
    weekday_distribution: list[WeekdayStat] = Field(default_factory=list)


# Result schemas
class Diagnostics(BaseSchema):
    """Data-quality counters for records seen by one aggregation run."""
    appointments_seen: int = 0
    patients_seen: int = 0
    appointments_with_invalid_date: int = 0
    patients_with_invalid_registration: int = 0
    appointments_rejected: int = 0
    patients_rejected: int = 0


class AggregationResult(BaseSchema):
    """Read-only snapshot consumed by the rendering layer."""
    date_range: DateRange
    range_was_corrected: bool = False
    filtered_records: FilteredRecords
    buckets: list[Bucket]
    metrics: ClinicMetrics
    classified_appointments: list[ClassifiedAppointment]
    classification_counts: ClassificationCounts
    diagnostics: Diagnostics
    refresh_interval_ms: int
