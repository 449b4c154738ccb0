from clinic_analytics.schemas.analytics import (
    AggregationResult,
    AnalyticsQuery,
    Bucket,
    BucketCounts,
    ClinicMetrics,
    CustomDateRange,
    DateRange,
    Diagnostics,
    DiagnosisCount,
    WeekdayStat,
)
from clinic_analytics.schemas.enums import (
    AppointmentStatus,
    Classification,
    DateRangeOption,
    Granularity,
    PatientStatus,
)
from clinic_analytics.schemas.records import (
    AdaptedAppointment,
    AdaptedPatient,
    ClassificationCounts,
    ClassifiedAppointment,
    FilteredRecords,
    RawAppointment,
    RawPatient,
)

__all__ = [
    "AdaptedAppointment",
    "AdaptedPatient",
    "AggregationResult",
    "AnalyticsQuery",
    "AppointmentStatus",
    "Bucket",
    "BucketCounts",
    "Classification",
    "ClassificationCounts",
    "ClassifiedAppointment",
    "ClinicMetrics",
    "CustomDateRange",
    "DateRange",
    "DateRangeOption",
    "Diagnostics",
    "DiagnosisCount",
    "FilteredRecords",
    "Granularity",
    "PatientStatus",
    "RawAppointment",
    "RawPatient",
    "WeekdayStat",
]
