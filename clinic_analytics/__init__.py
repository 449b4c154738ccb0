"""Clinic analytics aggregation and temporal bucketing engine."""

from .schemas import (
    AggregationResult,
    AnalyticsQuery,
    CustomDateRange,
    DateRangeOption,
    Granularity,
    RawAppointment,
    RawPatient,
)
from .services.aggregation import ClinicAnalyticsEngine

__version__ = "0.1.0"

__all__ = [
    "AggregationResult",
    "AnalyticsQuery",
    "ClinicAnalyticsEngine",
    "CustomDateRange",
    "DateRangeOption",
    "Granularity",
    "RawAppointment",
    "RawPatient",
]
