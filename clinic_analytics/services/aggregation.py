"""Single entry point composing adaptation, bucketing, classification and metrics."""

from datetime import date
from typing import Any, Iterable, Optional, Sequence, Type, Union

from pydantic import ValidationError

from clinic_analytics.core.config import settings
from clinic_analytics.core.dates import Clock, utc_now
from clinic_analytics.core.exceptions import AnalyticsException, InvalidInputError, report_exception
from clinic_analytics.core.logging import enrich_with_context, get_logger
from clinic_analytics.core.performance import Stopwatch, performance_monitor
from clinic_analytics.observability.metrics import observe_aggregation, record_skipped
from clinic_analytics.schemas.analytics import (
    AggregationResult,
    AnalyticsQuery,
    CustomDateRange,
    DateRange,
    Diagnostics,
)
from clinic_analytics.schemas.enums import (
    AppointmentStatus,
    Classification,
    DateRangeOption,
    PatientStatus,
    parse_appointment_status,
    parse_patient_status,
)
from clinic_analytics.schemas.records import (
    AdaptedAppointment,
    AdaptedPatient,
    ClassificationCounts,
    ClassifiedAppointment,
    FilteredRecords,
    RawAppointment,
    RawPatient,
    RawRecord,
)
from clinic_analytics.services.bucketing import Bucketer
from clinic_analytics.services.clinic_metrics import MetricsCalculator
from clinic_analytics.services.date_classifier import DateClassifier
from clinic_analytics.services.date_range import DateRangeResolver
from clinic_analytics.services.record_adapter import RecordAdapter

logger = get_logger(__name__)

RangeSelection = Union[str, DateRangeOption, CustomDateRange]


class _StatusFilter:
    """Caller status filter split into the appointment and patient vocabularies."""

    def __init__(self, raw: Optional[str]):
        self.raw = raw
        self.appointment: Optional[AppointmentStatus] = parse_appointment_status(raw) if raw else None
        self.patient: Optional[PatientStatus] = parse_patient_status(raw) if raw else None
        # a status no record can carry narrows everything away
        self.unmatchable = bool(raw) and self.appointment is None and self.patient is None
        if self.unmatchable:
            logger.warning("Status filter matches no known status", status=raw)


class ClinicAnalyticsEngine:
    """
    Canonical aggregation engine shared by every dashboard view.

    Holds the long-lived caches (adapter, classifier, bucket skeletons), so one
    engine instance should be reused across refreshes of the same host.
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        timezone: Optional[str] = None,
        adapter_capacity: Optional[int] = None,
        classification_capacity: Optional[int] = None,
        bucket_capacity: Optional[int] = None,
        thread_safe: Optional[bool] = None,
        max_decision_days: Optional[int] = None,
        top_diagnoses_limit: Optional[int] = None,
    ):
        self.clock = clock or utc_now
        self.timezone = timezone or settings.clinic_timezone
        self.resolver = DateRangeResolver(clock=self.clock, timezone=self.timezone)
        self.adapter = RecordAdapter(capacity=adapter_capacity, timezone=self.timezone, thread_safe=thread_safe)
        self.classifier = DateClassifier(
            capacity=classification_capacity,
            clock=self.clock,
            timezone=self.timezone,
            thread_safe=thread_safe,
        )
        self.bucketer = Bucketer(capacity=bucket_capacity, thread_safe=thread_safe)
        self.calculator = MetricsCalculator(
            max_decision_days=max_decision_days,
            top_diagnoses_limit=top_diagnoses_limit,
        )

    @performance_monitor
    def aggregate(
        self,
        appointments: Optional[Sequence[Any]],
        patients: Optional[Sequence[Any]],
        query: Optional[AnalyticsQuery] = None,
        **overrides: Any,
    ) -> AggregationResult:
        """
        Build the full dashboard snapshot for one set of inputs.

        Args:
            appointments: Raw appointments (models, dicts or attribute objects).
            patients: Raw patients (models, dicts or attribute objects).
            query: Window and narrowing filters. Defaults to the configured range.
            **overrides: Individual query fields (``date_range``, ``patient_id``,
                ``doctor_id``, ``status``, ``refresh_interval_ms``) applied on top
                of ``query``.

        Returns:
            AggregationResult snapshot. Data-quality problems are reported in
            ``diagnostics`` and ``range_was_corrected``, never raised.

        Raises:
            InvalidInputError: If either collection is None or not a sequence.
                Unreadable rows inside a valid collection are counted in
                ``diagnostics`` and skipped.
            InvalidDateRangeOptionError: If the range option is unknown.
        """
        try:
            raw_appointments, appointments_rejected = self._coerce(appointments, RawAppointment, "appointments")
            raw_patients, patients_rejected = self._coerce(patients, RawPatient, "patients")
            selection, patient_id, doctor_id, status, refresh_interval_ms = self._merge_query(query, overrides)
        except AnalyticsException as exc:
            report_exception(exc)
            raise

        log = enrich_with_context(logger, patient_id=patient_id, doctor_id=doctor_id, status=status)

        with Stopwatch() as stopwatch:
            adapted_appointments = self.adapter.adapt_appointments(raw_appointments)
            adapted_patients = self.adapter.adapt_patients(raw_patients)

            try:
                date_range = self.resolver.resolve(
                    selection,
                    earliest_record=self._earliest_record(adapted_appointments, adapted_patients),
                )
            except AnalyticsException as exc:
                report_exception(exc)
                raise
            status_filter = _StatusFilter(status)

            scoped_appointments = [
                appointment for appointment in adapted_appointments
                if self._matches_appointment(appointment, patient_id, doctor_id, status_filter)
            ]
            window_appointments = [
                appointment for appointment in scoped_appointments
                if appointment.day is not None and date_range.contains(appointment.day)
            ]
            window_patients = self._filter_patients(
                adapted_patients,
                window_appointments,
                date_range,
                patient_id,
                restrict_to_owners=bool(doctor_id) or status_filter.appointment is not None,
                status_filter=status_filter,
            )

            classified = self._classify(scoped_appointments)
            buckets = self.bucketer.fold(date_range, window_appointments, window_patients)
            metrics = self.calculator.calculate(
                window_appointments,
                window_patients,
                reference_today=self.resolver.today(),
            )

        observe_aggregation(date_range.granularity.value, stopwatch.elapsed)
        log.info(
            "Aggregated clinic analytics",
            option=date_range.option.value,
            granularity=date_range.granularity.value,
            buckets=len(buckets),
            appointments=len(window_appointments),
            patients=len(window_patients),
            days=date_range.days,
        )

        return AggregationResult(
            date_range=date_range,
            range_was_corrected=date_range.was_corrected,
            filtered_records=FilteredRecords(appointments=window_appointments, patients=window_patients),
            buckets=buckets,
            metrics=metrics,
            classified_appointments=classified,
            classification_counts=self._count_classifications(classified),
            diagnostics=Diagnostics(
                appointments_seen=len(adapted_appointments) + appointments_rejected,
                patients_seen=len(adapted_patients) + patients_rejected,
                appointments_with_invalid_date=sum(1 for a in adapted_appointments if not a.has_valid_date),
                patients_with_invalid_registration=sum(
                    1 for p in adapted_patients if not p.has_valid_registration
                ),
                appointments_rejected=appointments_rejected,
                patients_rejected=patients_rejected,
            ),
            refresh_interval_ms=refresh_interval_ms,
        )

    def clear_caches(self) -> None:
        """Drop every cached adaptation, classification and bucket skeleton."""
        self.adapter.clear()
        self.classifier.clear()
        self.bucketer.clear()
        logger.info("Cleared analytics caches")

    def cache_stats(self) -> dict:
        return {
            "adapter": self.adapter.get_stats(),
            "classifier": self.classifier.get_stats(),
            "buckets": self.bucketer.get_stats(),
        }

    @staticmethod
    def _coerce(records: Optional[Iterable[Any]], model: Type[RawRecord], field: str) -> tuple[list, int]:
        """Validate each row, dropping the ones that cannot be read at all."""
        if records is None or isinstance(records, (str, bytes, dict)):
            raise InvalidInputError(field)
        try:
            items = list(records)
        except TypeError:
            raise InvalidInputError(field) from None

        validated = []
        rejected = 0
        for index, item in enumerate(items):
            if isinstance(item, model):
                validated.append(item)
                continue
            try:
                validated.append(model.model_validate(item))
            except ValidationError as exc:
                rejected += 1
                logger.warning(
                    "Rejected unreadable record",
                    collection=field,
                    index=index,
                    errors=[error["loc"] for error in exc.errors()],
                )
                record_skipped(f"{field}_rejected")
        return validated, rejected

    @staticmethod
    def _merge_query(query: Optional[AnalyticsQuery], overrides: dict) -> tuple:
        selection: RangeSelection = query.date_range if query else settings.default_date_range
        patient_id = query.patient_id if query else None
        doctor_id = query.doctor_id if query else None
        status = query.status if query else None
        refresh_interval_ms = query.refresh_interval_ms if query else None

        # raw strings go straight to the resolver so unknown options raise its error
        selection = overrides.get("date_range", selection)
        if isinstance(selection, dict):
            selection = CustomDateRange.model_validate(selection)
        patient_id = overrides.get("patient_id", patient_id)
        doctor_id = overrides.get("doctor_id", doctor_id)
        status = overrides.get("status", status)
        refresh_interval_ms = overrides.get("refresh_interval_ms", refresh_interval_ms)

        if refresh_interval_ms is None:
            refresh_interval_ms = settings.refresh_interval_ms
        return selection, patient_id, doctor_id, status, refresh_interval_ms

    @staticmethod
    def _earliest_record(
        appointments: Sequence[AdaptedAppointment],
        patients: Sequence[AdaptedPatient],
    ) -> Optional[date]:
        days = [a.day for a in appointments if a.day is not None]
        days.extend(p.registered_at.date() for p in patients if p.registered_at is not None)
        return min(days) if days else None

    @staticmethod
    def _matches_appointment(
        appointment: AdaptedAppointment,
        patient_id: Optional[str],
        doctor_id: Optional[str],
        status_filter: _StatusFilter,
    ) -> bool:
        if not appointment.has_valid_date or status_filter.unmatchable:
            return False
        if patient_id and appointment.patient_id != patient_id:
            return False
        if doctor_id and appointment.doctor_id != doctor_id:
            return False
        if status_filter.appointment is not None and appointment.status != status_filter.appointment:
            return False
        return True

    @staticmethod
    def _filter_patients(
        patients: Sequence[AdaptedPatient],
        window_appointments: Sequence[AdaptedAppointment],
        date_range: DateRange,
        patient_id: Optional[str],
        restrict_to_owners: bool,
        status_filter: _StatusFilter,
    ) -> list[AdaptedPatient]:
        if status_filter.unmatchable:
            return []
        owners = {a.patient_id for a in window_appointments if a.patient_id}

        def in_window(patient: AdaptedPatient) -> bool:
            return any(
                moment is not None and date_range.contains(moment.date())
                for moment in (patient.registered_at, patient.status_changed_at)
            )

        selected = []
        for patient in patients:
            if patient_id and patient.id != patient_id:
                continue
            if status_filter.patient is not None and patient.status != status_filter.patient:
                continue
            if restrict_to_owners:
                if patient.id not in owners:
                    continue
            elif patient.id not in owners and not in_window(patient):
                continue
            selected.append(patient)
        return selected

    def _classify(self, appointments: Sequence[AdaptedAppointment]) -> list[ClassifiedAppointment]:
        classified = []
        for appointment in appointments:
            result = self.classifier.classify_appointment(appointment)
            if result is not None:
                classified.append(result)
        return classified

    @staticmethod
    def _count_classifications(appointments: Sequence[ClassifiedAppointment]) -> ClassificationCounts:
        counts = ClassificationCounts()
        for appointment in appointments:
            if appointment.classification == Classification.TODAY:
                counts.today += 1
            elif appointment.classification == Classification.FUTURE:
                counts.future += 1
            else:
                counts.past += 1
        return counts
