"""Clinic-level statistics over the filtered record set."""

from collections import Counter
from datetime import date, datetime
from typing import Dict, List, Optional, Sequence

from clinic_analytics.core.config import settings
from clinic_analytics.core.dates import WEEKDAY_NAMES, days_between, month_start
from clinic_analytics.core.logging import get_logger
from clinic_analytics.schemas.analytics import ClinicMetrics, DiagnosisCount, WeekdayStat
from clinic_analytics.schemas.enums import (
    ATTENDED_STATUSES,
    DECISION_STATUSES,
    MISSED_STATUSES,
    AppointmentStatus,
    PatientStatus,
)
from clinic_analytics.schemas.records import AdaptedAppointment, AdaptedPatient

logger = get_logger(__name__)

UNSPECIFIED_DIAGNOSIS = "UNSPECIFIED"


def safe_rate(numerator: float, denominator: float) -> float:
    """Ratio that is 0 instead of NaN or an error when the denominator is 0."""
    if not denominator:
        return 0.0
    return numerator / denominator


class MetricsCalculator:
    """Derives dashboard metrics from adapted, filtered records."""

    def __init__(self, max_decision_days: Optional[int] = None, top_diagnoses_limit: Optional[int] = None):
        self.max_decision_days = settings.max_decision_days if max_decision_days is None else max_decision_days
        self.top_diagnoses_limit = settings.top_diagnoses_limit if top_diagnoses_limit is None else top_diagnoses_limit

    def calculate(
        self,
        appointments: Sequence[AdaptedAppointment],
        patients: Sequence[AdaptedPatient],
        reference_today: Optional[date] = None,
    ) -> ClinicMetrics:
        """
        Compute every metric for one aggregation run.

        Args:
            appointments: Filtered appointments (valid dates only).
            patients: Filtered patients.
            reference_today: Clinic-local today, used for month-to-date counts.

        Returns:
            ClinicMetrics with all rates guarded against empty denominators.
        """
        status_counts = Counter(appointment.status for appointment in appointments)
        patient_status_counts = Counter(patient.status for patient in patients)
        total = len(appointments)

        attended = sum(status_counts[status] for status in ATTENDED_STATUSES)
        missed = sum(status_counts[status] for status in MISSED_STATUSES)
        operated = patient_status_counts[PatientStatus.OPERATED]
        decided = sum(patient_status_counts[status] for status in DECISION_STATUSES)

        decision_days = self.decision_spans(appointments, patients)

        return ClinicMetrics(
            total_appointments=total,
            total_patients=len(patients),
            unique_patients=len({a.patient_id for a in appointments if a.patient_id}),
            status_breakdown={status.value: status_counts[status] for status in AppointmentStatus},
            attendance_rate=safe_rate(attended, total),
            cancellation_rate=safe_rate(missed, total),
            no_show_rate=safe_rate(status_counts[AppointmentStatus.NO_SHOW], total),
            first_visit_appointments=sum(1 for a in appointments if a.is_first_visit),
            patient_status_breakdown={status.value: patient_status_counts[status] for status in PatientStatus},
            operated_patients=operated,
            not_operated_patients=patient_status_counts[PatientStatus.NOT_OPERATED],
            follow_up_patients=patient_status_counts[PatientStatus.FOLLOW_UP],
            new_patients_this_month=self._new_this_month(patients, reference_today),
            conversion_rate=safe_rate(operated, decided),
            average_decision_days=round(safe_rate(sum(decision_days), len(decision_days)), 1),
            decision_sample_size=len(decision_days),
            top_diagnoses=self.top_diagnoses(patients),
            top_source=self._top_source(patients),
            average_surgery_probability=self._average_probability(patients),
            weekday_distribution=self.weekday_distribution(appointments),
        )

    def first_consult_dates(self, appointments: Sequence[AdaptedAppointment]) -> Dict[str, datetime]:
        """Earliest non-cancelled appointment per patient."""
        firsts: Dict[str, datetime] = {}
        for appointment in appointments:
            if not appointment.patient_id or appointment.scheduled_at is None:
                continue
            if appointment.status == AppointmentStatus.CANCELLED:
                continue
            current = firsts.get(appointment.patient_id)
            if current is None or appointment.scheduled_at < current:
                firsts[appointment.patient_id] = appointment.scheduled_at
        return firsts

    def decision_spans(
        self,
        appointments: Sequence[AdaptedAppointment],
        patients: Sequence[AdaptedPatient],
    ) -> List[int]:
        """Whole days from first consult to decision, dropping implausible spans."""
        firsts = self.first_consult_dates(appointments)
        spans: List[int] = []
        for patient in patients:
            decision_at = patient.decision_at
            first_consult = firsts.get(patient.id, patient.registered_at)
            if decision_at is None or first_consult is None:
                continue
            span = days_between(first_consult, decision_at)
            if 0 <= span < self.max_decision_days:
                spans.append(span)
            else:
                logger.info("Excluding implausible decision span", patient_id=patient.id, days=span)
        return spans

    def top_diagnoses(self, patients: Sequence[AdaptedPatient]) -> List[DiagnosisCount]:
        """Most frequent diagnoses, ties kept in first-seen order."""
        counts: Dict[str, int] = {}
        for patient in patients:
            diagnosis = patient.primary_diagnosis or UNSPECIFIED_DIAGNOSIS
            counts[diagnosis] = counts.get(diagnosis, 0) + 1
        # sorted() is stable, and dicts keep insertion order
        ranked = sorted(counts.items(), key=lambda item: -item[1])
        return [DiagnosisCount(diagnosis=name, count=count) for name, count in ranked[: self.top_diagnoses_limit]]

    def weekday_distribution(self, appointments: Sequence[AdaptedAppointment]) -> List[WeekdayStat]:
        """Per-weekday counts at daily resolution, Monday first."""
        stats = [WeekdayStat(weekday=name) for name in WEEKDAY_NAMES]
        for appointment in appointments:
            if appointment.scheduled_at is None:
                continue
            stat = stats[appointment.scheduled_at.weekday()]
            stat.count += 1
            if appointment.status in ATTENDED_STATUSES:
                stat.attended += 1
        for stat in stats:
            stat.attendance_rate = safe_rate(stat.attended, stat.count)
        return stats

    @staticmethod
    def _new_this_month(patients: Sequence[AdaptedPatient], reference_today: Optional[date]) -> int:
        if reference_today is None:
            return 0
        first_day = month_start(reference_today)
        return sum(
            1 for patient in patients
            if patient.registered_at and first_day <= patient.registered_at.date() <= reference_today
        )

    @staticmethod
    def _top_source(patients: Sequence[AdaptedPatient]) -> Optional[str]:
        sources = Counter(patient.source for patient in patients if patient.source)
        if not sources:
            return None
        # most_common keeps first-seen order among equal counts
        return sources.most_common(1)[0][0]

    @staticmethod
    def _average_probability(patients: Sequence[AdaptedPatient]) -> float:
        values = [p.surgery_probability for p in patients if p.surgery_probability is not None]
        return round(safe_rate(sum(values), len(values)), 2)
