"""Enumerations and status alias tables."""

import re
from enum import Enum
from typing import Optional


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no-show"
    PRESENT = "present"
    RESCHEDULED = "rescheduled"


class PatientStatus(str, Enum):
    """Patient clinical status enumeration."""
    POTENTIAL = "potential"
    ACTIVE = "active"
    FOLLOW_UP = "follow-up"
    OPERATED = "operated"
    NOT_OPERATED = "not-operated"
    UNDECIDED = "undecided"
    INACTIVE = "inactive"
    DISCHARGED = "discharged"


class Granularity(str, Enum):
    """Width of a chart bucket."""
    DAY = "day"
    WEEK = "week"
    BIWEEK = "biweek"
    MONTH = "month"


class DateRangeOption(str, Enum):
    """Symbolic dashboard windows."""
    LAST_7_DAYS = "7d"
    LAST_30_DAYS = "30d"
    LAST_90_DAYS = "90d"
    YEAR_TO_DATE = "ytd"
    ALL = "all"
    CUSTOM = "custom"


class Classification(str, Enum):
    """Position of a date relative to the clinic's current day."""
    TODAY = "today"
    FUTURE = "future"
    PAST = "past"


ATTENDED_STATUSES = frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.PRESENT})
MISSED_STATUSES = frozenset({AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW})
DECISION_STATUSES = frozenset({PatientStatus.OPERATED, PatientStatus.NOT_OPERATED})


# Labels found in legacy exports and the Spanish-language front desk, keyed by
# their normalised form (upper case, single spaces).
APPOINTMENT_STATUS_ALIASES = {
    "PROGRAMADA": AppointmentStatus.SCHEDULED,
    "PENDING": AppointmentStatus.SCHEDULED,
    "CONFIRMADA": AppointmentStatus.CONFIRMED,
    "CANCELADA": AppointmentStatus.CANCELLED,
    "CANCELED": AppointmentStatus.CANCELLED,
    "COMPLETADA": AppointmentStatus.COMPLETED,
    "NO ASISTIO": AppointmentStatus.NO_SHOW,
    "NO ASISTIÓ": AppointmentStatus.NO_SHOW,
    "NOSHOW": AppointmentStatus.NO_SHOW,
    "PRESENTE": AppointmentStatus.PRESENT,
    "IN PROGRESS": AppointmentStatus.PRESENT,
    "CHECKED IN": AppointmentStatus.PRESENT,
    "REAGENDADA": AppointmentStatus.RESCHEDULED,
}

PATIENT_STATUS_ALIASES = {
    "PENDIENTE DE CONSULTA": PatientStatus.POTENTIAL,
    "POTENCIAL": PatientStatus.POTENTIAL,
    "LEAD": PatientStatus.POTENTIAL,
    "CONSULTADO": PatientStatus.ACTIVE,
    "ACTIVO": PatientStatus.ACTIVE,
    "EN SEGUIMIENTO": PatientStatus.FOLLOW_UP,
    "SEGUIMIENTO": PatientStatus.FOLLOW_UP,
    "FOLLOWUP": PatientStatus.FOLLOW_UP,
    "OPERADO": PatientStatus.OPERATED,
    "NO OPERADO": PatientStatus.NOT_OPERATED,
    "DECLINED": PatientStatus.NOT_OPERATED,
    "RECHAZADO": PatientStatus.NOT_OPERATED,
    "INDECISO": PatientStatus.UNDECIDED,
    "INACTIVO": PatientStatus.INACTIVE,
    "ALTA MEDICA": PatientStatus.DISCHARGED,
    "ALTA MÉDICA": PatientStatus.DISCHARGED,
}

_SEPARATORS = re.compile(r"[\s_\-]+")


def normalize_label(value: str) -> str:
    """Upper-case and collapse spaces, underscores and hyphens to one space."""
    return _SEPARATORS.sub(" ", value.strip()).upper()


def parse_appointment_status(value: object) -> Optional[AppointmentStatus]:
    """Map a raw status label onto the canonical enum, or None if unknown."""
    if isinstance(value, AppointmentStatus):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    label = normalize_label(value)
    for status in AppointmentStatus:
        if normalize_label(status.value) == label:
            return status
    return APPOINTMENT_STATUS_ALIASES.get(label)


def parse_patient_status(value: object) -> Optional[PatientStatus]:
    """Map a raw patient status label onto the canonical enum, or None if unknown."""
    if isinstance(value, PatientStatus):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    label = normalize_label(value)
    for status in PatientStatus:
        if normalize_label(status.value) == label:
            return status
    return PATIENT_STATUS_ALIASES.get(label)
