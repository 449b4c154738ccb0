"""Normalisation of raw appointment and patient rows into canonical records."""

import hashlib
import re
from datetime import date, datetime
from typing import Iterable, Optional

from clinic_analytics.core.cache import BoundedCache
from clinic_analytics.core.config import settings
from clinic_analytics.core.dates import load_timezone, parse_timestamp
from clinic_analytics.core.logging import get_logger
from clinic_analytics.observability.metrics import record_skipped
from clinic_analytics.schemas.enums import (
    AppointmentStatus,
    PatientStatus,
    parse_appointment_status,
    parse_patient_status,
)
from clinic_analytics.schemas.records import (
    AdaptedAppointment,
    AdaptedPatient,
    RawAppointment,
    RawPatient,
    RawRecord,
    RawTimestamp,
)

logger = get_logger(__name__)

_WHITESPACE = re.compile(r"\s+")


def fingerprint(record: RawRecord) -> str:
    """Digest of every field that influences adaptation."""
    payload = record.model_dump_json().encode("utf-8")
    return hashlib.blake2b(payload, digest_size=16).hexdigest()


def normalize_text(value: Optional[str]) -> Optional[str]:
    """Trim and collapse whitespace; empty strings become None."""
    if value is None:
        return None
    text = _WHITESPACE.sub(" ", value).strip()
    return text or None


def _timestamp_text(value: RawTimestamp) -> Optional[str]:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def normalize_diagnosis(value: Optional[str]) -> Optional[str]:
    text = normalize_text(value)
    return text.upper() if text else None


class RecordAdapter:
    """Adapts raw records, memoising results per record id and content."""

    def __init__(
        self,
        capacity: Optional[int] = None,
        timezone: Optional[str] = None,
        thread_safe: Optional[bool] = None,
    ):
        capacity = settings.adapter_cache_capacity if capacity is None else capacity
        thread_safe = settings.cache_thread_safe if thread_safe is None else thread_safe
        self.tz = load_timezone(timezone or settings.clinic_timezone)
        self._appointments: BoundedCache = BoundedCache(capacity, name="appointment_adapter", thread_safe=thread_safe)
        self._patients: BoundedCache = BoundedCache(capacity, name="patient_adapter", thread_safe=thread_safe)

    def adapt_appointment(self, raw: RawAppointment) -> AdaptedAppointment:
        """Adapt one appointment; a bad timestamp yields ``scheduled_at=None``."""
        key = (raw.id, fingerprint(raw))
        return self._appointments.get_or_set(key, lambda: self._build_appointment(raw))

    def adapt_patient(self, raw: RawPatient) -> AdaptedPatient:
        """Adapt one patient; bad optional dates become None."""
        key = (raw.id, fingerprint(raw))
        return self._patients.get_or_set(key, lambda: self._build_patient(raw))

    def adapt_appointments(self, records: Iterable[RawAppointment]) -> list[AdaptedAppointment]:
        return [self.adapt_appointment(record) for record in records]

    def adapt_patients(self, records: Iterable[RawPatient]) -> list[AdaptedPatient]:
        return [self.adapt_patient(record) for record in records]

    def clear(self) -> None:
        self._appointments.clear()
        self._patients.clear()

    def get_stats(self) -> dict:
        return {
            "appointments": self._appointments.get_stats(),
            "patients": self._patients.get_stats(),
        }

    def _build_appointment(self, raw: RawAppointment) -> AdaptedAppointment:
        scheduled_at = parse_timestamp(raw.timestamp, self.tz)
        if scheduled_at is None:
            logger.warning(
                "Malformed appointment timestamp, excluding from date-based views",
                record_id=raw.id,
                timestamp=raw.timestamp,
            )
            record_skipped("appointment")

        status = parse_appointment_status(raw.status)
        if status is None:
            logger.warning("Unknown appointment status, defaulting to scheduled", record_id=raw.id, status=raw.status)
            status = AppointmentStatus.SCHEDULED

        return AdaptedAppointment(
            id=raw.id,
            patient_id=raw.patient_id,
            doctor_id=raw.doctor_id,
            raw_timestamp=_timestamp_text(raw.timestamp),
            scheduled_at=scheduled_at,
            date_label=scheduled_at.strftime("%d/%m/%Y") if scheduled_at else "",
            time_label=scheduled_at.strftime("%H:%M") if scheduled_at else "",
            status=status,
            motive=normalize_text(raw.motive) or "",
            is_first_visit=raw.is_first_visit,
        )

    def _build_patient(self, raw: RawPatient) -> AdaptedPatient:
        registered_at = parse_timestamp(raw.registration_date, self.tz)
        if registered_at is None:
            logger.warning(
                "Malformed patient registration date, excluding from date-based views",
                record_id=raw.id,
                registration_date=raw.registration_date,
            )
            record_skipped("patient")

        status_changed_at = self._optional_date(raw, "updated_at", raw.updated_at)
        scheduled_surgery_at = self._optional_date(raw, "scheduled_surgery_date", raw.scheduled_surgery_date)

        status = parse_patient_status(raw.status)
        if status is None:
            logger.warning("Unknown patient status, defaulting to potential", record_id=raw.id, status=raw.status)
            status = PatientStatus.POTENTIAL

        probability = raw.surgery_probability
        if probability is not None and not 0 <= probability <= 100:
            logger.warning("Surgery probability out of range, ignoring", record_id=raw.id, value=probability)
            probability = None

        first_name = normalize_text(raw.first_name) or ""
        last_name = normalize_text(raw.last_name) or ""

        return AdaptedPatient(
            id=raw.id,
            first_name=first_name,
            last_name=last_name,
            full_name=f"{first_name} {last_name}".strip(),
            registered_at=registered_at,
            status_changed_at=status_changed_at,
            status=status,
            primary_diagnosis=normalize_diagnosis(raw.primary_diagnosis),
            surgery_probability=probability,
            source=normalize_text(raw.source),
            scheduled_surgery_at=scheduled_surgery_at,
        )

    def _optional_date(self, raw: RawPatient, field: str, value: RawTimestamp):
        parsed = parse_timestamp(value, self.tz)
        if parsed is None and value:
            logger.info("Ignoring malformed optional patient date", record_id=raw.id, field=field, value=value)
        return parsed
