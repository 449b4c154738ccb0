"""Pydantic v2 schemas for raw and adapted clinic records."""

from datetime import date, datetime
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from clinic_analytics.core.logging import get_logger
from clinic_analytics.schemas.enums import AppointmentStatus, Classification, PatientStatus

logger = get_logger(__name__)

RawTimestamp = Union[str, datetime, date, None]

_TRUTHY = {"true", "1", "yes", "si", "sí"}
_FALSY = {"false", "0", "no", ""}


def _as_identifier(value: Any) -> Any:
    """Numeric ids from the backend are compared as strings."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


def _as_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    return str(value)


def _as_timestamp(value: Any) -> RawTimestamp:
    # anything else is kept as text so the adapter reports it as malformed
    if value is None or isinstance(value, (str, date)):
        return value
    return str(value)


# Base schemas
class BaseSchema(BaseModel):
    """Base schema with common configuration."""
    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class RawRecord(BaseSchema):
    """Record as delivered by the data-fetching layer, validated loosely.

    Field values the backend gets wrong are coerced or dropped here so a single
    sloppy row never fails the whole aggregation.
    """
    model_config = ConfigDict(frozen=True, extra="ignore")


# Raw input schemas
class RawAppointment(RawRecord):
    """Appointment row before adaptation. Dates stay as delivered."""
    id: str
    patient_id: Optional[str] = None
    doctor_id: Optional[str] = None
    timestamp: RawTimestamp = None
    status: Optional[str] = AppointmentStatus.SCHEDULED.value
    motive: str = ""
    is_first_visit: bool = False

    @field_validator("id", "patient_id", "doctor_id", mode="before")
    @classmethod
    def coerce_identifier(cls, value: Any) -> Any:
        return _as_identifier(value)

    @field_validator("timestamp", mode="before")
    @classmethod
    def coerce_timestamp(cls, value: Any) -> RawTimestamp:
        return _as_timestamp(value)

    @field_validator("status", mode="before")
    @classmethod
    def coerce_status(cls, value: Any) -> Optional[str]:
        return _as_text(value)

    @field_validator("motive", mode="before")
    @classmethod
    def coerce_motive(cls, value: Any) -> str:
        return _as_text(value) or ""

    @field_validator("is_first_visit", mode="before")
    @classmethod
    def coerce_first_visit(cls, value: Any) -> bool:
        if isinstance(value, bool):
            return value
        if value is None:
            return False
        if isinstance(value, (int, float)) and value in (0, 1):
            return bool(value)
        if isinstance(value, str) and value.strip().lower() in _TRUTHY | _FALSY:
            return value.strip().lower() in _TRUTHY
        logger.warning("Unreadable first-visit flag, assuming false", value=repr(value))
        return False


class RawPatient(RawRecord):
    """Patient row before adaptation."""
    id: str
    first_name: str = ""
    last_name: str = ""
    registration_date: RawTimestamp = None
    updated_at: RawTimestamp = None
    status: Optional[str] = PatientStatus.POTENTIAL.value
    primary_diagnosis: Optional[str] = None
    surgery_probability: Optional[float] = None
    source: Optional[str] = None
    scheduled_surgery_date: RawTimestamp = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_identifier(cls, value: Any) -> Any:
        return _as_identifier(value)

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def coerce_name(cls, value: Any) -> str:
        return _as_text(value) or ""

    @field_validator("status", "primary_diagnosis", "source", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> Optional[str]:
        return _as_text(value)

    @field_validator("registration_date", "updated_at", "scheduled_surgery_date", mode="before")
    @classmethod
    def coerce_timestamp(cls, value: Any) -> RawTimestamp:
        return _as_timestamp(value)

    @field_validator("surgery_probability", mode="before")
    @classmethod
    def coerce_probability(cls, value: Any) -> Optional[float]:
        if value is None or isinstance(value, bool):
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            logger.warning("Unreadable surgery probability, ignoring", value=repr(value))
            return None


# Adapted schemas
class AdaptedRecord(BaseSchema):
    """Adapted records are shared through the caches and never mutated."""
    model_config = ConfigDict(frozen=True)


class AdaptedAppointment(AdaptedRecord):
    """Canonical appointment with parsed clinic-local time.

    ``scheduled_at`` is None when the raw timestamp could not be parsed; such
    records are kept for diagnostics but excluded from date-based views.
    """
    id: str
    patient_id: Optional[str] = None
    doctor_id: Optional[str] = None
    raw_timestamp: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    date_label: str = ""
    time_label: str = ""
    status: AppointmentStatus
    motive: str = ""
    is_first_visit: bool = False

    @property
    def has_valid_date(self) -> bool:
        return self.scheduled_at is not None

    @property
    def day(self) -> Optional[date]:
        return self.scheduled_at.date() if self.scheduled_at else None


class AdaptedPatient(AdaptedRecord):
    """Canonical patient with parsed dates and normalised text."""
    id: str
    first_name: str = ""
    last_name: str = ""
    full_name: str = ""
    registered_at: Optional[datetime] = None
    status_changed_at: Optional[datetime] = None
    status: PatientStatus
    primary_diagnosis: Optional[str] = None
    surgery_probability: Optional[float] = None
    source: Optional[str] = None
    scheduled_surgery_at: Optional[datetime] = None

    @property
    def has_valid_registration(self) -> bool:
        return self.registered_at is not None

    @property
    def decision_at(self) -> Optional[datetime]:
        """When the patient reached a terminal decision, if they have."""
        if self.status == PatientStatus.OPERATED:
            return self.status_changed_at or self.scheduled_surgery_at
        if self.status == PatientStatus.NOT_OPERATED:
            return self.status_changed_at
        return None


class ClassifiedAppointment(AdaptedAppointment):
    """Adapted appointment labelled today / future / past."""
    classification: Classification


class ClassificationCounts(BaseSchema):
    today: int = 0
    future: int = 0
    past: int = 0


class FilteredRecords(BaseSchema):
    """Records surviving the date window and caller filters."""
    appointments: list[AdaptedAppointment] = Field(default_factory=list)
    patients: list[AdaptedPatient] = Field(default_factory=list)
