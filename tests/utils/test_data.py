"""Test data factories and sample data generators."""

import itertools
from datetime import date, datetime, time, timedelta
from typing import Optional

from clinic_analytics.schemas.records import RawAppointment, RawPatient


def iso(day: date, hour: int = 9, minute: int = 0) -> str:
    """Naive ISO timestamp for ``day`` at the given wall time."""
    return datetime.combine(day, time(hour, minute)).isoformat()


class RecordFactory:
    """Factory for raw records dated relative to a reference day."""

    def __init__(self, today: date):
        self.today = today
        self._ids = itertools.count(1)

    def day(self, offset: int) -> date:
        """Reference day shifted by ``offset`` days (negative is the past)."""
        return self.today + timedelta(days=offset)

    def appointment(
        self,
        on: Optional[date] = None,
        status: str = "completed",
        patient_id: Optional[str] = "p-1",
        doctor_id: Optional[str] = "d-1",
        timestamp: Optional[str] = None,
        hour: int = 9,
        is_first_visit: bool = False,
        id: Optional[str] = None,
    ) -> RawAppointment:
        """Create an appointment; ``timestamp`` overrides ``on`` verbatim."""
        if timestamp is None:
            timestamp = iso(on or self.today, hour)
        return RawAppointment(
            id=id or f"a-{next(self._ids)}",
            patient_id=patient_id,
            doctor_id=doctor_id,
            timestamp=timestamp,
            status=status,
            motive="Consulta",
            is_first_visit=is_first_visit,
        )

    def patient(
        self,
        id: Optional[str] = None,
        registered: Optional[date] = None,
        status: str = "potential",
        changed: Optional[date] = None,
        diagnosis: Optional[str] = "Hernia inguinal",
        source: Optional[str] = "referral",
        probability: Optional[float] = None,
        registration_date: Optional[str] = None,
        surgery: Optional[date] = None,
    ) -> RawPatient:
        """Create a patient; ``registration_date`` overrides ``registered`` verbatim."""
        if registration_date is None:
            registration_date = iso(registered or self.today, 8)
        return RawPatient(
            id=id or f"p-{next(self._ids)}",
            first_name="Ana",
            last_name="Lopez",
            registration_date=registration_date,
            updated_at=iso(changed, 12) if changed else None,
            status=status,
            primary_diagnosis=diagnosis,
            surgery_probability=probability,
            source=source,
            scheduled_surgery_date=iso(surgery, 7) if surgery else None,
        )


class Scenarios:
    """Canned record sets for common dashboard situations."""

    def __init__(self, factory: RecordFactory):
        self.factory = factory

    def attendance_mix(self):
        """Day 1 completed, day 1 cancelled, day 15 present, inside a 30-day window."""
        f = self.factory
        first = f.day(-28)
        fifteenth = first + timedelta(days=14)
        return [
            f.appointment(on=first, status="completed", patient_id="p-1"),
            f.appointment(on=first, status="cancelled", patient_id="p-2", hour=11),
            f.appointment(on=fifteenth, status="present", patient_id="p-3"),
        ]

    def operated_after_fifteen_days(self):
        """Patient registered and first seen on day 5, operated on day 20."""
        f = self.factory
        day5 = f.day(-25)
        day20 = day5 + timedelta(days=15)
        patient = f.patient(id="p-op", registered=day5, status="operated", changed=day20)
        consult = f.appointment(on=day5, status="completed", patient_id="p-op")
        return [consult], [patient]

    def busy_clinic(self):
        """Mixed statuses, doctors and patients spread over the last 90 days."""
        f = self.factory
        appointments = []
        statuses = ["completed", "present", "cancelled", "no-show", "scheduled", "confirmed"]
        for offset in range(0, 90, 3):
            appointments.append(f.appointment(
                on=f.day(-offset),
                status=statuses[(offset // 3) % len(statuses)],
                patient_id=f"p-{offset % 7}",
                doctor_id="d-1" if offset % 2 else "d-2",
            ))
        appointments.append(f.appointment(on=f.day(3), status="scheduled", patient_id="p-1"))
        appointments.append(f.appointment(on=f.day(10), status="confirmed", patient_id="p-2"))
        patients = [
            f.patient(id="p-0", registered=f.day(-80), status="operated", changed=f.day(-40)),
            f.patient(id="p-1", registered=f.day(-60), status="follow-up", changed=f.day(-20)),
            f.patient(id="p-2", registered=f.day(-45), status="not-operated", changed=f.day(-10)),
            f.patient(id="p-3", registered=f.day(-20), status="active", diagnosis="Colecistitis"),
            f.patient(id="p-4", registered=f.day(-10), status="potential", diagnosis="Colecistitis"),
            f.patient(id="p-5", registered=f.day(-5), status="undecided", source="web"),
            f.patient(id="p-6", registered=f.day(-2), status="potential", diagnosis=None, source="web"),
        ]
        return appointments, patients
