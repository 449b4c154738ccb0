"""End-to-end tests for dashboard aggregation workflows."""

from datetime import datetime, UTC

import pytest

from clinic_analytics import AnalyticsQuery, ClinicAnalyticsEngine, CustomDateRange, Granularity
from tests.utils.assertions import AnalyticsAssertions


def backend_payload():
    """Rows as a Spanish-language front desk backend returns them."""
    appointments = [
        {"id": "c-1", "patientId": "pac-1", "doctorId": "dr-a", "timestamp": "2024-02-05T09:00:00-05:00",
         "status": "COMPLETADA", "isFirstVisit": True},
        {"id": "c-2", "patientId": "pac-2", "doctorId": "dr-a", "timestamp": "2024-02-20T10:30:00-05:00",
         "status": "CANCELADA"},
        {"id": "c-3", "patientId": "pac-2", "doctorId": "dr-b", "timestamp": "2024-02-27T11:00:00-05:00",
         "status": "PRESENTE", "isFirstVisit": True},
        {"id": "c-4", "patientId": "pac-3", "doctorId": "dr-b", "timestamp": "2024-03-11T16:00:00-05:00",
         "status": "NO ASISTIO"},
        {"id": "c-5", "patientId": "pac-1", "doctorId": "dr-a", "timestamp": "2024-03-20T08:00:00-05:00",
         "status": "PROGRAMADA"},
        {"id": "c-6", "patientId": "pac-3", "doctorId": "dr-b", "timestamp": "2024-04-02T08:00:00-05:00",
         "status": "CONFIRMADA"},
        {"id": "c-7", "patientId": "pac-4", "doctorId": "dr-a", "timestamp": "pendiente",
         "status": "PROGRAMADA"},
    ]
    patients = [
        {"id": "pac-1", "firstName": "Lucia", "lastName": "Garcia", "registrationDate": "2024-02-01T08:00:00-05:00",
         "updatedAt": "2024-03-01T12:00:00-05:00", "status": "OPERADO", "primaryDiagnosis": "hernia inguinal",
         "surgeryProbability": 90, "source": "Referido"},
        {"id": "pac-2", "firstName": "Mario", "lastName": "Ruiz", "registrationDate": "2024-02-18T08:00:00-05:00",
         "updatedAt": "2024-03-05T12:00:00-05:00", "status": "NO OPERADO", "primaryDiagnosis": "Colecistitis",
         "surgeryProbability": 30, "source": "Web"},
        {"id": "pac-3", "firstName": "Elena", "lastName": "Diaz", "registrationDate": "2024-03-08T08:00:00-05:00",
         "updatedAt": "2024-03-12T12:00:00-05:00", "status": "EN SEGUIMIENTO", "primaryDiagnosis": "Hernia  Inguinal",
         "source": "Referido"},
        {"id": "pac-4", "firstName": "Jose", "lastName": "Mora", "registrationDate": None,
         "status": "POTENCIAL", "source": "Web"},
    ]
    return appointments, patients


@pytest.fixture
def dashboard_engine(clock) -> ClinicAnalyticsEngine:
    # 2024-03-20 10:00 UTC is 05:00 in Bogota, still the 20th
    return ClinicAnalyticsEngine(clock=clock, timezone="America/Bogota")


@pytest.mark.e2e
class TestDashboardWorkflows:
    """End-to-end dashboard scenarios."""

    def test_default_dashboard(self, dashboard_engine):
        """Test the 30-day overview a clinician lands on."""
        appointments, patients = backend_payload()

        result = dashboard_engine.aggregate(appointments, patients)

        assert result.date_range.granularity == Granularity.WEEK
        assert [a.id for a in result.filtered_records.appointments] == ["c-2", "c-3", "c-4", "c-5"]
        assert result.filtered_records.appointments[0].time_label == "10:30"
        AnalyticsAssertions.assert_conservation(result)
        assert sum(bucket.counts.consultations for bucket in result.buckets) == 3

        metrics = result.metrics
        AnalyticsAssertions.assert_rate(metrics.attendance_rate, 1 / 4)
        AnalyticsAssertions.assert_rate(metrics.cancellation_rate, 2 / 4)
        AnalyticsAssertions.assert_rate(metrics.conversion_rate, 1 / 2)
        assert metrics.top_diagnoses[0].diagnosis == "HERNIA INGUINAL"
        assert metrics.top_diagnoses[0].count == 2
        assert metrics.top_source == "Referido"

        assert result.classification_counts.today == 1
        assert result.classification_counts.future == 1
        assert result.diagnostics.appointments_with_invalid_date == 1
        assert result.diagnostics.patients_with_invalid_registration == 1

    def test_switching_windows(self, dashboard_engine):
        """Test the range picker walks through every granularity."""
        appointments, patients = backend_payload()

        granularities = {
            option: dashboard_engine.aggregate(appointments, patients, date_range=option).date_range.granularity
            for option in ("7d", "30d", "90d")
        }
        history = dashboard_engine.aggregate(
            appointments,
            patients,
            AnalyticsQuery(date_range=CustomDateRange(start="2023-01-01")),
        )

        assert granularities == {"7d": Granularity.DAY, "30d": Granularity.WEEK, "90d": Granularity.BIWEEK}
        assert history.date_range.granularity == Granularity.MONTH
        assert history.buckets[0].label == "Jan 23"
        assert history.metrics.total_appointments == 5
        # pac-1: 5 Feb -> 1 Mar, pac-2: first non-cancelled visit 27 Feb -> 5 Mar
        assert history.metrics.average_decision_days == 16.0

    def test_doctor_drilldown(self, dashboard_engine):
        appointments, patients = backend_payload()

        result = dashboard_engine.aggregate(appointments, patients, date_range="90d", doctor_id="dr-b")

        assert {a.id for a in result.filtered_records.appointments} == {"c-3", "c-4"}
        assert {p.id for p in result.filtered_records.patients} == {"pac-2", "pac-3"}
        assert {a.id for a in result.classified_appointments} == {"c-3", "c-4", "c-6"}

    def test_long_running_host_rolls_over_midnight(self, clock, dashboard_engine):
        """Test a dashboard left open overnight reclassifies today's visits."""
        appointments, patients = backend_payload()
        clock.set(datetime(2024, 3, 21, 4, 59, tzinfo=UTC))
        evening = dashboard_engine.aggregate(appointments, patients)

        clock.set(datetime(2024, 3, 21, 5, 1, tzinfo=UTC))
        morning = dashboard_engine.aggregate(appointments, patients)

        assert evening.classification_counts.today == 1
        assert morning.classification_counts.today == 0
        assert morning.classification_counts.past == evening.classification_counts.past + 1

    def test_edited_record_is_picked_up(self, dashboard_engine):
        """Test a status change between refreshes is not served from cache."""
        appointments, patients = backend_payload()
        before = dashboard_engine.aggregate(appointments, patients)

        appointments[4] = {**appointments[4], "status": "PRESENTE"}
        after = dashboard_engine.aggregate(appointments, patients)

        assert after.metrics.attendance_rate > before.metrics.attendance_rate
        assert after.refresh_interval_ms == before.refresh_interval_ms
