"""Pytest configuration and shared fixtures for the clinic analytics engine."""

from datetime import datetime, timedelta, UTC

import pytest

from clinic_analytics.core.config import settings
from clinic_analytics.services.aggregation import ClinicAnalyticsEngine
from tests.utils.test_data import RecordFactory, Scenarios


# Wednesday, mid-morning UTC
REFERENCE_NOW = datetime(2024, 3, 20, 10, 0, tzinfo=UTC)


class FixedClock:
    """Controllable clock; call it to get the current instant."""

    def __init__(self, now: datetime = REFERENCE_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> None:
        self.now = self.now + timedelta(**delta)

    def set(self, now: datetime) -> None:
        self.now = now


@pytest.fixture
def clock() -> FixedClock:
    """Clock frozen at the reference instant."""
    return FixedClock()


@pytest.fixture
def today(clock: FixedClock):
    return clock().date()


@pytest.fixture
def engine(clock: FixedClock) -> ClinicAnalyticsEngine:
    """Engine in UTC with small caches and the fixed clock."""
    return ClinicAnalyticsEngine(
        clock=clock,
        timezone="UTC",
        adapter_capacity=100,
        classification_capacity=50,
        bucket_capacity=20,
    )


@pytest.fixture
def factory(today) -> RecordFactory:
    return RecordFactory(today)


@pytest.fixture
def scenarios(factory: RecordFactory) -> Scenarios:
    return Scenarios(factory)


@pytest.fixture
def prometheus_enabled(monkeypatch):
    """Turn on metric recording for a single test."""
    monkeypatch.setattr(settings, "prometheus_enabled", True)
    return settings


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "e2e: End-to-end tests")
