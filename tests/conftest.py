"""Shared test fixtures for the telemetry staging service."""

from datetime import datetime, timedelta, timezone

import pytest

from telemetry_svc.config import Config, DeliveryConfig, TelemetryConfig
from telemetry_svc.service import TelemetryService
from telemetry_svc.store.db import init_db
from telemetry_svc.store.repository import TelemetryRepository


class FakeClock:
    """Manually advanced clock so tests can simulate elapsed time."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


# =============================================================================
# Store Fixtures
# =============================================================================

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def db_path(tmp_path) -> str:
    """File-backed database so multiple connections can share it."""
    return str(tmp_path / "telemetry.db")


@pytest.fixture
def telemetry_config(db_path) -> TelemetryConfig:
    return TelemetryConfig(db_path=db_path, entries_limit=1000, batch_size=1000)


@pytest.fixture
def conn(db_path):
    connection = init_db(db_path)
    yield connection
    connection.close()


@pytest.fixture
def repository(conn, telemetry_config, clock) -> TelemetryRepository:
    return TelemetryRepository(conn, telemetry_config, clock=clock)


@pytest.fixture
def service(repository) -> TelemetryService:
    return TelemetryService(repository)


# =============================================================================
# Application Fixtures
# =============================================================================

@pytest.fixture
def app_config(db_path) -> Config:
    """App config with background workers disabled."""
    return Config(
        telemetry=TelemetryConfig(db_path=db_path, entries_limit=5, batch_size=10),
        delivery=DeliveryConfig(enabled=False),
    )
