import os
from datetime import datetime, timedelta, timezone

import pytest

# Settings are read at import time; pin the environment before any netmeter import
os.environ.setdefault("NETMETER_APP_ENV", "dev")
os.environ["NETMETER_METRICS"] = "0"
os.environ.setdefault("NETMETER_SETTINGS_FILE", "/non/existent/netmeter.toml")

from netmeter.app.services.time_window import TimeWindow  # noqa: E402
from netmeter.tests.fakes import (  # noqa: E402
    FakeAppCatalog,
    FakeIconEncoder,
    FakePermissionGate,
    FakeStatsProvider,
)

FIXED_NOW = datetime(2024, 5, 15, 14, 37, 21, 123000, tzinfo=timezone.utc)


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def window() -> TimeWindow:
    return TimeWindow.from_datetimes(FIXED_NOW - timedelta(days=1), FIXED_NOW)


@pytest.fixture
def stats() -> FakeStatsProvider:
    return FakeStatsProvider()


@pytest.fixture
def catalog() -> FakeAppCatalog:
    return FakeAppCatalog()


@pytest.fixture
def icons() -> FakeIconEncoder:
    return FakeIconEncoder()


@pytest.fixture
def permissions() -> FakePermissionGate:
    return FakePermissionGate()
