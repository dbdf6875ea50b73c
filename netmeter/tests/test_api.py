from datetime import timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from netmeter.app.api import deps
from netmeter.app.services.network_usage import NetworkUsageService
from netmeter.app.services.usage_types import TETHERING_OWNER_ID, Counters, Transport
from netmeter.main import app
from netmeter.tests.fakes import FakeAppCatalog, FakeIconEncoder, FakePermissionGate, FakeStatsProvider, app_entry

SAMPLE = Path(__file__).resolve().parents[2] / "samples" / "device_snapshot.json"


@pytest.fixture
def fake_service(fixed_now) -> NetworkUsageService:
    stats = FakeStatsProvider()
    stats.set_usage(10001, wifi=(2048, 1024))
    stats.set_usage(10002, mobile=(100, 0))
    stats.set_usage(TETHERING_OWNER_ID, wifi=(500, 0))
    stats.summary[Transport.WIFI] = Counters(9000, 1000)
    stats.summary[Transport.MOBILE] = Counters(70, 30)
    catalog = FakeAppCatalog(
        [app_entry("com.example.maps", 10001, name="Maps"), app_entry("com.example.mail", 10002, name="Mail")]
    )
    return NetworkUsageService(
        stats,
        catalog,
        FakePermissionGate(usage_access=True, phone_state=True, subscriber_id="sub-1"),
        FakeIconEncoder(),
        max_workers=2,
        query_timeout=2.0,
        tz=timezone.utc,
        clock=lambda: fixed_now,
    )


@pytest.fixture
def client(fake_service):
    app.dependency_overrides[deps.get_usage_service] = lambda: fake_service
    try:
        yield TestClient(app, raise_server_exceptions=False)
    finally:
        app.dependency_overrides = {}


def test_health() -> None:
    response = TestClient(app).get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["service"] == "netmeter-api"


def test_apps_endpoint_returns_ranked_report(client) -> None:
    response = client.get("/usage/apps", params={"period": "day", "count": 1})

    assert response.status_code == 200
    body = response.json()
    assert [item["packageName"] for item in body] == ["com.example.maps", "com.android.tethering", "com.example.mail"]
    assert body[0] == {
        "packageName": "com.example.maps",
        "appName": "Maps",
        "icon": "data:image/png;base64,com.example.maps",
        "uid": 10001,
        "wifi": {"rx": 2048, "tx": 1024, "total": 3072},
        "mobile": {"rx": 0, "tx": 0, "total": 0},
        "totalBytes": 3072,
    }
    assert body[1]["uid"] == -1
    assert body[1]["icon"] is None


def test_count_defaults_to_one(client) -> None:
    response = client.get("/usage/apps", params={"period": "hour"})
    assert response.status_code == 200


def test_total_endpoint(client) -> None:
    response = client.get("/usage/total", params={"period": "month", "count": 3})

    assert response.status_code == 200
    assert response.json() == {
        "wifi": {"rx": 9000, "tx": 1000, "total": 10000},
        "mobile": {"rx": 70, "tx": 30, "total": 100},
        "totalBytes": 10100,
    }


@pytest.mark.parametrize("path", ["/usage/apps", "/usage/total"])
def test_unknown_period_is_bad_request(client, path: str) -> None:
    response = client.get(path, params={"period": "fortnight"})

    assert response.status_code == 400
    assert response.json()["code"] == "ERR_INVALID_PERIOD"
    assert "hour, day, week, month" in response.json()["detail"]


@pytest.mark.parametrize(("period", "count"), [("hour", 2), ("day", 8), ("week", 5), ("month", 13), ("day", 0)])
def test_out_of_range_count_is_bad_request(client, period: str, count: int) -> None:
    response = client.get("/usage/apps", params={"period": period, "count": count})

    assert response.status_code == 400
    assert response.json()["code"] == "ERR_INVALID_COUNT"


def test_non_numeric_count_is_validation_error(client) -> None:
    response = client.get("/usage/apps", params={"period": "day", "count": "two"})

    assert response.status_code == 422
    assert response.json()["code"] == "ERR_VALIDATION"
    assert "count" in response.json()["detail"]


def test_missing_period_is_validation_error(client) -> None:
    response = client.get("/usage/total")
    assert response.status_code == 422
    assert response.json()["code"] == "ERR_VALIDATION"


def test_stats_failure_is_service_unavailable(client, fake_service) -> None:
    fake_service.aggregator.stats.failing_summaries.add(Transport.WIFI)

    response = client.get("/usage/total", params={"period": "day"})

    assert response.status_code == 503
    assert response.json()["code"] == "ERR_NETWORK_USAGE"


def test_catalog_failure_is_service_unavailable(client, fake_service) -> None:
    fake_service.aggregator.catalog.error = RuntimeError("package manager died")

    response = client.get("/usage/apps", params={"period": "day"})

    assert response.status_code == 503
    assert response.json()["code"] == "ERR_NETWORK_USAGE"


def test_usage_responses_are_not_cached(client) -> None:
    response = client.get("/usage/apps", params={"period": "day"})
    assert response.headers["Cache-Control"] == "no-store"
    assert response.headers["X-Content-Type-Options"] == "nosniff"


def test_permission_status(client, fake_service) -> None:
    assert client.get("/permissions/usage-access").json() == {"granted": True}

    fake_service.permissions.usage_access = False
    assert client.get("/permissions/usage-access").json() == {"granted": False}


def test_open_settings_is_accepted_even_when_it_fails(client, fake_service) -> None:
    fake_service.permissions.open_error = RuntimeError("activity not found")

    response = client.post("/permissions/usage-access/open")

    assert response.status_code == 202
    assert response.json() == {"status": "requested"}
    assert fake_service.permissions.opened == 1


def test_missing_snapshot_configuration_is_unavailable(monkeypatch) -> None:
    monkeypatch.setattr(deps.settings, "snapshot_path", None)

    response = TestClient(app).get("/usage/apps", params={"period": "day"})

    assert response.status_code == 503
    assert "NETMETER_SNAPSHOT" in response.json()["detail"]


def test_configured_snapshot_is_served(monkeypatch) -> None:
    monkeypatch.setattr(deps.settings, "snapshot_path", SAMPLE)

    response = TestClient(app).get("/usage/apps", params={"period": "week"})

    assert response.status_code == 200
    assert [item["appName"] for item in response.json()][0] == "YouTube"
    assert TestClient(app).get("/permissions/usage-access").json() == {"granted": True}
