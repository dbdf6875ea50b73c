import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient
from pydantic import BaseModel, Field

from netmeter.app.core.errors import (
    InvalidCountError,
    InvalidPeriodError,
    SnapshotError,
    StatsUnavailableError,
    UsageError,
    register_exception_handlers,
    sanitize_message,
)

# Setup a dummy app for testing handlers
dummy_app = FastAPI()
register_exception_handlers(dummy_app)


class MockModel(BaseModel):
    name: str = Field(..., max_length=5)


@dummy_app.get("/error/http")
async def trigger_http_error():
    raise HTTPException(status_code=403, detail="Access to /data/system/netstats denied")


@dummy_app.post("/error/validation")
async def trigger_validation_error(model: MockModel):
    return model


@dummy_app.get("/error/period")
async def trigger_period_error():
    raise InvalidPeriodError("Allowed values: hour, day, week, month")


@dummy_app.get("/error/stats")
async def trigger_stats_error():
    raise StatsUnavailableError("Network statistics unavailable for wifi")


@dummy_app.get("/error/snapshot")
async def trigger_snapshot_error():
    raise SnapshotError("Snapshot could not be read: /var/lib/netmeter/device.json")


@dummy_app.get("/error/unhandled")
async def trigger_unhandled_error():
    raise Exception("Something went wrong at /var/log/crash")


client = TestClient(dummy_app, raise_server_exceptions=False)


def test_sanitize_message_strips_internal_paths():
    """Internal paths are replaced with [INTERNAL_PATH]."""
    sanitized = sanitize_message("Error opening /data/system/netstats/uid.bin")
    assert "[INTERNAL_PATH]" in sanitized
    assert "/data/system" not in sanitized

    assert sanitize_message("Count must be between 1 and 7") == "Count must be between 1 and 7"


@pytest.mark.parametrize(
    ("error_cls", "code", "status"),
    [
        (InvalidPeriodError, "ERR_INVALID_PERIOD", 400),
        (InvalidCountError, "ERR_INVALID_COUNT", 400),
        (StatsUnavailableError, "ERR_NETWORK_USAGE", 503),
        (SnapshotError, "ERR_SNAPSHOT", 500),
    ],
)
def test_error_codes(error_cls, code: str, status: int) -> None:
    exc = error_cls("boom")
    assert isinstance(exc, UsageError)
    assert exc.code == code
    assert exc.status_code == status
    assert exc.message == "boom"
    assert str(exc) == "boom"


def test_http_exception_handler_sanitizes():
    response = client.get("/error/http")
    assert response.status_code == 403
    assert "[INTERNAL_PATH]" in response.json()["detail"]
    assert "code" not in response.json()


def test_validation_exception_handler():
    response = client.post("/error/validation", json={"name": "too_long_name"})
    assert response.status_code == 422
    body = response.json()
    assert body["code"] == "ERR_VALIDATION"
    assert body["detail"].startswith("Validation Error:")
    assert "name" in body["detail"]


def test_usage_error_handler_uses_stable_code():
    response = client.get("/error/period")
    assert response.status_code == 400
    assert response.json() == {"detail": "Allowed values: hour, day, week, month", "code": "ERR_INVALID_PERIOD"}

    response = client.get("/error/stats")
    assert response.status_code == 503
    assert response.json()["code"] == "ERR_NETWORK_USAGE"


def test_usage_error_handler_sanitizes_paths():
    response = client.get("/error/snapshot")
    assert response.status_code == 500
    assert response.json()["code"] == "ERR_SNAPSHOT"
    assert "/var/lib" not in response.json()["detail"]


def test_global_exception_handler():
    response = client.get("/error/unhandled")
    assert response.status_code == 500
    assert response.json() == {"detail": "An internal server error occurred.", "code": "INTERNAL_ERROR"}
