"""
Platform collaborators backed by a JSON device snapshot.

A snapshot records what the platform services would report: installed apps,
bucketed per-owner counters, optional device summaries and permission state.
It lets the engine, the API and the CLI run without a device attached.

Example::

    {
      "subscriber_id": "310260000000000",
      "permissions": {"usage_access": true, "phone_state": true},
      "apps": [
        {"package": "com.example.chat", "uid": 10123, "name": "Chat",
         "system": false, "launcher": true, "icon": "icons/chat.png"}
      ],
      "usage": {
        "10123": {"wifi": [{"start": 0, "end": 3600000, "rx": 1200, "tx": 300}]},
        "-1": {"mobile": [{"start": 0, "end": 3600000, "rx": 50, "tx": 10}]}
      }
    }
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel, Field, ValidationError, model_validator

from netmeter.app.core.errors import SnapshotError
from netmeter.app.services.icons import PillowIconEncoder
from netmeter.app.services.platform import AppCatalog, PermissionGate, StatsProvider
from netmeter.app.services.time_window import TimeWindow
from netmeter.app.services.usage_types import ZERO, CatalogEntry, Counters, Transport

logger = logging.getLogger(__name__)


class SnapshotBucket(BaseModel):
    start: int
    end: int
    rx: int = Field(default=0, ge=0)
    tx: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def check_range(self) -> "SnapshotBucket":
        if self.end <= self.start:
            raise ValueError("bucket end must be after start")
        return self


class SnapshotApp(BaseModel):
    package: str = Field(min_length=1)
    uid: int
    name: Optional[str] = None
    system: bool = False
    updated_system: bool = False
    launcher: bool = True
    icon: Optional[str] = None


class SnapshotPermissions(BaseModel):
    usage_access: bool = True
    phone_state: bool = False


class DeviceSnapshot(BaseModel):
    subscriber_id: Optional[str] = None
    permissions: SnapshotPermissions = Field(default_factory=SnapshotPermissions)
    apps: List[SnapshotApp] = Field(default_factory=list)
    usage: Dict[int, Dict[Transport, List[SnapshotBucket]]] = Field(default_factory=dict)
    summary: Optional[Dict[Transport, List[SnapshotBucket]]] = None
    base_dir: Path = Field(default=Path("."), exclude=True)

    def buckets(self, owner_id: int, transport: Transport) -> List[SnapshotBucket]:
        return self.usage.get(owner_id, {}).get(transport, [])

    def summary_buckets(self, transport: Transport) -> List[SnapshotBucket]:
        if self.summary is not None:
            return self.summary.get(transport, [])
        return [bucket for per_owner in self.usage.values() for bucket in per_owner.get(transport, [])]


def load_snapshot(path: str | Path) -> DeviceSnapshot:
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise SnapshotError(f"Snapshot could not be read: {path}") from exc
    except ValueError as exc:
        raise SnapshotError(f"Snapshot is not valid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise SnapshotError("Snapshot must be a JSON object")

    try:
        snapshot = DeviceSnapshot.model_validate(data)
    except ValidationError as exc:
        raise SnapshotError(f"Invalid snapshot: {exc.error_count()} validation error(s)") from exc
    snapshot.base_dir = path.resolve().parent
    return snapshot


def _sum_overlapping(buckets: List[SnapshotBucket], window: TimeWindow) -> Counters:
    total = ZERO
    for bucket in buckets:
        if window.overlaps(bucket.start, bucket.end):
            total = total + Counters(rx=bucket.rx, tx=bucket.tx)
    return total


class SnapshotStatsProvider(StatsProvider):
    def __init__(self, snapshot: DeviceSnapshot) -> None:
        self.snapshot = snapshot

    def query_entity(self, transport, subscriber_id, window, owner_id):
        return [
            Counters(rx=bucket.rx, tx=bucket.tx)
            for bucket in self.snapshot.buckets(owner_id, transport)
            if window.overlaps(bucket.start, bucket.end)
        ]

    def query_summary(self, transport, subscriber_id, window):
        if transport is Transport.MOBILE and subscriber_id != self.snapshot.subscriber_id:
            return ZERO
        return _sum_overlapping(self.snapshot.summary_buckets(transport), window)


class SnapshotAppCatalog(AppCatalog):
    def __init__(self, snapshot: DeviceSnapshot) -> None:
        self.snapshot = snapshot

    def list_installed(self) -> Sequence[CatalogEntry]:
        return [
            CatalogEntry(
                package_id=app.package,
                owner_id=app.uid,
                display_name=app.name or app.package,
                is_system=app.system,
                is_updated_system=app.updated_system,
                has_launcher=app.launcher,
            )
            for app in self.snapshot.apps
        ]

    def icon_path(self, package_id: str) -> Optional[Path]:
        for app in self.snapshot.apps:
            if app.package == package_id and app.icon:
                return self.snapshot.base_dir / app.icon
        return None


class SnapshotPermissionGate(PermissionGate):
    def __init__(self, snapshot: DeviceSnapshot) -> None:
        self.snapshot = snapshot

    def has_usage_access(self) -> bool:
        return self.snapshot.permissions.usage_access

    def has_phone_state_access(self) -> bool:
        return self.snapshot.permissions.phone_state

    def resolve_mobile_owner_id(self) -> Optional[str]:
        if not self.has_phone_state_access():
            return None
        return self.snapshot.subscriber_id

    def open_usage_access_settings(self) -> None:
        logger.info("Usage access settings requested; snapshot devices have no settings screen")


class SnapshotPlatform:
    """All four collaborators wired to one snapshot."""

    def __init__(self, snapshot: DeviceSnapshot, icon_size: int | None = None) -> None:
        self.snapshot = snapshot
        self.stats = SnapshotStatsProvider(snapshot)
        self.catalog = SnapshotAppCatalog(snapshot)
        self.permissions = SnapshotPermissionGate(snapshot)
        self.icons = PillowIconEncoder(self.catalog.icon_path, size=icon_size)

    @classmethod
    def from_file(cls, path: str | Path, icon_size: int | None = None) -> "SnapshotPlatform":
        return cls(load_snapshot(path), icon_size=icon_size)
